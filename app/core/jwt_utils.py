"""
JWT Token Utilities

This module handles JSON Web Token (JWT) creation and verification for wallet sessions.
After a wallet signature is verified, the session manager mints an access/refresh
token pair with the helpers below.

Flow:
1. Wallet signature verified -> create_access_token() + create_refresh_token()
2. Client calls a protected route with the access token -> decode_access_token()
3. Client renews an expired access token -> decode_refresh_token()

Payloads are tagged so one kind can never be replayed as the other:
- access:  {"kind": "access",  "user_id", "wallet_address", "iat", "exp", "jti", "iss"}
- refresh: {"kind": "refresh", "user_id", "iat", "exp", "jti", "iss"}

Access and refresh tokens are also signed with different secrets.
"""

import time
import uuid
from typing import Any, Dict, Literal, Optional, Tuple, Type, TypeVar

import jwt
from pydantic import BaseModel, ValidationError

from app.core.config import settings


class TokenError(Exception):
    """Raised when a token fails signature, expiry or payload validation."""


class _TokenPayload(BaseModel):
    user_id: str
    iat: int
    exp: int
    jti: str
    iss: str


class AccessTokenPayload(_TokenPayload):
    kind: Literal["access"]
    wallet_address: str


class RefreshTokenPayload(_TokenPayload):
    kind: Literal["refresh"]


P = TypeVar("P", bound=_TokenPayload)


def _encode(claims: Dict[str, Any], secret: str, ttl_seconds: int, now: Optional[float]) -> Tuple[str, int]:
    issued_at = int(now if now is not None else time.time())
    expires_at = issued_at + int(ttl_seconds)
    payload = {
        **claims,
        "iat": issued_at,
        "exp": expires_at,
        "jti": uuid.uuid4().hex,
        "iss": settings.JWT_ISSUER,
    }
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM), expires_at


def create_access_token(user_id: str, wallet_address: str, *, now: Optional[float] = None) -> Tuple[str, int]:
    """
    Create a JWT access token bound to a user and wallet.

    Args:
        user_id: Owning user id
        wallet_address: Lowercase wallet address of the user
        now: Issue time as unix seconds (defaults to the current time)

    Returns:
        (token, expires_at) where expires_at is unix seconds

    Raises:
        ValueError: If user_id or wallet_address is empty
    """
    if not user_id or not wallet_address:
        raise ValueError("user_id and wallet_address are required")
    return _encode(
        {"kind": "access", "user_id": user_id, "wallet_address": wallet_address},
        settings.JWT_SECRET,
        settings.ACCESS_TOKEN_EXPIRE_SECONDS,
        now,
    )


def create_refresh_token(user_id: str, *, now: Optional[float] = None) -> Tuple[str, int]:
    """Create a longer-lived refresh token; returns (token, expires_at)."""
    if not user_id:
        raise ValueError("user_id is required")
    return _encode(
        {"kind": "refresh", "user_id": user_id},
        settings.JWT_REFRESH_SECRET,
        settings.REFRESH_TOKEN_EXPIRE_SECONDS,
        now,
    )


def _decode(token: str, secret: str, model: Type[P]) -> P:
    if not token:
        raise TokenError("Missing token")
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=settings.JWT_ISSUER,
            options={"require": ["exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token expired")
    except jwt.InvalidTokenError:
        raise TokenError("Invalid token")

    try:
        return model.model_validate(payload)
    except ValidationError:
        raise TokenError("Invalid token payload")


def decode_access_token(token: str) -> AccessTokenPayload:
    """Verify signature, expiry and ``kind == "access"``."""
    return _decode(token, settings.JWT_SECRET, AccessTokenPayload)


def decode_refresh_token(token: str) -> RefreshTokenPayload:
    """Verify signature, expiry and ``kind == "refresh"``."""
    return _decode(token, settings.JWT_REFRESH_SECRET, RefreshTokenPayload)
