"""
FastAPI Authentication Dependencies
This module provides FastAPI dependency functions that can be injected into route handlers
to gate them on a live wallet session.
Usage in endpoints:
    @router.get("/protected")
    def protected_route(user: CurrentUser = Depends(get_current_user)):
        return {"user": user.wallet_address}
Flow:
1. Client sends request with Authorization: Bearer <token> header
2. _extract_token() pulls the token out of the header
3. decode_access_token() checks signature, expiry and token kind locally
4. SessionManager.get_active_session() confirms the session was not revoked
   or replaced by a refresh in the meantime
5. The resolved user is returned and stored on request.state.user
"""

import logging
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Forbidden, TooManyRequests, Unauthorized
from app.core.jwt_utils import TokenError, decode_access_token
from app.core.rate_limit import CHALLENGE, VERIFY, RateLimiter, get_rate_limiter
from app.db.session import get_db
from app.schemas.user import CurrentUser
from app.services.session_manager import SessionManager

logger = logging.getLogger(__name__)


def _extract_token(authorization: Optional[str]) -> str:
    """
    Extract the bearer token from the Authorization header.
    Raises:
        Unauthorized: If the header is missing or not "Bearer <token>"
    """
    if not authorization:
        raise Unauthorized("Access token required")

    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        raise Unauthorized("Invalid authorization header")
    return token


def get_session_manager(db: Session = Depends(get_db)) -> SessionManager:
    return SessionManager(db)


def resolve_user(token: str, manager: SessionManager) -> CurrentUser:
    """Validate ``token`` locally and against the session store."""
    try:
        payload = decode_access_token(token)
    except TokenError as exc:
        logger.info("JWT verification failed: %s", exc)
        raise Unauthorized("Invalid token")

    session = manager.get_active_session(token)
    if session is None or session.user is None or session.user_id != payload.user_id:
        raise Unauthorized("Invalid or expired token")

    user = session.user
    return CurrentUser(
        id=user.id,
        wallet_address=user.wallet_address,
        email=user.email,
        username=user.username,
        is_admin=bool(user.is_admin),
    )


def get_bearer_token(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> str:
    return _extract_token(authorization)


def get_current_user(
    request: Request,
    token: str = Depends(get_bearer_token),
    manager: SessionManager = Depends(get_session_manager),
) -> CurrentUser:
    """
    Returning the authenticated user, 401 otherwise.
    """
    user = resolve_user(token, manager)
    request.state.user = user
    return user


def get_optional_user(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization"),
    manager: SessionManager = Depends(get_session_manager),
) -> Optional[CurrentUser]:
    """
    Same checks as get_current_user, but any failure yields an anonymous caller.

    Missing or invalid credentials are expected here. Anything else (database
    or cache down) is still swallowed but logged with its traceback, since it
    would otherwise look exactly like an anonymous request.
    """
    request.state.user = None
    if not authorization:
        return None
    try:
        user = resolve_user(_extract_token(authorization), manager)
    except Unauthorized:
        return None
    except Exception:
        logger.exception("Optional authentication failed, continuing anonymously")
        return None
    request.state.user = user
    return user


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Authenticated user holding the admin role, 403 otherwise."""
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user


def get_client_ip(request: Request) -> Optional[str]:
    """
    Address of the caller. The first X-Forwarded-For hop is used only when
    TRUST_FORWARDED_FOR is set, since clients can send any value there.
    """
    if settings.TRUST_FORWARDED_FOR:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded and forwarded.split(",")[0].strip():
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def limit_challenges(
    client_ip: Optional[str] = Depends(get_client_ip),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """Count a challenge request against the caller, 429 once over the limit."""
    exceeded, _ = limiter.hit(CHALLENGE, client_ip)
    if exceeded:
        raise TooManyRequests(retry_after=limiter.retry_after(CHALLENGE))


def limit_verify_attempts(
    client_ip: Optional[str] = Depends(get_client_ip),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> RateLimiter:
    """
    Reject callers who already used up their failed sign-in attempts.
    The endpoint records failures itself through the returned limiter.
    """
    if limiter.is_exhausted(VERIFY, client_ip):
        raise TooManyRequests(retry_after=limiter.retry_after(VERIFY))
    return limiter
