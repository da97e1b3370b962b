import time

import jwt
import pytest

from app.core.config import settings
from app.core.jwt_utils import (
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
)

WALLET = "0x742d35cc6542cb23c68b68b6b6bb6b3e1234abcd"


class TestAccessToken:
    def test_round_trip(self):
        token, expires_at = create_access_token("user-1", WALLET)

        payload = decode_access_token(token)

        assert payload.kind == "access"
        assert payload.user_id == "user-1"
        assert payload.wallet_address == WALLET
        assert payload.exp == expires_at == payload.iat + settings.ACCESS_TOKEN_EXPIRE_SECONDS
        assert payload.iss == settings.JWT_ISSUER

    def test_tokens_issued_in_same_second_differ(self):
        now = time.time()

        first, _ = create_access_token("user-1", WALLET, now=now)
        second, _ = create_access_token("user-1", WALLET, now=now)

        assert first != second

    def test_expired(self):
        token, _ = create_access_token(
            "user-1", WALLET, now=time.time() - settings.ACCESS_TOKEN_EXPIRE_SECONDS - 10
        )

        with pytest.raises(TokenError, match="Token expired"):
            decode_access_token(token)

    def test_wrong_secret(self):
        token = jwt.encode(
            {"kind": "access", "user_id": "u", "wallet_address": WALLET, "iat": int(time.time()),
             "exp": int(time.time()) + 60, "jti": "x", "iss": settings.JWT_ISSUER},
            "some-other-secret",
            algorithm="HS256",
        )

        with pytest.raises(TokenError, match="Invalid token"):
            decode_access_token(token)

    def test_requires_fields(self):
        with pytest.raises(ValueError):
            create_access_token("", WALLET)
        with pytest.raises(TokenError):
            decode_access_token("")


class TestTokenKinds:
    """Access and refresh tokens are not interchangeable"""

    def test_refresh_token_rejected_as_access(self):
        token, _ = create_refresh_token("user-1")

        with pytest.raises(TokenError):
            decode_access_token(token)

    def test_access_token_rejected_as_refresh(self):
        token, _ = create_access_token("user-1", WALLET)

        with pytest.raises(TokenError):
            decode_refresh_token(token)

    def test_kind_checked_even_with_right_secret(self):
        now = int(time.time())
        token = jwt.encode(
            {"kind": "refresh", "user_id": "u", "iat": now, "exp": now + 60, "jti": "x",
             "iss": settings.JWT_ISSUER},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )

        with pytest.raises(TokenError, match="Invalid token payload"):
            decode_access_token(token)

    def test_refresh_round_trip(self):
        token, expires_at = create_refresh_token("user-1")

        payload = decode_refresh_token(token)

        assert payload.kind == "refresh"
        assert payload.exp == expires_at
