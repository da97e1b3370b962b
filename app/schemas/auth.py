from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from app.core.wallet_auth import normalize_address
from app.schemas.my_base_model import CustomBaseModel
from app.schemas.user import UserProfile


def _wallet_field(description: str = "Wallet address (0x + 40 hex chars)"):
    return Field(
        ...,
        description=description,
        validation_alias=AliasChoices("wallet_address", "walletAddress"),
        examples=["0x742d35Cc6542Cb23C68b68b6B6Bb6B3e1234abcd"],
    )


class _WalletRequest(BaseModel):
    wallet_address: str = _wallet_field()

    @field_validator("wallet_address")
    @classmethod
    def validate_wallet_address(cls, v: str) -> str:
        """Reject anything but 0x + 40 hex chars, return it lowercased"""
        return normalize_address(v)


class NonceRequest(_WalletRequest):
    """Request model for nonce generation - input validation"""


class NonceResponse(CustomBaseModel):
    """Response model for nonce generation - output"""

    nonce: str = ""
    message: str = ""
    expires_at: int = 0


class VerifyRequest(_WalletRequest):
    """Request model for wallet verification - input validation"""

    signature: str = Field(..., min_length=1, description="personal_sign signature of the challenge message")
    nonce: str = Field(..., min_length=1, description="Nonce returned by /auth/connect-wallet")


class AuthResponse(CustomBaseModel):
    """Response model for authentication - output"""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 0
    is_new_user: bool = False
    user: UserProfile


class RefreshRequest(BaseModel):
    """Request model for token refresh - input validation"""

    refresh_token: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("refresh_token", "refreshToken"),
    )


class RefreshResponse(CustomBaseModel):
    """Response model for token refresh - output"""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = 0
    expires_at: Optional[datetime] = None
