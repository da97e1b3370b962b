from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.dependencies import (
    get_bearer_token,
    get_client_ip,
    get_current_user,
    get_optional_user,
    get_session_manager,
    limit_challenges,
    limit_verify_attempts,
)
from app.core.errors import ApiError
from app.core.rate_limit import VERIFY, RateLimiter
from app.db.session import get_db
import app.schemas.auth as schemas
from app.schemas.my_base_model import Message
from app.schemas.user import CurrentUser, ProfileUpdateRequest, SessionStatus, UserProfile
from app.services import users as user_service
from app.services.nonce_store import NonceStore, get_nonce_store
from app.services.session_manager import SessionManager
from app.services.wallet_login import request_challenge, verify_and_authenticate

router = APIRouter()
group_tags: List[str] = ["Auth"]


@router.post(
    "/connect-wallet",
    tags=group_tags,
    response_model=schemas.NonceResponse,
    dependencies=[Depends(limit_challenges)],
)
def connect_wallet(
    body: schemas.NonceRequest, store: NonceStore = Depends(get_nonce_store)
) -> schemas.NonceResponse:
    """Issue a sign-in challenge for a wallet address.

    Any earlier challenge for the same address stops working. Rate limited
    per client IP.
    """
    challenge = request_challenge(store, body.wallet_address)
    return schemas.NonceResponse(
        nonce=challenge.nonce,
        message=challenge.message,
        expires_at=int(challenge.expires_at),
    )


@router.post(
    "/verify-signature",
    tags=group_tags,
    response_model=schemas.AuthResponse,
)
def verify_signature(
    body: schemas.VerifyRequest,
    request: Request,
    store: NonceStore = Depends(get_nonce_store),
    manager: SessionManager = Depends(get_session_manager),
    client_ip: Optional[str] = Depends(get_client_ip),
    limiter: RateLimiter = Depends(limit_verify_attempts),
) -> schemas.AuthResponse:
    """Verify a signed challenge and open a session.

    Creates the user on first sign-in (``is_new_user`` is then true). Failed
    attempts count against the caller's rate limit, successful ones do not.
    """
    try:
        result = verify_and_authenticate(
            store,
            manager,
            body.wallet_address,
            body.signature,
            body.nonce,
            ip_address=client_ip,
            user_agent=request.headers.get("user-agent"),
        )
    except ApiError:
        limiter.hit(VERIFY, client_ip)
        raise
    return schemas.AuthResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_SECONDS,
        is_new_user=result.is_new_user,
        user=UserProfile.from_record(result.user),
    )


@router.post(
    "/refresh-token",
    tags=group_tags,
    response_model=schemas.RefreshResponse,
)
def refresh_token(
    body: schemas.RefreshRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> schemas.RefreshResponse:
    """Swap a refresh token for a new access token on the same session."""
    result = manager.refresh(body.refresh_token)
    return schemas.RefreshResponse(
        access_token=result.access_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_SECONDS,
        expires_at=result.expires_at,
    )


@router.post(
    "/logout",
    tags=group_tags,
    response_model=Message,
    status_code=status.HTTP_200_OK,
)
def logout(
    token: str = Depends(get_bearer_token),
    user: CurrentUser = Depends(get_current_user),
    manager: SessionManager = Depends(get_session_manager),
) -> Message:
    """Revoke the session behind the presented access token."""
    manager.revoke(token, user.id)
    return Message(message="Logout successful")


@router.get(
    "/profile",
    tags=group_tags,
    response_model=UserProfile,
)
def get_profile(
    user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)
) -> UserProfile:
    return UserProfile.from_record(user_service.get_user(db, user.id))


@router.put(
    "/profile",
    tags=group_tags,
    response_model=UserProfile,
)
def update_profile(
    body: ProfileUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserProfile:
    updated = user_service.update_profile(db, user.id, email=body.email, username=body.username)
    return UserProfile.from_record(updated)


@router.get(
    "/session",
    tags=group_tags,
    response_model=SessionStatus,
)
def get_session_status(user: Optional[CurrentUser] = Depends(get_optional_user)) -> SessionStatus:
    """Whether the caller is signed in. Never fails for bad or missing tokens."""
    return SessionStatus(authenticated=user is not None, user=user)
