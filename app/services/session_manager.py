"""
Session lifecycle for wallet-authenticated users.

    Issued/Active --refresh--> Active --logout--> Revoked
                \\--(time passes)--> Expired

A session row is usable only while ``is_active`` and ``now < expires_at``.
Revocation only ever flips ``is_active`` from True to False; rows are never
deleted here. Refresh rewrites the access token of the same row, so the old
access token stops resolving as soon as the update is committed.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.clock import from_timestamp
from app.core.config import settings
from app.core.errors import InvalidRefreshToken
from app.core.jwt_utils import (
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
)
from app.models.auth import UserSession
from app.models.users import User

logger = logging.getLogger(__name__)


class AuthOutcome(str, Enum):
    NEW_USER = "new_user"
    EXISTING_USER = "existing_user"


@dataclass
class AuthResult:
    outcome: AuthOutcome
    user: User
    session: UserSession
    access_token: str
    refresh_token: str
    expires_at: datetime

    @property
    def is_new_user(self) -> bool:
        return self.outcome is AuthOutcome.NEW_USER


@dataclass
class RefreshResult:
    session_id: str
    access_token: str
    expires_at: datetime


class SessionManager:
    def __init__(self, db: Session, *, clock: Callable[[], float] = time.time) -> None:
        self.db = db
        self._clock = clock

    def _now(self) -> datetime:
        return from_timestamp(self._clock())

    def _get_or_create_user(self, wallet_address: str) -> tuple[User, AuthOutcome]:
        user = self.db.query(User).filter(User.wallet_address == wallet_address).first()
        if user is not None:
            return user, AuthOutcome.EXISTING_USER

        user = User(
            wallet_address=wallet_address,
            is_admin=wallet_address in settings.admin_wallets,
            created_at=self._now(),
        )
        self.db.add(user)
        self.db.flush()
        logger.info("New user created: %s", user.id)
        return user, AuthOutcome.NEW_USER

    def authenticate(
        self,
        wallet_address: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuthResult:
        """
        Open a new session for an already verified wallet.

        Every call creates an independent session, so a user can be signed in
        on several devices at once.
        """
        wallet_address = wallet_address.lower()
        user, outcome = self._get_or_create_user(wallet_address)

        now = self._clock()
        access_token, access_exp = create_access_token(user.id, wallet_address, now=now)
        refresh_token, _ = create_refresh_token(user.id, now=now)

        session = UserSession(
            user_id=user.id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=from_timestamp(access_exp),
            is_active=True,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=from_timestamp(now),
            last_active=from_timestamp(now),
        )
        user.last_login = from_timestamp(now)
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        self.db.refresh(user)

        logger.info("User authenticated: %s (session %s)", user.id, session.id)
        return AuthResult(
            outcome=outcome,
            user=user,
            session=session,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=session.expires_at,
        )

    def refresh(self, refresh_token: str) -> RefreshResult:
        """Mint a new access token for the active session owning ``refresh_token``."""
        try:
            payload = decode_refresh_token(refresh_token)
        except TokenError as exc:
            logger.info("Token refresh failed: %s", exc)
            raise InvalidRefreshToken()

        session = (
            self.db.query(UserSession)
            .filter(
                UserSession.refresh_token == refresh_token,
                UserSession.user_id == payload.user_id,
                UserSession.is_active.is_(True),
            )
            .first()
        )
        if session is None or session.user is None:
            raise InvalidRefreshToken()

        now = self._clock()
        access_token, access_exp = create_access_token(
            session.user.id, session.user.wallet_address, now=now
        )
        session.access_token = access_token
        session.expires_at = from_timestamp(access_exp)
        session.last_active = from_timestamp(now)
        self.db.commit()

        logger.info("Session refreshed: %s", session.id)
        return RefreshResult(
            session_id=session.id,
            access_token=access_token,
            expires_at=session.expires_at,
        )

    def revoke(self, access_token: str, user_id: str) -> int:
        """Deactivate the caller's sessions holding ``access_token``.

        Scoped to ``user_id`` so a token can never revoke someone else's
        session. Returns how many rows changed; zero is not an error.
        """
        count = (
            self.db.query(UserSession)
            .filter(
                UserSession.access_token == access_token,
                UserSession.user_id == user_id,
                UserSession.is_active.is_(True),
            )
            .update({UserSession.is_active: False}, synchronize_session=False)
        )
        self.db.commit()
        logger.info("User logged out: %s (%d session(s) revoked)", user_id, count)
        return count

    def get_active_session(self, access_token: str) -> Optional[UserSession]:
        """The session for ``access_token`` if active and unexpired, else None.

        Unknown, expired and revoked tokens all return None.
        """
        if not access_token:
            return None
        return (
            self.db.query(UserSession)
            .filter(
                UserSession.access_token == access_token,
                UserSession.is_active.is_(True),
                UserSession.expires_at > self._now(),
            )
            .first()
        )
