import time

import pytest

from app.core.errors import InvalidRefreshToken
from app.models.auth import UserSession
from app.models.users import User
from app.services.session_manager import AuthOutcome, SessionManager

ADDRESS = "0x742d35cc6542cb23c68b68b6b6bb6b3e1234abcd"
OTHER = "0x" + "1" * 40


@pytest.fixture
def manager(db_session) -> SessionManager:
    return SessionManager(db_session)


class TestAuthenticate:
    def test_new_user(self, manager, db_session):
        result = manager.authenticate(ADDRESS, ip_address="10.0.0.1", user_agent="pytest")

        assert result.outcome is AuthOutcome.NEW_USER
        assert result.is_new_user is True
        assert result.user.wallet_address == ADDRESS
        assert result.user.last_login is not None
        assert result.session.is_active is True
        assert result.session.ip_address == "10.0.0.1"
        assert result.session.access_token == result.access_token
        assert db_session.query(User).count() == 1

    def test_existing_user(self, manager, db_session):
        first = manager.authenticate(ADDRESS)
        second = manager.authenticate(ADDRESS.upper().replace("0X", "0x"))

        assert second.outcome is AuthOutcome.EXISTING_USER
        assert second.user.id == first.user.id
        assert db_session.query(User).count() == 1

    def test_each_sign_in_opens_a_session(self, manager, db_session):
        first = manager.authenticate(ADDRESS)
        second = manager.authenticate(ADDRESS)

        assert first.session.id != second.session.id
        assert db_session.query(UserSession).filter(UserSession.is_active.is_(True)).count() == 2

    def test_admin_wallet_gets_role(self, manager, monkeypatch):
        from app.core.config import settings

        monkeypatch.setattr(settings, "ADMIN_WALLET_ADDRESSES", ADDRESS.upper().replace("0X", "0x"))

        assert manager.authenticate(ADDRESS).user.is_admin is True
        assert manager.authenticate(OTHER).user.is_admin is False


class TestRefresh:
    def test_refresh_updates_only_that_session(self, manager):
        first = manager.authenticate(ADDRESS)
        second = manager.authenticate(ADDRESS)

        refreshed = manager.refresh(first.refresh_token)

        assert refreshed.session_id == first.session.id
        assert manager.get_active_session(refreshed.access_token).id == first.session.id
        assert manager.get_active_session(first.access_token) is None
        assert manager.get_active_session(second.access_token).id == second.session.id

    def test_refresh_token_stays_usable(self, manager):
        result = manager.authenticate(ADDRESS)

        manager.refresh(result.refresh_token)
        again = manager.refresh(result.refresh_token)

        assert again.session_id == result.session.id

    def test_invalid_refresh_token(self, manager):
        with pytest.raises(InvalidRefreshToken):
            manager.refresh("garbage")

    def test_access_token_is_not_accepted(self, manager):
        result = manager.authenticate(ADDRESS)

        with pytest.raises(InvalidRefreshToken):
            manager.refresh(result.access_token)

    def test_revoked_session_cannot_refresh(self, manager):
        result = manager.authenticate(ADDRESS)
        manager.revoke(result.access_token, result.user.id)

        with pytest.raises(InvalidRefreshToken):
            manager.refresh(result.refresh_token)


class TestRevoke:
    def test_revoke(self, manager, db_session):
        result = manager.authenticate(ADDRESS)

        assert manager.revoke(result.access_token, result.user.id) == 1
        assert manager.get_active_session(result.access_token) is None
        # soft delete, the row stays
        assert db_session.query(UserSession).count() == 1

    def test_revoke_is_idempotent(self, manager):
        result = manager.authenticate(ADDRESS)
        manager.revoke(result.access_token, result.user.id)

        assert manager.revoke(result.access_token, result.user.id) == 0

    def test_revoke_scoped_to_owner(self, manager):
        mine = manager.authenticate(ADDRESS)
        theirs = manager.authenticate(OTHER)

        assert manager.revoke(mine.access_token, theirs.user.id) == 0
        assert manager.get_active_session(mine.access_token) is not None


class TestGetActiveSession:
    def test_unknown_token(self, manager):
        assert manager.get_active_session("nope") is None
        assert manager.get_active_session("") is None

    def test_expired_session(self, manager, db_session):
        result = manager.authenticate(ADDRESS)
        later = SessionManager(db_session, clock=lambda: time.time() + 3601)

        assert later.get_active_session(result.access_token) is None
        assert manager.get_active_session(result.access_token) is not None
