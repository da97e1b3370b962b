import logging
from typing import Optional

from app.core.errors import InvalidNonce, InvalidSignature, NonceExpired
from app.core.wallet_auth import build_challenge_message, verify_signature
from app.services.nonce_store import Challenge, ChallengeStatus, NonceStore
from app.services.session_manager import AuthResult, SessionManager

logger = logging.getLogger(__name__)


def request_challenge(store: NonceStore, wallet_address: str) -> Challenge:
    return store.issue_challenge(wallet_address)


def verify_and_authenticate(
    store: NonceStore,
    manager: SessionManager,
    wallet_address: str,
    signature: str,
    nonce: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuthResult:
    """
    Check the nonce, then the signature, then open a session.

    The nonce is consumed before the signature is looked at, so a correct
    signature over a stale, replaced or reused nonce never authenticates, and
    a bad signature burns the challenge (the client has to request a new one).
    """
    status = store.check_challenge(wallet_address, nonce)
    if status is ChallengeStatus.EXPIRED:
        raise NonceExpired()
    if status is not ChallengeStatus.VALID:
        raise InvalidNonce()

    message = build_challenge_message(nonce)
    if not verify_signature(wallet_address, message, signature):
        logger.info("Signature mismatch for wallet: %s", wallet_address)
        raise InvalidSignature()

    return manager.authenticate(wallet_address, ip_address=ip_address, user_agent=user_agent)
