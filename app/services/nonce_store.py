"""
Single-use sign-in challenges keyed by wallet address.

Entries live in the hybrid cache under ``auth:nonce:<address>`` as
``{"nonce": str, "issued_at": float}``. A challenge is valid for
``NONCE_EXPIRY_SECONDS`` after issuance. The storage TTL is longer than that
window so an expired challenge can still be told apart from a missing one;
such leftovers are removed when checked or by the cleanup that runs on every
issuance.
"""

import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from app.core.cache import HybridCacheManager, cache_manager
from app.core.config import settings
from app.core.wallet_auth import build_challenge_message, generate_nonce

logger = logging.getLogger(__name__)

KEY_PREFIX = "auth:nonce:"
# how long an expired entry is kept around, as a multiple of the expiry window
RETENTION_FACTOR = 2


class ChallengeStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Challenge:
    wallet_address: str
    nonce: str
    message: str
    issued_at: float
    expires_at: float


class NonceStore:
    def __init__(
        self,
        cache: HybridCacheManager,
        *,
        expiry_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cache = cache
        self.expiry_seconds = expiry_seconds or settings.NONCE_EXPIRY_SECONDS
        self._clock = clock

    @staticmethod
    def _key(wallet_address: str) -> str:
        return KEY_PREFIX + wallet_address.lower()

    def issue_challenge(self, wallet_address: str) -> Challenge:
        """Issue a fresh nonce for the address, replacing any previous one."""
        self._cache.evict_expired()

        nonce = generate_nonce()
        issued_at = self._clock()
        self._cache.set(
            self._key(wallet_address),
            {"nonce": nonce, "issued_at": issued_at},
            ttl_seconds=self.expiry_seconds * RETENTION_FACTOR,
        )
        logger.info("Nonce generated for wallet: %s", wallet_address.lower())
        return Challenge(
            wallet_address=wallet_address.lower(),
            nonce=nonce,
            message=build_challenge_message(nonce),
            issued_at=issued_at,
            expires_at=issued_at + self.expiry_seconds,
        )

    def check_challenge(self, wallet_address: str, nonce: str) -> ChallengeStatus:
        """
        Consume the address's challenge if ``nonce`` matches and is fresh.

        - EXPIRED: older than the window, whatever nonce was supplied; entry removed
        - INVALID: nothing stored, nonce mismatch, or lost a race to another consumer
        - VALID: entry removed, so the same nonce can never be used again
        """
        key = self._key(wallet_address)
        raw = self._cache.get_raw(key)
        if raw is None:
            return ChallengeStatus.INVALID

        entry = _parse_entry(raw)
        if entry is None:
            self._cache.delete(key)
            return ChallengeStatus.INVALID

        if self._clock() - float(entry["issued_at"]) > self.expiry_seconds:
            self._cache.delete_if_equals(key, raw)
            return ChallengeStatus.EXPIRED

        if entry["nonce"] != nonce:
            return ChallengeStatus.INVALID

        if not self._cache.delete_if_equals(key, raw):
            return ChallengeStatus.INVALID
        return ChallengeStatus.VALID

    def consume_challenge(self, wallet_address: str, nonce: str) -> bool:
        return self.check_challenge(wallet_address, nonce) is ChallengeStatus.VALID


def _parse_entry(raw: bytes) -> Optional[dict]:
    try:
        entry = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(entry, dict) or "nonce" not in entry or "issued_at" not in entry:
        return None
    return entry


# Global instance backed by the shared cache
nonce_store = NonceStore(cache_manager)


def get_nonce_store() -> NonceStore:
    return nonce_store
