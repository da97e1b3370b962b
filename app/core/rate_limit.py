"""Fixed-window rate limits for the sign-in endpoints, keyed by client IP.

Limits per scope:
  - challenge: every POST /auth/connect-wallet counts (default 3 per 5 min)
  - verify:    only failed POST /auth/verify-signature attempts count
               (default 5 per 15 min), a successful sign-in is free

Counters live in the hybrid cache under ``rl:<scope>:<client hash>``, so
Redis shares them between workers and the memory fallback keeps them per
process while Redis is down.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from app.core.cache import HybridCacheManager, cache_manager
from app.core.config import settings

logger = logging.getLogger(__name__)

CHALLENGE = "challenge"
VERIFY = "verify"


@dataclass(frozen=True)
class Limit:
    max_requests: int
    window_seconds: int


def default_limits() -> Dict[str, Limit]:
    return {
        CHALLENGE: Limit(settings.RATE_LIMIT_CHALLENGE_MAX, settings.RATE_LIMIT_CHALLENGE_WINDOW),
        VERIFY: Limit(settings.RATE_LIMIT_VERIFY_MAX, settings.RATE_LIMIT_VERIFY_WINDOW),
    }


def _client_key(identity: Optional[str]) -> str:
    """Get a short stable key for the requesting client."""
    return hashlib.sha256((identity or "unknown").encode()).hexdigest()[:16]


class RateLimiter:
    def __init__(
        self,
        cache: HybridCacheManager,
        limits: Optional[Dict[str, Limit]] = None,
        *,
        enabled: Optional[bool] = None,
    ) -> None:
        self._cache = cache
        self.limits = limits if limits is not None else default_limits()
        self.enabled = settings.RATE_LIMIT_ENABLED if enabled is None else enabled

    @staticmethod
    def _key(scope: str, identity: Optional[str]) -> str:
        return f"rl:{scope}:{_client_key(identity)}"

    def hit(self, scope: str, identity: Optional[str]) -> Tuple[bool, int]:
        """Count one request; returns (exceeded, remaining)."""
        if not self.enabled:
            return False, self.limits[scope].max_requests
        limit = self.limits[scope]
        count = self._cache.incr(self._key(scope, identity), limit.window_seconds)
        if count > limit.max_requests:
            logger.warning("Rate limit exceeded: %s for client %s", scope, _client_key(identity))
        return count > limit.max_requests, max(0, limit.max_requests - count)

    def is_exhausted(self, scope: str, identity: Optional[str]) -> bool:
        """True when the scope's budget is used up, without counting a request."""
        if not self.enabled:
            return False
        count = self._cache.get(self._key(scope, identity)) or 0
        return int(count) >= self.limits[scope].max_requests

    def retry_after(self, scope: str) -> int:
        return self.limits[scope].window_seconds


# Global instance backed by the shared cache
rate_limiter = RateLimiter(cache_manager)


def get_rate_limiter() -> RateLimiter:
    return rate_limiter
