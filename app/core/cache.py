from __future__ import annotations

# redis key/value store with in-memory fallback
import json
import logging
import time
from threading import Lock
from typing import Any, Callable, Dict, Optional, Tuple

from redis import Connection, ConnectionPool, Redis, SSLConnection

from app.core.config import settings

logger = logging.getLogger(__name__)

# delete KEYS[1] only while it still holds ARGV[1]
_COMPARE_AND_DELETE = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""

# increment KEYS[1], starting its TTL of ARGV[1] seconds on the first hit
_INCR_WITH_TTL = """
local n = redis.call('incr', KEYS[1])
if n == 1 then
    redis.call('expire', KEYS[1], ARGV[1])
end
return n
"""


def _dumps(value: Any) -> bytes:
    return json.dumps(value, default=str, sort_keys=True).encode("utf-8")


class HybridCacheManager:
    """Hybrid key/value store with Redis + in-memory fallback.

    Values are JSON documents with an optional TTL. Redis is used whenever it
    answers a ping; while it is down the manager keeps working from process
    memory and only retries Redis after ``recheck_interval`` seconds.
    """

    def __init__(
        self,
        redis_host: Optional[str] = None,
        redis_port: int = 6379,
        *,
        max_connections: int = 20,
        ssl: bool = False,
        memory_max_size: int = 64 * 1024 * 1024,
        recheck_interval: int = 30 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self.memory_max_size = memory_max_size
        self.recheck_interval = recheck_interval
        self.memory_cache: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self._memory_cache_size = 0
        self._memory_lock = Lock()
        self._last_redis_check: Optional[float] = None
        self.redis_available = False
        if redis_host is None or redis_host.strip() == "":
            self.pool = None
            return
        self.pool = ConnectionPool(
            host=redis_host,
            port=redis_port,
            socket_connect_timeout=0.05,
            socket_timeout=5,
            retry_on_timeout=False,
            max_connections=max_connections,
            connection_class=SSLConnection if ssl else Connection,
        )

    @classmethod
    def from_settings(cls) -> "HybridCacheManager":
        return cls(
            settings.REDIS_HOST,
            settings.REDIS_PORT,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            ssl=settings.REDIS_SSL,
            memory_max_size=settings.MEMORY_CACHE_MAX_SIZE,
            recheck_interval=settings.REDIS_RECHECK_INTERVAL,
        )

    def redis_connect(self) -> Optional[Redis]:
        """Connect to Redis, with a cooldown when unavailable"""
        if self.pool is None:
            return None

        if self.redis_available:
            try:
                rc = Redis(connection_pool=self.pool)
                if rc.ping():
                    return rc
                self.redis_available = False
                self._last_redis_check = self._clock()
            except Exception:
                logger.warning("Redis became unavailable, using memory store")
                self.redis_available = False
                self._last_redis_check = self._clock()
            return None

        now = self._clock()
        if self._last_redis_check is not None:
            if now - self._last_redis_check < self.recheck_interval:
                return None

        self._last_redis_check = now
        try:
            rc = Redis(connection_pool=self.pool)
            if rc.ping():
                self.redis_available = True
                return rc
        except Exception:
            logger.warning("Redis not reachable, retrying in %ss", self.recheck_interval)

        return None

    def ping(self) -> str:
        """Report which backend currently serves requests."""
        return "redis" if self.redis_connect() is not None else "memory"

    def get(self, key: str) -> Optional[Any]:
        """Get stored value, deserializing from JSON"""
        raw = self.get_raw(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    def get_raw(self, key: str) -> Optional[bytes]:
        rc = self.redis_connect()
        if rc is not None:
            try:
                result = rc.get(key)
                return result if result else None
            finally:
                rc.close()
        return self._get_memory(key)

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bytes:
        """Store ``value`` as JSON and return the exact bytes written."""
        data = _dumps(value)
        rc = self.redis_connect()
        if rc is not None:
            try:
                rc.set(key, data, ex=ttl_seconds if ttl_seconds and ttl_seconds > 0 else None)
                return data
            finally:
                rc.close()
        self._set_memory(key, data, ttl_seconds)
        return data

    def delete(self, key: str) -> bool:
        rc = self.redis_connect()
        if rc is not None:
            try:
                return bool(rc.delete(key))
            finally:
                rc.close()
        with self._memory_lock:
            return self._pop_memory(key) is not None

    def delete_if_equals(self, key: str, expected: bytes) -> bool:
        """Atomically delete ``key`` if it still holds ``expected``.

        Returns True for exactly one of several concurrent callers that read
        the same value.
        """
        rc = self.redis_connect()
        if rc is not None:
            try:
                return bool(rc.eval(_COMPARE_AND_DELETE, 1, key, expected))
            finally:
                rc.close()
        with self._memory_lock:
            cached = self.memory_cache.get(key)
            if cached is None or cached[0] != expected:
                return False
            if self._is_expired(cached[1]):
                self._pop_memory(key)
                return False
            self._pop_memory(key)
            return True

    def incr(self, key: str, ttl_seconds: int) -> int:
        """Increment a counter and return the new value.

        The TTL starts with the first increment and is not extended by later
        ones, so the counter covers a fixed window.
        """
        rc = self.redis_connect()
        if rc is not None:
            try:
                return int(rc.eval(_INCR_WITH_TTL, 1, key, int(ttl_seconds)))
            finally:
                rc.close()
        with self._memory_lock:
            cached = self.memory_cache.get(key)
            if cached is None or self._is_expired(cached[1]):
                count, expires_at = 1, self._clock() + ttl_seconds
            else:
                count, expires_at = int(cached[0]) + 1, cached[1]
            self._pop_memory(key)
            data = str(count).encode("utf-8")
            self.memory_cache[key] = (data, expires_at)
            self._memory_cache_size += len(data)
        return count

    def evict_expired(self) -> int:
        """Drop expired memory entries. Redis expires keys on its own."""
        with self._memory_lock:
            expired = [k for k, (_, exp) in self.memory_cache.items() if self._is_expired(exp)]
            for k in expired:
                self._pop_memory(k)
        return len(expired)

    def _is_expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and expires_at <= self._clock()

    def _pop_memory(self, key: str) -> Optional[bytes]:
        cached = self.memory_cache.pop(key, None)
        if cached is None:
            return None
        self._memory_cache_size -= len(cached[0])
        return cached[0]

    def _set_memory(self, key: str, data: bytes, ttl_seconds: Optional[int]) -> None:
        """Set memory entry, evicting expired then soonest-expiring entries when full"""
        expires_at = None if not ttl_seconds else self._clock() + ttl_seconds
        data_size = len(data)

        with self._memory_lock:
            self._pop_memory(key)

            while self._memory_cache_size + data_size > self.memory_max_size and self.memory_cache:
                expired_keys = [
                    k for k, (_, exp) in self.memory_cache.items() if self._is_expired(exp)
                ]
                if expired_keys:
                    for k in expired_keys:
                        self._pop_memory(k)
                else:
                    oldest_key = min(
                        self.memory_cache.keys(),
                        key=lambda k: self.memory_cache[k][1] or float("inf"),
                    )
                    self._pop_memory(oldest_key)

            self.memory_cache[key] = (data, expires_at)
            self._memory_cache_size += data_size

    def _get_memory(self, key: str) -> Optional[bytes]:
        """Get from memory, removing the entry if it has expired"""
        with self._memory_lock:
            cached = self.memory_cache.get(key)
            if cached is None:
                return None
            value, expires_at = cached
            if self._is_expired(expires_at):
                self._pop_memory(key)
                return None
            return value


# Global instance
cache_manager = HybridCacheManager.from_settings()
