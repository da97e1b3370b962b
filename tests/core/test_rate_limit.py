import pytest

from app.core.rate_limit import CHALLENGE, VERIFY, Limit, RateLimiter


@pytest.fixture
def limiter(memory_cache) -> RateLimiter:
    return RateLimiter(
        memory_cache,
        {CHALLENGE: Limit(3, 300), VERIFY: Limit(2, 900)},
        enabled=True,
    )


class TestRateLimiter:
    """Test cases for per-client fixed-window limits"""

    def test_hit_reports_remaining(self, limiter):
        assert limiter.hit(CHALLENGE, "10.0.0.1") == (False, 2)
        assert limiter.hit(CHALLENGE, "10.0.0.1") == (False, 1)
        assert limiter.hit(CHALLENGE, "10.0.0.1") == (False, 0)
        assert limiter.hit(CHALLENGE, "10.0.0.1") == (True, 0)

    def test_clients_are_separate(self, limiter):
        for _ in range(4):
            limiter.hit(CHALLENGE, "10.0.0.1")

        assert limiter.hit(CHALLENGE, "10.0.0.2") == (False, 2)

    def test_scopes_are_separate(self, limiter):
        for _ in range(4):
            limiter.hit(CHALLENGE, "10.0.0.1")

        assert limiter.is_exhausted(VERIFY, "10.0.0.1") is False

    def test_is_exhausted_does_not_count(self, limiter):
        limiter.hit(VERIFY, "10.0.0.1")
        for _ in range(5):
            assert limiter.is_exhausted(VERIFY, "10.0.0.1") is False

        limiter.hit(VERIFY, "10.0.0.1")
        assert limiter.is_exhausted(VERIFY, "10.0.0.1") is True

    def test_window_resets(self, limiter, clock):
        for _ in range(2):
            limiter.hit(VERIFY, "10.0.0.1")
        clock.advance(900)

        assert limiter.is_exhausted(VERIFY, "10.0.0.1") is False

    def test_unknown_client_shares_one_bucket(self, limiter):
        for _ in range(3):
            limiter.hit(CHALLENGE, None)

        assert limiter.hit(CHALLENGE, None)[0] is True

    def test_disabled(self, memory_cache):
        limiter = RateLimiter(memory_cache, {CHALLENGE: Limit(1, 60)}, enabled=False)

        for _ in range(3):
            assert limiter.hit(CHALLENGE, "10.0.0.1") == (False, 1)
        assert limiter.is_exhausted(CHALLENGE, "10.0.0.1") is False
        assert memory_cache.memory_cache == {}

    def test_defaults_from_settings(self, memory_cache):
        limiter = RateLimiter(memory_cache)

        assert limiter.limits[CHALLENGE] == Limit(3, 300)
        assert limiter.limits[VERIFY] == Limit(5, 900)
        assert limiter.retry_after(VERIFY) == 900
