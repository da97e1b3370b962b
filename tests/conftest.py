import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator

from main import app
from app.core.cache import HybridCacheManager
from app.core.rate_limit import CHALLENGE, VERIFY, Limit, RateLimiter, get_rate_limiter
from app.db.base import Base
from app.db.session import get_db
from app.models.auth import UserSession  # noqa: F401
from app.models.users import User  # noqa: F401
from app.services.nonce_store import NonceStore, get_nonce_store
from tests.helpers import PRIVATE_KEY_A, PRIVATE_KEY_B, FakeClock, Wallet


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db() -> Generator:
    """Override database dependency for testing"""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Fresh schema per test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_cache(clock) -> HybridCacheManager:
    """Cache with no Redis configured, so everything stays in memory"""
    return HybridCacheManager(None, clock=clock)


@pytest.fixture
def nonce_store(memory_cache, clock) -> NonceStore:
    return NonceStore(memory_cache, expiry_seconds=300, clock=clock)


@pytest.fixture
def rate_limiter(memory_cache) -> RateLimiter:
    """Limits high enough that only the rate limit tests ever reach them"""
    return RateLimiter(
        memory_cache,
        {CHALLENGE: Limit(1000, 300), VERIFY: Limit(1000, 900)},
        enabled=True,
    )


@pytest.fixture
def client(db_session, nonce_store, rate_limiter) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application"""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_nonce_store] = lambda: nonce_store
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def wallet() -> Wallet:
    return Wallet(PRIVATE_KEY_A)


@pytest.fixture
def other_wallet() -> Wallet:
    return Wallet(PRIVATE_KEY_B)
