from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv(override=True)

class Settings(BaseSettings):
    PROJECT_NAME: str = "Scryptex"
    # Application settings
    PORT: int = 3000
    HOST: str = "127.0.0.1"
    VERSION: str = "1.0.0"
    DOC_PASSWORD: str = "change-this-password"
    CORS_ORIGINS: str = "http://localhost:3001"
    LOG_LEVEL: str = "INFO"

    # SSL settings
    SSL_KEY: str | None = None
    SSL_CERT: str | None = None

    # SQLAlchemy database URL
    DATABASE_URL: str = "sqlite:///./scryptex.db"
    AUTO_CREATE_TABLES: bool = False

    # Login configuration
    JWT_SECRET: str = "your-jwt-secret"
    JWT_REFRESH_SECRET: str = "your-refresh-secret"
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "scryptex"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = 3600  # 1 hour
    REFRESH_TOKEN_EXPIRE_SECONDS: int = 7 * 24 * 3600  # 7 days
    NONCE_EXPIRY_SECONDS: int = 300  # 5 minutes
    AUTH_PRODUCT_NAME: str = "SCRYPTEX"
    # comma separated, granted the admin role when their user row is created
    ADMIN_WALLET_ADDRESSES: str = ""
    # per client IP: challenge requests, and failed signature checks
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_CHALLENGE_MAX: int = 3
    RATE_LIMIT_CHALLENGE_WINDOW: int = 5 * 60
    RATE_LIMIT_VERIFY_MAX: int = 5
    RATE_LIMIT_VERIFY_WINDOW: int = 15 * 60
    # only honour X-Forwarded-For behind a proxy that overwrites it
    TRUST_FORWARDED_FOR: bool = False

    # Redis settings
    REDIS_HOST: str | None = None
    REDIS_PORT: int = 6379
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_SSL: bool = False
    # Memory cache settings
    MEMORY_CACHE_MAX_SIZE: int = 64 * 1024 * 1024  # 64MB in bytes
    REDIS_RECHECK_INTERVAL: int = 30 * 60  # 30 minutes in seconds

    # Debug settings
    DEBUG: bool = False

    class Config:
        env_file = ".env"

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def admin_wallets(self) -> List[str]:
        return [
            a.strip().lower() for a in self.ADMIN_WALLET_ADDRESSES.split(",") if a.strip()
        ]

# Instantiate the settings
settings = Settings()
