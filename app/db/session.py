import logging

from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from app.core.config import settings

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {"connect_timeout": 30}


# Create the SQLAlchemy engine
engine = create_engine(settings.DATABASE_URL,
                       connect_args=_connect_args(settings.DATABASE_URL),
                       pool_pre_ping=True,
                       pool_recycle=3600,
)

# Create a configured "Session" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# do not change the order of the code below
# Dependency that can be used in routes to get the session
def get_db() -> Session:
    db = SessionLocal()  # generate a new SessionLocal
    try:
        yield db
    except HTTPException:
        db.rollback()
        raise
    except Exception:
        db.rollback()
        logger.exception("Database session aborted")
        raise
    finally:
        db.close()


def create_tables() -> None:
    # models must be imported so their tables are registered on Base
    from app.db.base import Base
    import app.models.users  # noqa: F401
    import app.models.auth  # noqa: F401

    Base.metadata.create_all(bind=engine)
