import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.core.clock import utcnow


class User(Base):
    """Model for users table
    Example:
    {
        "id": "550e8400-e29b-41d4-a716-446655440000",
        "wallet_address": "0x742d35cc6542cb23c68b68b6b6bb6b3e1234abcd",
        "email": null,
        "username": "degen",
        "is_admin": false,
        "created_at": "2024-01-01T12:00:00",
        "last_login": "2024-01-01T12:00:00"
    }
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # lowercase, never updated after insert
    wallet_address = Column(String(42), nullable=False, unique=True, index=True)
    email = Column(Text, nullable=True, unique=True)
    username = Column(String(50), nullable=True, unique=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_login = Column(DateTime, nullable=True)

    sessions = relationship("UserSession", back_populates="user", lazy="noload")
