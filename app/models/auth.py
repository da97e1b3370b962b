import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.core.clock import utcnow


class UserSession(Base):
    """Persisted login session. Revoked by flipping is_active, never deleted."""

    __tablename__ = "user_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    access_token = Column(Text, nullable=False, index=True)
    refresh_token = Column(Text, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)  # access token expiry, naive UTC
    is_active = Column(Boolean, nullable=False, default=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_active = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="sessions", lazy="joined")
