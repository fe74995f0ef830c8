"""Database models for the sync server."""
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from lexibook.models.base import Base, TimestampMixin, utcnow


class User(Base, TimestampMixin):
    """Registered account."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False)
    email = Column(String, unique=True, nullable=False)
    password_hash = Column(String, nullable=False)

    # Relationships
    data = relationship("UserData", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)

    def to_dict(self) -> dict:
        """Public representation, never includes the password hash."""
        return {"id": self.id, "username": self.username, "email": self.email}


class UserData(Base):
    """One row per local storage key of a user, value kept as JSON text."""

    __tablename__ = "user_data"
    __table_args__ = (UniqueConstraint("user_id", "data_key", name="uq_user_data_user_key"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    data_key = Column(String, nullable=False)
    data_value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="data")
