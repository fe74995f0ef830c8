"""Models for the client-side key-value store."""
from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base

from lexibook.models.base import utcnow

# Kept apart from the server metadata so a client database only holds this table
LocalBase = declarative_base()


class LocalItem(LocalBase):
    """One entry of the local store."""

    __tablename__ = "local_storage"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
