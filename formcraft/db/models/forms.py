import threading
import uuid
from datetime import datetime, timedelta

from sqlalchemy import Boolean, Column, DateTime, JSON, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from formcraft.db.base import Base

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON(none_as_null=True).with_variant(
    JSONB(none_as_null=True), "postgresql"
)


def _new_id() -> str:
    return str(uuid.uuid4())


_created_lock = threading.Lock()
_last_created_at = datetime.min


def _next_created_at() -> datetime:
    """
    Creation time that strictly increases within the process.

    Forms inserted within the same clock tick still sort in insertion order.
    """
    global _last_created_at  # noqa: WPS420
    with _created_lock:
        now = datetime.utcnow()
        if now <= _last_created_at:
            now = _last_created_at + timedelta(microseconds=1)
        _last_created_at = now
        return now


class Form(Base):
    """A form created by a user, with its memory fields."""

    __tablename__ = "forms"

    id = Column(String(36), primary_key=True, default=_new_id)
    owner_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    schema = Column(JSONType, nullable=False)
    # Short text used for context retrieval, filled in by the embedding step
    summary = Column(Text, nullable=True)
    # Fixed-length vector (768), null until computed
    embedding = Column(JSONType, nullable=True)
    published = Column(Boolean, default=True)
    # Insertion order, used to break similarity ties
    created_at = Column(DateTime, default=_next_created_at, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
