"""
Persisted subscription model.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, JSON
from subwatch.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoredSubscription(Base):
    """One saved subscription; the payload is the record's wire form."""

    __tablename__ = "subscriptions"

    id = Column(String(64), primary_key=True)
    position = Column(Integer, nullable=False, index=True)  # collection order, 0 = first
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
