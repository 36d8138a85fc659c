"""
Meal scheduling and device pairing models.
"""

from sqlalchemy import Column, Text, TIMESTAMP, Boolean, Index
import uuid

from domain.models.database import Base
from domain.schedule import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class Meal(Base):
    """A meal scheduled on a calendar date"""

    __tablename__ = "meals"

    id = Column(Text, primary_key=True, default=_new_id)
    date = Column(Text, nullable=False)  # YYYY-MM-DD
    time = Column(Text, nullable=False)  # HH:MM, 24-hour
    food = Column(Text, nullable=False)
    user_id = Column(Text, nullable=True)  # sync group the meal was shared into
    device_id = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    synced_at = Column(TIMESTAMP(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_meals_date_time", "date", "time"),
        Index("ix_meals_device_id", "device_id"),
        Index("ix_meals_user_id", "user_id"),
    )


class SyncCode(Base):
    """Short-lived single-use pairing code"""

    __tablename__ = "sync_codes"

    id = Column(Text, primary_key=True, default=_new_id)
    code = Column(Text, nullable=False, index=True)
    device_name = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    expires_at = Column(TIMESTAMP(timezone=True), nullable=False)
    used = Column(Boolean, nullable=False, default=False)
