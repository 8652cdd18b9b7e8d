from __future__ import annotations
from datetime import datetime, timezone
from typing import Any
from sqlalchemy import String, DateTime, Index, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.dialects.postgresql import JSONB


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for filecadence tables"""

    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueRecordModel(Base):
    """
    Namespaced JSON key-value storage backing the schedule store.

    - namespace: str # logical group, e.g. "file_schedules"
    - key: str # record key within the namespace (the scheduleId for schedules)
    - value: dict # full record, overwritten on every set
    - updated_at: datetime # last write
    """

    __tablename__ = 'filecadence_kv'

    namespace: Mapped[str] = mapped_column(String(128), primary_key=True)
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text('now()'),
    )


class TriggerEventModel(Base):
    """
    Outbox of trigger events handed to downstream collaborators.

    An insert fires NOTIFY on channel ``filecadence_events`` with the event id,
    so consumers can LISTEN instead of polling.

    - id: str # uuid4
    - topic: str # e.g. "file.generate"
    - payload: dict # event body
    - created_at: datetime # when the event was emitted
    """

    __tablename__ = 'filecadence_events'

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    topic: Mapped[str] = mapped_column(String(128), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    __table_args__ = (
        Index('idx_filecadence_events_topic_created', 'topic', 'created_at'),
    )
