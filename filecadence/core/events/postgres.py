# filecadence/core/events/postgres.py
from __future__ import annotations
import uuid
from datetime import datetime, timezone
from typing import Any
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from filecadence.core.errors import EmitError, ErrorCode
from filecadence.core.models.tables import TriggerEventModel
from filecadence.core.logging import get_logger

logger = get_logger('emitter.postgres')


class PostgresEmitter:
    """
    Writes trigger events to the ``filecadence_events`` outbox table.

    The table's insert trigger (created by
    ``PostgresScheduleStore.ensure_schema_initialized``) sends
    ``NOTIFY filecadence_events, '<event id>'`` once the insert commits, so
    a LISTENing consumer wakes up immediately.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def emit(self, topic: str, payload: dict[str, Any]) -> str:
        event_id = str(uuid.uuid4())
        try:
            async with self.session_factory() as session:
                session.add(
                    TriggerEventModel(
                        id=event_id,
                        topic=topic,
                        payload=payload,
                        created_at=datetime.now(timezone.utc),
                    )
                )
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise EmitError(
                message=f"emit of '{topic}' failed: {e}",
                code=ErrorCode.EMIT_FAILED,
                schedule_id=payload.get('scheduleId'),
            ) from e

        logger.debug(f"Emitted '{topic}' event {event_id}")
        return event_id
