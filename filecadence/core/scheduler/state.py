# filecadence/core/scheduler/state.py
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from filecadence.core.codec.serde import format_timestamp
from filecadence.core.models.schedule import FileSchedule
from filecadence.core.storage.base import Record, ScheduleStore
from filecadence.core.types.status import ScheduleStatus
from filecadence.core.logging import get_logger

logger = get_logger('scheduler.state')


def record_id(record: Record) -> Optional[str]:
    """The ``scheduleId`` of a raw stored record, if it has a usable one."""
    value: Any = record.get('scheduleId')
    if isinstance(value, str) and value:
        return value
    return None


class ScheduleStateManager:
    """
    Typed access to schedule records in one store namespace.

    Records are keyed by ``scheduleId``. Every write is a full overwrite;
    nothing here locks, so callers must guarantee one writer per record
    per poll pass.
    """

    def __init__(self, store: ScheduleStore, namespace: str):
        self.store = store
        self.namespace = namespace

    async def list_records(self) -> list[Record]:
        """All raw records in the namespace (unparsed)."""
        return await self.store.list_all(self.namespace)

    async def get_schedule(self, schedule_id: str) -> Optional[FileSchedule]:
        """
        Retrieve and parse one schedule.

        Returns:
            FileSchedule if stored, None otherwise
        """
        record = await self.store.get(self.namespace, schedule_id)
        if record is None:
            return None
        return FileSchedule.model_validate(record)

    async def save(self, schedule: FileSchedule) -> None:
        """Overwrite the stored record with ``schedule``."""
        await self.store.set(self.namespace, schedule.schedule_id, schedule.to_record())
        logger.debug(
            f"Saved schedule '{schedule.schedule_id}': status={schedule.status.value}, "
            f'next_run={schedule.next_run}, count={schedule.execution_count}'
        )

    async def mark_failed(
        self, record: Record, failed_at: datetime, message: str
    ) -> bool:
        """
        Quarantine a record by patching its raw stored form.

        Works on the raw dict so records that never parsed can still be
        quarantined; unrelated fields are written back untouched.

        Returns:
            True if written, False if the record has no scheduleId to key it by
        """
        schedule_id = record_id(record)
        if schedule_id is None:
            logger.error(f'Cannot quarantine record without scheduleId: {record!r}')
            return False

        failed = dict(record)
        failed['status'] = ScheduleStatus.FAILED.value
        failed['lastError'] = message
        failed['updatedAt'] = format_timestamp(failed_at)
        await self.store.set(self.namespace, schedule_id, failed)
        logger.warning(f"Schedule '{schedule_id}' marked failed: {message}")
        return True

    async def delete(self, schedule_id: str) -> bool:
        """
        Delete a schedule record.

        Returns:
            True if deleted, False if not found
        """
        deleted = await self.store.delete(self.namespace, schedule_id)
        if deleted:
            logger.info(f"Deleted schedule '{schedule_id}'")
        else:
            logger.debug(f"No schedule found to delete for '{schedule_id}'")
        return deleted
