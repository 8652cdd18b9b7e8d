# filecadence/core/scheduler/intake.py
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any
from filecadence.core.models.schedule import FileSchedule, ScheduleRequest
from filecadence.core.scheduler.calculator import compute_next_run
from filecadence.core.scheduler.state import ScheduleStateManager
from filecadence.core.storage.base import DEFAULT_NAMESPACE, ScheduleStore
from filecadence.core.types.status import ScheduleStatus
from filecadence.core.logging import get_logger

logger = get_logger('intake')

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def new_schedule_id(customer_id: str, now: datetime) -> str:
    """``schedule-<customerId>-<epoch millis>``."""
    millis = (now - _EPOCH) // timedelta(milliseconds=1)
    return f'schedule-{customer_id}-{millis}'


async def register_schedule(
    request: ScheduleRequest | dict[str, Any],
    store: ScheduleStore,
    now: datetime,
    namespace: str = DEFAULT_NAMESPACE,
) -> FileSchedule:
    """
    Validate a creation request and persist it as an active schedule.

    Args:
        request: ScheduleRequest, or its camelCase dict form
        store: Destination store
        now: Creation instant (timezone-aware)
        namespace: Store namespace for schedule records

    Returns:
        The stored FileSchedule, with its initial nextRun

    Raises:
        ScheduleValidationError: If the request cannot be scheduled
        pydantic.ValidationError: If required fields are missing or mistyped
        StorageError: If the write fails
    """
    if now.tzinfo is None:
        raise ValueError('now must be timezone-aware')

    if not isinstance(request, ScheduleRequest):
        request = ScheduleRequest.model_validate(request)

    next_run = compute_next_run(
        request.schedule_type, request.config, request.timezone, now
    )

    schedule = FileSchedule(
        schedule_id=new_schedule_id(request.customer_id, now),
        customer_id=request.customer_id,
        customer_email=request.customer_email,
        schedule_type=request.schedule_type.value,
        config=request.config,
        timezone=request.timezone,
        file_type=request.file_type,
        format=request.format.value,
        status=ScheduleStatus.ACTIVE,
        next_run=next_run,
        execution_count=0,
        created_at=now,
        updated_at=now,
    )

    # Same id overwrites
    await ScheduleStateManager(store, namespace).save(schedule)

    logger.info(
        f"Registered schedule '{schedule.schedule_id}' "
        f'({schedule.schedule_type}, tz={schedule.timezone}), '
        f'first run at {next_run.isoformat()}'
    )
    return schedule
