# filecadence/core/scheduler/service.py
from __future__ import annotations
import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from filecadence.core.codec.serde import parse_timestamp
from filecadence.core.errors import (
    ErrorCode,
    ProcessingError,
    PruneError,
    RecordTimeoutError,
    StorageError,
)
from filecadence.core.events.emitter import TriggerEmitter
from filecadence.core.models.app import EngineConfig
from filecadence.core.models.schedule import FILE_GENERATE_TOPIC, FileSchedule
from filecadence.core.scheduler.calculator import compute_next_run, is_due
from filecadence.core.scheduler.poll_types import (
    PollReport,
    Quarantined,
    RecordOutcome,
    RecordUpdate,
)
from filecadence.core.scheduler.state import ScheduleStateManager, record_id
from filecadence.core.storage.base import Record, ScheduleStore
from filecadence.core.types.result import Err, Ok
from filecadence.core.types.status import OutcomeKind, ScheduleStatus
from filecadence.core.logging import get_logger

logger = get_logger('checker')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Attempt:
    """Progress of one record, visible to the quarantine path after a failure."""

    emitted: bool = False


class ScheduleChecker:
    """
    Poll-and-dispatch loop over every stored schedule.

    Responsibilities:
    1. Load the full schedule set from the store
    2. Emit one ``file.generate`` event per active, due schedule
    3. Advance nextRun / lastRun / executionCount and persist the record
    4. Quarantine (status=failed) any record whose processing fails
    5. Prune failed records older than the retention window

    Precondition: invocations of ``poll`` never overlap. The checker does not
    lock; a second concurrent poll could dispatch the same schedule twice.
    ``run_forever`` satisfies this by polling sequentially.
    """

    def __init__(
        self,
        store: ScheduleStore,
        emitter: TriggerEmitter,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.config = config or EngineConfig()
        self.state = ScheduleStateManager(store, self.config.namespace)
        self.emitter = emitter
        self.clock = clock
        self._stop = asyncio.Event()

        logger.info(
            f"ScheduleChecker initialized: namespace='{self.config.namespace}', "
            f'interval={self.config.poll_interval_seconds}s, '
            f'retention={self.config.retention_days}d, '
            f'concurrency={self.config.max_concurrency}'
        )

    def request_stop(self) -> None:
        """Request run_forever to stop after the current poll."""
        self._stop.set()

    async def run_forever(self) -> None:
        """Poll on the configured cadence until ``request_stop`` is called."""
        logger.info('Starting schedule checker loop')

        while not self._stop.is_set():
            try:
                await self.poll(self.clock())
            except Exception as e:
                # Load failure: nothing was dispatched, next tick retries
                logger.error(f'Error in schedule checker loop: {e}', exc_info=True)

            try:
                await asyncio.wait_for(
                    self._stop.wait(),
                    timeout=self.config.poll_interval_seconds,
                )
                break  # Stop signal received
            except asyncio.TimeoutError:
                continue

        logger.info('Schedule checker stopped')

    async def poll(self, now: datetime) -> PollReport:
        """
        Run one dispatch pass followed by one pruning pass.

        Args:
            now: The invocation instant (UTC-aware); every due check,
                next-run computation and timestamp in this pass uses it

        Returns:
            PollReport with one outcome per distinct record

        Raises:
            StorageError: if the schedule set cannot be loaded; in that case
                nothing was emitted and no record was rewritten
        """
        if now.tzinfo is None:
            raise ValueError('now must be timezone-aware')

        logger.info(f'Starting schedule check at {now.isoformat()}')

        try:
            records = await self.state.list_records()
        except StorageError as e:
            logger.error(f"Failed to load schedules from '{self.config.namespace}': {e}")
            raise

        report = PollReport(polled_at=now)
        if not records:
            logger.info('No schedules found')
            return report

        records = _distinct_by_id(records)
        logger.info(f'Found {len(records)} schedules to check')

        report.outcomes = await self._process_all(records, now)

        logger.info(
            f'Schedule check completed: checked={report.checked}, '
            f'triggered={report.triggered}, not_due={report.not_due}, '
            f'skipped={report.skipped}, quarantined={len(report.quarantined)}'
        )

        report.pruned = await self.prune(now)
        return report

    async def _process_all(
        self, records: list[Record], now: datetime
    ) -> list[RecordOutcome]:
        if self.config.max_concurrency == 1:
            return [await self._process_guarded(record, now) for record in records]

        # One task per record: a record is never handled by two tasks
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def bounded(record: Record) -> RecordOutcome:
            async with semaphore:
                return await self._process_guarded(record, now)

        return list(await asyncio.gather(*(bounded(r) for r in records)))

    async def _process_guarded(self, record: Record, now: datetime) -> RecordOutcome:
        """Process one record; any failure becomes a quarantine, never a raise."""
        attempt = _Attempt()
        timeout = self.config.record_timeout_seconds
        # None disables the deadline
        deadline = asyncio.timeout(timeout)
        try:
            async with deadline:
                update = await self._process_record(record, now, attempt)
            return Ok(update)
        except TimeoutError as e:
            # A TimeoutError from the emitter or store keeps its own message
            if deadline.expired():
                error: Exception = RecordTimeoutError(
                    message=f'processing exceeded {timeout}s',
                    code=ErrorCode.RECORD_TIMEOUT,
                    schedule_id=record_id(record),
                )
            else:
                error = e
        except Exception as e:
            error = e

        return Err(await self._quarantine(record, now, error, attempt))

    async def _process_record(
        self, record: Record, now: datetime, attempt: _Attempt
    ) -> RecordUpdate:
        # Status is read from the raw record: non-active records are never
        # parsed, so a malformed paused or failed record is left as stored
        status = record.get('status', ScheduleStatus.ACTIVE.value)
        if status != ScheduleStatus.ACTIVE.value:
            logger.debug(f"Skipping non-active schedule '{record_id(record)}' ({status})")
            return RecordUpdate(record_id(record), OutcomeKind.SKIPPED)

        schedule = FileSchedule.model_validate(record)
        schedule_id = schedule.schedule_id

        if schedule.next_run is None:
            raise ProcessingError(
                message='active schedule has no nextRun',
                code=ErrorCode.PROCESSING_FAILED,
                schedule_id=schedule_id,
            )

        if not is_due(schedule.next_run, now):
            minutes = round((schedule.next_run - now).total_seconds() / 60)
            logger.debug(f"Schedule '{schedule_id}' not due yet ({minutes} min)")
            return RecordUpdate(schedule_id, OutcomeKind.NOT_DUE)

        # Before emitting: a config that cannot be scheduled fails with no event
        next_run = compute_next_run(
            schedule.schedule_type, schedule.config, schedule.timezone, now
        )

        logger.info(
            f"Schedule '{schedule_id}' is due (next_run={schedule.next_run.isoformat()}), "
            f"triggering '{schedule.file_type}' for customer '{schedule.customer_id}'"
        )

        event_id = await self.emitter.emit(FILE_GENERATE_TOPIC, schedule.trigger_payload())
        attempt.emitted = True

        updated = schedule.as_triggered(now, next_run)
        await self.state.save(updated)

        logger.info(
            f"Schedule '{schedule_id}' executed: event={event_id}, "
            f'next_run={next_run.isoformat()}, count={updated.execution_count}'
        )
        return RecordUpdate(schedule_id, OutcomeKind.TRIGGERED, updated, event_id)

    async def _quarantine(
        self, record: Record, now: datetime, error: Exception, attempt: _Attempt
    ) -> Quarantined:
        schedule_id = record_id(record)
        message = str(error) or type(error).__name__
        logger.error(
            f"Error processing schedule '{schedule_id}': {message}",
            exc_info=error,
        )
        if attempt.emitted:
            logger.warning(
                f"Trigger for '{schedule_id}' was already emitted; "
                'assume it was observed downstream'
            )

        try:
            persisted = await self.state.mark_failed(record, now, message)
        except Exception as e:
            logger.error(f"Failed to mark schedule '{schedule_id}' failed: {e}")
            persisted = False

        return Quarantined(
            schedule_id=schedule_id,
            error=message,
            persisted=persisted,
            emitted=attempt.emitted,
        )

    async def prune(self, now: datetime) -> int:
        """
        Delete failed schedules last updated before the retention cutoff.

        Best effort: every failure is logged and swallowed.

        Returns:
            Number of records deleted
        """
        cutoff = now - timedelta(days=self.config.retention_days)

        try:
            records = await self.state.list_records()
        except Exception as e:
            logger.warning(
                PruneError(
                    message=f'cleanup skipped, listing failed: {e}',
                    code=ErrorCode.PRUNE_FAILED,
                ).format_rust_style(use_colors=False)
            )
            return 0

        pruned = 0
        for record in records:
            if record.get('status') != ScheduleStatus.FAILED.value:
                continue
            schedule_id = record_id(record)
            updated_raw = record.get('updatedAt')
            if schedule_id is None or not updated_raw:
                continue

            try:
                if parse_timestamp(str(updated_raw)) >= cutoff:
                    continue
                if await self.state.delete(schedule_id):
                    pruned += 1
                    logger.info(
                        f"Cleaned up old failed schedule '{schedule_id}' "
                        f'(updatedAt={updated_raw})'
                    )
            except Exception as e:
                logger.warning(
                    PruneError(
                        message=f"cleanup of '{schedule_id}' failed: {e}",
                        code=ErrorCode.PRUNE_FAILED,
                    ).format_rust_style(use_colors=False)
                )

        if pruned:
            logger.info(f'Cleaned up {pruned} old failed schedules')
        return pruned


def _distinct_by_id(records: list[Record]) -> list[Record]:
    """Drop repeated scheduleIds so each record has a single owner per pass."""
    seen: set[str] = set()
    distinct: list[Record] = []
    for record in records:
        schedule_id = record_id(record)
        if schedule_id is not None:
            if schedule_id in seen:
                logger.warning(f"Duplicate schedule '{schedule_id}' in listing, ignored")
                continue
            seen.add(schedule_id)
        distinct.append(record)
    return distinct
