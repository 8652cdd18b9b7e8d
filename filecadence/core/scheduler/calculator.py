# filecadence/core/scheduler/calculator.py
from __future__ import annotations
import calendar
from datetime import date, datetime, time as datetime_time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from typing import Callable, Iterator, Optional
from croniter import croniter
from filecadence.core.errors import (
    ErrorCode,
    ScheduleValidationError,
    UnsupportedScheduleTypeError,
)
from filecadence.core.models.schedule import ScheduleSettings, is_valid_wall_time
from filecadence.core.types.status import ScheduleType, Weekday

DEFAULT_TIME = '09:00'
DEFAULT_WEEKDAY = Weekday.MONDAY

_DatePicker = Callable[[int, int, Weekday], date]

# Upper bound on cron candidates examined when skipping DST-gap wall times
_MAX_CRON_CANDIDATES = 1000


def compute_next_run(
    schedule_type: ScheduleType | str,
    config: ScheduleSettings,
    tz_str: str,
    now: datetime,
) -> datetime:
    """
    Calculate the next run instant for a schedule.

    The candidate is built in the schedule's civil calendar (``tz_str``) and
    must be strictly later than ``now``: a schedule fired exactly at its due
    instant rolls forward to the following occurrence.

    Args:
        schedule_type: One of the five ScheduleType tags
        config: Recurrence settings; time defaults to 09:00, dayOfWeek to monday
        tz_str: IANA timezone name (e.g. "UTC", "Europe/Berlin")
        now: Reference instant (must be timezone-aware)

    Returns:
        Next run time as UTC-aware datetime

    Raises:
        ValueError: If ``now`` is naive
        UnsupportedScheduleTypeError: If the tag is not a known schedule type
        ScheduleValidationError: If time, dayOfWeek, timezone or cron is invalid
    """
    if now.tzinfo is None:
        raise ValueError('now must be timezone-aware')

    kind = _resolve_schedule_type(schedule_type)
    tz = _resolve_timezone(tz_str)
    local_now = now.astimezone(tz)

    match kind:
        case ScheduleType.DAILY:
            next_run = _calculate_daily(_wall_time(config), local_now, tz)
        case ScheduleType.WEEKLY:
            next_run = _calculate_weekly(
                _weekday(config), _wall_time(config), local_now, tz
            )
        case ScheduleType.MONTHLY_FIRST_WEEKDAY:
            next_run = _calculate_monthly(
                _weekday(config), _wall_time(config), local_now, tz, _first_weekday_of_month
            )
        case ScheduleType.MONTHLY_LAST_WEEKDAY:
            next_run = _calculate_monthly(
                _weekday(config), _wall_time(config), local_now, tz, _last_weekday_of_month
            )
        case ScheduleType.CUSTOM:
            next_run = _calculate_cron(config.cron_expression, local_now, tz)

    if next_run <= now:
        raise RuntimeError(f'Non-monotonic next run {next_run} for now={now}')

    return next_run.astimezone(timezone.utc)


def is_due(next_run: datetime, now: datetime) -> bool:
    """A schedule is due once ``now`` has reached its ``next_run``."""
    return now >= next_run


def parse_wall_time(value: str) -> datetime_time:
    """Parse ``HH:MM`` (24h) into a time; raises ScheduleValidationError."""
    if not is_valid_wall_time(value):
        raise ScheduleValidationError(
            message=f"invalid time '{value}'",
            code=ErrorCode.SCHEDULE_INVALID_TIME,
            help_text="use 24h HH:MM, e.g. '09:00'",
        )
    hours, minutes = value.split(':')
    return datetime_time(int(hours), int(minutes))


def _resolve_schedule_type(value: ScheduleType | str) -> ScheduleType:
    try:
        return ScheduleType(value)
    except ValueError:
        raise UnsupportedScheduleTypeError(
            message=f'Unsupported schedule type: {value}',
            code=ErrorCode.SCHEDULE_UNSUPPORTED_TYPE,
            notes=[f'known types: {[t.value for t in ScheduleType]}'],
            schedule_type=str(value),
        ) from None


def _resolve_timezone(tz_str: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_str)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ScheduleValidationError(
            message=f"Invalid timezone '{tz_str}': {e}",
            code=ErrorCode.SCHEDULE_INVALID_TIMEZONE,
        ) from e


def _wall_time(config: ScheduleSettings) -> datetime_time:
    return parse_wall_time(config.time or DEFAULT_TIME)


def _weekday(config: ScheduleSettings) -> Weekday:
    if not config.day_of_week:
        return DEFAULT_WEEKDAY
    try:
        return Weekday(config.day_of_week.lower())
    except ValueError:
        raise ScheduleValidationError(
            message=f"invalid dayOfWeek '{config.day_of_week}'",
            code=ErrorCode.SCHEDULE_INVALID_WEEKDAY,
            notes=[f'allowed: {[d.value for d in Weekday]}'],
        ) from None


def _calculate_daily(
    at: datetime_time, local_time: datetime, tz: ZoneInfo
) -> datetime:
    """Today at ``at`` if still ahead, else the next day it exists."""
    for day_offset in range(0, 8):
        candidate = _resolve_local_datetime(
            local_time.date() + timedelta(days=day_offset), at, tz
        )
        if candidate is None or candidate <= local_time:
            continue
        return candidate

    raise RuntimeError('Could not calculate next daily run within 7 days')


def _calculate_weekly(
    day: Weekday, at: datetime_time, local_time: datetime, tz: ZoneInfo
) -> datetime:
    """Next matching weekday at ``at``; today counts while the time is ahead."""
    for day_offset in range(0, 15):
        candidate_date = local_time.date() + timedelta(days=day_offset)
        if candidate_date.weekday() != day.python_weekday:
            continue

        candidate = _resolve_local_datetime(candidate_date, at, tz)
        if candidate is None or candidate <= local_time:
            continue
        return candidate

    raise RuntimeError('Could not calculate next weekly run within 2 weeks')


def _calculate_monthly(
    day: Weekday,
    at: datetime_time,
    local_time: datetime,
    tz: ZoneInfo,
    pick_date: _DatePicker,
) -> datetime:
    """First month (from the current one) whose picked date is still ahead."""
    for month_offset in range(0, 25):
        year, month = _add_months(local_time.year, local_time.month, month_offset)
        candidate = _resolve_local_datetime(pick_date(year, month, day), at, tz)
        if candidate is None or candidate <= local_time:
            continue
        return candidate

    raise RuntimeError('Could not calculate next monthly run within 24 months')


def _calculate_cron(
    expression: Optional[str], local_time: datetime, tz: ZoneInfo
) -> datetime:
    """Next instant matching a 5-field cron expression in the schedule's zone."""
    if not expression:
        raise ScheduleValidationError(
            message='custom schedule has no cronExpression',
            code=ErrorCode.SCHEDULE_INVALID_CRON,
            help_text="set config.cronExpression, e.g. '0 9 * * 1'",
        )
    if len(expression.split()) != 5:
        raise ScheduleValidationError(
            message=f"cron expression must have 5 fields: '{expression}'",
            code=ErrorCode.SCHEDULE_INVALID_CRON,
        )

    # croniter walks naive wall-clock times; each one is resolved against tz
    base = local_time.replace(tzinfo=None)
    try:
        it = croniter(expression, base)
        for _ in range(_MAX_CRON_CANDIDATES):
            naive: datetime = it.get_next(datetime)
            candidate = _resolve_local_datetime(naive.date(), naive.time(), tz)
            if candidate is None or candidate <= local_time:
                continue
            return candidate
    except (ValueError, KeyError) as e:
        raise ScheduleValidationError(
            message=f"invalid cron expression '{expression}': {e}",
            code=ErrorCode.SCHEDULE_INVALID_CRON,
        ) from e

    raise ScheduleValidationError(
        message=f"cron expression '{expression}' has no upcoming occurrence",
        code=ErrorCode.SCHEDULE_INVALID_CRON,
    )


def _first_weekday_of_month(year: int, month: int, day: Weekday) -> date:
    first = date(year, month, 1)
    return first + timedelta(days=(day.python_weekday - first.weekday()) % 7)


def _last_weekday_of_month(year: int, month: int, day: Weekday) -> date:
    last = date(year, month, calendar.monthrange(year, month)[1])
    return last - timedelta(days=(last.weekday() - day.python_weekday) % 7)


def _add_months(year: int, month: int, month_offset: int) -> tuple[int, int]:
    base = (year * 12) + (month - 1) + month_offset
    return (base // 12, (base % 12) + 1)


def _resolve_local_datetime(
    date_value: date,
    at: datetime_time,
    tz: ZoneInfo,
) -> Optional[datetime]:
    """
    Resolve a local wall-clock date/time into a real zoned datetime.

    Returns None for nonexistent local times (spring-forward gaps).
    For ambiguous local times (fall-back), returns the earliest instant.
    """
    naive = datetime.combine(date_value, at.replace(second=0, microsecond=0))
    valid: list[datetime] = [
        candidate
        for candidate in _folds(naive, tz)
        if candidate.astimezone(timezone.utc).astimezone(tz).replace(tzinfo=None) == naive
    ]
    if not valid:
        return None
    return min(valid, key=lambda dt: dt.astimezone(timezone.utc))


def _folds(naive: datetime, tz: ZoneInfo) -> Iterator[datetime]:
    for fold in (0, 1):
        yield naive.replace(tzinfo=tz, fold=fold)
