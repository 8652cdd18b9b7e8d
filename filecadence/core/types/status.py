# filecadence/core/types/status.py
"""
Enums shared across the engine.
This module should not import from other filecadence modules.
"""

from enum import Enum


class ScheduleStatus(str, Enum):
    """Lifecycle status of a stored schedule"""

    ACTIVE = 'active'  # Eligible for dispatch on every poll.
    PAUSED = 'paused'  # Never dispatched, never pruned.
    FAILED = 'failed'  # Quarantined after a processing error; pruned after retention.


class ScheduleType(str, Enum):
    """Recurrence variants understood by the calculator"""

    DAILY = 'daily'
    WEEKLY = 'weekly'
    MONTHLY_FIRST_WEEKDAY = 'monthly-first-weekday'
    MONTHLY_LAST_WEEKDAY = 'monthly-last-weekday'
    CUSTOM = 'custom'


class Weekday(str, Enum):
    """Days of the week, as stored in schedule configs"""

    SUNDAY = 'sunday'
    MONDAY = 'monday'
    TUESDAY = 'tuesday'
    WEDNESDAY = 'wednesday'
    THURSDAY = 'thursday'
    FRIDAY = 'friday'
    SATURDAY = 'saturday'

    @property
    def number(self) -> int:
        """Wire numbering: 0=Sunday .. 6=Saturday."""
        return _WEEKDAY_ORDER.index(self)

    @property
    def python_weekday(self) -> int:
        """Python ``date.weekday()`` numbering: 0=Monday .. 6=Sunday."""
        return (self.number - 1) % 7


_WEEKDAY_ORDER: tuple[Weekday, ...] = tuple(Weekday)


class FileFormat(str, Enum):
    """Output formats the file-generation collaborator accepts"""

    EXCEL = 'excel'
    CSV = 'csv'
    PDF = 'pdf'


class OutcomeKind(str, Enum):
    """What a poll pass did with one record"""

    TRIGGERED = 'triggered'
    NOT_DUE = 'not_due'
    SKIPPED = 'skipped'
