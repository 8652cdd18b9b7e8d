"""Error taxonomy and rust-style display for filecadence.

Two families live here:

* Configuration/validation errors (``ConfigurationError``,
  ``ScheduleValidationError``) describe bad input. They carry an error code,
  notes and a help line so the CLI can print something actionable.
* Runtime errors (``ProcessingError``, ``StorageError``, ``PruneError``) are
  raised while a poll pass runs. The checker catches them at the record
  boundary and turns them into a quarantine, so they rarely reach a user
  directly; their ``str()`` ends up in a schedule's ``lastError``.
"""

from __future__ import annotations

import os
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes, grouped by category.

    - E100-E199: Schedule validation
    - E200-E299: Configuration / CLI
    - E300-E399: Runtime (processing, storage, pruning)
    """

    # Schedule validation (E100-E199)
    SCHEDULE_UNSUPPORTED_TYPE = 'E100'
    SCHEDULE_INVALID_TIME = 'E101'
    SCHEDULE_INVALID_WEEKDAY = 'E102'
    SCHEDULE_INVALID_TIMEZONE = 'E103'
    SCHEDULE_INVALID_CRON = 'E104'

    # Configuration / CLI (E200-E299)
    CONFIG_INVALID_ENGINE = 'E200'
    STORAGE_INVALID_URL = 'E201'
    CLI_INVALID_ARGS = 'E202'

    # Runtime (E300-E399)
    PROCESSING_FAILED = 'E300'
    EMIT_FAILED = 'E301'
    RECORD_TIMEOUT = 'E302'
    STORAGE_READ_FAILED = 'E310'
    STORAGE_WRITE_FAILED = 'E311'
    STORAGE_DELETE_FAILED = 'E312'
    PRUNE_FAILED = 'E320'


class _Colors:
    RESET = '\033[0m'
    BOLD = '\033[1m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    GREEN = '\033[92m'


class _NoColors:
    RESET = ''
    BOLD = ''
    RED = ''
    BLUE = ''
    GREEN = ''


def _should_use_colors() -> bool:
    if os.environ.get('FILECADENCE_FORCE_COLOR', '').lower() in ('1', 'true', 'yes'):
        return True
    # https://no-color.org/
    if os.environ.get('NO_COLOR') is not None:
        return False
    return hasattr(sys.stderr, 'isatty') and sys.stderr.isatty()


@dataclass
class FilecadenceError(Exception):
    """Base exception for filecadence.

    Fields:
        message: one-line description, also what ``lastError`` shows
        code: category code (see ``ErrorCode``)
        notes: extra context lines
        help_text: suggested fix
    """

    message: str
    code: ErrorCode | None = None
    notes: list[str] = field(default_factory=lambda: [])
    help_text: str | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def with_note(self, note: str) -> FilecadenceError:
        """Add a note to the error (fluent API)."""
        self.notes.append(note)
        return self

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        """Render as ``error[E100]: message`` followed by notes and help."""
        if use_colors is None:
            use_colors = _should_use_colors()
        c = _Colors if use_colors else _NoColors

        code_part = f'[{self.code.value}]' if self.code else ''
        lines = [f'{c.BOLD}{c.RED}error{code_part}:{c.RESET} {self.message}']
        for note in self.notes:
            lines.append(f'   {c.BLUE}={c.RESET} {c.BOLD}note{c.RESET}: {note}')
        if self.help_text:
            lines.append(
                f'   {c.BLUE}={c.RESET} {c.BOLD}{c.GREEN}help{c.RESET}: {self.help_text}'
            )
        return '\n'.join(lines)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# Specific Error Classes
# =============================================================================


@dataclass
class ConfigurationError(FilecadenceError):
    """Raised when engine, storage or CLI configuration is invalid."""

    pass


@dataclass
class ScheduleValidationError(FilecadenceError):
    """Raised when a schedule's type or config cannot produce a next run."""

    pass


@dataclass
class UnsupportedScheduleTypeError(ScheduleValidationError):
    """Raised for a scheduleType tag outside the known variants."""

    schedule_type: str | None = None


@dataclass
class ProcessingError(FilecadenceError):
    """Raised when checking or dispatching a single schedule fails."""

    schedule_id: str | None = None


@dataclass
class EmitError(ProcessingError):
    """Raised when the trigger event could not be handed to the collaborator."""

    pass


@dataclass
class RecordTimeoutError(ProcessingError):
    """Raised when one record exceeded its processing time limit."""

    pass


@dataclass
class StorageError(FilecadenceError):
    """Raised when the schedule store fails a read, write or delete."""

    namespace: str | None = None
    key: str | None = None


@dataclass
class PruneError(FilecadenceError):
    """Describes a failed cleanup step. Logged, never propagated out of a poll."""

    pass


# =============================================================================
# Error Collection
# =============================================================================


class ValidationReport:
    """Collects several errors found in one validation phase."""

    def __init__(self, phase_name: str) -> None:
        self.phase_name: str = phase_name
        self.errors: list[FilecadenceError] = []

    def add(self, error: FilecadenceError) -> None:
        self.errors.append(error)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        if use_colors is None:
            use_colors = _should_use_colors()
        c = _Colors if use_colors else _NoColors

        parts = [e.format_rust_style(use_colors=use_colors) for e in self.errors]
        parts.append(
            f'{c.BOLD}{c.RED}error{c.RESET}: aborting due to '
            f'{len(self.errors)} previous errors'
        )
        return '\n\n'.join(parts)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


@dataclass
class MultipleValidationErrors(FilecadenceError):
    """Wraps a ValidationReport holding two or more errors."""

    report: ValidationReport = field(default_factory=lambda: ValidationReport(''))

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        return self.report.format_rust_style(use_colors=use_colors)


def raise_collected(report: ValidationReport) -> None:
    """Raise what a report collected.

    - 0 errors: returns normally
    - 1 error: raises that error unchanged
    - 2+ errors: raises MultipleValidationErrors
    """
    count = len(report.errors)
    if count == 0:
        return
    if count == 1:
        raise report.errors[0]
    raise MultipleValidationErrors(
        message=f'aborting due to {count} previous errors',
        code=report.errors[0].code,
        report=report,
    )


# =============================================================================
# Exception hook
# =============================================================================

_original_excepthook = sys.excepthook


def _filecadence_excepthook(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: Any,
) -> None:
    if isinstance(exc_value, FilecadenceError):
        print(exc_value.format_rust_style(), file=sys.stderr)
        if os.environ.get('FILECADENCE_VERBOSE', '').lower() in ('1', 'true', 'yes'):
            traceback.print_exception(exc_type, exc_value, exc_tb, file=sys.stderr)
    else:
        _original_excepthook(exc_type, exc_value, exc_tb)


def install_error_handler() -> None:
    """Print uncaught FilecadenceError instances in rust style."""
    sys.excepthook = _filecadence_excepthook


def uninstall_error_handler() -> None:
    """Restore the original exception hook."""
    sys.excepthook = _original_excepthook
