"""Typed outcomes of a poll pass.

Each record yields exactly one ``RecordOutcome``:

* ``Ok(RecordUpdate)``: the record was handled normally. ``kind`` says
  whether it was triggered, not yet due, or skipped as non-active.
* ``Err(Quarantined)``: something failed for this record only. The record
  was (or could not be) written back as ``failed``; the rest of the batch
  is unaffected.

``PollReport`` aggregates the outcomes of one invocation together with the
pruning result. It is informational: the cadence driver never acts on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, TypeAlias

from filecadence.core.models.schedule import FileSchedule
from filecadence.core.types.result import Result, is_err, is_ok
from filecadence.core.types.status import OutcomeKind


@dataclass(slots=True, frozen=True)
class RecordUpdate:
    """A record handled without error.

    Fields:
        schedule_id: key of the record, None if it has no usable scheduleId
        kind: TRIGGERED, NOT_DUE or SKIPPED
        schedule: the persisted record after a trigger, None otherwise
        event_id: id returned by the emitter for a trigger
    """

    schedule_id: Optional[str]
    kind: OutcomeKind
    schedule: Optional[FileSchedule] = None
    event_id: Optional[str] = None


@dataclass(slots=True, frozen=True)
class Quarantined:
    """A record whose processing failed.

    Fields:
        schedule_id: key of the record, None if the record had none
        error: message written to ``lastError``
        persisted: whether the failed status reached the store
        emitted: whether the trigger went out before the failure
    """

    schedule_id: Optional[str]
    error: str
    persisted: bool
    emitted: bool = False


RecordOutcome: TypeAlias = Result[RecordUpdate, Quarantined]


@dataclass
class PollReport:
    """Aggregate result of one poll invocation."""

    polled_at: datetime
    outcomes: list[RecordOutcome] = field(default_factory=lambda: [])
    pruned: int = 0

    def _count(self, kind: OutcomeKind) -> int:
        return sum(
            1 for o in self.outcomes if is_ok(o) and o.ok_value.kind == kind
        )

    @property
    def checked(self) -> int:
        return len(self.outcomes)

    @property
    def triggered(self) -> int:
        return self._count(OutcomeKind.TRIGGERED)

    @property
    def not_due(self) -> int:
        return self._count(OutcomeKind.NOT_DUE)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeKind.SKIPPED)

    @property
    def quarantined(self) -> list[Quarantined]:
        return [o.err_value for o in self.outcomes if is_err(o)]

    def summary(self) -> dict[str, Any]:
        return {
            'polledAt': self.polled_at,
            'checked': self.checked,
            'triggered': self.triggered,
            'notDue': self.not_due,
            'skipped': self.skipped,
            'quarantined': len(self.quarantined),
            'pruned': self.pruned,
        }
