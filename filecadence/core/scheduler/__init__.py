# filecadence/core/scheduler/__init__.py
"""
Scheduler module for polling and dispatching stored file schedules.

Main components:
- ScheduleChecker: Poll-and-dispatch loop with quarantine and pruning
- ScheduleStateManager: Typed access to schedule records in a store
- compute_next_run: Next run time calculation
- register_schedule: Validate and persist a new schedule

Example usage:
    from filecadence.core.scheduler import ScheduleChecker

    checker = ScheduleChecker(store, emitter)
    await checker.run_forever()
"""

from filecadence.core.scheduler.service import ScheduleChecker
from filecadence.core.scheduler.state import ScheduleStateManager
from filecadence.core.scheduler.calculator import compute_next_run, is_due
from filecadence.core.scheduler.intake import register_schedule
from filecadence.core.scheduler.poll_types import (
    PollReport,
    Quarantined,
    RecordOutcome,
    RecordUpdate,
)

__all__ = [
    'ScheduleChecker',
    'ScheduleStateManager',
    'compute_next_run',
    'is_due',
    'register_schedule',
    'PollReport',
    'Quarantined',
    'RecordOutcome',
    'RecordUpdate',
]
