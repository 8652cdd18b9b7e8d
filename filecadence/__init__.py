"""filecadence - Multi-tenant schedule engine for recurring file deliveries"""

# Install Rust-style error handler on import
from .core.errors import install_error_handler as _install_error_handler

_install_error_handler()

from .core.models.app import EngineConfig
from .core.models.database import PostgresConfig
from .core.models.schedule import (
    FILE_GENERATE_TOPIC,
    FileGenerateEvent,
    FileSchedule,
    ScheduleRequest,
    ScheduleSettings,
)
from .core.types.status import (
    FileFormat,
    OutcomeKind,
    ScheduleStatus,
    ScheduleType,
    Weekday,
)
from .core.errors import (
    ConfigurationError,
    EmitError,
    ErrorCode,
    FilecadenceError,
    MultipleValidationErrors,
    ProcessingError,
    PruneError,
    RecordTimeoutError,
    ScheduleValidationError,
    StorageError,
    UnsupportedScheduleTypeError,
    ValidationReport,
)
from .core.scheduler import (
    PollReport,
    Quarantined,
    RecordOutcome,
    RecordUpdate,
    ScheduleChecker,
    ScheduleStateManager,
    compute_next_run,
    is_due,
    register_schedule,
)
from .core.storage import (
    DEFAULT_NAMESPACE,
    InMemoryScheduleStore,
    PostgresScheduleStore,
    ScheduleStore,
)
from .core.events import PostgresEmitter, RecordingEmitter, TriggerEmitter
from .core.types.result import Result, Ok, Err, is_ok, is_err

__all__ = [
    # Config
    'EngineConfig',
    'PostgresConfig',
    # Models
    'FILE_GENERATE_TOPIC',
    'FileGenerateEvent',
    'FileSchedule',
    'ScheduleRequest',
    'ScheduleSettings',
    'FileFormat',
    'OutcomeKind',
    'ScheduleStatus',
    'ScheduleType',
    'Weekday',
    # Errors
    'ConfigurationError',
    'EmitError',
    'ErrorCode',
    'FilecadenceError',
    'MultipleValidationErrors',
    'ProcessingError',
    'PruneError',
    'RecordTimeoutError',
    'ScheduleValidationError',
    'StorageError',
    'UnsupportedScheduleTypeError',
    'ValidationReport',
    # Scheduling
    'PollReport',
    'Quarantined',
    'RecordOutcome',
    'RecordUpdate',
    'ScheduleChecker',
    'ScheduleStateManager',
    'compute_next_run',
    'is_due',
    'register_schedule',
    # Ports and adapters
    'DEFAULT_NAMESPACE',
    'InMemoryScheduleStore',
    'PostgresScheduleStore',
    'ScheduleStore',
    'PostgresEmitter',
    'RecordingEmitter',
    'TriggerEmitter',
    # Result type
    'Result',
    'Ok',
    'Err',
    'is_ok',
    'is_err',
]
