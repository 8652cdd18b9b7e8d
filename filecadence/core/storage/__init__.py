from filecadence.core.storage.base import DEFAULT_NAMESPACE, Record, ScheduleStore
from filecadence.core.storage.memory import InMemoryScheduleStore
from filecadence.core.storage.postgres import PostgresScheduleStore

__all__ = [
    'DEFAULT_NAMESPACE',
    'Record',
    'ScheduleStore',
    'InMemoryScheduleStore',
    'PostgresScheduleStore',
]
