from filecadence.core.events.emitter import (
    EmittedEvent,
    RecordingEmitter,
    TriggerEmitter,
)
from filecadence.core.events.postgres import PostgresEmitter

__all__ = [
    'EmittedEvent',
    'RecordingEmitter',
    'TriggerEmitter',
    'PostgresEmitter',
]
