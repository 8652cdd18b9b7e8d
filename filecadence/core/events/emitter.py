# filecadence/core/events/emitter.py
from __future__ import annotations
import copy
import uuid
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable
from filecadence.core.logging import get_logger

logger = get_logger('emitter')


@runtime_checkable
class TriggerEmitter(Protocol):
    """
    Hands one trigger event to the downstream collaborator.

    Returns an event id. Delivery is at-least-once from the engine's point of
    view; consumers handle duplicates. Failures raise ``EmitError``.
    """

    async def emit(self, topic: str, payload: dict[str, Any]) -> str: ...


@dataclass(slots=True, frozen=True)
class EmittedEvent:
    event_id: str
    topic: str
    payload: dict[str, Any]


class RecordingEmitter:
    """Keeps emitted events in memory, in emission order."""

    def __init__(self) -> None:
        self.events: list[EmittedEvent] = []

    async def emit(self, topic: str, payload: dict[str, Any]) -> str:
        event_id = str(uuid.uuid4())
        self.events.append(EmittedEvent(event_id, topic, copy.deepcopy(payload)))
        logger.debug(f"Recorded '{topic}' event {event_id}")
        return event_id

    def for_topic(self, topic: str) -> list[EmittedEvent]:
        return [e for e in self.events if e.topic == topic]
