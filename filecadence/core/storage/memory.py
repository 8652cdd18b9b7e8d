# filecadence/core/storage/memory.py
from __future__ import annotations
import copy
from typing import Optional
from filecadence.core.storage.base import Record
from filecadence.core.logging import get_logger

logger = get_logger('store.memory')


class InMemoryScheduleStore:
    """
    Process-local ScheduleStore.

    Records are deep-copied on the way in and out, so callers never share
    mutable state with the store. Intended for tests, dry runs and
    single-process embedding.
    """

    def __init__(self, initial: Optional[dict[str, dict[str, Record]]] = None):
        self._data: dict[str, dict[str, Record]] = copy.deepcopy(initial or {})

    async def get(self, namespace: str, key: str) -> Optional[Record]:
        record = self._data.get(namespace, {}).get(key)
        return copy.deepcopy(record) if record is not None else None

    async def set(self, namespace: str, key: str, record: Record) -> None:
        self._data.setdefault(namespace, {})[key] = copy.deepcopy(record)
        logger.debug(f"Stored '{namespace}/{key}'")

    async def delete(self, namespace: str, key: str) -> bool:
        removed = self._data.get(namespace, {}).pop(key, None)
        return removed is not None

    async def list_all(self, namespace: str) -> list[Record]:
        return [copy.deepcopy(r) for r in self._data.get(namespace, {}).values()]

    def snapshot(self, namespace: str) -> dict[str, Record]:
        """Synchronous copy of one namespace, keyed by record key."""
        return copy.deepcopy(self._data.get(namespace, {}))
