# filecadence/core/storage/base.py
from __future__ import annotations
from typing import Any, Optional, Protocol, runtime_checkable

Record = dict[str, Any]

DEFAULT_NAMESPACE = 'file_schedules'


@runtime_checkable
class ScheduleStore(Protocol):
    """
    Namespaced key-value storage the engine reads and writes schedules through.

    Implementations raise ``StorageError`` for any backend failure. No
    multi-key transaction is assumed: every call stands alone and ``set``
    is a full overwrite (last write wins).
    """

    async def get(self, namespace: str, key: str) -> Optional[Record]: ...

    async def set(self, namespace: str, key: str, record: Record) -> None: ...

    async def delete(self, namespace: str, key: str) -> bool: ...

    async def list_all(self, namespace: str) -> list[Record]: ...
