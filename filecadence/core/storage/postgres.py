# filecadence/core/storage/postgres.py
from __future__ import annotations
import hashlib
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import delete, select, text
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from filecadence.core.errors import ErrorCode, StorageError
from filecadence.core.models.database import PostgresConfig
from filecadence.core.models.tables import Base, KeyValueRecordModel
from filecadence.core.storage.base import Record
from filecadence.core.utils.url import mask_database_url
from filecadence.core.logging import get_logger

EVENT_CHANNEL = 'filecadence_events'

_NOTIFY_FUNCTION_SQL = text(
    f"""
    CREATE OR REPLACE FUNCTION filecadence_notify_event()
    RETURNS trigger AS $$
    BEGIN
        PERFORM pg_notify('{EVENT_CHANNEL}', NEW.id);
        RETURN NEW;
    END;
    $$ LANGUAGE plpgsql;
    """
)

_DROP_NOTIFY_TRIGGER_SQL = text(
    'DROP TRIGGER IF EXISTS filecadence_event_notify_trigger ON filecadence_events'
)

_CREATE_NOTIFY_TRIGGER_SQL = text(
    """
    CREATE TRIGGER filecadence_event_notify_trigger
        AFTER INSERT ON filecadence_events
        FOR EACH ROW
        EXECUTE FUNCTION filecadence_notify_event()
    """
)


class PostgresScheduleStore:
    """
    ScheduleStore backed by one PostgreSQL JSONB key-value table.

    Also owns the schema of the trigger-event outbox, so a single
    ``ensure_schema_initialized`` prepares everything the engine writes.
    ``session_factory`` is shared with ``PostgresEmitter``.

    Every backend failure surfaces as ``StorageError``.
    """

    def __init__(self, config: PostgresConfig):
        self.config = config
        self.logger = get_logger('store.postgres')

        engine_cfg = self.config.model_dump(exclude={'database_url'}, exclude_none=True)
        self.async_engine = create_async_engine(self.config.database_url, **engine_cfg)
        self.session_factory = async_sessionmaker(
            self.async_engine, expire_on_commit=False
        )
        self._initialized = False

        self.logger.info(
            f'PostgresScheduleStore initialized for {mask_database_url(config.database_url)}'
        )

    def _schema_advisory_key(self) -> int:
        """Stable 64-bit advisory lock key serializing DDL across processes."""
        basis = self.config.database_url.encode('utf-8', errors='ignore')
        h = hashlib.sha256(b'filecadence-schema:' + basis).digest()
        return int.from_bytes(h[:8], byteorder='big', signed=True)

    async def ensure_schema_initialized(self) -> None:
        """
        Create tables and the event NOTIFY trigger if they do not exist.

        Safe to call repeatedly and from several processes.
        """
        if self._initialized:
            return
        try:
            async with self.async_engine.begin() as conn:
                await conn.execute(
                    text('SELECT pg_advisory_xact_lock(CAST(:key AS BIGINT))'),
                    {'key': self._schema_advisory_key()},
                )
                await conn.run_sync(Base.metadata.create_all)
                await conn.execute(_NOTIFY_FUNCTION_SQL)
                await conn.execute(_DROP_NOTIFY_TRIGGER_SQL)
                await conn.execute(_CREATE_NOTIFY_TRIGGER_SQL)
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(
                message=f'schema initialization failed: {e}',
                code=ErrorCode.STORAGE_WRITE_FAILED,
            ) from e
        self._initialized = True
        self.logger.info('Schema initialized')

    async def close(self) -> None:
        await self.async_engine.dispose()

    async def get(self, namespace: str, key: str) -> Optional[Record]:
        await self.ensure_schema_initialized()
        try:
            async with self.session_factory() as session:
                row = await session.get(KeyValueRecordModel, (namespace, key))
                return dict(row.value) if row is not None else None
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(
                message=f"read of '{namespace}/{key}' failed: {e}",
                code=ErrorCode.STORAGE_READ_FAILED,
                namespace=namespace,
                key=key,
            ) from e

    async def set(self, namespace: str, key: str, record: Record) -> None:
        await self.ensure_schema_initialized()
        now = datetime.now(timezone.utc)
        stmt = insert(KeyValueRecordModel).values(
            namespace=namespace, key=key, value=record, updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[KeyValueRecordModel.namespace, KeyValueRecordModel.key],
            set_={'value': stmt.excluded.value, 'updated_at': stmt.excluded.updated_at},
        )
        try:
            async with self.session_factory() as session:
                await session.execute(stmt)
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(
                message=f"write of '{namespace}/{key}' failed: {e}",
                code=ErrorCode.STORAGE_WRITE_FAILED,
                namespace=namespace,
                key=key,
            ) from e
        self.logger.debug(f"Stored '{namespace}/{key}'")

    async def delete(self, namespace: str, key: str) -> bool:
        await self.ensure_schema_initialized()
        stmt = delete(KeyValueRecordModel).where(
            KeyValueRecordModel.namespace == namespace,
            KeyValueRecordModel.key == key,
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(
                message=f"delete of '{namespace}/{key}' failed: {e}",
                code=ErrorCode.STORAGE_DELETE_FAILED,
                namespace=namespace,
                key=key,
            ) from e

        rows_deleted = getattr(result, 'rowcount', 0)
        return rows_deleted > 0

    async def list_all(self, namespace: str) -> list[Record]:
        await self.ensure_schema_initialized()
        stmt = (
            select(KeyValueRecordModel.value)
            .where(KeyValueRecordModel.namespace == namespace)
            .order_by(KeyValueRecordModel.key.asc())
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [dict(value) for value in result.scalars()]
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(
                message=f"listing of '{namespace}' failed: {e}",
                code=ErrorCode.STORAGE_READ_FAILED,
                namespace=namespace,
            ) from e
