"""Tests for PostgresScheduleStore (filecadence/core/storage/postgres.py).

Strategy: mock the DB layer entirely (create_async_engine, async_sessionmaker)
to avoid real PostgreSQL. Tests verify statements, branching and error
wrapping.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from filecadence.core.errors import ErrorCode, StorageError
from filecadence.core.models.database import PostgresConfig
from filecadence.core.models.tables import KeyValueRecordModel
from filecadence.core.storage.base import ScheduleStore
from filecadence.core.storage.postgres import PostgresScheduleStore


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_store(
    database_url: str = 'postgresql+psycopg://u:p@localhost/db',
    initialized: bool = True,
) -> tuple[PostgresScheduleStore, AsyncMock]:
    """Create a PostgresScheduleStore with fully mocked internals.

    Returns (store, mock_session).
    """
    with (
        patch('filecadence.core.storage.postgres.create_async_engine') as mock_engine,
        patch('filecadence.core.storage.postgres.async_sessionmaker') as mock_sm,
    ):
        mock_engine.return_value = MagicMock()
        mock_engine.return_value.dispose = AsyncMock()

        mock_session = AsyncMock()
        mock_sm.return_value = MagicMock(return_value=mock_session)
        # Make the session work as an async context manager
        mock_session.__aenter__ = AsyncMock(return_value=mock_session)
        mock_session.__aexit__ = AsyncMock(return_value=None)

        store = PostgresScheduleStore(PostgresConfig(database_url=database_url))
        # Skip real DB setup unless the test exercises it
        store._initialized = initialized

    return store, mock_session


def _compiled(stmt: Any) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


# ---------------------------------------------------------------------------
# Construction and schema
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestSchema:
    """Tests for engine setup and ensure_schema_initialized."""

    def test_satisfies_protocol(self) -> None:
        store, _ = _make_store()
        assert isinstance(store, ScheduleStore)

    def test_engine_receives_pool_settings(self) -> None:
        with (
            patch('filecadence.core.storage.postgres.create_async_engine') as mock_engine,
            patch('filecadence.core.storage.postgres.async_sessionmaker'),
        ):
            PostgresScheduleStore(
                PostgresConfig(database_url='postgresql+psycopg://localhost/db', pool_size=9)
            )

        args, kwargs = mock_engine.call_args
        assert args == ('postgresql+psycopg://localhost/db',)
        assert kwargs['pool_size'] == 9
        assert 'database_url' not in kwargs

    def test_advisory_key_is_stable_signed_64_bit(self) -> None:
        store_a, _ = _make_store('postgresql+psycopg://u:p@host_a/db')
        store_b, _ = _make_store('postgresql+psycopg://u:p@host_b/db')

        key = store_a._schema_advisory_key()

        assert key == store_a._schema_advisory_key()
        assert key != store_b._schema_advisory_key()
        assert -(2**63) <= key <= 2**63 - 1

    @pytest.mark.asyncio
    async def test_ensure_schema_runs_once(self) -> None:
        store, _ = _make_store(initialized=False)
        conn = AsyncMock()
        begin_ctx = MagicMock()
        begin_ctx.__aenter__ = AsyncMock(return_value=conn)
        begin_ctx.__aexit__ = AsyncMock(return_value=None)
        store.async_engine.begin = MagicMock(return_value=begin_ctx)

        await store.ensure_schema_initialized()
        await store.ensure_schema_initialized()

        store.async_engine.begin.assert_called_once()
        conn.run_sync.assert_awaited_once()
        # advisory lock, notify function, drop trigger, create trigger
        assert conn.execute.await_count == 4
        assert store._initialized is True

    @pytest.mark.asyncio
    async def test_ensure_schema_failure_raises_storage_error(self) -> None:
        store, _ = _make_store(initialized=False)
        begin_ctx = MagicMock()
        begin_ctx.__aenter__ = AsyncMock(side_effect=OSError('connection refused'))
        begin_ctx.__aexit__ = AsyncMock(return_value=None)
        store.async_engine.begin = MagicMock(return_value=begin_ctx)

        with pytest.raises(StorageError) as exc_info:
            await store.ensure_schema_initialized()

        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED
        assert store._initialized is False

    @pytest.mark.asyncio
    async def test_close_disposes_engine(self) -> None:
        store, _ = _make_store()

        await store.close()

        store.async_engine.dispose.assert_awaited_once()


# ---------------------------------------------------------------------------
# get / set / delete / list_all
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestGet:
    @pytest.mark.asyncio
    async def test_returns_copy_of_value(self) -> None:
        store, session = _make_store()
        row = MagicMock()
        row.value = {'scheduleId': 's1'}
        session.get = AsyncMock(return_value=row)

        result = await store.get('file_schedules', 's1')

        assert result == {'scheduleId': 's1'}
        assert result is not row.value
        session.get.assert_awaited_once_with(KeyValueRecordModel, ('file_schedules', 's1'))

    @pytest.mark.asyncio
    async def test_returns_none_when_missing(self) -> None:
        store, session = _make_store()
        session.get = AsyncMock(return_value=None)

        assert await store.get('file_schedules', 'missing') is None

    @pytest.mark.asyncio
    async def test_wraps_database_errors(self) -> None:
        store, session = _make_store()
        session.get = AsyncMock(side_effect=SQLAlchemyError('boom'))

        with pytest.raises(StorageError) as exc_info:
            await store.get('file_schedules', 's1')

        exc = exc_info.value
        assert exc.code == ErrorCode.STORAGE_READ_FAILED
        assert (exc.namespace, exc.key) == ('file_schedules', 's1')


@pytest.mark.unit
class TestSet:
    @pytest.mark.asyncio
    async def test_upserts_and_commits(self) -> None:
        store, session = _make_store()

        await store.set('file_schedules', 's1', {'scheduleId': 's1'})

        session.execute.assert_awaited_once()
        session.commit.assert_awaited_once()
        sql = _compiled(session.execute.await_args.args[0])
        assert 'INSERT INTO filecadence_kv' in sql
        assert 'ON CONFLICT (namespace, key) DO UPDATE' in sql

    @pytest.mark.asyncio
    async def test_wraps_database_errors(self) -> None:
        store, session = _make_store()
        session.commit = AsyncMock(
            side_effect=OperationalError('INSERT', {}, Exception('server closed'))
        )

        with pytest.raises(StorageError) as exc_info:
            await store.set('file_schedules', 's1', {})

        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED


@pytest.mark.unit
class TestDelete:
    @pytest.mark.asyncio
    async def test_true_when_row_deleted(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(return_value=MagicMock(rowcount=1))

        assert await store.delete('file_schedules', 's1') is True
        session.commit.assert_awaited_once()
        sql = _compiled(session.execute.await_args.args[0])
        assert sql.startswith('DELETE FROM filecadence_kv')

    @pytest.mark.asyncio
    async def test_false_when_nothing_deleted(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(return_value=MagicMock(rowcount=0))

        assert await store.delete('file_schedules', 'missing') is False

    @pytest.mark.asyncio
    async def test_wraps_database_errors(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(side_effect=SQLAlchemyError('boom'))

        with pytest.raises(StorageError) as exc_info:
            await store.delete('file_schedules', 's1')

        assert exc_info.value.code == ErrorCode.STORAGE_DELETE_FAILED


@pytest.mark.unit
class TestListAll:
    @pytest.mark.asyncio
    async def test_returns_values_in_namespace(self) -> None:
        store, session = _make_store()
        result = MagicMock()
        result.scalars.return_value = [{'scheduleId': 'a'}, {'scheduleId': 'b'}]
        session.execute = AsyncMock(return_value=result)

        records = await store.list_all('file_schedules')

        assert records == [{'scheduleId': 'a'}, {'scheduleId': 'b'}]
        sql = _compiled(session.execute.await_args.args[0])
        assert 'WHERE filecadence_kv.namespace' in sql

    @pytest.mark.asyncio
    async def test_wraps_connection_errors(self) -> None:
        store, session = _make_store()
        session.execute = AsyncMock(side_effect=OSError('network unreachable'))

        with pytest.raises(StorageError) as exc_info:
            await store.list_all('file_schedules')

        exc = exc_info.value
        assert exc.code == ErrorCode.STORAGE_READ_FAILED
        assert exc.namespace == 'file_schedules'
