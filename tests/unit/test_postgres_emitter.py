"""Tests for PostgresEmitter and RecordingEmitter (mocked sessions, no DB)."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from filecadence.core.errors import EmitError, ErrorCode
from filecadence.core.events.emitter import RecordingEmitter, TriggerEmitter
from filecadence.core.events.postgres import PostgresEmitter
from filecadence.core.models.schedule import FILE_GENERATE_TOPIC
from filecadence.core.models.tables import TriggerEventModel


def _make_emitter() -> tuple[PostgresEmitter, AsyncMock]:
    """Create a PostgresEmitter with a mocked async session factory.

    Returns (emitter, mock_session).
    """
    mock_session = AsyncMock()
    # session.add() is synchronous in SQLAlchemy
    mock_session.add = MagicMock()

    mock_factory = MagicMock()
    mock_factory.return_value.__aenter__ = AsyncMock(return_value=mock_session)
    mock_factory.return_value.__aexit__ = AsyncMock(return_value=False)

    return PostgresEmitter(mock_factory), mock_session


PAYLOAD = {
    'scheduleId': 's1',
    'customerId': 'c1',
    'customerEmail': 'c1@example.com',
    'fileType': 'products',
    'format': 'excel',
}


@pytest.mark.unit
class TestPostgresEmitter:
    """Tests for PostgresEmitter.emit."""

    def test_satisfies_protocol(self) -> None:
        emitter, _ = _make_emitter()
        assert isinstance(emitter, TriggerEmitter)

    @pytest.mark.asyncio
    async def test_inserts_outbox_row_and_commits(self) -> None:
        emitter, session = _make_emitter()

        event_id = await emitter.emit(FILE_GENERATE_TOPIC, PAYLOAD)

        session.add.assert_called_once()
        row = session.add.call_args.args[0]
        assert isinstance(row, TriggerEventModel)
        assert row.id == event_id
        assert row.topic == 'file.generate'
        assert row.payload == PAYLOAD
        assert row.created_at.tzinfo is not None
        session.commit.assert_awaited_once()
        uuid.UUID(event_id)

    @pytest.mark.asyncio
    async def test_failure_raises_emit_error(self) -> None:
        emitter, session = _make_emitter()
        session.commit = AsyncMock(side_effect=SQLAlchemyError('deadlock'))

        with pytest.raises(EmitError) as exc_info:
            await emitter.emit(FILE_GENERATE_TOPIC, PAYLOAD)

        exc = exc_info.value
        assert exc.code == ErrorCode.EMIT_FAILED
        assert exc.schedule_id == 's1'


@pytest.mark.unit
class TestRecordingEmitter:
    """Tests for the in-memory emitter."""

    @pytest.mark.asyncio
    async def test_records_in_order_with_unique_ids(self) -> None:
        emitter = RecordingEmitter()

        first = await emitter.emit('file.generate', {'scheduleId': 'a'})
        second = await emitter.emit('other.topic', {'scheduleId': 'b'})

        assert first != second
        assert [e.event_id for e in emitter.events] == [first, second]
        assert [e.payload['scheduleId'] for e in emitter.for_topic('file.generate')] == ['a']

    @pytest.mark.asyncio
    async def test_payload_is_copied(self) -> None:
        emitter = RecordingEmitter()
        payload = {'scheduleId': 'a'}

        await emitter.emit('file.generate', payload)
        payload['scheduleId'] = 'changed'

        assert emitter.events[0].payload == {'scheduleId': 'a'}
