# filecadence/core/codec/serde.py
from __future__ import annotations
from typing import Any, Dict, List, Union
import datetime as dt
import json
from pydantic import BaseModel
from filecadence.core.types.result import Ok, Err, Result
from filecadence.core.logging import get_logger

logger = get_logger('serde')


Json = Union[None, bool, int, float, str, List['Json'], Dict[str, 'Json']]
"""
Union type for JSON-serializable values.
"""


class SerializationError(Exception):
    """
    Raised (or carried inside Err) when a value cannot be converted to or from JSON.
    """

    pass


def format_timestamp(value: dt.datetime) -> str:
    """
    Render an aware datetime as the stored wire format: ``2025-06-02T09:00:00.000Z``.

    Raises:
        ValueError: if ``value`` is naive.
    """
    if value.tzinfo is None:
        raise ValueError('timestamp must be timezone-aware')
    utc = value.astimezone(dt.timezone.utc)
    return utc.strftime('%Y-%m-%dT%H:%M:%S.') + f'{utc.microsecond // 1000:03d}Z'


def parse_timestamp(value: str) -> dt.datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing ``Z``. Naive strings are read as UTC.
    """
    text = value.strip()
    if text.endswith('Z') or text.endswith('z'):
        text = text[:-1] + '+00:00'
    parsed = dt.datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)


def _default(value: Any) -> Json:
    if isinstance(value, BaseModel):
        return value.model_dump(mode='json', by_alias=True, exclude_none=True)
    if isinstance(value, dt.datetime):
        return format_timestamp(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f'Object of type {type(value).__name__} is not JSON serializable')


def dumps_json(value: Any, *, indent: int | None = None) -> Result[str, SerializationError]:
    """
    Serialize a value to a JSON string.

    Pydantic models are dumped by alias; datetimes use ``format_timestamp``.
    """
    try:
        return Ok(json.dumps(value, default=_default, indent=indent, sort_keys=indent is not None))
    except (TypeError, ValueError) as e:
        logger.debug(f'JSON serialization failed: {e}')
        return Err(SerializationError(str(e)))


def loads_json(text: str | bytes | None) -> Result[Json, SerializationError]:
    """
    Parse a JSON string. ``None`` or empty input yields ``Ok(None)``.
    """
    if text is None or text == '' or text == b'':
        return Ok(None)
    try:
        return Ok(json.loads(text))
    except (TypeError, ValueError) as e:
        return Err(SerializationError(f'invalid JSON: {e}'))
