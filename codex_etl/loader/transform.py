"""
Codex Entry Filtering and Transformation

This module selects the codex entries we care about and turns each one into a
row for the flat codex_entries table.

Key Responsibilities:
- Keep only entries whose hud_category matches the target category
- Map raw field names to flat table columns
- Coerce numeric and timestamp fields, nulling anything that does not parse

A single bad field never stops the load: the field is stored as NULL and the
rest of the entry is kept.
"""

import logging
import math
from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


CATEGORY_FIELD = 'hud_category'

# Flat table column -> (raw field, coercion kind)
COLUMN_SOURCES: dict[str, tuple[str, str]] = {
    'english_name': ('english_name', 'text'),
    'created_at': ('created_at', 'timestamp'),
    'reported_at': ('reported_at', 'timestamp'),
    'cmdr_name': ('cmdrName', 'text'),
    'system': ('system', 'text'),
    'x': ('x', 'float'),
    'y': ('y', 'float'),
    'z': ('z', 'float'),
    'body': ('body', 'text'),
    'latitude': ('latitude', 'float'),
    'longitude': ('longitude', 'float'),
    'entryid': ('entryid', 'int'),
    'name': ('name', 'text'),
    'category': ('category', 'text'),
    'sub_category': ('sub_category', 'text'),
    'sub_category_localised': ('sub_category_localised', 'text'),
    'region_name': ('region_name', 'text'),
    'region_name_localised': ('region_name_localised', 'text'),
    'id64': ('id64', 'int'),
}

ROW_COLUMNS: tuple[str, ...] = tuple(COLUMN_SOURCES)


class FieldCoercionError(ValueError):
    """Raised when a single field cannot be converted to its column type."""
    pass


def coerce_float(value: Any) -> Optional[float]:
    """
    Convert a number or numeric string to a finite float.

    Examples:
        >>> coerce_float("12.5")
        12.5
        >>> coerce_float(None) is None
        True

    Raises:
        FieldCoercionError: If the value is not numeric or not finite
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise FieldCoercionError(f"boolean is not a coordinate: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        result = float(value)
    except (TypeError, ValueError) as e:
        raise FieldCoercionError(f"not a number: {value!r}") from e
    if not math.isfinite(result):
        raise FieldCoercionError(f"not a finite number: {value!r}")
    return result


def coerce_int(value: Any) -> Optional[int]:
    """
    Convert an integer, integral float or digit string to int.

    Raises:
        FieldCoercionError: If the value is not an integer
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise FieldCoercionError(f"boolean is not an identifier: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise FieldCoercionError(f"not an integer: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            return int(value)
        except ValueError as e:
            raise FieldCoercionError(f"not an integer: {value!r}") from e
    raise FieldCoercionError(f"unsupported type for integer: {type(value).__name__}")


def coerce_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp such as "2019-12-04 20:19:16" or "2019-12-04T20:19:16Z".

    Raises:
        FieldCoercionError: If the value is not a timestamp string
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise FieldCoercionError(f"timestamp must be a string, got {type(value).__name__}")
    text = value.strip()
    if not text:
        return None
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise FieldCoercionError(f"not a timestamp: {value!r}") from e


def coerce_text(value: Any) -> Optional[str]:
    """Keep strings (blank becomes None); numbers are stringified."""
    if value is None:
        return None
    if isinstance(value, str):
        return value if value.strip() else None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise FieldCoercionError(f"expected text, got {type(value).__name__}")


_COERCERS: dict[str, Callable[[Any], Any]] = {
    'text': coerce_text,
    'float': coerce_float,
    'int': coerce_int,
    'timestamp': coerce_timestamp,
}


def is_target_record(record: Any, category: str) -> bool:
    """Return True if the record is an object tagged with the given hud_category."""
    return isinstance(record, Mapping) and record.get(CATEGORY_FIELD) == category


def transform_record(record: Mapping[str, Any]) -> dict[str, Any]:
    """
    Convert a raw codex entry into a flat table row.

    Every column in ROW_COLUMNS is present in the result. Missing fields and
    fields that fail coercion are None.

    Args:
        record: Raw codex entry as parsed from JSON

    Returns:
        Dictionary keyed by flat table column name

    Example:
        >>> row = transform_record({'system': 'Sol', 'x': '0', 'latitude': 'n/a'})
        >>> row['system'], row['x'], row['latitude']
        ('Sol', 0.0, None)
    """
    row: dict[str, Any] = {}
    for column, (field_name, kind) in COLUMN_SOURCES.items():
        try:
            row[column] = _COERCERS[kind](record.get(field_name))
        except FieldCoercionError as e:
            logger.debug(
                "Nulling field that failed coercion",
                extra={'field': field_name, 'entryid': record.get('entryid'), 'error': str(e)},
            )
            row[column] = None
    return row


def iter_rows(records: Iterable[Any], category: str) -> Iterator[dict[str, Any]]:
    """Filter records to the target category and transform each one, lazily."""
    for record in records:
        if is_target_record(record, category):
            yield transform_record(record)
