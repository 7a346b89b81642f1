"""
Streaming reader for the codex JSON dump.

The dump can be several gigabytes, so records are parsed incrementally with
ijson and yielded one at a time. Three layouts are accepted:
- a top-level JSON array of objects: every element is yielded
- a top-level object keyed by entry id whose values are the entries: every
  value is yielded
- a stream of JSON values (newline-delimited or concatenated): every value is yielded

A leading UTF-8 byte order mark is skipped.
"""

import codecs
import logging
from collections.abc import Iterator
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Union

import ijson

logger = logging.getLogger(__name__)


class SourceParseError(Exception):
    """Raised when the input document is not valid JSON."""
    pass


class DocumentLayout(Enum):
    ARRAY = "array"
    KEYED_OBJECT = "keyed_object"
    VALUE_STREAM = "value_stream"


def _skip_bom(handle: BinaryIO) -> int:
    """Position the handle after a UTF-8 BOM, if any, and return that offset."""
    if handle.read(len(codecs.BOM_UTF8)) == codecs.BOM_UTF8:
        return len(codecs.BOM_UTF8)
    handle.seek(0)
    return 0


def _first_value_is_object(handle: BinaryIO) -> bool:
    """
    Check whether the first member of a top-level object is itself an object.

    Codex entries hold only scalars, so an object whose first value is an
    object is a mapping of entry id to entry.
    """
    events = ijson.parse(handle, multiple_values=True)
    try:
        next(events)  # start_map
        _, event, _ = next(events)
        if event != "map_key":
            return False
        _, event, _ = next(events)
        return event == "start_map"
    except ijson.JSONError as e:
        raise SourceParseError(f"Malformed JSON: {e}") from e
    except StopIteration:
        return False


def _detect_layout(handle: BinaryIO) -> DocumentLayout:
    """
    Peek at the start of the document and rewind to its first byte.

    Raises:
        SourceParseError: If the document holds nothing but whitespace
    """
    offset = _skip_bom(handle)
    while True:
        char = handle.read(1)
        if not char:
            raise SourceParseError("Input document is empty")
        if not char.isspace():
            break

    layout = DocumentLayout.VALUE_STREAM
    if char == b"[":
        layout = DocumentLayout.ARRAY
    elif char == b"{":
        handle.seek(offset)
        if _first_value_is_object(handle):
            layout = DocumentLayout.KEYED_OBJECT

    handle.seek(offset)
    return layout


def iter_records(path: Union[str, Path]) -> Iterator[Any]:
    """
    Lazily yield raw records from a codex JSON document.

    Numbers are produced as float/int rather than Decimal. The file stays open
    only while the iterator is being consumed.

    Args:
        path: Path to the JSON document

    Yields:
        Each array element (array layout), each member value (keyed object
        layout) or each top-level value (stream layout)

    Raises:
        FileNotFoundError: If the document does not exist
        SourceParseError: If the document is empty or malformed

    Example:
        >>> for record in iter_records('codex.json'):
        ...     print(record['hud_category'])
    """
    path = Path(path)
    with path.open("rb") as handle:
        layout = _detect_layout(handle)
        logger.debug(
            "Reading codex document",
            extra={"path": str(path), "layout": layout.value}
        )

        if layout is DocumentLayout.ARRAY:
            records = ijson.items(handle, "item", use_float=True)
        elif layout is DocumentLayout.KEYED_OBJECT:
            records = (value for _, value in ijson.kvitems(handle, "", use_float=True))
        else:
            records = ijson.items(handle, "", multiple_values=True, use_float=True)

        try:
            yield from records
        except ijson.JSONError as e:
            raise SourceParseError(f"Malformed JSON in {path}: {e}") from e
