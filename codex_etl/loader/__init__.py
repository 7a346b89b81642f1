"""
Codex Loader

Phase 1 of the pipeline. Streams a codex JSON dump, keeps the entries whose
hud_category is the target category (Biology by default) and writes them to
the flat codex_entries table in fixed-size batches.

Main components:
- iter_records: Incremental JSON reader
- iter_rows / transform_record: Category filter and field coercion
- BatchLoader: Fixed-size batching with fail-fast writes
- LoaderDB: Table creation and batch inserts
"""

from .batch import BatchLoader
from .db_operations import FLAT_TABLE, LoaderDB
from .source import SourceParseError, iter_records
from .transform import FieldCoercionError, iter_rows, transform_record

__all__ = [
    "BatchLoader",
    "FLAT_TABLE",
    "FieldCoercionError",
    "LoaderDB",
    "SourceParseError",
    "iter_records",
    "iter_rows",
    "transform_record",
]
__version__ = "0.1.0"
