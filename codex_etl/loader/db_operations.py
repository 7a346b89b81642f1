"""
Database Operations for the Loader

This module handles all database interactions for phase 1:
- Creating the flat codex_entries table if it does not exist yet
- Writing batches of transformed rows

Each batch is written as individual INSERT statements inside one transaction.
A failing row rolls the whole batch back and aborts the load, so the table
only ever contains complete batches.
"""

import logging
from typing import Any

import psycopg2

from codex_etl.common.database import CodexDatabase, DatabaseError

from .transform import ROW_COLUMNS

logger = logging.getLogger(__name__)


FLAT_TABLE = 'codex_entries'

CREATE_FLAT_TABLE = f"""
    CREATE TABLE IF NOT EXISTS {FLAT_TABLE} (
        id SERIAL PRIMARY KEY,
        english_name VARCHAR(255),
        created_at TIMESTAMP,
        reported_at TIMESTAMP,
        cmdr_name VARCHAR(255),
        system VARCHAR(255),
        x DOUBLE PRECISION,
        y DOUBLE PRECISION,
        z DOUBLE PRECISION,
        body VARCHAR(255),
        latitude DOUBLE PRECISION,
        longitude DOUBLE PRECISION,
        entryid INTEGER,
        name VARCHAR(255),
        category VARCHAR(255),
        sub_category VARCHAR(255),
        sub_category_localised VARCHAR(255),
        region_name VARCHAR(255),
        region_name_localised VARCHAR(255),
        id64 BIGINT
    )
"""

INSERT_ROW = (
    f"INSERT INTO {FLAT_TABLE} ({', '.join(ROW_COLUMNS)}) "
    f"VALUES ({', '.join(f'%({column})s' for column in ROW_COLUMNS)})"
)


class LoaderDB:
    """
    Database interface for the loader.

    Wraps an already connected CodexDatabase; opening and closing the
    connection is the caller's job.
    """

    def __init__(self, database: CodexDatabase):
        self.database = database

    def create_flat_table(self) -> None:
        """
        Create the codex_entries table unless it already exists.

        Raises:
            DatabaseError: If the statement fails
        """
        with self.database.transaction() as cur:
            cur.execute(CREATE_FLAT_TABLE)
        logger.info("Flat table ready", extra={'table': FLAT_TABLE})

    def insert_batch(self, rows: list[dict[str, Any]]) -> int:
        """
        Insert a batch of rows in a single transaction.

        Args:
            rows: Row dictionaries keyed by ROW_COLUMNS

        Returns:
            Number of rows written

        Raises:
            DatabaseError: If any row fails; nothing from the batch is kept
        """
        if not rows:
            return 0

        with self.database.transaction() as cur:
            for position, row in enumerate(rows):
                try:
                    cur.execute(INSERT_ROW, row)
                except psycopg2.Error as e:
                    logger.error(
                        "Failed to insert codex entry, aborting batch",
                        extra={
                            'batch_position': position,
                            'entryid': row.get('entryid'),
                            'system': row.get('system'),
                            'error': str(e),
                            'pgcode': e.pgcode,
                        },
                    )
                    raise DatabaseError(
                        f"Failed to insert row {position} of batch (entryid={row.get('entryid')}): {e}"
                    ) from e

        logger.debug("Batch committed", extra={'rows': len(rows)})
        return len(rows)
