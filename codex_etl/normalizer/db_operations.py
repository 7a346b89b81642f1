"""
Database Operations for the Normalizer

This module handles all database interactions for phase 2:
- Probing which columns the flat table currently has
- Running the statements of a normalization stage in one transaction
- Counting rows in the reference tables for the run summary
"""

import logging
from collections.abc import Sequence

import psycopg2
from psycopg2 import sql

from codex_etl.common.database import CodexDatabase, DatabaseError

logger = logging.getLogger(__name__)


class NormalizerDB:
    """
    Database interface for the normalizer.

    Wraps an already connected CodexDatabase; opening and closing the
    connection is the caller's job.
    """

    def __init__(self, database: CodexDatabase):
        self.database = database

    def fetch_table_columns(self, table: str) -> set[str]:
        """
        Return the column names of a table in the current schema.

        An empty set means the table does not exist.

        Raises:
            DatabaseError: If the information_schema query fails
        """
        with self.database.transaction() as cur:
            cur.execute(
                """
                SELECT column_name
                FROM information_schema.columns
                WHERE table_schema = current_schema()
                  AND table_name = %s
                """,
                (table,),
            )
            columns = {row[0] for row in cur.fetchall()}

        logger.debug("Probed table columns", extra={'table': table, 'columns': sorted(columns)})
        return columns

    def execute_stage(self, stage_name: str, statements: Sequence[sql.Composable]) -> int:
        """
        Run statements one after another inside a single transaction.

        Args:
            stage_name: Used for logging and error messages
            statements: Composed SQL statements, executed in order

        Returns:
            Number of statements executed

        Raises:
            DatabaseError: If any statement fails; the stage is rolled back
        """
        if not statements:
            return 0

        with self.database.transaction() as cur:
            for statement in statements:
                try:
                    cur.execute(statement)
                except psycopg2.Error as e:
                    logger.error(
                        "Normalization statement failed",
                        extra={
                            'stage': stage_name,
                            'statement': statement.as_string(cur).strip(),
                            'error': str(e),
                            'pgcode': e.pgcode,
                        },
                    )
                    raise DatabaseError(f"Stage {stage_name} failed: {e}") from e

        return len(statements)

    def count_rows(self, tables: Sequence[str]) -> dict[str, int]:
        """
        Count rows per table.

        Raises:
            DatabaseError: If a count fails
        """
        counts: dict[str, int] = {}
        with self.database.transaction() as cur:
            for table in tables:
                cur.execute(sql.SQL("SELECT COUNT(*) FROM {}").format(sql.Identifier(table)))
                counts[table] = cur.fetchone()[0]
        return counts
