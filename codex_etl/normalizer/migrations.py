"""Idempotent schema operations used by the normalizer.

Each operation renders exactly one PostgreSQL statement that can be run any
number of times: tables and columns are only created when absent and only
dropped when present. Table and column names are passed as
``psycopg2.sql.Identifier`` and quoted by the driver; column definitions are
trusted SQL fragments from the schema module.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from psycopg2 import sql


class MigrationOperation(ABC):
    """Base class for a single idempotent schema change."""

    @abstractmethod
    def statement(self) -> sql.Composed:
        """Return the SQL statement for this operation."""


@dataclass(frozen=True)
class CreateTableIfAbsent(MigrationOperation):
    """CREATE TABLE IF NOT EXISTS with column and constraint definitions."""

    table: str
    definitions: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.definitions:
            raise ValueError(f"Table {self.table} needs at least one column definition")

    def statement(self) -> sql.Composed:
        body = sql.SQL(",\n    ").join(sql.SQL(definition) for definition in self.definitions)
        return sql.SQL("CREATE TABLE IF NOT EXISTS {} (\n    {}\n)").format(
            sql.Identifier(self.table), body
        )


@dataclass(frozen=True)
class AddColumnIfAbsent(MigrationOperation):
    table: str
    column: str
    definition: str

    def statement(self) -> sql.Composed:
        return sql.SQL("ALTER TABLE {} ADD COLUMN IF NOT EXISTS {} {}").format(
            sql.Identifier(self.table),
            sql.Identifier(self.column),
            sql.SQL(self.definition),
        )


@dataclass(frozen=True)
class DropColumnIfPresent(MigrationOperation):
    # Tolerates a missing table as well as a missing column
    table: str
    column: str

    def statement(self) -> sql.Composed:
        return sql.SQL("ALTER TABLE IF EXISTS {} DROP COLUMN IF EXISTS {}").format(
            sql.Identifier(self.table), sql.Identifier(self.column)
        )


@dataclass(frozen=True)
class DropTableIfPresent(MigrationOperation):
    table: str
    cascade: bool = True

    def statement(self) -> sql.Composed:
        suffix = sql.SQL(" CASCADE") if self.cascade else sql.SQL("")
        return sql.SQL("DROP TABLE IF EXISTS {}{}").format(sql.Identifier(self.table), suffix)
