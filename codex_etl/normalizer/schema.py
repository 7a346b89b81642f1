"""
Normalized Schema Definition

This module describes the target schema of phase 2 and the schema changes
that get there:
- Reference tables: species, regions, systems, bodies
- Foreign key columns added to codex_entries
- Legacy columns of codex_entries that the reference tables supersede

It also defines ColumnCapabilities, the record of which legacy columns the
flat table still has. It is computed once per run and decides which populate
and backfill steps can run.
"""

from dataclasses import dataclass
from enum import Enum

from codex_etl.loader.db_operations import FLAT_TABLE

from .migrations import (
    AddColumnIfAbsent,
    CreateTableIfAbsent,
    DropColumnIfPresent,
    DropTableIfPresent,
    MigrationOperation,
)

SPECIES_TABLE = 'species'
REGIONS_TABLE = 'regions'
SYSTEMS_TABLE = 'systems'
BODIES_TABLE = 'bodies'

# Creation order; drops run in reverse
REFERENCE_TABLES = (SPECIES_TABLE, REGIONS_TABLE, SYSTEMS_TABLE, BODIES_TABLE)

REFERENCE_TABLE_DEFINITIONS: dict[str, tuple[str, ...]] = {
    SPECIES_TABLE: (
        'id SERIAL PRIMARY KEY',
        'english_name VARCHAR(255) UNIQUE NOT NULL',
    ),
    REGIONS_TABLE: (
        'id SERIAL PRIMARY KEY',
        'name VARCHAR(255) UNIQUE NOT NULL',
        'name_localised VARCHAR(255)',
    ),
    SYSTEMS_TABLE: (
        'id SERIAL PRIMARY KEY',
        'name VARCHAR(255) UNIQUE NOT NULL',
        'x DOUBLE PRECISION',
        'y DOUBLE PRECISION',
        'z DOUBLE PRECISION',
        f'region_id INTEGER REFERENCES {REGIONS_TABLE}(id)',
    ),
    BODIES_TABLE: (
        'id SERIAL PRIMARY KEY',
        'name VARCHAR(255) NOT NULL',
        f'system_id INTEGER NOT NULL REFERENCES {SYSTEMS_TABLE}(id)',
        'UNIQUE (name, system_id)',
    ),
}

# Foreign key column on codex_entries -> definition
FOREIGN_KEY_COLUMNS: dict[str, str] = {
    'species_id': f'INTEGER REFERENCES {SPECIES_TABLE}(id)',
    'system_id': f'INTEGER REFERENCES {SYSTEMS_TABLE}(id)',
    'body_id': f'INTEGER REFERENCES {BODIES_TABLE}(id)',
}

# Columns of codex_entries replaced by the reference tables. Some of them
# (index_id, name_localized, category_localized) only exist in tables
# imported by older tooling.
SUPERSEDED_COLUMNS = (
    'index_id',
    'hud_category',
    'name',
    'system',
    'x',
    'y',
    'z',
    'body',
    'name_localized',
    'category_localized',
    'region_name',
    'region_name_localised',
)


class NormalizationStage(Enum):
    """Stages of a normalizer run, in execution order."""

    PROBE_SCHEMA = 1
    TEARDOWN = 2
    CREATE_TABLES = 3
    POPULATE = 4
    CLEANUP = 5


@dataclass(frozen=True)
class ColumnCapabilities:
    """Which legacy codex_entries columns are available to read from."""

    has_english_name: bool = False
    has_region_name: bool = False
    has_region_name_localised: bool = False
    has_system: bool = False
    has_body: bool = False
    has_coordinates: bool = False
    has_superseded_columns: bool = False

    @classmethod
    def from_columns(cls, columns: set[str]) -> "ColumnCapabilities":
        """Build capabilities from the flat table's column names."""
        return cls(
            has_english_name='english_name' in columns,
            has_region_name='region_name' in columns,
            has_region_name_localised='region_name_localised' in columns,
            has_system='system' in columns,
            has_body='body' in columns,
            has_coordinates={'x', 'y', 'z'} <= columns,
            has_superseded_columns=bool(columns & set(SUPERSEDED_COLUMNS)),
        )


def teardown_operations() -> list[MigrationOperation]:
    """Drop everything a previous normalizer run created."""
    operations: list[MigrationOperation] = [
        DropColumnIfPresent(FLAT_TABLE, column) for column in FOREIGN_KEY_COLUMNS
    ]
    operations.extend(DropTableIfPresent(table) for table in reversed(REFERENCE_TABLES))
    return operations


def create_operations() -> list[MigrationOperation]:
    """Create the reference tables and the foreign key columns."""
    operations: list[MigrationOperation] = [
        CreateTableIfAbsent(table, REFERENCE_TABLE_DEFINITIONS[table])
        for table in REFERENCE_TABLES
    ]
    operations.extend(
        AddColumnIfAbsent(FLAT_TABLE, column, definition)
        for column, definition in FOREIGN_KEY_COLUMNS.items()
    )
    return operations


def cleanup_operations() -> list[MigrationOperation]:
    """Drop the superseded legacy columns."""
    return [DropColumnIfPresent(FLAT_TABLE, column) for column in SUPERSEDED_COLUMNS]
