"""
Populate and Backfill Statements

This module builds the SQL that fills the reference tables from the flat
codex_entries table and then points each flat row at its species, system and
body.

Every statement depends on some legacy columns. The builders take the
ColumnCapabilities probed at the start of the run and return None when the
columns they need are missing, so the caller can skip that step.

Key Concepts:
- Conflict-skip: every INSERT ends with ON CONFLICT ... DO NOTHING, so rows
  already in a reference table are left untouched
- First write wins: regions and systems keep the values of the lowest
  codex_entries.id for each name (DISTINCT ON ... ORDER BY name, id)
- Systems LEFT JOIN regions (unknown region -> NULL region_id), bodies
  INNER JOIN systems (a body needs its system)
"""

from dataclasses import dataclass
from typing import Optional

from psycopg2 import sql

from codex_etl.loader.db_operations import FLAT_TABLE

from .schema import BODIES_TABLE, REGIONS_TABLE, SPECIES_TABLE, SYSTEMS_TABLE, ColumnCapabilities

_TABLES = {
    'flat': sql.Identifier(FLAT_TABLE),
    'species': sql.Identifier(SPECIES_TABLE),
    'regions': sql.Identifier(REGIONS_TABLE),
    'systems': sql.Identifier(SYSTEMS_TABLE),
    'bodies': sql.Identifier(BODIES_TABLE),
}


def _column_list(columns: list[str]) -> sql.Composed:
    return sql.SQL(", ").join(sql.Identifier(column) for column in columns)


@dataclass(frozen=True)
class PopulateStep:
    """A named populate/backfill statement, or a skipped one."""

    name: str
    statement: Optional[sql.Composed]
    skip_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.statement is None


def build_species_insert(caps: ColumnCapabilities) -> Optional[sql.Composed]:
    if not caps.has_english_name:
        return None
    return sql.SQL(
        """
        INSERT INTO {species} (english_name)
        SELECT DISTINCT english_name
        FROM {flat}
        WHERE english_name IS NOT NULL
        ON CONFLICT (english_name) DO NOTHING
        """
    ).format(**_TABLES)


def build_region_insert(caps: ColumnCapabilities) -> Optional[sql.Composed]:
    if not caps.has_region_name:
        return None
    columns = ["name"]
    select = ["region_name"]
    if caps.has_region_name_localised:
        columns.append("name_localised")
        select.append("region_name_localised")
    return sql.SQL(
        """
        INSERT INTO {regions} ({columns})
        SELECT DISTINCT ON (region_name) {select}
        FROM {flat}
        WHERE region_name IS NOT NULL
        ORDER BY region_name, id
        ON CONFLICT (name) DO NOTHING
        """
    ).format(columns=_column_list(columns), select=_column_list(select), **_TABLES)


def build_system_insert(caps: ColumnCapabilities) -> Optional[sql.Composed]:
    """
    Insert one row per system name.

    Coordinates are copied when x/y/z exist; region_id is resolved against
    regions when region_name exists. A system whose region is unknown gets a
    NULL region_id.
    """
    if not caps.has_system:
        return None

    columns = ["name"]
    select = [sql.SQL("ce.system")]
    join = sql.SQL("")
    if caps.has_coordinates:
        columns += ["x", "y", "z"]
        select += [sql.SQL("ce.x"), sql.SQL("ce.y"), sql.SQL("ce.z")]
    if caps.has_region_name:
        columns.append("region_id")
        select.append(sql.SQL("r.id"))
        join = sql.SQL("LEFT JOIN {regions} r ON r.name = ce.region_name").format(**_TABLES)

    return sql.SQL(
        """
        INSERT INTO {systems} ({columns})
        SELECT DISTINCT ON (ce.system) {select}
        FROM {flat} ce
        {join}
        WHERE ce.system IS NOT NULL
        ORDER BY ce.system, ce.id
        ON CONFLICT (name) DO NOTHING
        """
    ).format(
        columns=_column_list(columns),
        select=sql.SQL(", ").join(select),
        join=join,
        **_TABLES,
    )


def build_body_insert(caps: ColumnCapabilities) -> Optional[sql.Composed]:
    # Bodies whose system did not make it into systems are left out
    if not (caps.has_system and caps.has_body):
        return None
    return sql.SQL(
        """
        INSERT INTO {bodies} (name, system_id)
        SELECT DISTINCT ce.body, s.id
        FROM {flat} ce
        JOIN {systems} s ON s.name = ce.system
        WHERE ce.body IS NOT NULL
        ON CONFLICT (name, system_id) DO NOTHING
        """
    ).format(**_TABLES)


def build_backfill_update(caps: ColumnCapabilities) -> Optional[sql.Composed]:
    """
    Set species_id, system_id and body_id on codex_entries.

    Only the assignments whose legacy columns exist are included; if none
    exist there is nothing to backfill and None is returned.
    """
    assignments = []
    conditions = []

    if caps.has_english_name:
        assignments.append(sql.SQL(
            "species_id = (SELECT sp.id FROM {species} sp WHERE sp.english_name = ce.english_name)"
        ).format(**_TABLES))
        conditions.append(sql.SQL("ce.english_name IS NOT NULL"))

    if caps.has_system:
        assignments.append(sql.SQL(
            "system_id = (SELECT s.id FROM {systems} s WHERE s.name = ce.system)"
        ).format(**_TABLES))
        conditions.append(sql.SQL("ce.system IS NOT NULL"))
        if caps.has_body:
            assignments.append(sql.SQL(
                "body_id = (SELECT b.id FROM {bodies} b "
                "JOIN {systems} s ON s.id = b.system_id "
                "WHERE b.name = ce.body AND s.name = ce.system)"
            ).format(**_TABLES))

    if not assignments:
        return None

    return sql.SQL(
        """
        UPDATE {flat} ce
        SET {assignments}
        WHERE {conditions}
        """
    ).format(
        assignments=sql.SQL(", ").join(assignments),
        conditions=sql.SQL(" OR ").join(conditions),
        **_TABLES,
    )


def populate_steps(caps: ColumnCapabilities) -> list[PopulateStep]:
    """
    Build the ordered populate/backfill steps for the given capabilities.

    Order matters: regions before systems (region_id lookup), systems before
    bodies (inner join), all inserts before the backfill.
    """
    return [
        PopulateStep(
            'species',
            build_species_insert(caps),
            'english_name column not found',
        ),
        PopulateStep(
            'regions',
            build_region_insert(caps),
            'region_name column not found',
        ),
        PopulateStep(
            'systems',
            build_system_insert(caps),
            'system column not found',
        ),
        PopulateStep(
            'bodies',
            build_body_insert(caps),
            'system or body column not found',
        ),
        PopulateStep(
            'foreign_keys',
            build_backfill_update(caps),
            'no legacy columns to resolve foreign keys from',
        ),
    ]
