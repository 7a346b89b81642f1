"""
Unit tests for the normalizer workflow and its command-line entry point.

FakeNormalizerDB records every statement instead of running it and updates
its notion of the flat table's columns the way PostgreSQL would, so repeated
runs can be checked without a database.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from unittest.mock import patch

import pytest
from psycopg2 import sql

from codex_etl.common.database import DatabaseError
from codex_etl.normalizer.main import NormalizerError, main, run_normalizer
from codex_etl.normalizer.schema import SUPERSEDED_COLUMNS
from tests.sql_text import render_sql

pytestmark = pytest.mark.unit

LOADED_COLUMNS = {
    "id", "english_name", "created_at", "reported_at", "cmdr_name", "system",
    "x", "y", "z", "body", "latitude", "longitude", "entryid", "name",
    "category", "sub_category", "sub_category_localised", "region_name",
    "region_name_localised", "id64",
}

_ADD_COLUMN = re.compile(r'ADD COLUMN IF NOT EXISTS "(\w+)"')
_DROP_COLUMN = re.compile(r'DROP COLUMN IF EXISTS "(\w+)"')


class FakeNormalizerDB:
    def __init__(self, columns: set[str], fail_on: str | None = None):
        self.columns = set(columns)
        self.stages: list[tuple[str, list[str]]] = []
        self.fail_on = fail_on

    def fetch_table_columns(self, table: str) -> set[str]:
        assert table == "codex_entries"
        return set(self.columns)

    def execute_stage(self, stage_name: str, statements: Sequence[sql.Composable]) -> int:
        if self.fail_on and stage_name.startswith(self.fail_on):
            raise DatabaseError(f"Stage {stage_name} failed: simulated")
        rendered = [render_sql(statement) for statement in statements]
        self.stages.append((stage_name, rendered))
        for statement in rendered:
            if "codex_entries" not in statement:
                continue
            added = _ADD_COLUMN.search(statement)
            if added:
                self.columns.add(added.group(1))
            dropped = _DROP_COLUMN.search(statement)
            if dropped:
                self.columns.discard(dropped.group(1))
        return len(statements)

    def count_rows(self, tables: Sequence[str]) -> dict[str, int]:
        return {table: 0 for table in tables}

    def stage_names(self) -> list[str]:
        return [name for name, _ in self.stages]


def test_fresh_table_runs_every_stage_in_order() -> None:
    db = FakeNormalizerDB(LOADED_COLUMNS)

    stats = run_normalizer(db)  # type: ignore[arg-type]

    assert db.stage_names() == [
        "TEARDOWN",
        "CREATE_TABLES",
        "POPULATE:species",
        "POPULATE:regions",
        "POPULATE:systems",
        "POPULATE:bodies",
        "POPULATE:foreign_keys",
        "CLEANUP",
    ]
    assert stats["teardown"] is True
    assert stats["skipped_steps"] == []
    assert stats["statements"] == sum(len(s) for _, s in db.stages)
    assert set(stats["row_counts"]) == {"species", "regions", "systems", "bodies"}


def test_columns_after_run() -> None:
    db = FakeNormalizerDB(LOADED_COLUMNS)

    run_normalizer(db)  # type: ignore[arg-type]

    assert {"species_id", "system_id", "body_id"} <= db.columns
    assert not db.columns & set(SUPERSEDED_COLUMNS)
    assert "english_name" in db.columns


def test_second_run_keeps_reference_tables() -> None:
    db = FakeNormalizerDB(LOADED_COLUMNS)
    run_normalizer(db)  # type: ignore[arg-type]
    columns_after_first = set(db.columns)
    db.stages.clear()

    stats = run_normalizer(db)  # type: ignore[arg-type]

    assert stats["teardown"] is False
    assert "TEARDOWN" not in db.stage_names()
    assert not any("DROP TABLE" in s for _, statements in db.stages for s in statements)
    assert stats["skipped_steps"] == ["regions", "systems", "bodies"]
    assert db.columns == columns_after_first


def test_missing_region_column_skips_regions_only() -> None:
    db = FakeNormalizerDB(LOADED_COLUMNS - {"region_name", "region_name_localised"})

    stats = run_normalizer(db)  # type: ignore[arg-type]

    assert stats["skipped_steps"] == ["regions"]
    systems_sql = dict(db.stages)["POPULATE:systems"][0]
    assert "region_id" not in systems_sql
    assert "POPULATE:bodies" in db.stage_names()


def test_missing_flat_table() -> None:
    db = FakeNormalizerDB(set())

    with pytest.raises(NormalizerError, match="Run the loader"):
        run_normalizer(db)  # type: ignore[arg-type]

    assert db.stages == []


def test_failure_stops_later_stages() -> None:
    db = FakeNormalizerDB(LOADED_COLUMNS, fail_on="POPULATE:systems")

    with pytest.raises(DatabaseError):
        run_normalizer(db)  # type: ignore[arg-type]

    names = db.stage_names()
    assert names[-1] == "POPULATE:regions"
    assert "CLEANUP" not in names
    # Legacy columns survive, so a re-run can rebuild from them
    assert "system" in db.columns


def test_rerun_after_failure_tears_down_first() -> None:
    db = FakeNormalizerDB(LOADED_COLUMNS, fail_on="POPULATE:bodies")
    with pytest.raises(DatabaseError):
        run_normalizer(db)  # type: ignore[arg-type]

    db.fail_on = None
    db.stages.clear()
    stats = run_normalizer(db)  # type: ignore[arg-type]

    assert stats["teardown"] is True
    assert db.stage_names()[0] == "TEARDOWN"
    assert db.stage_names()[-1] == "CLEANUP"


class TestMain:
    """Exit codes of the codex-normalize entry point."""

    def test_success(self, capsys) -> None:
        fake = FakeNormalizerDB(LOADED_COLUMNS)

        with patch("codex_etl.normalizer.main.CodexDatabase") as database_cls, \
                patch("codex_etl.normalizer.main.NormalizerDB", return_value=fake):
            assert main([]) == 0

        database_cls.return_value.__exit__.assert_called_once()
        out = capsys.readouterr().out
        assert "NORMALIZER SUMMARY" in out
        assert "Skipped:    none" in out

    def test_missing_flat_table_exit_code(self) -> None:
        with patch("codex_etl.normalizer.main.CodexDatabase"), \
                patch("codex_etl.normalizer.main.NormalizerDB", return_value=FakeNormalizerDB(set())):
            assert main([]) == 2

    def test_database_error_exit_code_and_connection_closed(self) -> None:
        fake = FakeNormalizerDB(LOADED_COLUMNS, fail_on="CREATE_TABLES")

        with patch("codex_etl.normalizer.main.CodexDatabase") as database_cls, \
                patch("codex_etl.normalizer.main.NormalizerDB", return_value=fake):
            assert main([]) == 2

        database_cls.return_value.__exit__.assert_called_once()

    def test_errors_go_to_stderr_not_stdout(self, capsys) -> None:
        fake = FakeNormalizerDB(LOADED_COLUMNS, fail_on="CREATE_TABLES")

        with patch("codex_etl.normalizer.main.CodexDatabase"), \
                patch("codex_etl.normalizer.main.NormalizerDB", return_value=fake):
            assert main([]) == 2

        captured = capsys.readouterr()
        assert "Database error: Stage CREATE_TABLES failed" in captured.err
        assert "Database error" not in captured.out
        assert "Starting codex normalizer" in captured.out
