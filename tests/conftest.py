"""
Pytest configuration and shared fixtures

This file contains test fixtures that can be used across all tests.
Fixtures are reusable components that set up test preconditions.

Learn more: https://docs.pytest.org/en/stable/fixture.html
"""

import json
import logging
import os
from pathlib import Path

import pytest

from codex_etl.common.logging_config import STDERR_HANDLER_NAME, STDOUT_HANDLER_NAME


@pytest.fixture(scope="session")
def database_url() -> str:
    """
    Provide the database URL for integration tests.

    Integration tests drop and recreate tables, so they only use a database
    named explicitly through CODEX_ETL_TEST_DATABASE_URL.

    Scope: session (created once per test run)

    Returns:
        str: PostgreSQL connection URL
    """
    url = os.getenv("CODEX_ETL_TEST_DATABASE_URL")
    if not url:
        pytest.skip("CODEX_ETL_TEST_DATABASE_URL not set")
    return url


@pytest.fixture(scope="function")
def sample_codex_entry() -> dict:
    """
    Provide a typical Biology codex entry as found in the dump.

    Scope: function (created fresh for each test)

    Returns:
        dict: Raw codex entry
    """
    return {
        "hud_category": "Biology",
        "english_name": "Bacterium Aurasus - Teal",
        "created_at": "2021-05-19 18:22:10",
        "reported_at": "2021-05-19 18:22:05",
        "cmdrName": "Jameson",
        "system": "Synuefe XR-H d11-102",
        "x": "357.34375",
        "y": -49.34375,
        "z": "14.4375",
        "body": "Synuefe XR-H d11-102 1 b",
        "latitude": "-20.123",
        "longitude": 45.5,
        "entryid": 2310102,
        "name": "$Codex_Ent_Bacterial_01_M_Name;",
        "category": "$Codex_Category_Biology;",
        "sub_category": "$Codex_SubCategory_Organic_Structures;",
        "sub_category_localised": "Organic structures",
        "region_name": "Inner Orion Spur",
        "region_name_localised": "Inner Orion Spur",
        "id64": 3515254557027,
    }


@pytest.fixture(scope="function")
def codex_document(tmp_path: Path):
    """
    Return a helper that writes codex entries to a JSON array file.

    Scope: function (created fresh for each test)

    Returns:
        Callable[[list], Path]: Writes the entries and returns the file path
    """
    def _write(entries: list, name: str = "codex.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(entries), encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def reset_codex_logging():
    """
    Undo an entry point's setup_logging(): root level and handlers.

    The handlers hold on to the stdout/stderr streams of the test that
    called main(), which pytest closes afterwards.
    """
    root_logger = logging.getLogger()
    level = root_logger.level
    yield
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        if handler.get_name() in (STDOUT_HANDLER_NAME, STDERR_HANDLER_NAME):
            root_logger.removeHandler(handler)


# Mark tests based on their type for selective running
def pytest_configure(config):
    """
    Register custom pytest markers.

    This allows us to run specific test categories:
    - pytest -m unit        (run only unit tests)
    - pytest -m integration (run only integration tests)
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test (isolated, fast)"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires PostgreSQL)"
    )
