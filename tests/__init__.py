"""Codex ETL Test Suite.

This package contains unit and integration tests for the codex ETL.

Test Structure:
- unit/: Unit tests for individual functions and classes (no database)
- integration/: End-to-end tests against a real PostgreSQL database
"""

__version__ = "0.1.0"
