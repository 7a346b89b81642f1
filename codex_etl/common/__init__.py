"""Shared helpers for the loader and normalizer: database access, configuration and logging."""

from .config import CodexConfig, LoaderSettings, load_codex_config
from .database import CodexDatabase, DatabaseError
from .logging_config import setup_logging

__all__ = [
    "CodexConfig",
    "CodexDatabase",
    "DatabaseError",
    "LoaderSettings",
    "load_codex_config",
    "setup_logging",
]
