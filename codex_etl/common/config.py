"""
Configuration loader for the codex ETL.

This module reads `config/codex.yml` and turns it into typed settings.
Entry points use this helper and then apply their command-line overrides.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
DEFAULT_TARGET_CATEGORY = "Biology"
DEFAULT_INPUT_PATH = "data/codex.json"


@dataclass
class LoaderSettings:
    """Settings for the phase 1 loader."""

    input_path: str = DEFAULT_INPUT_PATH
    batch_size: int = DEFAULT_BATCH_SIZE
    target_category: str = DEFAULT_TARGET_CATEGORY

    def validate(self) -> None:
        """Raise ValueError when a setting cannot be used."""
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int):
            raise ValueError(f"batch_size must be an integer, got {self.batch_size!r}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")
        if not isinstance(self.target_category, str) or not self.target_category.strip():
            raise ValueError("target_category must be a non-empty string")
        if not isinstance(self.input_path, str) or not self.input_path.strip():
            raise ValueError("input_path must be a non-empty string")


@dataclass
class CodexConfig:
    """Complete codex ETL configuration."""

    loader: LoaderSettings = field(default_factory=LoaderSettings)

    @classmethod
    def from_dict(cls, config_dict: Mapping[str, Any]) -> "CodexConfig":
        """Create CodexConfig from a parsed YAML mapping."""
        loader_section = config_dict.get("loader") or {}
        if not isinstance(loader_section, Mapping):
            raise ValueError("`loader` section must be a mapping")

        loader = LoaderSettings(
            input_path=loader_section.get("input_path", DEFAULT_INPUT_PATH),
            batch_size=loader_section.get("batch_size", DEFAULT_BATCH_SIZE),
            target_category=loader_section.get("target_category", DEFAULT_TARGET_CATEGORY),
        )
        loader.validate()

        return cls(loader=loader)


def _project_root() -> Path:
    """Return the project root path based on this file's location."""
    return Path(__file__).resolve().parent.parent.parent


def load_codex_config(config_path: str | None = None) -> CodexConfig:
    """
    Load the codex ETL configuration from YAML.

    Args:
        config_path: Optional override for the config file path. When omitted,
            `config/codex.yml` relative to the project root is used, and a
            missing default file falls back to built-in defaults.

    Returns:
        CodexConfig with validated settings

    Raises:
        FileNotFoundError: If an explicitly given config file does not exist
        ValueError: If the YAML cannot be parsed or holds invalid values

    Example:
        >>> config = load_codex_config('config/codex.yml')
        >>> config.loader.batch_size
        1000
    """
    if config_path is None:
        path = _project_root() / "config" / "codex.yml"
        if not path.exists():
            logger.info("No codex.yml found, using default settings", extra={"config_path": str(path)})
            return CodexConfig()
    else:
        path = Path(config_path)
        if not path.exists():
            logger.error("Configuration file not found: %s", path)
            raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as handle:
            raw_config: Mapping[str, Any] | None = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        logger.error("Failed to parse codex configuration: %s", exc)
        raise ValueError(f"Invalid YAML in codex configuration: {exc}") from exc

    if not raw_config:
        logger.warning("Configuration file is empty, using defaults: %s", path)
        return CodexConfig()

    if not isinstance(raw_config, Mapping):
        raise ValueError("Codex configuration must be a mapping at the top level")

    config = CodexConfig.from_dict(raw_config)

    logger.info(
        "Loaded codex configuration",
        extra={
            "config_path": str(path),
            "batch_size": config.loader.batch_size,
            "target_category": config.loader.target_category,
        },
    )
    return config


__all__ = ["CodexConfig", "LoaderSettings", "load_codex_config"]
