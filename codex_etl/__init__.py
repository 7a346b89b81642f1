"""Codex ETL Package.

This package contains the two phases of the codex discovery pipeline:
- loader: Streams the codex JSON dump into the flat codex_entries table
- normalizer: Splits the flat table into species, regions, systems and bodies
"""

__version__ = "0.1.0"
