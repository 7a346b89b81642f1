"""
Codex Normalizer

Phase 2 of the pipeline. Turns the flat codex_entries table into a relational
schema:
- species, regions, systems and bodies reference tables
- species_id, system_id and body_id foreign keys on codex_entries
- superseded denormalized columns dropped

Every step is idempotent, so the normalizer can be re-run after a failure or
on an already normalized database.
"""

__version__ = "0.1.0"
