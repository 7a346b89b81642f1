"""
Codex Normalizer - Main Entry Point

Phase 2 of the codex pipeline: splits the flat codex_entries table into
species, regions, systems and bodies, links each entry to them through
foreign keys and drops the columns the reference tables replace.

Run it after the loader has finished. It is safe to run again: a run on an
already normalized table changes nothing.

Usage:
    python -m codex_etl.normalizer.main [OPTIONS]
    codex-normalize [OPTIONS]

Options:
    --verbose            Enable debug logging
    --help               Show this message and exit

Stages:
    1. PROBE_SCHEMA   Read which legacy columns codex_entries still has
    2. TEARDOWN       Drop results of an earlier, unfinished run
    3. CREATE_TABLES  Create reference tables and foreign key columns
    4. POPULATE       Fill reference tables and backfill foreign keys
    5. CLEANUP        Drop superseded columns from codex_entries

Exit Codes:
    0: Success
    2: Fatal error (missing flat table, database failure, etc.)
    130: Interrupted
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from dotenv import load_dotenv

from codex_etl.common.database import CodexDatabase, DatabaseError
from codex_etl.common.logging_config import setup_logging
from codex_etl.loader.db_operations import FLAT_TABLE

from .db_operations import NormalizerDB
from .populate import populate_steps
from .schema import (
    REFERENCE_TABLES,
    ColumnCapabilities,
    NormalizationStage,
    cleanup_operations,
    create_operations,
    teardown_operations,
)

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class NormalizerError(Exception):
    """Raised when the database is not in a state the normalizer can work from."""
    pass


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Normalize codex_entries into species, regions, systems and bodies',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args(argv)


def probe_capabilities(db: NormalizerDB) -> ColumnCapabilities:
    """
    Read the flat table's columns once and turn them into capability flags.

    Raises:
        NormalizerError: If codex_entries does not exist
    """
    columns = db.fetch_table_columns(FLAT_TABLE)
    if not columns:
        raise NormalizerError(
            f"Table {FLAT_TABLE} does not exist. Run the loader before normalizing."
        )

    caps = ColumnCapabilities.from_columns(columns)
    logger.info(
        "Probed flat table columns",
        extra={
            'has_english_name': caps.has_english_name,
            'has_region_name': caps.has_region_name,
            'has_region_name_localised': caps.has_region_name_localised,
            'has_system': caps.has_system,
            'has_body': caps.has_body,
            'has_coordinates': caps.has_coordinates,
        }
    )
    return caps


def run_normalizer(db: NormalizerDB) -> dict[str, Any]:
    """
    Main normalizer logic.

    Stages run strictly in order; the first failure propagates and later
    stages do not run.

    Args:
        db: Normalizer database interface

    Returns:
        Dictionary with statistics:
        - statements: Number of SQL statements executed
        - skipped_steps: Names of populate steps skipped for missing columns
        - teardown: Whether an earlier run's results were dropped
        - row_counts: Rows per reference table after the run

    Raises:
        NormalizerError: If the flat table is missing
        DatabaseError: If any statement fails
    """
    start_time = datetime.now(timezone.utc)
    stats: dict[str, Any] = {
        'statements': 0,
        'skipped_steps': [],
        'teardown': False,
        'row_counts': {},
    }

    logger.info("Starting codex normalizer", extra={'stage': NormalizationStage.PROBE_SCHEMA.name})
    caps = probe_capabilities(db)

    # Once cleanup has run the reference tables hold the only copy of the
    # superseded data, so they are only rebuilt while the source columns exist.
    if caps.has_superseded_columns:
        stage = NormalizationStage.TEARDOWN
        statements = [op.statement() for op in teardown_operations()]
        stats['statements'] += db.execute_stage(stage.name, statements)
        stats['teardown'] = True
        logger.info("Dropped results of earlier normalization runs", extra={'stage': stage.name})
    else:
        logger.info(
            "Flat table already normalized, keeping reference tables",
            extra={'stage': NormalizationStage.TEARDOWN.name}
        )

    stage = NormalizationStage.CREATE_TABLES
    statements = [op.statement() for op in create_operations()]
    stats['statements'] += db.execute_stage(stage.name, statements)
    logger.info("Normalized tables created", extra={'stage': stage.name})

    stage = NormalizationStage.POPULATE
    for step in populate_steps(caps):
        if step.skipped:
            stats['skipped_steps'].append(step.name)
            logger.info(f"Skipping {step.name} normalization - {step.skip_reason}")
            continue
        stats['statements'] += db.execute_stage(f"{stage.name}:{step.name}", [step.statement])
        logger.info(f"{step.name.capitalize()} data normalized", extra={'stage': stage.name})

    stage = NormalizationStage.CLEANUP
    statements = [op.statement() for op in cleanup_operations()]
    stats['statements'] += db.execute_stage(stage.name, statements)
    logger.info(
        f"Removed superseded columns from {FLAT_TABLE}",
        extra={'stage': stage.name}
    )

    stats['row_counts'] = db.count_rows(REFERENCE_TABLES)

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        "Codex normalizer completed",
        extra={'duration_seconds': duration, 'statements': stats['statements']}
    )

    return stats


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the normalizer.

    Returns:
        Exit code (0 = success, 2 = fatal error, 130 = interrupted)
    """
    args = parse_args(argv)

    setup_logging(verbose=args.verbose)
    logger.debug("Debug logging enabled")

    try:
        logger.info("Connecting to database")
        with CodexDatabase() as database:
            stats = run_normalizer(NormalizerDB(database))

        print("\n" + "=" * 60)
        print("NORMALIZER SUMMARY")
        print("=" * 60)
        print(f"Statements: {stats['statements']}")
        print(f"Skipped:    {', '.join(stats['skipped_steps']) or 'none'}")
        for table, count in stats['row_counts'].items():
            print(f"{table + ':':<11} {count}")
        print("=" * 60)

        return 0

    except NormalizerError as e:
        logger.error(f"Cannot normalize: {e}")
        return 2

    except DatabaseError as e:
        logger.error(f"Database error: {e}")
        return 2

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130

    except Exception as e:
        logger.error(
            "Unexpected fatal error",
            extra={
                'error': str(e),
                'error_type': type(e).__name__,
            },
            exc_info=True
        )
        return 2


if __name__ == '__main__':
    sys.exit(main())
