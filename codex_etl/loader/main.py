"""
Codex Loader - Main Entry Point

Phase 1 of the codex pipeline: creates the flat codex_entries table and
streams the biological entries of a codex JSON dump into it.

Usage:
    python -m codex_etl.loader.main [OPTIONS]
    codex-load [OPTIONS]

Options:
    --config TEXT         Path to codex.yml (default: config/codex.yml)
    --input TEXT          Path to the codex JSON dump (overrides config)
    --batch-size INTEGER  Rows per batch/transaction (overrides config)
    --category TEXT       hud_category to keep (overrides config)
    --dry-run             Parse and count entries without touching the database
    --verbose             Enable debug logging
    --help                Show this message and exit

Examples:
    # Load the default dump:
    codex-load

    # Load a specific file in batches of 5000:
    codex-load --input /data/codex.json --batch-size 5000

    # Count matching entries without a database:
    codex-load --input /data/codex.json --dry-run

Exit Codes:
    0: Success
    2: Fatal error (bad input document, database failure, invalid config)
    130: Interrupted
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from codex_etl.common.config import LoaderSettings, load_codex_config
from codex_etl.common.database import CodexDatabase, DatabaseError
from codex_etl.common.logging_config import setup_logging

from .batch import BatchLoader
from .db_operations import LoaderDB
from .source import SourceParseError, iter_records
from .transform import iter_rows

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Load biological codex entries from a JSON dump into PostgreSQL',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to codex.yml configuration file (default: config/codex.yml)'
    )

    parser.add_argument(
        '--input',
        type=str,
        default=None,
        dest='input_path',
        help='Path to the codex JSON dump'
    )

    parser.add_argument(
        '--batch-size',
        type=int,
        default=None,
        dest='batch_size',
        help='Number of rows written per batch'
    )

    parser.add_argument(
        '--category',
        type=str,
        default=None,
        help='hud_category value to load (default: Biology)'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        dest='dry_run',
        help='Parse and count entries without writing to the database'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    return parser.parse_args(argv)


def run_loader(
    db: Optional[LoaderDB],
    settings: LoaderSettings,
    dry_run: bool = False
) -> dict[str, int]:
    """
    Main loader logic.

    Args:
        db: Loader database interface (may be None for a dry run)
        settings: Input path, batch size and target category
        dry_run: If True, only count matching entries

    Returns:
        Dictionary with statistics:
        - accepted: Entries matching the target category
        - written: Rows inserted into codex_entries
        - batches: Number of batches flushed

    Raises:
        FileNotFoundError: If the input document does not exist
        SourceParseError: If the input document is malformed
        DatabaseError: If table creation or any insert fails
    """
    start_time = datetime.now(timezone.utc)

    logger.info(
        "Starting codex loader",
        extra={
            'input_path': settings.input_path,
            'batch_size': settings.batch_size,
            'target_category': settings.target_category,
            'dry_run': dry_run,
        }
    )

    # Input must exist before any DDL runs
    input_path = Path(settings.input_path)
    if not input_path.is_file():
        raise FileNotFoundError(f"Input document not found: {input_path}")

    rows = iter_rows(iter_records(input_path), settings.target_category)

    if dry_run:
        accepted = sum(1 for _ in rows)
        logger.info(f"DRY RUN: Would load {accepted} entries")
        return {'accepted': accepted, 'written': 0, 'batches': 0}

    if db is None:
        raise ValueError("A database is required unless dry_run is set")

    db.create_flat_table()
    stats = BatchLoader(db, batch_size=settings.batch_size).load(rows)

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    logger.info(
        "Codex loader completed",
        extra={'duration_seconds': duration, **stats}
    )

    return stats


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the loader.

    Returns:
        Exit code (0 = success, 2 = fatal error, 130 = interrupted)
    """
    args = parse_args(argv)

    setup_logging(verbose=args.verbose)
    logger.debug("Debug logging enabled")

    try:
        settings = load_codex_config(args.config).loader
        if args.input_path:
            settings.input_path = args.input_path
        if args.batch_size is not None:
            settings.batch_size = args.batch_size
        if args.category:
            settings.target_category = args.category
        settings.validate()

        if args.dry_run:
            stats = run_loader(db=None, settings=settings, dry_run=True)
        else:
            logger.info("Connecting to database")
            with CodexDatabase() as database:
                stats = run_loader(db=LoaderDB(database), settings=settings)

        print("\n" + "=" * 60)
        print("LOADER SUMMARY")
        print("=" * 60)
        print(f"Accepted: {stats['accepted']}")
        print(f"Written:  {stats['written']}")
        print(f"Batches:  {stats['batches']}")
        print("=" * 60)

        return 0

    except (SourceParseError, FileNotFoundError) as e:
        logger.error(f"Cannot read input document: {e}")
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
