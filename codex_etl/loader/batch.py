"""
Fixed-size batching between the row stream and the database.

Rows are pulled from the incoming iterator one at a time. When a batch is full
it is written before the next row is pulled, so the JSON parser upstream is
paused while the database catches up.
"""

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from codex_etl.common.config import DEFAULT_BATCH_SIZE

logger = logging.getLogger(__name__)


class BatchWriter(Protocol):
    """Anything that can persist a batch of rows (LoaderDB in production)."""

    def insert_batch(self, rows: list[dict[str, Any]]) -> int:
        ...


class BatchLoader:
    """
    Accumulates rows and flushes them to a BatchWriter in fixed-size batches.

    Example:
        loader = BatchLoader(LoaderDB(database), batch_size=500)
        stats = loader.load(iter_rows(iter_records('codex.json'), 'Biology'))
        print(stats['written'])
    """

    def __init__(self, writer: BatchWriter, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.writer = writer
        self.batch_size = batch_size

    def _flush(self, batch: list[dict[str, Any]], stats: dict[str, int]) -> None:
        written = self.writer.insert_batch(batch)
        stats['written'] += written
        stats['batches'] += 1
        logger.debug(
            "Flushed batch",
            extra={'batch_number': stats['batches'], 'rows': written},
        )

    def load(self, rows: Iterable[dict[str, Any]]) -> dict[str, int]:
        """
        Write every row from the iterable.

        Args:
            rows: Transformed rows, typically a lazy generator

        Returns:
            Dictionary with statistics:
            - accepted: Rows pulled from the iterable
            - written: Rows persisted
            - batches: Number of flushes

        Raises:
            DatabaseError: On the first failing batch; no later rows are read
        """
        stats = {'accepted': 0, 'written': 0, 'batches': 0}
        batch: list[dict[str, Any]] = []

        for row in rows:
            batch.append(row)
            stats['accepted'] += 1

            if len(batch) >= self.batch_size:
                self._flush(batch, stats)
                batch = []

            if stats['accepted'] % self.batch_size == 0:
                logger.info(f"Processed {stats['accepted']} entries")

        if batch:
            self._flush(batch, stats)

        logger.info(
            f"Finished processing {stats['accepted']} entries",
            extra=stats,
        )
        return stats
