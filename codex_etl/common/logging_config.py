"""
Logging setup shared by the codex-load and codex-normalize entry points.

Progress and informational records go to stdout; ERROR and CRITICAL records
go to stderr only, so stdout stays a clean progress/summary stream.
"""

import logging
import sys

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

STDOUT_HANDLER_NAME = 'codex_etl.stdout'
STDERR_HANDLER_NAME = 'codex_etl.stderr'


class MaxLevelFilter(logging.Filter):
    """Pass only records below the given level."""

    def __init__(self, level: int):
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def setup_logging(verbose: bool = False) -> None:
    """
    Configure the root logger with a stdout and a stderr handler.

    Calling it again replaces the handlers installed by an earlier call and
    leaves any other root handlers alone.

    Args:
        verbose: Log at DEBUG instead of INFO
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    for handler in root_logger.handlers[:]:
        if handler.get_name() in (STDOUT_HANDLER_NAME, STDERR_HANDLER_NAME):
            root_logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.set_name(STDOUT_HANDLER_NAME)
    stdout_handler.addFilter(MaxLevelFilter(logging.ERROR))
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.set_name(STDERR_HANDLER_NAME)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(formatter)

    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(stderr_handler)
