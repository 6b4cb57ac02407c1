"""Process-wide logging for the ingest service."""

import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Send job and request logs to stdout, one pipe-separated line per record.

    Args:
        level: Root level name, usually taken from ``LOG_LEVEL``
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # httpx logs every request at INFO; keep the job log readable.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``__name__`` so log lines name the emitting service."""
    return logging.getLogger(name)
