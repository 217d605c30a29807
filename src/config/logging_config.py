# src/config/logging_config.py

"""Per-run logging for catalog_browser.

Every launch writes a fresh ``logs/run_<YYYYmmdd_HHMMSS>.log`` that
captures the whole ``catalog_browser.*`` hierarchy at DEBUG, so a
full sync trace (cache hits, cancellations, retries, prefetches) is
available after the fact.  Only warnings and errors reach stderr,
which keeps the TUI and the JSON output of the CLI clean.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

ROOT_LOGGER = "catalog_browser"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_STDERR_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are noisy at DEBUG
_QUIET_LOGGERS = ("asyncio", "curl_cffi")


def _run_log_path(logs_dir: Path) -> Path:
    """Return the timestamped log path for the current run."""
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return logs_dir / f"run_{stamp}.log"


def setup_logging(logs_dir: Path | None = None) -> Path:
    """Attach the per-run file handler and the stderr handler.

    Args:
        logs_dir: Directory for run logs; defaults to
            ``Settings.LOGS_DIR``.

    Returns:
        The :class:`~pathlib.Path` of this run's log file.
    """
    target_dir = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    log_file = _run_log_path(target_dir)

    app_logger = logging.getLogger(ROOT_LOGGER)
    app_logger.setLevel(logging.DEBUG)

    # Already configured in this process (tests, repeated main())
    if app_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(
        logging.Formatter(_STDERR_FORMAT, datefmt=_DATE_FORMAT)
    )

    app_logger.addHandler(file_handler)
    app_logger.addHandler(stderr_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app_logger.info("Logging initialised, writing to %s", log_file)
    return log_file
