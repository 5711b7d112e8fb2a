# catalog_aggregator/config/logging_config.py

"""Per-run logging for catalog_aggregator.

One file per process under ``logs/`` (``run_<YYYYmmdd_HHMMSS>.log``)
receives every ``catalog_aggregator.*`` record at DEBUG, tagged with the
worker thread so download and compression pools can be told apart.
The console only shows ``LOG_LEVEL`` and above (WARNING by default) on
stderr; stdout is reserved for JSON command output.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from catalog_aggregator.config.settings import Settings

ROOT_LOGGER_NAME = "catalog_aggregator"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(threadName)-12s | %(name)s | "
    "%(funcName)s:%(lineno)d | %(message)s"
)
_CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _console_level(name: str | None) -> int:
    """Map a level name to its number, falling back to WARNING."""
    level = logging.getLevelName((name or "").upper())
    return level if isinstance(level, int) else logging.WARNING


def setup_logging(
    logs_dir: Path | None = None,
    console_level: str | None = None,
) -> Path:
    """Attach the run file and stderr handlers to the project logger.

    Calling it again in the same process adds no handlers and returns
    the file the first call opened.
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    for handler in root_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)

    target_dir = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = target_dir / f"run_{stamp}.log"

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(
        _console_level(console_level or Settings.CONSOLE_LOG_LEVEL)
    )
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)
    root_logger.info(
        "Logging to %s (console level %s)",
        log_file,
        logging.getLevelName(console_handler.level),
    )
    return log_file
