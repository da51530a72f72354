"""InvenTrack: a GST inventory and billing ledger kept in Excel workbooks.

Importing the package configures the ``inventrack`` logger. Records reach
stderr from WARNING up and a rotating file from INFO up. The file lives at
``.logs/inventrack.log`` under the project root unless ``INVENTRACK_LOG_DIR``
names another folder; a loaded ``config.ini`` can move it again through
``[System] LogFile`` (see :func:`use_log_file`).
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR_ENV = "INVENTRACK_LOG_DIR"
LOG_FILE_NAME = "inventrack.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def default_log_file() -> Path:
    """Return the log file used before any configuration is loaded."""

    override = os.environ.get(LOG_DIR_ENV, "").strip()
    log_dir = Path(override).expanduser() if override else PROJECT_ROOT / ".logs"
    return log_dir / LOG_FILE_NAME


def _open_file_handler(path: Path) -> Optional[RotatingFileHandler]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(path, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    except OSError as exc:
        print(f"Warning: unable to open InvenTrack log file '{path}': {exc}", file=sys.stderr)
        return None
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    return handler


def _file_handlers(logger: logging.Logger) -> list[RotatingFileHandler]:
    return [handler for handler in logger.handlers if isinstance(handler, RotatingFileHandler)]


def use_log_file(path: Path) -> Optional[Path]:
    """Send the package's file log to ``path``.

    The old handler is closed only after the new file opens, so an
    unwritable ``path`` leaves logging where it was.

    Returns:
        Path | None: The file now receiving records, or ``None`` when the
            logger has no file handler at all.
    """

    logger = logging.getLogger(__name__)
    target = Path(path).expanduser().resolve()
    current = _file_handlers(logger)
    if any(Path(handler.baseFilename) == target for handler in current):
        return target

    handler = _open_file_handler(target)
    if handler is None:
        return Path(current[0].baseFilename) if current else None
    for old in current:
        logger.removeHandler(old)
        old.close()
    logger.addHandler(handler)
    logger.info("Writing log records to '%s'", target)
    return target


def _configure_logging() -> logging.Logger:
    """Attach the rotating file and stderr handlers to the package logger."""

    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    file_handler = _open_file_handler(default_log_file())
    if file_handler is not None:
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(console_handler)

    return logger


log = _configure_logging()
