"""Logging setup for the CLI: JSON log file plus console output.

Two handlers hang off the root logger:
    1. RotatingFileHandler -- one JSON object per record, DEBUG and up
    2. StreamHandler -- plain text on stderr, INFO and up

Library code only ever calls logging.getLogger(__name__); handlers are
configured here, once, by the entry point.
"""

import logging
import logging.handlers
from pathlib import Path

from pythonjsonlogger.json import JsonFormatter

from studyprep.config.settings import PipelineSettings

LOG_FILENAME = "studyprep.log"

# Third-party loggers that flood DEBUG output during rendering and OCR
_NOISY_LOGGERS = ("PIL", "pytesseract")


def _file_handler(log_path: Path, max_bytes: int, backup_count: int, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=str(log_path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(
        JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    return handler


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    return handler


def setup_logging(
    settings: PipelineSettings | None = None,
    *,
    file_level: int = logging.DEBUG,
    console_level: int = logging.INFO,
) -> Path:
    """Attach the JSON file and console handlers to the root logger.

    Existing root handlers are removed first, so calling this twice does not
    duplicate output.

    Args:
        settings: Supplies ``log_dir``, ``log_max_bytes`` and
            ``log_backup_count``; loaded from config files if None.
        file_level: Threshold for the JSON log file.
        console_level: Threshold for the terminal.

    Returns:
        Path of the active log file.
    """
    settings = settings or PipelineSettings()
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME

    root = logging.getLogger()
    root.setLevel(min(file_level, console_level))
    root.handlers.clear()
    root.addHandler(
        _file_handler(log_path, settings.log_max_bytes, settings.log_backup_count, file_level)
    )
    root.addHandler(_console_handler(console_level))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO)

    return log_path
