"""
Logging setup for purchase-planner.

One app logger ("purchase_planner") owns the handlers; every module logs
through ``logging.getLogger(__name__)`` and propagates to it.

- Rotating file per day: warnings and errors by default
- Console: critical errors only
"""
import logging
import logging.handlers
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

APP_LOGGER = "purchase_planner"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3


def _resolve_log_dir(log_dir: Optional[Union[str, Path]]) -> Path:
    if log_dir is not None:
        return Path(log_dir)
    from purchase_planner.config import LOGS_DIR  # noqa: PLC0415
    return LOGS_DIR


def _file_handler(log_path: Path, app_name: str, level: int) -> logging.Handler:
    log_file = log_path / f"{app_name}_{datetime.now().strftime('%Y%m%d')}.log"
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    return handler


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(logging.CRITICAL)
    handler.setFormatter(logging.Formatter("CRITICAL: %(message)s"))
    return handler


def setup_logging(
    log_dir: Optional[Union[str, Path]] = None,
    app_name: str = APP_LOGGER,
    file_level: int = logging.WARNING,
) -> logging.Logger:
    """
    Configure the app logger once.

    Calling it again returns the already configured logger untouched, so
    the CLI and tests can both call it.

    Args:
        log_dir: Directory for log files (created if missing); default
                 is the configured LOGS_DIR
        app_name: Logger name, also the log file prefix
        file_level: Minimum level written to the log file

    Returns:
        The app logger
    """
    logger = logging.getLogger(app_name)
    if logger.handlers:
        return logger

    log_path = _resolve_log_dir(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.setLevel(logging.DEBUG)
    logger.addHandler(_file_handler(log_path, app_name, file_level))
    logger.addHandler(_console_handler())
    return logger


def get_logger(name: str = APP_LOGGER) -> logging.Logger:
    """Logger by name (the app logger by default)."""
    return logging.getLogger(name)
