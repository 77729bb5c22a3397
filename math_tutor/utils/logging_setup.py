"""
Logging wiring for scripts and embedding services.

Console output always goes through `logging.basicConfig`; a daily-rotating file under
the project root is added when LOG_TO_FILE is set.
"""

from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Iterable, Optional

FILE_HANDLER_NAME = "math_tutor_file_handler"
CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# SDK/transport loggers that echo request details at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3", "PIL")

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _resolve_log_path(log_file_path: str) -> Path:
    path = Path(log_file_path)
    return path if path.is_absolute() else _PROJECT_ROOT / path


def _has_file_handler(logger: logging.Logger) -> bool:
    return any(getattr(h, "name", None) == FILE_HANDLER_NAME for h in logger.handlers)


def setup_file_logging(
    *,
    log_file_path: str,
    level: int,
    logger_names: Optional[Iterable[str]] = None,
) -> None:
    """Attach one rotating file handler per target logger; calling it again is a no-op."""
    if not log_file_path:
        return
    path = _resolve_log_path(log_file_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    for name in logger_names or ("math_tutor",):
        logger = logging.getLogger(name)
        if _has_file_handler(logger):
            continue
        handler = TimedRotatingFileHandler(
            filename=str(path), when="midnight", backupCount=14, encoding="utf-8"
        )
        handler.name = FILE_HANDLER_NAME
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(handler)
        if logger.level == logging.NOTSET or logger.level > level:
            logger.setLevel(level)
        # the file handler already records everything for this subtree
        logger.propagate = False


def silence_noisy_loggers() -> None:
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging(settings) -> None:
    level = logging.getLevelName(str(settings.log_level).upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=CONSOLE_FORMAT)
    silence_noisy_loggers()
    if settings.log_to_file:
        setup_file_logging(log_file_path=str(settings.log_file_path), level=level)
