"""
Structured logging for the studio.

Log lines go to stdout (JSON or console) and to two files under
`settings.logs_dir`: `studio.log` for job activity and `errors.log`.
Anything bound with `job_log_context` is attached to every line logged
while the job runs.
"""

import logging
import sys
from pathlib import Path
from typing import List

import structlog
from structlog.contextvars import bound_contextvars, merge_contextvars
from structlog.stdlib import LoggerFactory

from .config import settings

job_log_context = bound_contextvars


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def _processors(log_format: str) -> List:
    return [
        merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        _renderer(log_format),
    ]


def _attach_file_handler(root: logging.Logger, path: Path, level: int) -> None:
    target = str(path.resolve())
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    root.addHandler(handler)


def setup_logging() -> None:
    """Configure structlog on top of the stdlib root logger."""
    settings.logs_dir.mkdir(parents=True, exist_ok=True)

    structlog.configure(
        processors=_processors(settings.log_format),
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    root = logging.getLogger()
    _attach_file_handler(root, settings.logs_dir / "studio.log", logging.INFO)
    _attach_file_handler(root, settings.logs_dir / "errors.log", logging.ERROR)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class LoggerMixin:
    """Gives a class a `logger` named after it."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        return get_logger(self.__class__.__name__)


setup_logging()
