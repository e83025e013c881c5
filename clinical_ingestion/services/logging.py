"""Logging utilities for the clinical ingestion pipeline."""

from __future__ import annotations

import logging
import queue
from contextlib import contextmanager
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Iterator, Optional


_ROOT_LOGGER_NAME = "clinical_ingestion"
LOG_FILENAME = "clinical.log"
LOG_RETENTION_DAYS = 30
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
CONSOLE_FORMAT = "[%(levelname)s] %(message)s"

_queue_listener: Optional[QueueListener] = None


def _rotating_file_handler(directory: Path) -> logging.Handler:
    directory.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        directory / LOG_FILENAME,
        when="midnight",
        backupCount=LOG_RETENTION_DAYS,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def stop_logging() -> None:
    """Flush and stop the background listener if one is running."""

    global _queue_listener
    if _queue_listener is None:
        return
    try:
        _queue_listener.stop()
    finally:
        _queue_listener = None


def configure_logging(
    *,
    log_dir: Optional[Path] = None,
    verbose: bool = False,
    log_to_console: bool = True,
) -> None:
    """Configure logging sinks for this run."""

    stop_logging()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handlers: list[logging.Handler] = []
    if log_dir is not None:
        handlers.append(_rotating_file_handler(log_dir))

    if log_to_console or not handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        handlers.append(console_handler)

    ingestion_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    ingestion_logger.setLevel(logging.DEBUG)
    ingestion_logger.propagate = True

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(-1)
    root_logger.addHandler(QueueHandler(log_queue))

    global _queue_listener
    _queue_listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _queue_listener.start()


@contextmanager
def project_log_handler(log_path: Optional[Path]) -> Iterator[Optional[logging.Handler]]:
    """Mirror ``clinical_ingestion`` records into a project's own log directory."""

    if log_path is None:
        yield None
        return

    logger = logging.getLogger(_ROOT_LOGGER_NAME)
    try:
        handler = _rotating_file_handler(log_path)
    except OSError as exc:
        logger.warning("Cannot open project log in %s: %s", log_path, exc)
        yield None
        return

    logger.addHandler(handler)
    try:
        yield handler
    finally:
        logger.removeHandler(handler)
        handler.close()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a namespaced logger rooted under ``clinical_ingestion``."""

    if not name or name == _ROOT_LOGGER_NAME:
        return logging.getLogger(_ROOT_LOGGER_NAME)
    if name.startswith(f"{_ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")
