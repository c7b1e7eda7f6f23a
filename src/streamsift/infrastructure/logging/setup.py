from __future__ import annotations

import atexit
import copy
import logging
import queue
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Optional

import structlog

from streamsift.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

# Chatty third-party loggers; httpx logs every request at INFO.
_NOISY_LOGGERS: dict[str, int] = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}

_QUEUE_LISTENER: Optional[QueueListener] = None


def _drop_color_message(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    # uvicorn attaches a duplicate "color_message".
    event_dict.pop("color_message", None)
    return event_dict


def _add_record_created_timestamp_utc(
    _: Any, __: Any, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Stamp foreign (stdlib) records with their creation time, not emit time.

    ProcessorFormatter sets event_dict["_record"] for foreign records.
    """
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        event_dict["timestamp"] = dt.isoformat().replace("+00:00", "Z")
    return event_dict


def _renderer(config: AppConfig) -> structlog.typing.Processor:
    if config.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def build_formatter(config: AppConfig) -> structlog.stdlib.ProcessorFormatter:
    """ProcessorFormatter rendering both structlog and stdlib records."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            _drop_color_message,
            structlog.contextvars.merge_contextvars,
            _add_record_created_timestamp_utc,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(config),
        ],
    )


class _LevelRangeFilter(logging.Filter):
    def __init__(self, min_level: int = logging.NOTSET, max_level: int = logging.CRITICAL) -> None:
        super().__init__()
        self._min_level = min_level
        self._max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return self._min_level <= record.levelno <= self._max_level


class _StructlogPreservingQueueHandler(QueueHandler):
    """QueueHandler that keeps structlog's dict ``record.msg`` intact."""

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # The base implementation stringifies record.msg, which breaks
        # ProcessorFormatter on the listener side.
        return copy.copy(record)


def _stop_listener() -> None:
    global _QUEUE_LISTENER
    if _QUEUE_LISTENER is not None:
        try:
            _QUEUE_LISTENER.stop()
        finally:
            _QUEUE_LISTENER = None


def _install_queue_logging(config: AppConfig) -> None:
    """Route all stdlib logging through a queue drained by a background thread.

    Keeps stream I/O off the event loop.  DEBUG..WARNING go to stdout,
    ERROR and above to stderr.
    """
    global _QUEUE_LISTENER
    _stop_listener()

    formatter = build_formatter(config)

    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setFormatter(formatter)
    stdout_handler.addFilter(_LevelRangeFilter(max_level=logging.WARNING))

    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler.addFilter(_LevelRangeFilter(min_level=logging.ERROR))

    q: queue.Queue[logging.LogRecord] = queue.Queue()

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_StructlogPreservingQueueHandler(q))
    root.setLevel(config.log_level)

    # Existing loggers (uvicorn etc.) propagate into root.
    for name in list(logging.root.manager.loggerDict.keys()):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(config.log_level)

    for name, level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, logging.getLevelName(config.log_level)))

    _QUEUE_LISTENER = QueueListener(
        q, stdout_handler, stderr_handler, respect_handler_level=True
    )
    _QUEUE_LISTENER.start()
    atexit.register(_stop_listener)


def configure_logging(config: AppConfig) -> None:
    """Configure structlog on top of stdlib logging."""
    structlog.configure(
        processors=[
            _drop_color_message,
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _install_queue_logging(config)

    log.info(
        "logging_configured", log_format=config.log_format, log_level=config.log_level
    )
