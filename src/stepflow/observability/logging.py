"""Structured logging for stepflow.

Flow and step events are emitted as structured records: a message plus
key/value fields such as ``log`` (the event tag), ``step_type``,
``step_desc`` and ``cid``. Records render as JSON for log aggregation or as
a readable line for development.

Example:
    Basic usage::

        from stepflow.observability.logging import get_logger

        logger = get_logger("stepflow.flow")
        logger.info("Running flow", log="flow/start", cid="FLOW.3KX9Q")

    Bound logger::

        flow_logger = logger.bind(cid="FLOW.3KX9Q")
        flow_logger.debug("Running step", log="flow/run-step")

    Temporary context::

        with log_context(suite="checkout"):
            logger.info("Running flow")  # includes suite
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, TextIO

_context_fields: ContextVar[dict[str, Any] | None] = ContextVar("stepflow_log_context", default=None)


def _coerce_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Every record carries an ISO timestamp, level, message and logger name.
    The correlation id is lifted to a top-level ``cid`` key when present so
    log lines from one flow can be grepped together.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "logger": record.name,
        }

        context = _context_fields.get()
        if context:
            log_data["context"] = dict(context)

        structured_data = dict(getattr(record, "structured_data", None) or {})
        if "cid" in structured_data:
            log_data["cid"] = structured_data.pop("cid")
        if structured_data:
            log_data["data"] = structured_data

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, default=str, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, stream: TextIO | None = None) -> None:
        super().__init__()
        self.use_colors = use_colors and self._supports_color(stream or sys.stderr)

    @staticmethod
    def _supports_color(stream: TextIO) -> bool:
        if os.environ.get("NO_COLOR"):
            return False
        return hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            level = f"{color}{record.levelname:8}{self.RESET}"
        else:
            level = f"{record.levelname:8}"

        base = f"{timestamp} {level} [{record.name}] {record.getMessage()}"

        structured_data = dict(getattr(record, "structured_data", None) or {})
        cid = structured_data.pop("cid", None)
        if cid:
            base += f" [CID: {cid}]"

        context = _context_fields.get()
        if context:
            base += f" | context={json.dumps(dict(context), default=str)}"

        if structured_data:
            base += f" | data={json.dumps(structured_data, default=str)}"

        if record.exc_info:
            base += f"\n{self.formatException(record.exc_info)}"

        return base


class StructuredLogger:
    """Logger with structured key/value fields.

    Example:
        >>> logger = StructuredLogger("stepflow.flow")
        >>> logger.info("Flow finished", log="flow/finish", success=True)
    """

    def __init__(
        self,
        name: str,
        level: int | str = logging.INFO,
        json_format: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        """Initialize the structured logger.

        Args:
            name: Logger name.
            level: Minimum log level to output.
            json_format: Use JSON format (True) or human-readable (False).
            stream: Output stream (defaults to sys.stderr).
        """
        level = _coerce_level(level)
        self.name = name
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)
        self._logger.handlers.clear()
        self._logger.propagate = False

        self.stream = stream or sys.stderr
        self._handler = logging.StreamHandler(self.stream)
        self._handler.setLevel(level)

        if json_format:
            self._formatter: logging.Formatter = StructuredFormatter()
        else:
            self._formatter = HumanReadableFormatter(stream=self.stream)

        self._handler.setFormatter(self._formatter)
        self._logger.addHandler(self._handler)
        self._json_format = json_format

    @property
    def json_format(self) -> bool:
        return self._json_format

    def _log(self, level: int, message: str, exc_info: Any = None, **kwargs: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        record = self._logger.makeRecord(self.name, level, "", 0, message, (), exc_info)
        record.structured_data = kwargs  # type: ignore[attr-defined]
        self._logger.handle(record)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, exc_info: Any = True, **kwargs: Any) -> None:
        """Log an error with traceback.

        Args:
            message: Log message.
            exc_info: An exception instance, an exc_info tuple, or True for
                the exception currently being handled.
            **kwargs: Additional structured data.
        """
        if exc_info is True:
            exc_info = sys.exc_info()
        elif isinstance(exc_info, BaseException):
            exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def bind(self, **kwargs: Any) -> BoundLogger:
        """Create a logger whose records always include ``kwargs``."""
        return BoundLogger(self, kwargs)

    def set_level(self, level: int | str) -> None:
        level = _coerce_level(level)
        self._logger.setLevel(level)
        self._handler.setLevel(level)

    def get_level(self) -> int:
        return self._logger.level


class BoundLogger:
    """Logger with pre-bound fields, created by ``StructuredLogger.bind()``."""

    def __init__(self, logger: StructuredLogger, fields: dict[str, Any]) -> None:
        self._logger = logger
        self._fields = fields

    def _log(self, level: int, message: str, **kwargs: Any) -> None:
        merged = {**self._fields, **kwargs}
        self._logger._log(level, message, **merged)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, exc_info: Any = True, **kwargs: Any) -> None:
        merged = {**self._fields, **kwargs}
        self._logger.exception(message, exc_info=exc_info, **merged)

    def bind(self, **kwargs: Any) -> BoundLogger:
        return BoundLogger(self._logger, {**self._fields, **kwargs})


_loggers: dict[str, StructuredLogger] = {}
_loggers_lock = threading.Lock()


def get_logger(
    name: str = "stepflow",
    level: int | str | None = None,
    json_format: bool | None = None,
) -> StructuredLogger:
    """Get or create a cached structured logger.

    A cached logger is updated to match the arguments given: ``level`` is
    applied to it, and a different ``json_format`` replaces it with a new
    logger on the same stream.

    Args:
        name: Logger name.
        level: Minimum log level (int or string like 'INFO', 'DEBUG').
            None keeps the cached level (INFO for a new logger).
        json_format: Use JSON format. If None, a cached logger keeps its
            format and a new one uses STEPFLOW_JSON_LOGS.

    Returns:
        A StructuredLogger instance, shared by all callers using ``name``.
    """
    with _loggers_lock:
        cached = _loggers.get(name)
        if cached is not None and (json_format is None or cached.json_format == json_format):
            if level is not None:
                cached.set_level(level)
            return cached

        if json_format is None:
            json_format = os.environ.get("STEPFLOW_JSON_LOGS", "false").lower() == "true"
        if level is None:
            level = cached.get_level() if cached is not None else logging.INFO
        logger = StructuredLogger(
            name=name,
            level=level,
            json_format=json_format,
            stream=cached.stream if cached is not None else None,
        )
        _loggers[name] = logger
        return logger


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: TextIO | None = None,
) -> StructuredLogger:
    """Configure the shared ``stepflow`` event logger.

    Replaces any cached logger so later ``get_logger("stepflow")`` calls see
    the new settings.
    """
    logger = StructuredLogger("stepflow", level=level, json_format=json_format, stream=stream)
    with _loggers_lock:
        _loggers["stepflow"] = logger
    return logger


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Add ``kwargs`` to every record logged inside the block."""
    current = dict(_context_fields.get() or {})
    current.update(kwargs)
    token = _context_fields.set(current)
    try:
        yield
    finally:
        _context_fields.reset(token)


def get_context() -> dict[str, Any]:
    """Return a copy of the current logging context."""
    current = _context_fields.get()
    return dict(current) if current else {}
