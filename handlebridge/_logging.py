"""
Structured logging (OpenTelemetry-shaped).

Both formatters describe the same record: a timestamp, a severity, a scope
(``registry``, ``heap``, ``shim``, ``exports``, ``proxy``) and any extra
attributes passed by the caller. Handles are the attribute that matters most
when tracing a boundary bug, so the human format always shows them in hex.

Usage::

    from ._logging import scoped_logger

    log = scoped_logger("registry")
    log.debug("Allocated handle", extra={"handle": handle})

Environment::

    HANDLEBRIDGE_LOG_LEVEL=trace|debug|info|warn|error|fatal|off (default: warn)
    HANDLEBRIDGE_LOG_FORMAT=json|human (default: human if tty, json if piped)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import MutableMapping
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from typing import Any

__all__ = ["logger", "setup_logging", "scoped_logger"]

_SERVICE = "handlebridge"

# Python level -> OpenTelemetry severity text
_SEVERITY = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "FATAL",
}

_OFF = logging.CRITICAL + 10

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
    "off": _OFF,
}

# Levels that carry the source location
_LOCATED = frozenset({logging.DEBUG, logging.ERROR, logging.CRITICAL})

# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "scope",
    "taskName",
}


def _version() -> str:
    try:
        return get_version(_SERVICE)
    except PackageNotFoundError:
        return "0.0.0"


def _scope(record: logging.LogRecord) -> str:
    """Explicit scope, or the last component of the logger name."""
    return getattr(record, "scope", None) or record.name.rpartition(".")[2] or _SERVICE


def _source(record: logging.LogRecord) -> str:
    """Path relative to the package, for shorter locations."""
    path = record.pathname.replace(os.sep, "/")
    marker = f"{_SERVICE}/"
    return path.split(marker, 1)[1] if marker in path else path


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_FIELDS and not key.startswith("_")
    }


# =============================================================================
# Formatters
# =============================================================================


class JsonFormatter(logging.Formatter):
    """One JSON object per record, following the OpenTelemetry log data model."""

    def __init__(self) -> None:
        super().__init__()
        self._resource = {"service.name": _SERVICE, "service.version": _version()}

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        # Python only has microseconds; pad to nanoseconds
        timestamp = f"{created:%Y-%m-%dT%H:%M:%S}.{created.microsecond * 1000:09d}Z"

        attributes: dict[str, Any] = {"scope": _scope(record), **_extras(record)}
        if record.levelno in _LOCATED:
            attributes["code.filepath"] = _source(record)
            attributes["code.lineno"] = record.lineno
        if record.exc_info:
            attributes["exception.stacktrace"] = self.formatException(record.exc_info)

        return json.dumps(
            {
                "timestamp": timestamp,
                "severityText": _SEVERITY.get(record.levelno, "INFO"),
                "body": record.getMessage(),
                "attributes": attributes,
                "resource": self._resource,
            },
            separators=(",", ":"),
            default=str,
        )


class HumanFormatter(logging.Formatter):
    """Single-line terminal output: ``time LEVEL [scope] message (handle=0x..)``."""

    _RESET = "\x1b[0m"
    _DIM = "\x1b[2m"
    _RED = "\x1b[31m"
    _YELLOW = "\x1b[33m"
    _CYAN = "\x1b[36m"

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self._use_colors = use_colors

    def _paint(self, text: str, color: str) -> str:
        if not self._use_colors or not color:
            return text
        return f"{color}{text}{self._RESET}"

    def _level_color(self, levelno: int) -> str:
        if levelno >= logging.ERROR:
            return self._RED
        if levelno >= logging.WARNING:
            return self._YELLOW
        if levelno <= logging.DEBUG:
            return self._DIM
        return ""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        severity = _SEVERITY.get(record.levelno, "INFO")

        line = (
            f"{created:%H:%M:%S} "
            + self._paint(f"{severity:<5}", self._level_color(record.levelno))
            + " "
            + self._paint(f"[{_scope(record)}]", self._CYAN)
            + " "
            + record.getMessage()
        )

        handle = getattr(record, "handle", None)
        if isinstance(handle, int):
            line += f" (handle={handle:#x})"
        if record.levelno in _LOCATED:
            line += self._paint(f" [{_source(record)}:{record.lineno}]", self._DIM)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


# =============================================================================
# Logger Setup
# =============================================================================


def _get_log_level() -> int:
    name = os.environ.get("HANDLEBRIDGE_LOG_LEVEL", "warn")
    return _LEVELS.get(name.lower(), logging.WARNING)


def _get_log_format() -> str:
    fmt = os.environ.get("HANDLEBRIDGE_LOG_FORMAT")
    if fmt:
        return fmt.lower()
    return "human" if sys.stderr.isatty() else "json"


def _create_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    if _get_log_format() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(HumanFormatter(use_colors=sys.stderr.isatty()))
    return handler


logger = logging.getLogger(_SERVICE)


def setup_logging(
    level: str | int = "WARN",
    format: str | None = None,
) -> None:
    """
    Configure handlebridge logging.

    Parameters
    ----------
    level : str or int, default "WARN"
        Level name ("trace", "debug", "info", "warn", "error", "fatal",
        "off") or a ``logging`` constant. Unknown names fall back to WARN.

    format : str, optional
        "json" or "human". Defaults to HANDLEBRIDGE_LOG_FORMAT, then to
        human on a TTY and json otherwise.

    Examples
    --------
    Trace every handle allocation and release::

        >>> import handlebridge
        >>> handlebridge.setup_logging("DEBUG", format="human")
    """
    if isinstance(level, str):
        level = _LEVELS.get(level.lower(), logging.WARNING)

    # Child processes inherit the format choice
    if format:
        os.environ["HANDLEBRIDGE_LOG_FORMAT"] = format

    logger.handlers.clear()
    logger.addHandler(_create_handler())
    logger.setLevel(level)


class _ScopedLoggerAdapter(logging.LoggerAdapter):
    """Adds a fixed scope to every record, merged with per-call extras."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs


def scoped_logger(scope: str) -> logging.LoggerAdapter:
    """Return a logger adapter that tags records with ``scope``."""
    return _ScopedLoggerAdapter(logger, {"scope": scope})


# Respect handlers installed by the application
if not logger.handlers:
    logger.addHandler(_create_handler())
    logger.setLevel(_get_log_level())
