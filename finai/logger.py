"""
Structured Logger for the finai agent backend

Every record is written as one JSON object per line, so the server, the tools
and the background pollers can be traced with the same tooling.

Record shape:
    {"timestamp": "...Z", "level": "INFO", "event": "...", "context": "pollers", "metadata": {...}}

Key features:
1. LOG_LEVEL threshold (DEBUG, INFO, WARN/WARNING, ERROR), INFO by default
2. WARN and ERROR records go to stderr, the rest to stdout
3. Tool call tracking (start, end, error) with durations in milliseconds
4. Error taxonomy (TIMEOUT, AI_ERROR, MOCK_DATA_ERROR, etc.) via classify_error
"""

import json
import os
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, Optional

Metadata = Optional[Dict[str, Any]]


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @property
    def rank(self) -> int:
        return _LEVELS.index(self)


_LEVELS = [LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARN, LogLevel.ERROR]


class ErrorType(str, Enum):
    """Error categories attached to failure records"""
    VALIDATION_ERROR = "VALIDATION_ERROR"    # Tool input or AI JSON shape invalid
    TIMEOUT = "TIMEOUT"                       # AI call exceeded its deadline
    NETWORK_ERROR = "NETWORK_ERROR"           # Banking executor / HTTP failure
    AI_ERROR = "AI_ERROR"                     # Anthropic API returned an error
    MOCK_DATA_ERROR = "MOCK_DATA_ERROR"       # Mock transaction file unreadable
    PARSE_ERROR = "PARSE_ERROR"               # AI reply could not be parsed
    CONFIG_ERROR = "CONFIG_ERROR"             # Required configuration missing
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


def threshold_from_env() -> LogLevel:
    """Minimum level read from LOG_LEVEL; unknown values mean INFO."""
    name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    name = {"WARNING": "WARN"}.get(name, name)
    return LogLevel.__members__.get(name, LogLevel.INFO)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class Logger:
    """JSON line logger bound to a context name (usually the module)."""

    def __init__(self, context: Optional[str] = None):
        self.context = context

    def _write(self, level: LogLevel, event: str, metadata: Metadata = None) -> None:
        if level.rank < threshold_from_env().rank:
            return

        record: Dict[str, Any] = {"timestamp": _timestamp(), "level": level.value, "event": event}
        if self.context:
            record["context"] = self.context
        if metadata:
            record["metadata"] = metadata

        stream = sys.stderr if level.rank >= LogLevel.WARN.rank else sys.stdout
        stream.write(json.dumps(record, default=str, ensure_ascii=False) + "\n")
        stream.flush()

    def debug(self, event: str, metadata: Metadata = None) -> None:
        self._write(LogLevel.DEBUG, event, metadata)

    def info(self, event: str, metadata: Metadata = None) -> None:
        self._write(LogLevel.INFO, event, metadata)

    def warn(self, event: str, metadata: Metadata = None) -> None:
        self._write(LogLevel.WARN, event, metadata)

    def error(self, event: str, metadata: Metadata = None) -> None:
        self._write(LogLevel.ERROR, event, metadata)

    def failure(self, event: str, error: BaseException, metadata: Metadata = None) -> None:
        """ERROR record carrying error_type and error_message next to the caller's metadata."""
        self.error(event, {
            **(metadata or {}),
            "error_type": classify_error(error).value,
            "error_message": str(error),
        })

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------

    def tool_call_start(self, tool_name: str, args: Metadata = None) -> float:
        """Log the start of a tool call; returns a monotonic start time."""
        metadata: Dict[str, Any] = {"tool_name": tool_name}
        if args:
            metadata["arguments"] = {k: v for k, v in args.items() if v is not None}
        self.info("Tool call started", metadata)
        return time.monotonic()

    def tool_call_end(self, tool_name: str, started: float, result: Any = None) -> None:
        metadata: Dict[str, Any] = {
            "tool_name": tool_name,
            "duration_ms": _elapsed_ms(started),
            "success": True,
        }
        if result is not None:
            metadata["result_summary"] = summarize(result)
        self.info("Tool call completed", metadata)

    def tool_call_error(
        self,
        tool_name: str,
        started: float,
        error: BaseException,
        error_type: Optional[ErrorType] = None,
    ) -> None:
        self.error("Tool call failed", {
            "tool_name": tool_name,
            "duration_ms": _elapsed_ms(started),
            "success": False,
            "error_type": (error_type or classify_error(error)).value,
            "error_message": str(error),
        })

    @contextmanager
    def tool_call(self, tool_name: str, args: Metadata = None) -> Iterator[None]:
        """Wrap a tool body: logs start, then completion or the raised error."""
        started = self.tool_call_start(tool_name, args)
        try:
            yield
        except Exception as e:
            self.tool_call_error(tool_name, started, e)
            raise
        self.tool_call_end(tool_name, started)


# ============================================================================
# HELPERS
# ============================================================================

def summarize(value: Any) -> Any:
    """Small stand-in for a result so large payloads stay out of the logs."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return value if len(value) <= 200 else value[:200] + "..."
    if isinstance(value, dict):
        return {"_type": "object", "keys": list(value)[:10]}
    if isinstance(value, (list, tuple)):
        return {"_type": "array", "length": len(value)}
    return {"_type": type(value).__name__}


def classify_error(error: BaseException) -> ErrorType:
    """Map an exception onto ErrorType, by class first and then by message."""
    from finai.exceptions import (
        AIResponseError,
        AIServiceError,
        ConfigurationError,
        ExecutorError,
        MockDataError,
    )

    by_class = (
        (TimeoutError, ErrorType.TIMEOUT),
        (ConfigurationError, ErrorType.CONFIG_ERROR),
        (MockDataError, ErrorType.MOCK_DATA_ERROR),
        (AIResponseError, ErrorType.PARSE_ERROR),
        (ExecutorError, ErrorType.NETWORK_ERROR),
    )
    for error_class, error_type in by_class:
        if isinstance(error, error_class):
            return error_type

    message = str(error).lower()
    if "timeout" in message or "timed out" in message:
        return ErrorType.TIMEOUT
    if isinstance(error, AIServiceError):
        return ErrorType.AI_ERROR

    by_message = (
        (("network", "connection"), ErrorType.NETWORK_ERROR),
        (("validation", "schema"), ErrorType.VALIDATION_ERROR),
        (("parse", "json", "decode"), ErrorType.PARSE_ERROR),
    )
    for needles, error_type in by_message:
        if any(needle in message for needle in needles):
            return error_type
    return ErrorType.UNKNOWN_ERROR


logger = Logger()


def create_logger(context: str) -> Logger:
    """Logger tagged with `context`"""
    return Logger(context)
