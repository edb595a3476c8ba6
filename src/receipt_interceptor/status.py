"""Status events for a supervising process (tray UI, service wrapper)."""

from __future__ import annotations

import json
import logging
import sys
import threading
import traceback
from datetime import UTC, datetime
from typing import IO, Any, Protocol, runtime_checkable


@runtime_checkable
class StatusChannel(Protocol):
    """Sink for ``{"type": "log" | "status" | "error", ...}`` events."""

    def emit(self, event: dict[str, Any]) -> None: ...


class NullStatusChannel:
    """Discard every event; used when no supervisor is attached."""

    def emit(self, event: dict[str, Any]) -> None:
        return None


class StreamStatusChannel:
    """Write one JSON object per line to a text stream (stdout by default)."""

    def __init__(self, stream: IO[str] | None = None) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()

    def emit(self, event: dict[str, Any]) -> None:
        line = json.dumps(event, default=str)
        with self._lock:
            self.stream.write(line + "\n")
            self.stream.flush()


class StatusLogHandler(logging.Handler):
    """Forward log records to a status channel as ``log`` events."""

    def __init__(self, channel: StatusChannel, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.channel = channel

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.channel.emit(
                {
                    "type": "log",
                    "level": record.levelname.lower(),
                    "message": record.getMessage(),
                    "timestamp": datetime.fromtimestamp(
                        record.created, tz=UTC
                    ).isoformat(),
                }
            )
        except Exception:
            self.handleError(record)


def error_event(exc: BaseException) -> dict[str, Any]:
    """Build an ``error`` event for an uncaught exception."""
    return {
        "type": "error",
        "message": str(exc),
        "stack": "".join(traceback.format_exception(exc)),
    }
