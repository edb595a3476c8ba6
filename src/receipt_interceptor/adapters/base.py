"""Service controller protocol."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ServiceController(Protocol):
    """Query and start the operating system's print spooler service."""

    def is_running(self) -> bool: ...

    def start(self) -> bool: ...
