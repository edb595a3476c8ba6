"""Print spooler service control through the platform's service commands."""

from __future__ import annotations

import logging
import subprocess
import sys
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)

_COMMAND_TIMEOUT = 30


class CommandServiceController:
    """Control a service by shelling out to status and start commands.

    ``is_running`` looks for ``running_marker`` as a word in the status
    command output. Both methods are best-effort: a missing binary or a timeout
    reads as "not running" / "not started", never as an exception.
    """

    def __init__(
        self,
        status_command: Sequence[str],
        start_command: Sequence[str],
        running_marker: str,
        runner: Callable[..., subprocess.CompletedProcess[Any]] = subprocess.run,
    ) -> None:
        self.status_command = list(status_command)
        self.start_command = list(start_command)
        self.running_marker = running_marker
        self._runner = runner

    def is_running(self) -> bool:
        result = self._run(self.status_command)
        if result is None:
            return False
        return self.running_marker in (result.stdout or "").split()

    def start(self) -> bool:
        result = self._run(self.start_command)
        started = result is not None and result.returncode == 0
        if not started:
            logger.warning("Could not start service: %s", " ".join(self.start_command))
        return started

    def _run(self, command: list[str]) -> subprocess.CompletedProcess[Any] | None:
        try:
            return self._runner(
                command,
                capture_output=True,
                text=True,
                timeout=_COMMAND_TIMEOUT,
                check=False,
            )
        except (OSError, subprocess.SubprocessError):
            logger.debug("Service command failed: %s", command, exc_info=True)
            return None


class NullServiceController:
    """Report the spooler as always running; for hosts without service control."""

    def is_running(self) -> bool:
        return True

    def start(self) -> bool:
        return True


def windows_spooler() -> CommandServiceController:
    return CommandServiceController(
        status_command=["sc", "query", "spooler"],
        start_command=["net", "start", "spooler"],
        running_marker="RUNNING",
    )


def cups_spooler() -> CommandServiceController:
    return CommandServiceController(
        status_command=["systemctl", "is-active", "cups"],
        start_command=["systemctl", "start", "cups"],
        running_marker="active",
    )


def default_service_controller() -> CommandServiceController | NullServiceController:
    """Pick the controller for the current platform."""
    if sys.platform == "win32":
        return windows_spooler()
    if sys.platform.startswith("linux"):
        return cups_spooler()
    return NullServiceController()
