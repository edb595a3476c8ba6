"""Exception hierarchy for receipt-interceptor.

InterceptorError (base)
├── DeliveryError               - request could not be completed
│   ├── DeliveryTimeoutError    - no response within the configured timeout
│   └── DeliveryHttpError       - remote answered with a non-2xx status
└── SpoolPathMissingError       - spool directory absent (startup failure)

Delivery errors are runtime failures: the watcher counts them and lets the
job tracker decide whether to retry. SpoolPathMissingError is the only fatal
condition; it is raised from startup and the CLI decides to exit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class InterceptorError(Exception):
    """Base exception for all receipt-interceptor errors."""


class DeliveryError(InterceptorError):
    """A request to the collection API failed."""

    def __init__(self, message: str, *, endpoint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint


class DeliveryTimeoutError(DeliveryError):
    """No response arrived within the configured timeout."""

    def __init__(self, endpoint: str, timeout: float) -> None:
        super().__init__(
            f"Request timeout after {timeout:g}s: {endpoint}", endpoint=endpoint
        )
        self.timeout = timeout


class DeliveryHttpError(DeliveryError):
    """The collection API answered with a non-2xx status."""

    def __init__(self, endpoint: str, status_code: int, body: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {body}", endpoint=endpoint)
        self.status_code = status_code
        self.body = body


class SpoolPathMissingError(InterceptorError):
    """The print spool directory does not exist.

    Typical causes:
    - Print Spooler service disabled
    - Wrong printSpoolPath in config.json
    """

    def __init__(self, spool_path: Path) -> None:
        super().__init__(f"Print spool path not found: {spool_path}")
        self.spool_path = spool_path
