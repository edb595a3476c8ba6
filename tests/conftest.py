"""Shared test fixtures."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import pytest

from receipt_interceptor.config import InterceptorConfig
from receipt_interceptor.delivery import DeliveryClient
from receipt_interceptor.tracker import JobTracker
from receipt_interceptor.watcher import SpoolWatcher

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

API_ENDPOINT = "https://api.example.com"
TERMINAL_ID = "T-TEST0001"

SAMPLE_RECEIPT = (
    "Receipt #: 5001\n"
    "Shawarma x1 $12.00\n"
    "Juice x2 $10.00\n"
    "Fries x1 $5.00\n"
    "TOTAL: $27.00\n"
)

# What a POS printer driver typically wraps around the text: ESC/POS init,
# a form feed and a cut command with non-printable arguments.
_JOB_PREFIX = b"\x1b\x00\x01\x02"
_JOB_SUFFIX = b"\x0c\x1d\x00\x01"


class ApiStub:
    """httpx MockTransport handler with per-path scripted outcomes.

    An outcome is a status code, a dict (200 with that JSON body), an
    httpx exception class to raise, or a callable taking the request and
    returning a response. The last outcome queued for a path
    repeats; unrouted paths answer 200 ``{"status": "ok"}``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[str, list[Any]] = {}

    def route(self, path: str, *outcomes: Any) -> None:
        self._routes[path] = list(outcomes)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcomes = self._routes.get(request.url.path)
        if not outcomes:
            return httpx.Response(200, json={"status": "ok"})
        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]

        if isinstance(outcome, dict):
            return httpx.Response(200, json=outcome)
        if isinstance(outcome, int):
            if 200 <= outcome < 300:
                return httpx.Response(outcome, json={"status": "ok"})
            return httpx.Response(outcome, text="simulated failure")
        if isinstance(outcome, type) and issubclass(outcome, Exception):
            raise outcome("simulated", request=request)
        return outcome(request)


class FakeService:
    """In-memory ServiceController."""

    def __init__(self, running: bool = True) -> None:
        self.running = running
        self.start_calls = 0

    def is_running(self) -> bool:
        return self.running

    def start(self) -> bool:
        self.start_calls += 1
        self.running = True
        return True


class RecordingChannel:
    """StatusChannel that keeps every event."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def emit(self, event: dict[str, Any]) -> None:
        self.events.append(event)

    def of_type(self, kind: str) -> list[dict[str, Any]]:
        return [e for e in self.events if e.get("type") == kind]


@pytest.fixture
def sample_receipt_text() -> str:
    return SAMPLE_RECEIPT


@pytest.fixture
def spool_dir(tmp_path: Path) -> Path:
    """Provide an empty spool directory."""
    root = tmp_path / "PRINTERS"
    root.mkdir()
    return root


@pytest.fixture
def config(spool_dir: Path) -> InterceptorConfig:
    """Provide a registered configuration pointing at the test spool."""
    return InterceptorConfig(
        api_endpoint=API_ENDPOINT,
        api_key="test-key",  # pragma: allowlist secret
        terminal_id=TERMINAL_ID,
        location_id="LOC-1",
        print_spool_path=spool_dir,
        retry_attempts=3,
    )


@pytest.fixture
def api() -> ApiStub:
    return ApiStub()


@pytest.fixture
def client(api: ApiStub) -> DeliveryClient:
    return DeliveryClient(
        API_ENDPOINT,
        api_key="test-key",  # pragma: allowlist secret
        terminal_id=TERMINAL_ID,
        version="3.0.0",
        transport=httpx.MockTransport(api),
    )


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def watcher(
    config: InterceptorConfig,
    client: DeliveryClient,
    service: FakeService,
    channel: RecordingChannel,
) -> SpoolWatcher:
    """Provide a SpoolWatcher wired to in-memory collaborators."""
    return SpoolWatcher(
        config,
        client=client,
        tracker=JobTracker(capacity=100),
        service=service,
        channel=channel,
    )


@pytest.fixture
def write_job(spool_dir: Path) -> Callable[[str, str], Path]:
    """Write a spool file containing ``text`` wrapped in printer control bytes."""

    def _write(name: str, text: str) -> Path:
        path = spool_dir / name
        path.write_bytes(_JOB_PREFIX + text.encode("ascii") + _JOB_SUFFIX)
        return path

    return _write
