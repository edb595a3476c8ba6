"""Spool directory watcher: poll, extract, parse, deliver, track."""

from __future__ import annotations

import logging
import socket
import stat
import sys
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from receipt_interceptor.adapters.spooler import default_service_controller
from receipt_interceptor.config import VERSION, get_mac_address
from receipt_interceptor.delivery import DeliveryClient
from receipt_interceptor.exceptions import DeliveryError, SpoolPathMissingError
from receipt_interceptor.extraction import extract_text
from receipt_interceptor.models import (
    Decision,
    DeliveryStats,
    JobFingerprint,
    RegistrationRequest,
)
from receipt_interceptor.parser import parse_receipt
from receipt_interceptor.status import NullStatusChannel, error_event
from receipt_interceptor.tracker import JobTracker, now_ms

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from receipt_interceptor.adapters.base import ServiceController
    from receipt_interceptor.config import InterceptorConfig
    from receipt_interceptor.models import ParsedReceipt
    from receipt_interceptor.status import StatusChannel

logger = logging.getLogger(__name__)

_JOIN_TIMEOUT = 1.0


@dataclass
class WatcherState:
    """Mutable state owned by one SpoolWatcher."""

    config: InterceptorConfig
    stats: DeliveryStats
    registered: bool = False
    healthy: bool = True


class PeriodicTask:
    """Run ``action`` every ``interval`` seconds on a daemon thread.

    Exceptions raised by ``action`` are logged and passed to ``on_error``;
    the schedule continues. The loop exits when ``stop_event`` is set.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        action: Callable[[], object],
        stop_event: threading.Event,
        *,
        on_error: Callable[[Exception], None] | None = None,
        run_immediately: bool = False,
    ) -> None:
        self.name = name
        self.interval = interval
        self.action = action
        self.on_error = on_error
        self.run_immediately = run_immediately
        self._stop_event = stop_event
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> None:
        try:
            self.action()
        except Exception as exc:
            logger.exception("Uncaught error in %s", self.name)
            if self.on_error is not None:
                self.on_error(exc)

    def _loop(self) -> None:
        if self.run_immediately and not self._stop_event.is_set():
            self.run_once()
        while not self._stop_event.wait(self.interval):
            self.run_once()


class SpoolWatcher:
    """Drive spool files through extraction, parsing, delivery and the ledger.

    Collaborators are injected so the pipeline can run against fakes:
    the delivery client, the job tracker, the spooler service controller,
    the status channel and the callback that persists configuration after
    registration.
    """

    def __init__(
        self,
        config: InterceptorConfig,
        *,
        client: DeliveryClient | None = None,
        tracker: JobTracker | None = None,
        service: ServiceController | None = None,
        channel: StatusChannel | None = None,
        save_config: Callable[[InterceptorConfig], object] | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._clock = clock
        self.state = WatcherState(
            config=config,
            stats=DeliveryStats(uptime_started=clock()),
            registered=bool(config.api_key),
        )
        if client is None:
            client = DeliveryClient(
                config.api_endpoint,
                api_key=config.api_key,
                terminal_id=config.terminal_id,
                version=VERSION,
                timeout=config.api_timeout_seconds,
            )
        self.client = client
        self.tracker = (
            tracker if tracker is not None else JobTracker(config.ledger_capacity)
        )
        self.service = (
            service if service is not None else default_service_controller()
        )
        self.channel = channel if channel is not None else NullStatusChannel()
        self._save_config = save_config
        self._lock = threading.RLock()

    @property
    def config(self) -> InterceptorConfig:
        with self._lock:
            return self.state.config

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Validate the spool directory and register if needed.

        Raises:
            SpoolPathMissingError: the spool directory does not exist.
        """
        config = self.config
        logger.info("Receipt Interceptor v%s", VERSION)
        logger.info("Terminal ID: %s", config.terminal_id)
        logger.info("Location ID: %s", config.location_id or "Not registered")
        logger.info("API Endpoint: %s", config.api_endpoint or "Not configured")
        logger.info("Print Spool: %s", config.print_spool_path)

        if not config.print_spool_path.is_dir():
            raise SpoolPathMissingError(config.print_spool_path)

        if config.auto_register and config.api_endpoint and not config.api_key:
            self.auto_register()

    def auto_register(self) -> bool:
        """Exchange device identity for an API key and persist it."""
        if not self.client.configured:
            logger.debug("No API endpoint configured, skipping registration")
            return False

        config = self.config
        request = RegistrationRequest(
            terminal_id=config.terminal_id,
            hostname=socket.gethostname(),
            platform=sys.platform,
            version=VERSION,
            mac_address=get_mac_address(),
        )
        logger.info("Attempting auto-registration with cloud...")
        try:
            response = self.client.register(request.to_payload())
        except DeliveryError as exc:
            logger.warning("Auto-registration failed: %s", exc)
            return False

        api_key = response.get("apiKey")
        if not api_key:
            logger.warning("Registration response did not include an API key")
            return False

        with self._lock:
            config = self.state.config.model_copy(
                update={
                    "api_key": str(api_key),
                    "location_id": str(response.get("locationId") or ""),
                }
            )
            self.state.config = config
            self.state.registered = True
        self.client.api_key = config.api_key

        if self._save_config is not None:
            try:
                self._save_config(config)
            except OSError as exc:
                logger.warning("Failed to save config: %s", exc)

        logger.info("Successfully registered with cloud")
        return True

    # ------------------------------------------------------------------
    # Job intake
    # ------------------------------------------------------------------

    def poll_once(self) -> int:
        """Scan the spool directory once.

        Returns the number of files that reached a delivery attempt.
        """
        spool = self.config.print_spool_path
        try:
            entries = sorted(spool.iterdir())
        except OSError:
            logger.debug("Could not list spool directory %s", spool, exc_info=True)
            return 0

        attempted = 0
        for path in entries:
            try:
                decision = self.process_job_file(path)
            except Exception as exc:
                logger.exception("Error processing print job %s", path.name)
                self.report_error(exc)
                continue
            if decision is not None:
                attempted += 1
        return attempted

    def process_job_file(self, path: Path) -> Decision | None:
        """Run one spool file through the pipeline.

        Returns the ledger decision, or None when the file was skipped:
        not a regular file, already finalized, too small, unreadable, or
        not a receipt. Skipped files leave no ledger entry.
        """
        try:
            st = path.stat()
        except OSError:
            return None
        if not stat.S_ISREG(st.st_mode):
            return None

        fingerprint = JobFingerprint.from_stat(path, st)
        if not self.tracker.should_process(fingerprint):
            return None

        config = self.config
        if st.st_size < config.min_job_bytes:
            return None

        try:
            data = path.read_bytes()
        except OSError:
            # Spooler may hold a lock or have deleted the file; next tick retries.
            logger.debug("Could not read %s", path.name, exc_info=True)
            return None

        receipt = parse_receipt(
            extract_text(data),
            terminal_id=config.terminal_id,
            location_id=config.location_id,
            min_length=config.min_receipt_length,
            max_raw_chars=config.max_raw_content_chars,
        )
        if receipt is None:
            return None

        logger.info(
            "Intercepted receipt: %s (%d items, $%.2f)",
            receipt.receipt_id,
            receipt.item_count,
            receipt.total,
        )
        return self._deliver(fingerprint, receipt)

    def _deliver(self, fingerprint: JobFingerprint, receipt: ParsedReceipt) -> Decision:
        max_retries = self.config.retry_attempts
        try:
            self.client.send_receipt(receipt)
        except DeliveryError as exc:
            decision = self.tracker.record_attempt(
                fingerprint, success=False, max_retries=max_retries
            )
            with self._lock:
                self.state.stats.api_errors += 1
                if decision is Decision.GIVE_UP:
                    self.state.stats.receipts_failed += 1

            if decision is Decision.GIVE_UP:
                logger.error(
                    "Failed to send %s after %d attempts: %s",
                    receipt.receipt_id,
                    max_retries,
                    exc,
                )
            else:
                logger.warning(
                    "Retry attempt %d/%d for %s: %s",
                    self.tracker.retry_count(fingerprint),
                    max_retries,
                    receipt.receipt_id,
                    exc,
                )
        else:
            decision = self.tracker.record_attempt(
                fingerprint, success=True, max_retries=max_retries
            )
            with self._lock:
                stats = self.state.stats
                stats.receipts_processed += 1
                stats.api_success += 1
                stats.last_receipt = self._clock()
            logger.info("Successfully sent receipt %s to cloud", receipt.receipt_id)

        self.emit_status()
        return decision

    # ------------------------------------------------------------------
    # Health and status
    # ------------------------------------------------------------------

    def health_check(self) -> bool:
        """Check the spooler service and the API; return the health flag."""
        if not self.service.is_running():
            logger.warning("Print Spooler not running, attempting to start...")
            self.service.start()

        try:
            if self.client.configured:
                self.client.health()
                with self._lock:
                    self.state.stats.api_success += 1
        except DeliveryError as exc:
            with self._lock:
                self.state.healthy = False
                self.state.stats.api_errors += 1
            logger.error("Health check failed: %s", exc)
        else:
            with self._lock:
                self.state.healthy = True

        self.emit_status()
        with self._lock:
            return self.state.healthy

    def status_snapshot(self) -> dict[str, Any]:
        with self._lock:
            state = self.state
            return {
                "type": "status",
                "stats": state.stats.as_dict(),
                "config": {
                    "terminalId": state.config.terminal_id,
                    "locationId": state.config.location_id,
                    "registered": state.registered,
                    "healthy": state.healthy,
                    "apiEndpoint": state.config.api_endpoint,
                },
                "timestamp": self._clock(),
            }

    def emit_status(self) -> None:
        self.channel.emit(self.status_snapshot())

    def report_error(self, exc: Exception) -> None:
        self.channel.emit(error_event(exc))

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def build_tasks(self, stop_event: threading.Event) -> list[PeriodicTask]:
        """Create the poll, health-check and status-report tasks."""
        config = self.config
        return [
            PeriodicTask(
                "SpoolPoll",
                config.poll_interval / 1000,
                self.poll_once,
                stop_event,
                on_error=self.report_error,
                run_immediately=True,
            ),
            PeriodicTask(
                "HealthCheck",
                config.health_check_interval / 1000,
                self.health_check,
                stop_event,
                on_error=self.report_error,
            ),
            PeriodicTask(
                "StatusReport",
                config.status_interval / 1000,
                self.emit_status,
                stop_event,
                on_error=self.report_error,
            ),
        ]

    def run(self, stop_event: threading.Event) -> None:
        """Start up, then poll until ``stop_event`` is set.

        On shutdown each task gets up to one API timeout to finish its current
        request. Work still running after that is abandoned; its ledger entry
        was never finalized so the next process start picks it up again.

        Raises:
            SpoolPathMissingError: from start().
        """
        self.start()

        tasks = self.build_tasks(stop_event)
        for task in tasks:
            task.start()
        logger.info("Monitoring print jobs...")
        self.emit_status()

        while not stop_event.wait(_JOIN_TIMEOUT):
            pass

        # A task may be inside a request; give it up to one API timeout.
        join_timeout = self.config.api_timeout_seconds + _JOIN_TIMEOUT
        for task in tasks:
            task.join(join_timeout)
        if any(task.is_alive() for task in tasks):
            logger.warning("Tasks still running at shutdown, leaving client open")
        else:
            self.client.close()
        logger.info("Interceptor stopped")
