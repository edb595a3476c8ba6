"""Bounded ledger of spool jobs that were delivered, gave up, or await retry."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

from receipt_interceptor.models import Decision, JobRecord, JobStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    from receipt_interceptor.models import JobFingerprint

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10_000


def now_ms() -> int:
    return time.time_ns() // 1_000_000


class JobTracker:
    """Decide whether a spool job is new, finished, or still retrying.

    There is no retry timer: a pending job is retried when the next poll
    sees the same unchanged file again.

    When the ledger grows past ``capacity`` only the most recently seen half
    is kept. Evicting an old entry can at worst cause a duplicate delivery of
    a very old job, never a lost one.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        if capacity < 2:
            msg = f"Ledger capacity must be at least 2, got {capacity}"
            raise ValueError(msg)
        self.capacity = capacity
        self._clock = clock
        self._records: dict[JobFingerprint, JobRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get(self, fingerprint: JobFingerprint) -> JobRecord | None:
        with self._lock:
            return self._records.get(fingerprint)

    def retry_count(self, fingerprint: JobFingerprint) -> int:
        record = self.get(fingerprint)
        return record.retry_count if record else 0

    def should_process(self, fingerprint: JobFingerprint) -> bool:
        """Return False once a job was delivered or given up on."""
        with self._lock:
            record = self._records.get(fingerprint)
        return record is None or not record.status.is_terminal

    def record_attempt(
        self, fingerprint: JobFingerprint, success: bool, max_retries: int
    ) -> Decision:
        """Record a delivery attempt and classify what happens next."""
        with self._lock:
            # Re-insert so dict order tracks recent activity.
            record = self._records.pop(fingerprint, None)
            if record is None:
                record = JobRecord(last_seen_at_ms=0)
            record.last_seen_at_ms = self._clock()
            self._records[fingerprint] = record

            if success:
                record.status = JobStatus.DELIVERED
                record.retry_count = 0
                decision = Decision.DELIVERED
            else:
                record.retry_count += 1
                if record.retry_count < max_retries:
                    decision = Decision.RETRY_SCHEDULED
                else:
                    record.status = JobStatus.FAILED
                    record.retry_count = 0
                    decision = Decision.GIVE_UP

            self._evict_locked()
        return decision

    def evict_if_over_capacity(self) -> int:
        """Trim the ledger to its most recent half when over capacity.

        Returns the number of evicted entries.
        """
        with self._lock:
            return self._evict_locked()

    def _evict_locked(self) -> int:
        size = len(self._records)
        if size <= self.capacity:
            return 0

        keep = self.capacity // 2
        # Newest insertions first so equal timestamps favour later activity;
        # sorted() is stable.
        newest_first = sorted(
            reversed(self._records.items()),
            key=lambda item: item[1].last_seen_at_ms,
            reverse=True,
        )
        survivors = newest_first[:keep]
        self._records = dict(reversed(survivors))
        evicted = size - len(survivors)
        logger.debug("Evicted %d ledger entries, %d kept", evicted, len(survivors))
        return evicted
