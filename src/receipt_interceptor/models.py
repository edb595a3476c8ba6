"""Domain and wire models for receipt interception."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from os import stat_result
    from pathlib import Path


@dataclass(frozen=True)
class JobFingerprint:
    """Identity of one spool file instance.

    A file rewritten in place changes size or mtime and therefore yields a
    new fingerprint.
    """

    name: str
    size: int
    mtime_ms: int

    @classmethod
    def from_stat(cls, path: Path, stat: stat_result) -> JobFingerprint:
        return cls(
            name=path.name,
            size=stat.st_size,
            mtime_ms=stat.st_mtime_ns // 1_000_000,
        )

    @property
    def key(self) -> str:
        return f"{self.name}_{self.size}_{self.mtime_ms}"


class JobStatus(Enum):
    """Lifecycle state of a ledger entry."""

    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.PENDING


class Decision(Enum):
    """Outcome of recording one delivery attempt."""

    DELIVERED = "delivered"
    RETRY_SCHEDULED = "retry_scheduled"
    GIVE_UP = "give_up"


@dataclass
class JobRecord:
    """Ledger entry for a fingerprint."""

    last_seen_at_ms: int
    retry_count: int = 0
    status: JobStatus = JobStatus.PENDING


@dataclass
class DeliveryStats:
    """Process-wide delivery counters, reset only on restart."""

    uptime_started: int
    receipts_processed: int = 0
    receipts_failed: int = 0
    api_success: int = 0
    api_errors: int = 0
    last_receipt: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "receiptsProcessed": self.receipts_processed,
            "receiptsFailed": self.receipts_failed,
            "lastReceipt": self.last_receipt,
            "uptime": self.uptime_started,
            "apiErrors": self.api_errors,
            "apiSuccess": self.api_success,
        }


class LineItem(BaseModel):
    """One purchased item on a receipt."""

    name: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=0)
    price: float = Field(ge=0)


class ParsedReceipt(BaseModel):
    """Structured receipt as submitted to the collection API.

    Serialised with camelCase keys (receiptId, terminalId, ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    receipt_id: str = Field(min_length=1)
    terminal_id: str = ""
    location_id: str = ""
    timestamp: str
    items: list[LineItem] = Field(min_length=1)
    total: float = Field(gt=0)
    item_count: int
    raw_content: str = ""

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-ready request body."""
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class RegistrationRequest:
    """Device identity exchanged for credentials on first start."""

    terminal_id: str
    hostname: str
    platform: str
    version: str
    mac_address: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "terminalId": self.terminal_id,
            "hostname": self.hostname,
            "platform": self.platform,
            "version": self.version,
            "macAddress": self.mac_address,
        }
