"""Tests for receipt_interceptor.models."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from receipt_interceptor.models import (
    DeliveryStats,
    JobFingerprint,
    JobStatus,
    LineItem,
    ParsedReceipt,
    RegistrationRequest,
)


def _receipt(**overrides: object) -> ParsedReceipt:
    fields: dict[str, object] = {
        "receipt_id": "5001",
        "terminal_id": "T-TEST0001",
        "location_id": "LOC-1",
        "timestamp": "2026-10-19T12:00:00.000Z",
        "items": [LineItem(name="Coffee", price=3.5)],
        "total": 3.5,
        "item_count": 1,
        "raw_content": "Coffee $3.50\nTotal $3.50",
    }
    fields.update(overrides)
    return ParsedReceipt(**fields)  # type: ignore[arg-type]


class TestJobFingerprint:
    """Tests for JobFingerprint."""

    def test_from_stat(self, tmp_path: Path) -> None:
        path = tmp_path / "00042.SPL"
        path.write_bytes(b"x" * 64)
        os.utime(path, ns=(1_760_000_000_123_456_789, 1_760_000_000_123_456_789))

        fingerprint = JobFingerprint.from_stat(path, path.stat())

        assert fingerprint == JobFingerprint(
            name="00042.SPL", size=64, mtime_ms=1_760_000_000_123
        )
        assert fingerprint.key == "00042.SPL_64_1760000000123"

    def test_hashable(self) -> None:
        a = JobFingerprint(name="a.SPL", size=1, mtime_ms=2)
        b = JobFingerprint(name="a.SPL", size=1, mtime_ms=2)

        assert {a, b} == {a}


class TestJobStatus:
    """Tests for JobStatus."""

    @pytest.mark.parametrize(
        ("status", "terminal"),
        [
            (JobStatus.PENDING, False),
            (JobStatus.DELIVERED, True),
            (JobStatus.FAILED, True),
        ],
    )
    def test_is_terminal(self, status: JobStatus, terminal: bool) -> None:
        assert status.is_terminal is terminal


class TestDeliveryStats:
    """Tests for DeliveryStats."""

    def test_as_dict(self) -> None:
        stats = DeliveryStats(uptime_started=1000, receipts_processed=2, api_errors=1)

        assert stats.as_dict() == {
            "receiptsProcessed": 2,
            "receiptsFailed": 0,
            "lastReceipt": None,
            "uptime": 1000,
            "apiErrors": 1,
            "apiSuccess": 0,
        }


class TestLineItem:
    """Tests for LineItem validation."""

    def test_default_quantity(self) -> None:
        assert LineItem(name="Tea", price=2.0).quantity == 1

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LineItem(name="", price=1.0)

    def test_negative_price_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LineItem(name="Tea", price=-1.0)


class TestParsedReceipt:
    """Tests for ParsedReceipt."""

    def test_payload_uses_camel_case(self) -> None:
        payload = _receipt().to_payload()

        assert payload == {
            "receiptId": "5001",
            "terminalId": "T-TEST0001",
            "locationId": "LOC-1",
            "timestamp": "2026-10-19T12:00:00.000Z",
            "items": [{"name": "Coffee", "quantity": 1, "price": 3.5}],
            "total": 3.5,
            "itemCount": 1,
            "rawContent": "Coffee $3.50\nTotal $3.50",
        }

    def test_validates_from_payload(self) -> None:
        original = _receipt()

        assert ParsedReceipt.model_validate(original.to_payload()) == original

    def test_requires_items(self) -> None:
        with pytest.raises(ValidationError):
            _receipt(items=[])

    def test_requires_positive_total(self) -> None:
        with pytest.raises(ValidationError):
            _receipt(total=0)

    def test_requires_receipt_id(self) -> None:
        with pytest.raises(ValidationError):
            _receipt(receipt_id="")


class TestRegistrationRequest:
    """Tests for RegistrationRequest."""

    def test_payload(self) -> None:
        request = RegistrationRequest(
            terminal_id="T-TEST0001",
            hostname="pos-01",
            platform="win32",
            version="3.0.0",
            mac_address="aa:bb:cc:dd:ee:ff",
        )

        assert request.to_payload() == {
            "terminalId": "T-TEST0001",
            "hostname": "pos-01",
            "platform": "win32",
            "version": "3.0.0",
            "macAddress": "aa:bb:cc:dd:ee:ff",
        }
