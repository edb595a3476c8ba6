"""Heuristic parsing of point-of-sale receipt text."""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime

from receipt_interceptor.models import LineItem, ParsedReceipt

logger = logging.getLogger(__name__)

MIN_RECEIPT_LENGTH = 10
MAX_RAW_CONTENT_CHARS = 5000

_RECEIPT_ID_RE = re.compile(
    r"\b(?:receipt|order|invoice)\s*#?\s*:?\s*(\w\S*)", re.IGNORECASE
)
_TOTAL_RE = re.compile(r"total\s*:?\s*\$?(\d+\.?\d*)", re.IGNORECASE)

# Item names never contain digits or "$" so the price is not swallowed, and
# never ":" or "#" so labelled lines ("TOTAL: $27.00", "Receipt #: 5001")
# are not read as items. A name starts with a non-space character.
_NAME = r"[^$\d:#\s][^$\d:#]*?"
_PRICE = r"\$?(\d+\.?\d*)"
_QTY = r"(\d{1,6})"

# Tried in order; the first shape that matches wins.
_ITEM_NAME_FIRST_RE = re.compile(rf"^({_NAME})\s+(?:x?\s*{_QTY}\s+)?{_PRICE}$")
# A lone "x" after the quantity is the marker, never the name.
_ITEM_QTY_FIRST_RE = re.compile(rf"^{_QTY}\s*x?\s+(?!x\s)({_NAME})\s+{_PRICE}$")
_ITEM_BARE_RE = re.compile(rf"^({_NAME})\s+{_PRICE}$")

_LINE_SPLIT_RE = re.compile(r"\r?\n")


def parse_receipt(
    text: str,
    *,
    terminal_id: str = "",
    location_id: str = "",
    min_length: int = MIN_RECEIPT_LENGTH,
    max_raw_chars: int = MAX_RAW_CONTENT_CHARS,
    now: datetime | None = None,
) -> ParsedReceipt | None:
    """Parse extracted print-job text into a receipt.

    Every non-empty line is checked independently for a receipt/order/invoice
    id, a total and a line item. The last id and the last total seen win. A
    line may count as both a total and an item when both patterns accept it.

    Returns None unless at least one item and a positive total were found.
    """
    if not text or len(text) < min_length:
        return None

    items: list[LineItem] = []
    total = 0.0
    receipt_id: str | None = None

    for line in _split_lines(text):
        id_match = _RECEIPT_ID_RE.search(line)
        if id_match:
            receipt_id = id_match.group(1)

        total_match = _TOTAL_RE.search(line)
        if total_match:
            total = float(total_match.group(1))

        item = _match_item(line)
        if item is not None:
            items.append(item)

    if not items or total <= 0:
        logger.debug("No receipt found (%d items, total %.2f)", len(items), total)
        return None

    parsed_at = now or datetime.now(tz=UTC)
    return ParsedReceipt(
        receipt_id=receipt_id or _generate_receipt_id(parsed_at),
        terminal_id=terminal_id,
        location_id=location_id,
        timestamp=_isoformat(parsed_at),
        items=items,
        total=total,
        item_count=len(items),
        raw_content=text[:max_raw_chars],
    )


def _split_lines(text: str) -> list[str]:
    """Split on newlines, trim, and drop blank lines."""
    return [s for s in (ln.strip() for ln in _LINE_SPLIT_RE.split(text)) if s]


def _match_item(line: str) -> LineItem | None:
    """Match a line against the item shapes in priority order.

    Returns None when no shape matches or the name is blank.
    """
    match = _ITEM_NAME_FIRST_RE.match(line)
    if match:
        name, qty, price = match.groups()
        return _make_item(name, qty, price)

    match = _ITEM_QTY_FIRST_RE.match(line)
    if match:
        qty, name, price = match.groups()
        return _make_item(name, qty, price)

    match = _ITEM_BARE_RE.match(line)
    if match:
        name, price = match.groups()
        return _make_item(name, None, price)

    return None


def _make_item(name: str, qty: str | None, price: str) -> LineItem | None:
    name = name.strip()
    if not name:
        return None
    return LineItem(
        name=name,
        quantity=int(qty) if qty else 1,
        price=float(price),
    )


def _generate_receipt_id(moment: datetime) -> str:
    return f"R{int(moment.timestamp() * 1000)}"


def _isoformat(moment: datetime) -> str:
    """Render as ISO 8601 UTC with millisecond precision and a Z suffix."""
    utc = moment.astimezone(UTC)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")
