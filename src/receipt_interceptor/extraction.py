"""Printable-text scraping from raw spool file bytes."""

from __future__ import annotations

_KEEP = frozenset(range(32, 127)) | {0x09, 0x0A, 0x0D}
_DROP = bytes(b for b in range(256) if b not in _KEEP)


def extract_text(data: bytes) -> str:
    """Return the printable ASCII content of a print job.

    Bytes outside 32-126 (other than tab, newline and carriage return) are
    dropped rather than replaced, so text embedded in PCL, ESC/POS or other
    binary streams survives as contiguous runs. The result is stripped of
    surrounding whitespace and may be empty.
    """
    return data.translate(None, _DROP).decode("ascii").strip()
