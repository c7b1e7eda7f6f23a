"""Parsing utilities for size strings."""

from __future__ import annotations

import re

_SIZE_RE = re.compile(r"([\d.]+)\s*([KMGT]?B)")

_MULTIPLIERS: dict[str, int] = {
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
}


def parse_size_to_bytes(size_str: str | None) -> int | None:
    """Parse a size string to bytes.

    Supports formats:
        - "1234" (raw bytes)
        - "4.5 GB"
        - "500 MB"
        - "1.2 TB"

    Returns None when nothing size-like is found.
    """
    if not size_str:
        return None

    text = size_str.upper().strip()
    if text.isdigit():
        return int(text)

    match = _SIZE_RE.search(text)
    if not match:
        return None

    try:
        value = float(match.group(1))
    except ValueError:
        return None
    return int(value * _MULTIPLIERS.get(match.group(2), 1))
