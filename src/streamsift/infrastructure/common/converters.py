"""Lenient conversions for loosely-typed upstream JSON fields."""

from __future__ import annotations

import math
from typing import Any


def to_int(raw: Any) -> int | None:
    """Convert a count-like JSON value to a non-negative int.

    Handles ``123``, ``12.0``, ``"12.5"``, ``"1,234"`` and ``"1 234"``;
    fractions are truncated.  Booleans, negatives, NaN and anything
    unparseable become ``None``.
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, int):
        return raw if raw >= 0 else None

    if isinstance(raw, float):
        if math.isnan(raw) or math.isinf(raw) or raw < 0:
            return None
        return int(raw)

    if isinstance(raw, str):
        # Thousands separators only; the sign and decimal point are kept.
        txt = "".join(raw.replace(",", "").split())
        try:
            return to_int(float(txt))
        except ValueError:
            return None

    return None


def to_float(raw: Any) -> float | None:
    """Convert a size-like JSON value to a non-negative float."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(value) or math.isinf(value) or value < 0:
        return None
    return value


def to_str(raw: Any) -> str | None:
    """Return a stripped non-empty string, or None."""
    if not isinstance(raw, str):
        return None
    stripped = raw.strip()
    return stripped or None
