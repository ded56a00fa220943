"""Numeric parsing and display formatting shared by every extraction tier."""

from __future__ import annotations

import math
import re
from typing import Any

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_LEADING_FLOAT = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)")


def extract_number(text: str | None) -> float | None:
    """Parse a figure out of a table cell.

    Everything except digits, ``.`` and ``-`` is dropped before parsing, so
    accounting parentheses are removed without negating the value:
    ``"$(1,234.56)"`` parses to ``1234.56``.  The longest leading numeric
    prefix wins (``"1.2.3"`` → ``1.2``); no prefix → ``None``.
    """
    if not text:
        return None
    cleaned = _NON_NUMERIC.sub("", str(text))
    m = _LEADING_FLOAT.match(cleaned)
    if m is None:
        return None
    return float(m.group(0))


def _is_number(v: Any) -> bool:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return False
    return not math.isnan(v)


def format_number(value: Any) -> str:
    """Format a number with thousands separators and an m/b suffix.

    1234567 → "1.23m", 1500000000 → "1.50b", 1234 → "1,234".
    None / NaN / non-numeric → "N/A".
    """
    if not _is_number(value):
        return "N/A"
    av = abs(value)
    if av >= 1e9:
        return f"{value / 1e9:,.2f}b"
    if av >= 1e6:
        return f"{value / 1e6:,.2f}m"
    text = f"{value:,.2f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_money(value: Any, currency: str) -> str:
    """``"1.23m TWD"`` style label for an original-currency amount."""
    return f"{format_number(value)} {currency}"


def format_usd(value: Any) -> str:
    """``"$1.23m"`` style label for a USD amount."""
    return f"${format_number(value)}"
