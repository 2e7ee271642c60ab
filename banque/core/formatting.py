"""fr-FR number parsing and formatting.

User-entered amounts arrive as French-formatted strings ("200 000 €",
"8 %", "1 234,56"). Parsing never raises: anything unusable becomes 0.0.
"""

from __future__ import annotations

import math
import re
from typing import Any

# \s covers regular, no-break (U+00A0) and narrow no-break (U+202F) spaces
_SPACES = re.compile(r"\s+")
_SYMBOLS = re.compile(r"[€%]|EUR", re.IGNORECASE)
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")

NBSP = "\u00a0"
NNBSP = "\u202f"


def parse_number_fr(raw: Any) -> float:
    """Parse a French-formatted number string into a float.

    Strips spaces, currency and percent symbols; the comma is the decimal
    separator. When both '.' and ',' appear, '.' is read as a thousands
    separator ("1.234,56" -> 1234.56).

    Args:
        raw: String, number or None

    Returns:
        Parsed value, or 0.0 when empty, unparsable or not finite
    """
    if raw is None or isinstance(raw, bool):
        return 0.0

    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else 0.0

    if not isinstance(raw, str):
        return 0.0

    cleaned = _SYMBOLS.sub("", _SPACES.sub("", raw))
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".")

    if not _NUMBER.match(cleaned):
        return 0.0

    value = float(cleaned)
    return value if math.isfinite(value) else 0.0


def round2(value: float) -> float:
    """Round to 2 decimals (boundary rounding for published metrics)."""
    return round(value, 2) + 0.0  # normalizes -0.0


def format_eur(value: float | None, decimals: int = 0) -> str:
    """Format an amount as fr-FR euros, e.g. 235000 -> '235 000 €'."""
    if value is None:
        return "—"
    text = f"{value:,.{decimals}f}"
    text = text.replace(",", NNBSP).replace(".", ",")
    return f"{text}{NBSP}€"


def format_pct(value: float | None, decimals: int = 2) -> str:
    """Format a percentage as fr-FR, e.g. 14.893 -> '14,89 %'."""
    if value is None:
        return "—"
    return f"{value:.{decimals}f}".replace(".", ",") + f"{NBSP}%"
