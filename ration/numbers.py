"""Numeric helpers: guarded arithmetic and parsing of free-text feed amounts."""

from __future__ import annotations

import math
import re
from typing import Any

import numpy as np
import pandas as pd

# free-text amount cleanup
THIN_SPACE_PATTERN = re.compile(r"[\s\u00A0\u202F]+")
APOSTROPHE_PATTERN = re.compile(r"[\x27\u2018\u2019]")
UNIT_PATTERN = re.compile(r"(?i)(kg|l)(/d(ay)?)?$")


def safe_num(x: Any, default: float = 0.0) -> float:
    """Coerce ``x`` into a finite float, falling back to ``default``."""
    try:
        v = float(pd.to_numeric(x, errors="coerce"))
    except (TypeError, ValueError):
        return default
    return default if not np.isfinite(v) else v


def safe_divide(numerator: float, denominator: float, fallback: float = 0.0) -> float:
    """Divide, returning ``fallback`` for a zero/non-finite denominator or result."""
    if denominator == 0 or not math.isfinite(denominator):
        return fallback
    result = numerator / denominator
    return result if math.isfinite(result) else fallback


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_feed(kg: float) -> float:
    """Round an as-fed amount to 0.1 kg, never below 0.1 kg for a positive amount."""
    if not math.isfinite(kg) or kg <= 0:
        return 0.0
    return max(0.1, round_half_up(kg, 1))


def parse_amount(raw: Any) -> float | None:
    """Return a kg amount from user text such as ``"3,5"``, ``"'2.0 kg"`` or ``4``.

    Amounts are typed by hand or pasted from spreadsheets, so they arrive with
    decimal commas, a trailing unit, or a leading apostrophe that forces text
    formatting. Those are stripped before coercion. Returns ``None`` when
    nothing numeric is left.
    """

    if raw is None:
        return None
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = float(raw)
        return value if math.isfinite(value) else None

    work = str(raw).strip()
    work = THIN_SPACE_PATTERN.sub("", work)
    work = APOSTROPHE_PATTERN.sub("", work)
    work = UNIT_PATTERN.sub("", work)
    work = work.replace(",", ".")
    if not work:
        return None

    value = safe_num(work, default=float("nan"))
    return None if math.isnan(value) else value


def parse_override(raw: str) -> tuple[str, float]:
    """Split a ``"Feed name=kg"`` argument into its name and amount."""
    if "=" not in raw:
        raise ValueError(f"Expected NAME=KG, got {raw!r}")
    name, _, amount_text = raw.rpartition("=")
    name = name.strip()
    amount = parse_amount(amount_text)
    if not name or amount is None:
        raise ValueError(f"Expected NAME=KG, got {raw!r}")
    return name, amount


__all__ = [
    "parse_amount",
    "parse_override",
    "round_feed",
    "round_half_up",
    "safe_divide",
    "safe_num",
]
