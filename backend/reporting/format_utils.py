"""Consistent formatting for document numbers, money, mileage and dates. Never render raw floats."""
from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any

NOT_AVAILABLE = "N/A"

# (length threshold, font size) pairs checked longest first; base size otherwise.
FONT_SHRINK_RULES: dict[str, tuple[tuple[int, int], ...]] = {
    "vin": ((20, 8), (17, 10)),
    "make": ((18, 8), (12, 10)),
    "address": ((60, 8), (40, 10)),
}
BASE_FONT_SIZE = 12


def _parse_amount(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    text = str(value).strip().replace("$", "").replace(",", "")
    if not text:
        return None
    try:
        parsed = float(text)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def is_present_amount(value: Any) -> bool:
    return _parse_amount(value) is not None


def coerce_amount(value: Any) -> float:
    """Numeric value for arithmetic; empty or non-numeric input counts as 0."""
    parsed = _parse_amount(value)
    return 0.0 if parsed is None else parsed


def format_money(value: float) -> str:
    """$#,##0"""
    rounded = round(value)
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,.0f}"


def display_money(value: Any) -> str:
    """Display-only money: `N/A` when the value is absent."""
    parsed = _parse_amount(value)
    return NOT_AVAILABLE if parsed is None else format_money(parsed)


def format_number(value: float) -> str:
    """#,##0"""
    return f"{round(value):,.0f}"


def format_mileage(value: Any) -> str:
    parsed = _parse_amount(value)
    return NOT_AVAILABLE if parsed is None else format_number(parsed)


def format_percent(value: Any, precision: int = 2) -> str:
    parsed = _parse_amount(value)
    if parsed is None:
        return NOT_AVAILABLE
    # Rates are stored either as fractions (0.05) or as percents (5).
    pct = parsed * 100 if abs(parsed) <= 1 else parsed
    return f"{pct:,.{precision}f}%"


def _as_date(d: Any) -> date | None:
    if d is None:
        return None
    if isinstance(d, datetime):
        return d.date()
    if isinstance(d, date):
        return d
    text = str(d).strip()
    if not text:
        return None
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%m.%d.%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    return None


def format_date_short(d: Any) -> str:
    """en-US locale date string, e.g. 10/19/2026."""
    parsed = _as_date(d)
    if parsed is None:
        return str(d or "").strip() or NOT_AVAILABLE
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def format_date_long(d: Any) -> str:
    """e.g. October 19, 2026."""
    parsed = _as_date(d)
    if parsed is None:
        return str(d or "").strip() or NOT_AVAILABLE
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def fit_font_size(field: str, text: str | None, base: int = BASE_FONT_SIZE) -> int:
    """Font size that keeps a long value inside its fixed-width field box."""
    length = len(text or "")
    for threshold, size in FONT_SHRINK_RULES.get(field, ()):
        if length > threshold:
            return size
    return base
