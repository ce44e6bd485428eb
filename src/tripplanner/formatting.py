"""Formatting and form-input helpers for trip data."""

from __future__ import annotations

import math
import re
from datetime import date
from typing import Optional, Union
from uuid import uuid4

NumberLike = Union[int, float]

CAPACITY_MIN = 1
CAPACITY_MAX = 200
PRICE_MIN = 0.0
PRICE_MAX = 100_000.0

_WEEKDAYS_DE = ("Mo", "Di", "Mi", "Do", "Fr", "Sa", "So")
_LEADING_INT = re.compile(r"^\s*[-+]?\d+")
_LEADING_FLOAT = re.compile(r"^\s*[-+]?(\d+([.,]\d*)?|[.,]\d+)")


def clamp(value: NumberLike, minimum: NumberLike, maximum: NumberLike) -> NumberLike:
    return max(minimum, min(maximum, value))


def parse_capacity(raw: Optional[str]) -> Optional[int]:
    """Parse the admin form capacity; blank means "no limit", junk is clamped."""

    text = (raw or "").strip()
    if not text:
        return None
    match = _LEADING_INT.match(text)
    number = int(match.group(0)) if match else 0
    return int(clamp(number, CAPACITY_MIN, CAPACITY_MAX))


def parse_price(raw: Optional[str]) -> Optional[float]:
    """Parse the admin form price in euro; blank means "free / not priced"."""

    text = (raw or "").strip()
    if not text:
        return None
    match = _LEADING_FLOAT.match(text)
    number = float(match.group(0).replace(",", ".")) if match else 0.0
    if not math.isfinite(number):
        number = 0.0
    return float(clamp(number, PRICE_MIN, PRICE_MAX))


def format_eur(value: Optional[NumberLike]) -> str:
    """Return ``value`` as whole euros (e.g. ``50€``)."""

    amount = value if isinstance(value, (int, float)) and math.isfinite(value) else 0
    return f"{amount:.0f}€"


def format_day_label(iso_day: str) -> str:
    """Return a short German day label such as ``Di., 01.09.``."""

    day = date.fromisoformat(iso_day)
    return f"{_WEEKDAYS_DE[day.weekday()]}., {day.day:02d}.{day.month:02d}."


def format_time_range(start: str, end: str) -> str:
    start = (start or "").strip()
    end = (end or "").strip()
    if start and end:
        return f"{start}–{end}"
    return start or (f"–{end}" if end else "")


def new_event_id() -> str:
    return f"evt_{uuid4()}"


__all__ = [
    "CAPACITY_MAX",
    "CAPACITY_MIN",
    "PRICE_MAX",
    "PRICE_MIN",
    "clamp",
    "format_day_label",
    "format_eur",
    "format_time_range",
    "new_event_id",
    "parse_capacity",
    "parse_price",
]
