"""Tolerant parsers for monetary amounts and dates found in CRM exports.

Neither parser raises: unparseable money is 0 and unparseable dates are None,
so one dirty record never aborts an aggregation run.
"""

import math
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

ZERO = Decimal("0")

# Numeric timestamps below this are Unix seconds, otherwise milliseconds
UNIX_MS_THRESHOLD = 10_000_000_000

_EPOCH = datetime(1970, 1, 1)
_MONEY_NOISE = re.compile(r"[^\d,.+\-]")
_LEADING_NUMBER = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)")
_SLASHED_ISO = re.compile(r"^\d{4}/\d{1,2}/\d{1,2}")
_DAY_FIRST = re.compile(r"^(\d{2})/(\d{2})/(\d{4})")

DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d",
)


def _first(value: Any) -> Any:
    """Custom fields often arrive as single-element arrays."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def parse_monetary(value: Any) -> Decimal:
    """
    Parse a monetary value in either decimal-comma or decimal-dot convention.

    Examples:
        "R$ 5.000,00" -> 5000.00
        "1.234,56"    -> 1234.56
        "1,234.56"    -> 1234.56
        "R$ 100"      -> 100
        "garbage"     -> 0
    """
    value = _first(value)
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else ZERO
    if not isinstance(value, str):
        return ZERO

    cleaned = _MONEY_NOISE.sub("", value)
    if not cleaned:
        return ZERO

    has_comma = "," in cleaned
    has_dot = "." in cleaned
    if has_comma and has_dot:
        # Rightmost separator is the decimal point
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif has_comma:
        if cleaned.count(",") == 1:
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")

    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return ZERO
    try:
        return Decimal(match.group())
    except InvalidOperation:
        return ZERO


def _naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_timestamp(value: float) -> Optional[datetime]:
    if not math.isfinite(value):
        return None
    seconds = value if value < UNIX_MS_THRESHOLD else value / 1000
    try:
        return _EPOCH + timedelta(seconds=seconds)
    except OverflowError:
        return None


def _parse_iso(text: str) -> Optional[datetime]:
    candidate = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return _naive(datetime.fromisoformat(candidate))
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text[:19], fmt)
        except ValueError:
            continue
    return None


def _parse_date_string(raw: str) -> Optional[datetime]:
    text = raw.strip()
    if not text:
        return None
    if _SLASHED_ISO.match(text):
        text = text.replace("/", "-")
    if "-" in text:
        parsed = _parse_iso(text)
        if parsed is not None:
            return parsed
    match = _DAY_FIRST.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            return None
    return None


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a raw date into a naive datetime (UTC for timestamps and aware input).
    Returns None, never "now", when nothing usable is present.
    """
    value = _first(value)
    if not value or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        return _from_timestamp(value)
    if isinstance(value, str):
        return _parse_date_string(value)
    return None
