"""Common utilities for processing stored segment and telemetry records.

Shared functions for null-safe statistics, field resolution, and date/timestamp
conversion.
"""
from __future__ import annotations

import math
import statistics
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

_MS_PER_DAY = 24 * 60 * 60 * 1000


# ------------------------------------------------------------------------------
# Numeric helpers
# ------------------------------------------------------------------------------

def to_finite_number(v: Any) -> Optional[float]:
    """Coerce numbers and numeric strings to float; None if not finite."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        num = float(v)
    elif isinstance(v, str):
        s = v.strip()
        if not s:
            return None
        try:
            num = float(s)
        except ValueError:
            return None
    else:
        return None
    return num if math.isfinite(num) else None


def _finite(values: Iterable[Any]) -> List[float]:
    out: List[float] = []
    for v in values or ():
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            continue
        if math.isfinite(v):
            out.append(float(v))
    return out


def average(values: Iterable[Any]) -> Optional[float]:
    nums = _finite(values)
    if not nums:
        return None
    return statistics.fmean(nums)


def median(values: Iterable[Any]) -> Optional[float]:
    nums = _finite(values)
    if not nums:
        return None
    return statistics.median(nums)


def variance(values: Iterable[Any]) -> Optional[float]:
    """Population variance; None for fewer than two finite values."""
    nums = _finite(values)
    if len(nums) < 2:
        return None
    return statistics.pvariance(nums)


def quantile(values: Iterable[Any], q: float = 0.5) -> Optional[float]:
    """Linear interpolation between the closest ranks of the sorted values."""
    nums = sorted(_finite(values))
    if not nums:
        return None
    pos = (len(nums) - 1) * q
    base = math.floor(pos)
    rest = pos - base
    if base + 1 < len(nums):
        return nums[base] + rest * (nums[base + 1] - nums[base])
    return nums[base]


def round_number(value: Any, decimals: int = 4) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return round(float(value), decimals)


# ------------------------------------------------------------------------------
# Field resolution
# ------------------------------------------------------------------------------

def as_key(v: Any) -> Optional[str]:
    """Return a usable identifier (non-empty string or integer) as str, else None."""
    if isinstance(v, str):
        s = v.strip()
        return s or None
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return None


def resolve_field(
    record: Mapping[str, Any],
    candidates: Sequence[str],
    coerce: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """Return the first candidate field that is present and coerces to a value.

    ``coerce`` returns None for values of the wrong type; those candidates are
    skipped. Without ``coerce`` any non-None value is accepted.
    """
    for name in candidates:
        if name not in record:
            continue
        v = record[name]
        if coerce is not None:
            v = coerce(v)
        if v is not None:
            return v
    return None


def timestamp_to_ms(v: Any) -> Optional[float]:
    """Convert a structured timestamp to epoch milliseconds.

    Accepts datetimes (naive values are treated as UTC) and exported
    ``{"seconds": .., "nanoseconds": ..}`` / ``{"_seconds": .., "_nanoseconds": ..}``
    mappings.
    """
    if isinstance(v, datetime):
        dt = v if v.tzinfo else v.replace(tzinfo=timezone.utc)
        return dt.timestamp() * 1000.0
    if isinstance(v, Mapping):
        secs = to_finite_number(v.get("seconds", v.get("_seconds")))
        if secs is None:
            return None
        nanos = to_finite_number(v.get("nanoseconds", v.get("_nanoseconds"))) or 0.0
        return secs * 1000.0 + nanos / 1e6
    return None


# ------------------------------------------------------------------------------
# Dates
# ------------------------------------------------------------------------------

def parse_report_date(value: str) -> date:
    """Parse a YYYY-MM-DD string. Raises ValueError on anything else."""
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def shift_days(day: date, days: int) -> date:
    return day - timedelta(days=days)


def day_start_ms(day: date) -> int:
    """Epoch milliseconds of 00:00:00 UTC on ``day``."""
    dt = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def lookback_cutoff_ms(day: date, lookback_days: int) -> int:
    return day_start_ms(day) - lookback_days * _MS_PER_DAY


def ms_to_datetime(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)
