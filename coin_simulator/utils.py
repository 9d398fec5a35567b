# coin_simulator/utils.py

import math
import uuid
from datetime import datetime, timezone
from typing import Any


def is_finite(value: Any) -> bool:
    """True for real numbers that are neither NaN nor infinite."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def safe_float(value: Any, default: float | None = None) -> float | None:
    """Safely convert a value to a finite float, returning default on failure."""
    if value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if math.isfinite(result) else default


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def in_open_range(value: Any, low: float, high: float) -> bool:
    """Finite and strictly inside (low, high)."""
    return is_finite(value) and low < value < high


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    return uuid.uuid4().hex
