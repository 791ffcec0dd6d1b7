"""Normalization helpers.

Centralizes defensive parsing and placeholder handling.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

# Placeholder strings some feeds send for "not available".
_SENTINELS = frozenset({"", "--", "NaN", "nan", "null"})


def safe_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip() in _SENTINELS:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    """Integral values only; ``2.0`` parses, ``2.9`` is ``None`` rather than truncated."""
    parsed = safe_float(value)
    if parsed is None or not parsed.is_integer():
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def parse_coordinates(value: Any) -> tuple[float, float] | None:
    """Parse a ``[lat, lon]`` pair into a float tuple.

    Accepts sequences and ``{"lat": .., "lon"/"lng": ..}`` mappings. Returns
    ``None`` for anything that is not a finite, in-range coordinate.
    """
    lat: float | None
    lon: float | None
    if isinstance(value, dict):
        lat = safe_float(value.get("lat", value.get("latitude")))
        lon = safe_float(value.get("lon", value.get("lng", value.get("longitude"))))
    elif isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and len(value) >= 2:
        lat = safe_float(value[0])
        lon = safe_float(value[1])
    else:
        return None

    if lat is None or lon is None:
        return None
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
        return None
    return lat, lon


def to_int_set(value: Any) -> frozenset[int]:
    """Coerce a scalar or list of vehicle types into a frozen set of ints."""
    if value is None:
        return frozenset()
    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    parsed = (safe_int(item) for item in items)
    return frozenset(item for item in parsed if item is not None)
