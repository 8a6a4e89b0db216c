"""Depth value parsing, normalisation and material name sanitisation."""

from __future__ import annotations

import math
import re
from typing import Any, Literal

DepthUnit = Literal["feet", "meters"]

FEET_PER_METER = 3.28084

_DEPTH_TEXT = re.compile(
    r"^\s*(?P<number>[-+]?(\d+(\.\d*)?|\.\d+))\s*"
    r"(?P<unit>ft|feet|foot|'|m|meters?|metres?)?\s*$",
    re.IGNORECASE,
)
_METER_UNIT = re.compile(r"\b(m|meters?|metres?)\b", re.IGNORECASE)
_DISALLOWED_MATERIAL_CHARS = re.compile(r"[^\w\s\-.]")
_WHITESPACE = re.compile(r"\s+")


def unit_from_header(header: str | None) -> DepthUnit:
    """Infer the depth unit from header text; anything not metric is feet."""
    if header and _METER_UNIT.search(header):
        return "meters"
    return "feet"


def unit_from_suffix(suffix: str | None) -> DepthUnit | None:
    if not suffix:
        return None
    return "meters" if suffix.lower().startswith("m") else "feet"


def parse_depth_value(value: Any) -> tuple[float | None, DepthUnit | None]:
    """Coerce a raw cell value into ``(depth, unit_suffix)``.

    Returns ``(None, None)`` for blanks, booleans, non-numeric text and
    non-finite numbers.
    """
    if value is None or isinstance(value, bool):
        return None, None
    if isinstance(value, (int, float)):
        number = float(value)
        return (number, None) if math.isfinite(number) else (None, None)

    match = _DEPTH_TEXT.match(str(value))
    if not match:
        return None, None
    number = float(match.group("number"))
    if not math.isfinite(number):
        return None, None
    return number, unit_from_suffix(match.group("unit"))


def is_numeric(value: Any) -> bool:
    depth, _ = parse_depth_value(value)
    return depth is not None


def normalize_depth(value: Any, unit: DepthUnit = "feet", max_depth: float = 10000.0) -> float:
    """Validate a depth and convert it to feet, rounded to 2 decimals.

    Raises:
        ValueError: if the depth is non-numeric, non-finite, negative, or
            larger than ``max_depth`` in its source unit.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Invalid depth: {value!r} is not a number")
    depth = float(value)
    if not math.isfinite(depth):
        raise ValueError(f"Invalid depth: {value!r} is not finite")
    if depth < 0:
        raise ValueError(f"Invalid depth: {depth} is negative")
    if depth > max_depth:
        raise ValueError(f"Invalid depth: {depth} exceeds maximum of {max_depth:g}")
    if unit == "meters":
        depth *= FEET_PER_METER
    return round(depth, 2)


def sanitize_material(name: Any, max_length: int = 100) -> str:
    """Reduce a material name to its canonical stored form."""
    if name is None:
        raise ValueError("Material name is required")
    cleaned = _DISALLOWED_MATERIAL_CHARS.sub("", str(name).strip())
    cleaned = _WHITESPACE.sub(" ", cleaned).strip().lower()
    if not cleaned:
        raise ValueError("Material name is empty after sanitisation")
    if len(cleaned) > max_length:
        raise ValueError(f"Material name too long (max {max_length} characters)")
    return cleaned


def validate_depth_sequence(depths: list[float]) -> list[str]:
    """Return warnings about the shape of an extracted depth column."""
    warnings: list[str] = []
    if not depths:
        return warnings

    negatives = [d for d in depths if d < 0]
    if negatives:
        warnings.append(f"Found {len(negatives)} negative depth values")

    increasing = sum(1 for a, b in zip(depths, depths[1:]) if b > a)
    decreasing = sum(1 for a, b in zip(depths, depths[1:]) if b < a)
    if increasing and decreasing:
        ratio = min(increasing, decreasing) / max(increasing, decreasing)
        if ratio > 0.2:
            warnings.append("Depth sequence has inconsistent direction changes")

    duplicates = len(depths) - len(set(depths))
    if duplicates:
        warnings.append(f"Found {duplicates} duplicate depth values")

    ordered = sorted(depths)
    intervals = [b - a for a, b in zip(ordered, ordered[1:])]
    if intervals:
        average = sum(intervals) / len(intervals)
        large = [i for i in intervals if i > average * 3]
        if large:
            warnings.append(f"Found {len(large)} unusually large gaps in depth sequence")

    return warnings


def depth_resolution(depths: list[float]) -> float | None:
    """Most common positive interval between sorted depths."""
    ordered = sorted(set(depths))
    intervals = [round(b - a, 2) for a, b in zip(ordered, ordered[1:])]
    if not intervals:
        return None
    counts: dict[float, int] = {}
    for interval in intervals:
        counts[interval] = counts.get(interval, 0) + 1
    return max(counts, key=lambda k: (counts[k], -k))
