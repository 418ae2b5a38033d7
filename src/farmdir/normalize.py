"""Normalize Zoho CRM field values into listing column values.

Zoho sends multi-select picklists as arrays (or already-joined strings),
yes/no fields as free text, and price ranges as prose like "$39 - $89".
Every function here is pure and never raises on odd input: unknown values
degrade to None.
"""
from __future__ import annotations

import json
import math
import re
from typing import Any, Optional, Sequence

SLUG_MAX_LENGTH = 120

TRUE_WORDS = ("true", "yes", "1")
FALSE_WORDS = ("false", "no", "0")

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def to_delimited_list(value: Any) -> Optional[str]:
    """Join a list as "a, b, c"; pass strings through; None stays None."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, Sequence):
        return ", ".join(str(v) for v in value)
    return str(value)


def split_delimited_list(value: Any) -> list[str]:
    """Inverse of to_delimited_list for reads. Also accepts a JSON array string."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        text = str(value).strip()
        if not text:
            return []
        items = None
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                items = parsed
        if items is None:
            items = text.split(",")
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def parse_tri_state(value: Any) -> Optional[bool]:
    """yes/true/1 -> True, no/false/0 -> False, anything else -> None (unknown)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_WORDS:
        return True
    if text in FALSE_WORDS:
        return False
    return None


def parse_price_range(text: Any) -> tuple[Optional[float], Optional[float]]:
    """
    Extract every number in the text and return (min, max).
    "Contact for pricing" -> (None, None); "$50" -> (50.0, 50.0).
    """
    if text is None:
        return None, None
    numbers = [float(m) for m in _NUMBER_RE.findall(str(text))]
    if not numbers:
        return None, None
    return min(numbers), max(numbers)


def to_slug(text: Any) -> str:
    """Lowercase, collapse non-alphanumerics to '-', trim hyphens, cap at 120 chars."""
    if not text:
        return ""
    slug = _NON_SLUG_RE.sub("-", str(text).lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH]


def to_number_or_null(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    # "NaN", "inf" and "Infinity" parse as floats but are not usable values.
    return number if math.isfinite(number) else None


def to_int_or_null(value: Any) -> Optional[int]:
    number = to_number_or_null(value)
    return int(number) if number is not None else None


def empty_to_none(value: Any) -> Any:
    """Zoho returns '' for cleared text fields; store NULL instead."""
    if isinstance(value, str) and not value.strip():
        return None
    return value
