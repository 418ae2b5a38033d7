"""Allocate a listing slug that no other listing uses."""
from __future__ import annotations

from typing import Callable, Optional

from farmdir.errors import SlugExhausted
from farmdir.normalize import SLUG_MAX_LENGTH

MAX_ATTEMPTS = 10_000


def _with_suffix(base: str, n: int) -> str:
    if n < 2:
        return base
    suffix = f"-{n}"
    return base[: SLUG_MAX_LENGTH - len(suffix)].rstrip("-") + suffix


def allocate_slug(
    desired: str,
    exclude_id: Optional[str],
    is_taken: Callable[[str, Optional[str]], bool],
    max_attempts: int = MAX_ATTEMPTS,
) -> str:
    """
    Return desired, or desired-2, desired-3, ... whichever is first free.
    is_taken(slug, exclude_id) must ignore the row identified by exclude_id,
    so a re-synced listing keeps its own slug.
    """
    for n in range(1, max_attempts + 1):
        candidate = _with_suffix(desired, n)
        if not is_taken(candidate, exclude_id):
            return candidate
    raise SlugExhausted(f"No free slug for {desired!r} after {max_attempts} attempts")
