"""Slug and unique-key helpers shared by the repairer and the converter.

Passage names (during repair) and node keys (during conversion) are made
unique the same way: try ``base``, ``base-1``, ``base-2``, ... against the
set of keys already handed out.
"""

from __future__ import annotations

import re
from collections.abc import Callable

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")
_DASH_RUN_RE = re.compile(r"-{2,}")


def slugify(value: str) -> str:
    """Lowercase *value* and collapse every non-alphanumeric run to ``-``.

    Leading and trailing dashes are stripped, so the result may be empty.

    Examples:
        >>> slugify("Talk to Nurse!")
        'talk-to-nurse'
        >>> slugify("???")
        ''
    """
    slug = _NON_SLUG_RE.sub("-", value.lower())
    return _DASH_RUN_RE.sub("-", slug.strip("-"))


def numbered_candidate(base: str, attempt: int) -> str:
    """Default candidate rule: ``base`` first, then ``base-1``, ``base-2``, ..."""
    return base if attempt == 0 else f"{base}-{attempt}"


class KeyArena:
    """Hands out keys that are unique within one arena.

    Args:
        fallback: Base used when the requested base is empty.
        candidate: Rule producing the n-th candidate for a base.
    """

    def __init__(
        self,
        fallback: str = "node",
        candidate: Callable[[str, int], str] = numbered_candidate,
    ) -> None:
        self._used: set[str] = set()
        self._fallback = fallback
        self._candidate = candidate

    def claim(self, base: str) -> str:
        """Reserve and return the first unused candidate for *base*."""
        base = base or self._fallback
        attempt = 0
        key = self._candidate(base, attempt)
        while key in self._used:
            attempt += 1
            key = self._candidate(base, attempt)
        self._used.add(key)
        return key
