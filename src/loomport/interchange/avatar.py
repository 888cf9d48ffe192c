"""Protagonist suggestion from a story's opening passage.

Twine authors often open with a character sheet such as ``courage: 40``.
:func:`suggest_avatar` reads those pairs as starting resources. Storing the
suggestion is left to whoever owns avatar profiles.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from loomport.interchange.models import Passage
from loomport.keys import slugify

BACKGROUND_LIMIT = 240
RESOURCE_MIN = 0
RESOURCE_MAX = 100

_RESOURCE_RE = re.compile(r"(\w+):\s*(\d{1,3})", re.ASCII)


@dataclass
class AvatarSuggestion:
    """Protagonist derived from the opening passage."""

    name: str
    background: str | None = None
    initial_resources: dict[str, int] = field(default_factory=dict)


def parse_resources(text: str) -> dict[str, int]:
    """Collect ``key: number`` pairs, keyed by slug and clamped to 0-100.

    Examples:
        >>> parse_resources("Courage: 40, Wit: 250")
        {'courage': 40, 'wit': 100}
    """
    resources: dict[str, int] = {}
    for match in _RESOURCE_RE.finditer(text):
        key = slugify(match.group(1))
        if key:
            resources[key] = min(max(int(match.group(2)), RESOURCE_MIN), RESOURCE_MAX)
    return resources


def suggest_avatar(passage: Passage | None) -> AvatarSuggestion | None:
    """Suggest a protagonist named after *passage*, or None without one."""
    if passage is None:
        return None
    return AvatarSuggestion(
        name=passage.name,
        background=passage.text[:BACKGROUND_LIMIT] or None,
        initial_resources=parse_resources(passage.text),
    )
