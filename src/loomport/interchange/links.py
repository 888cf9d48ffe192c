"""Twine link syntax extraction.

Twine passage text marks links with double brackets:

- ``[[Target]]`` - label and target are the same
- ``[[Label->Target]]`` - arrow form
- ``[[Label|Target]]`` - pipe form
"""

from __future__ import annotations

import re

from loomport.interchange.models import Link

LINK_RE = re.compile(r"\[\[([^\[\]]+)\]\]")

_SEPARATORS = ("->", "|")


def _split_link(interior: str) -> tuple[str, str]:
    """Split a link interior into ``(label, target)``."""
    for separator in _SEPARATORS:
        if separator in interior:
            label, _, target = interior.partition(separator)
            return label.strip(), target.strip()
    return interior, interior


def extract_links(text: object) -> list[Link]:
    """Return the links in *text* in order of appearance.

    Never raises: non-string text or text without link syntax yields an
    empty list. Empty interiors and links without a target are skipped.
    """
    if not isinstance(text, str) or "[[" not in text:
        return []

    links: list[Link] = []
    for match in LINK_RE.finditer(text):
        interior = match.group(1).strip()
        if not interior:
            continue
        label, target = _split_link(interior)
        if not target:
            continue
        links.append(Link(name=label, link=target, text=label))
    return links
