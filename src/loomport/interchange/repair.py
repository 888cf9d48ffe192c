"""Repair pass for Twison documents.

Uploads come from many Twine versions and hand-edited exports, so nothing
about their shape can be trusted. :func:`repair_document` accepts anything
and always returns a :class:`StoryDocument`; it never raises.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from typing import Any

from loomport.keys import KeyArena
from loomport.interchange.links import extract_links
from loomport.interchange.models import Link, Passage, StoryDocument
from loomport.observability.logging import get_logger

log = get_logger(__name__)

DEFAULT_STORY_NAME = "Untitled Twine Story"

_TAG_SPLIT_RE = re.compile(r"[\s,]+")


def _placeholder_name(position: int) -> str:
    return f"passage-{position}"


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return None


def _coerce_pid(value: Any) -> int | None:
    """Return *value* as a non-zero int, or None when it is not a usable id.

    Floats count only when they hold a whole number, so ``1.5`` cannot
    collide with pid 1.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value or None
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value) or None
    return None


def normalize_tags(value: Any) -> list[str]:
    """Accept a list as-is, split a delimited string, otherwise return []."""
    if isinstance(value, list):
        return [str(tag) for tag in value if tag is not None]
    if isinstance(value, str):
        return [tag.strip() for tag in _TAG_SPLIT_RE.split(value) if tag.strip()]
    return []


def _coerce_link(entry: Any) -> Link | None:
    if isinstance(entry, Link):
        link = entry
    elif isinstance(entry, Mapping):
        link = Link(
            name=_optional_text(entry.get("name")),
            link=_optional_text(entry.get("link")),
            text=_optional_text(entry.get("text")),
        )
    else:
        return None
    if not (link.link or link.name or link.text):
        return None
    return link


def normalize_links(value: Any, text: str) -> list[Link]:
    """Keep a list of link descriptors, or extract links from passage text.

    Degenerate entries (not a record, or carrying none of ``name``,
    ``link`` and ``text``) are dropped.
    """
    if not isinstance(value, list):
        return extract_links(text)
    links = [_coerce_link(entry) for entry in value]
    return [link for link in links if link is not None]


def _repair_passage(raw: Any, position: int, names: KeyArena) -> Passage:
    if not isinstance(raw, Mapping):
        log.debug("passage_replaced_with_placeholder", position=position)
        return Passage(pid=position, name=names.claim(_placeholder_name(position)))

    declared = raw.get("name")
    base_name = declared.strip() if isinstance(declared, str) else ""
    name = names.claim(base_name or _placeholder_name(position))
    if base_name and name != base_name:
        log.debug("passage_renamed", original=base_name, renamed=name)

    text = raw.get("text")
    text = text if isinstance(text, str) else ""

    position_data = raw.get("position")
    metadata = raw.get("metadata")

    return Passage(
        pid=_coerce_pid(raw.get("pid")) or position,
        name=name,
        text=text,
        tags=normalize_tags(raw.get("tags")),
        links=normalize_links(raw.get("links"), text),
        position=dict(position_data) if isinstance(position_data, Mapping) else None,
        metadata=dict(metadata) if isinstance(metadata, Mapping) else None,
    )


def repair_document(raw: Any) -> StoryDocument:
    """Normalize a raw Twison document.

    Args:
        raw: Parsed upload data of any shape. A :class:`StoryDocument` is
            accepted too and is re-repaired from its serialized form.

    Returns:
        A repaired document with unique passage names, list-typed tags and
        links, numeric passage ids, a story name, and a start node.
    """
    if isinstance(raw, StoryDocument):
        raw = raw.to_dict()
    data: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    raw_passages = data.get("passages")
    if not isinstance(raw_passages, list):
        raw_passages = []

    names = KeyArena()
    passages = [
        _repair_passage(entry, index, names) for index, entry in enumerate(raw_passages, start=1)
    ]

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        name = DEFAULT_STORY_NAME

    startnode = _coerce_pid(data.get("startnode"))
    if startnode is None:
        startnode = passages[0].pid if passages else 1

    description = data.get("description")

    document = StoryDocument(
        name=name,
        startnode=startnode,
        passages=passages,
        description=description if isinstance(description, str) else None,
        tags=normalize_tags(data.get("tags")),
        creator=_optional_text(data.get("creator")),
        creator_version=_optional_text(data.get("creatorVersion")),
        ifid=_optional_text(data.get("ifid")),
    )
    log.debug("document_repaired", name=document.name, passages=len(passages))
    return document
