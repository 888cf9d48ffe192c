"""Twison to canonical story graph conversion.

Conversion runs in two passes over the repaired passages:

1. Assign every passage a unique node key (slugified name, de-duplicated
   with :class:`KeyArena`) and record the passage-name to node-key map.
2. Resolve each passage's links against that map, infer the node type
   from the links that survived, and synthesize paths and transitions.

Links whose target does not name a known passage are dropped rather than
failing the whole conversion. Node types are computed from the *resolved*
link count, so a passage whose only links are dangling becomes a
``RESOLUTION`` with a terminal transition, never a ``DECISION`` with nowhere
to go.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from loomport.errors import ConversionError, PayloadSchemaError
from loomport.keys import KeyArena, slugify
from loomport.graph.models import ImportOverrides, NodeType, StoryPayload, Visibility
from loomport.interchange.models import StoryDocument
from loomport.interchange.repair import repair_document
from loomport.observability.logging import get_logger

if TYPE_CHECKING:
    from loomport.interchange.models import Link, Passage

log = get_logger(__name__)

DEFAULT_SLUG = "twine-story"
DEFAULT_TITLE = "Imported Twine Story"
SYNOPSIS_MAX_LENGTH = 160
SUMMARY_MAX_LENGTH = 250
END_PATH_SUFFIX = "end"
END_PATH_LABEL = "End"
DEFAULT_CHOICE_KEY = "choice"
DEFAULT_CHOICE_LABEL = "Continue"


@dataclass
class ResolvedLink:
    """A link whose target names a known passage."""

    link: Link
    ordering: int
    to_key: str


def infer_node_type(resolved_link_count: int, has_decision_tag: bool) -> NodeType:
    """Classify a node from its resolved outgoing links and decision tag.

    A node with nowhere to go is a ``RESOLUTION`` even when tagged as a
    decision.
    """
    if resolved_link_count == 0:
        return NodeType.RESOLUTION
    if has_decision_tag or resolved_link_count > 1:
        return NodeType.DECISION
    return NodeType.NARRATIVE


def resolve_slug(document: StoryDocument, override: str | None = None) -> str:
    """Return the story slug a conversion of *document* will use."""
    if override:
        return override
    return slugify(document.name) or DEFAULT_SLUG


def resolve_title(document: StoryDocument, override: str | None = None) -> str:
    """Return the story title a conversion of *document* will use."""
    return override or document.name or DEFAULT_TITLE


def make_synopsis(text: str) -> str | None:
    """First two lines of *text*, joined and truncated; None when blank."""
    lines = text.strip().split("\n")[:2]
    synopsis = " ".join(lines)[:SYNOPSIS_MAX_LENGTH]
    return synopsis or None


def resolve_links(passage: Passage, node_keys: Mapping[str, str]) -> list[ResolvedLink]:
    """Keep the links of *passage* that point at known passages.

    ``ordering`` is the link's position in the passage's full link list, so
    sibling order follows the source even when earlier links were dropped.
    """
    resolved: list[ResolvedLink] = []
    for index, link in enumerate(passage.links):
        to_key = node_keys.get(link.target)
        if to_key is None:
            log.debug("dangling_link_dropped", passage=passage.name, target=link.target)
            continue
        resolved.append(ResolvedLink(link=link, ordering=index, to_key=to_key))
    return resolved


def _choice_path_key(from_key: str, link: Link) -> str:
    slug = (
        slugify(link.text or link.name or link.link or "")
        or slugify(link.target)
        or DEFAULT_CHOICE_KEY
    )
    return f"{from_key}__{slug}"


def _build_node(passage: Passage, key: str, node_type: NodeType) -> dict[str, Any]:
    text = passage.text.strip()
    node: dict[str, Any] = {
        "key": key,
        "title": passage.name,
        "synopsis": make_synopsis(text),
        "type": node_type,
        "content": {
            "text": text,
            "tags": list(passage.tags),
            "metadata": {
                "pid": passage.pid,
                "position": passage.position,
                "raw": passage.to_dict(),
            },
        },
    }
    if passage.metadata and passage.metadata.get("media") is not None:
        node["media"] = passage.metadata["media"]
    return node


def _derive_summary(
    document: StoryDocument, nodes: list[dict[str, Any]], override: str | None
) -> str:
    if override is not None:
        return override
    if document.description:
        return document.description
    synopses = [node["synopsis"] for node in nodes if node.get("synopsis")]
    return " ".join(synopses[:2])[:SUMMARY_MAX_LENGTH]


def convert_document(
    document: StoryDocument | Any,
    overrides: ImportOverrides | Mapping[str, Any] | None = None,
) -> StoryPayload:
    """Convert a Twison document into a canonical story payload.

    Args:
        document: A repaired document. Anything else is repaired first.
        overrides: Slug, title, summary, tags and visibility that take
            precedence over values derived from the document.

    Returns:
        The validated payload.

    Raises:
        ConversionError: If the document has no passages.
        PayloadSchemaError: If the assembled payload violates the schema.
    """
    if not isinstance(document, StoryDocument):
        document = repair_document(document)
    if overrides is None:
        overrides = ImportOverrides()
    elif not isinstance(overrides, ImportOverrides):
        overrides = ImportOverrides.model_validate(overrides)

    passages = document.passages
    if not passages:
        raise ConversionError("Twine story does not contain any passages.")

    # First pass: node keys.
    node_arena = KeyArena()
    node_keys: dict[str, str] = {}
    for passage in passages:
        node_keys[passage.name] = node_arena.claim(slugify(passage.name))

    # Second pass: nodes, paths, transitions.
    nodes: list[dict[str, Any]] = []
    paths: dict[str, dict[str, Any]] = {}
    transitions: list[dict[str, Any]] = []

    for passage in passages:
        from_key = node_keys[passage.name]
        resolved = resolve_links(passage, node_keys)
        nodes.append(
            _build_node(passage, from_key, infer_node_type(len(resolved), passage.has_decision_tag))
        )

        if not resolved:
            path_key = f"{from_key}__{END_PATH_SUFFIX}"
            paths[path_key] = {
                "key": path_key,
                "label": END_PATH_LABEL,
                "metadata": {"ending": True},
            }
            transitions.append({"from": from_key, "path": path_key, "to": None, "ordering": 0})
            continue

        for item in resolved:
            link = item.link
            path_key = _choice_path_key(from_key, link)
            if path_key not in paths:
                paths[path_key] = {
                    "key": path_key,
                    "label": link.label or DEFAULT_CHOICE_LABEL,
                    "metadata": {"label": link.name, "target": link.link},
                }
            transitions.append(
                {
                    "from": from_key,
                    "path": path_key,
                    "to": item.to_key,
                    "ordering": item.ordering,
                }
            )

    payload = {
        "slug": resolve_slug(document, overrides.slug),
        "title": resolve_title(document, overrides.title),
        "summary": _derive_summary(document, nodes, overrides.summary),
        "tags": overrides.tags if overrides.tags is not None else list(document.tags),
        "visibility": overrides.visibility or Visibility.PRIVATE,
        "nodes": nodes,
        "paths": list(paths.values()),
        "transitions": transitions,
    }

    try:
        result = StoryPayload.model_validate(payload)
    except ValidationError as e:
        raise PayloadSchemaError(str(e)) from e

    log.info(
        "document_converted",
        slug=result.slug,
        nodes=len(result.nodes),
        paths=len(result.paths),
        transitions=len(result.transitions),
    )
    return result
