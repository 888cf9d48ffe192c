"""Canonical story graph payload schema.

A converted story is a set of nodes, paths and transitions:

- A node is one unit of narrative content.
- A path is a named class of outgoing edge (a choice, or the terminal
  "End" connector) rather than a single traversal.
- A transition is one directed edge instance: source node, path, optional
  destination node, and the ordering of sibling choices.

The payload is the contract between the converter and persistence; the
converter validates against it before returning.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

SLUG_PATTERN = r"^[a-zA-Z0-9-]+$"


class NodeType(StrEnum):
    """Role of a node in the story graph."""

    NARRATIVE = "NARRATIVE"
    DECISION = "DECISION"
    RESOLUTION = "RESOLUTION"


class Visibility(StrEnum):
    PRIVATE = "PRIVATE"
    UNLISTED = "UNLISTED"
    PUBLIC = "PUBLIC"


class StoryNode(BaseModel):
    """A canonical node, keyed uniquely within its story."""

    key: str = Field(min_length=1)
    title: str | None = None
    synopsis: str | None = None
    type: NodeType | None = None
    content: Any = None
    media: Any = None


class StoryPath(BaseModel):
    """A canonical path (edge class)."""

    key: str = Field(min_length=1)
    label: str | None = Field(default=None, min_length=1)
    summary: str | None = None
    metadata: Any = None


class StoryTransition(BaseModel):
    """A directed edge from one node through a path to an optional node.

    Serialized with ``from``/``to`` keys; ``to`` is absent for terminal
    transitions.
    """

    model_config = ConfigDict(populate_by_name=True)

    from_key: str = Field(alias="from", min_length=1)
    path: str = Field(min_length=1)
    to_key: str | None = Field(default=None, alias="to")
    ordering: int | None = None
    condition: Any = None
    effect: Any = None


class StoryPayload(BaseModel):
    """A complete converted story, ready for persistence."""

    slug: str = Field(min_length=1, pattern=SLUG_PATTERN)
    title: str = Field(min_length=1)
    summary: str | None = None
    tags: list[str] = Field(default_factory=list)
    visibility: Visibility = Visibility.PRIVATE
    nodes: list[StoryNode] = Field(min_length=1)
    paths: list[StoryPath] = Field(min_length=1)
    transitions: list[StoryTransition] = Field(min_length=1)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with wire names (``from``/``to``), dropping unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ImportOverrides(BaseModel):
    """Caller-supplied values that take precedence over derived ones."""

    slug: str | None = Field(default=None, min_length=1, pattern=SLUG_PATTERN)
    title: str | None = Field(default=None, min_length=1)
    summary: str | None = None
    tags: list[str] | None = None
    visibility: Visibility | None = None
