"""Twison interchange models.

Twison is the JSON export format for Twine 2 stories. Uploads arrive as
untyped data (``dict[str, Any]`` straight from ``json.loads``); the repairer
turns them into the dataclasses below. Once repaired, a passage cannot hold
the malformed states repair exists to fix: tags are always a list of
strings, links always a list of :class:`Link`, and ``pid`` always an int.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Link:
    """A link descriptor from a Twison passage.

    Twison writes ``name`` (what the reader sees), ``link`` (target passage
    name) and sometimes ``text``. Any of them may be missing on input.
    """

    name: str | None = None
    link: str | None = None
    text: str | None = None

    @property
    def target(self) -> str:
        """Passage name this link points at."""
        return self.link or self.name or self.text or ""

    @property
    def label(self) -> str | None:
        """Reader-facing label, if the source provided one."""
        return self.text or self.name or self.link

    def to_dict(self) -> dict[str, str]:
        return {
            key: value
            for key, value in (("name", self.name), ("link", self.link), ("text", self.text))
            if value is not None
        }


@dataclass
class Passage:
    """A repaired Twison passage."""

    pid: int
    name: str
    text: str = ""
    tags: list[str] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    position: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None

    @property
    def has_decision_tag(self) -> bool:
        return any(tag.lower() == "decision" for tag in self.tags)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "pid": self.pid,
            "name": self.name,
            "text": self.text,
            "tags": list(self.tags),
            "links": [link.to_dict() for link in self.links],
        }
        if self.position is not None:
            data["position"] = dict(self.position)
        if self.metadata is not None:
            data["metadata"] = dict(self.metadata)
        return data


@dataclass
class StoryDocument:
    """A repaired Twison story."""

    name: str
    startnode: int
    passages: list[Passage] = field(default_factory=list)
    description: str | None = None
    tags: list[str] = field(default_factory=list)
    creator: str | None = None
    creator_version: str | None = None
    ifid: str | None = None

    def passage_by_pid(self, pid: int) -> Passage | None:
        return next((p for p in self.passages if p.pid == pid), None)

    @property
    def start_passage(self) -> Passage | None:
        """Passage referenced by ``startnode``, else the first passage."""
        start = self.passage_by_pid(self.startnode)
        if start is None and self.passages:
            return self.passages[0]
        return start

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to Twison-shaped data."""
        data: dict[str, Any] = {
            "name": self.name,
            "startnode": self.startnode,
            "passages": [passage.to_dict() for passage in self.passages],
        }
        if self.description is not None:
            data["description"] = self.description
        if self.tags:
            data["tags"] = list(self.tags)
        if self.creator is not None:
            data["creator"] = self.creator
        if self.creator_version is not None:
            data["creatorVersion"] = self.creator_version
        if self.ifid is not None:
            data["ifid"] = self.ifid
        return data
