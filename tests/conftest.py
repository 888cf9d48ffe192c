"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from loomport.graph.sqlite_store import SqliteStoryStore


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def lighthouse_story() -> dict[str, Any]:
    """A small branching Twison story: one choice leading to two endings."""
    return {
        "name": "The Lighthouse",
        "startnode": 1,
        "creator": "Twine",
        "creatorVersion": "2.6.2",
        "passages": [
            {
                "pid": 1,
                "name": "Start",
                "text": "The keeper waits by the door.\n"
                "[[Climb the stairs->Lamp Room]]\n[[Leave|Shore]]",
                "tags": [],
                "position": {"x": 100, "y": 100},
            },
            {
                "pid": 2,
                "name": "Lamp Room",
                "text": "The lamp is dark.\nYou light it.",
                "tags": [],
            },
            {
                "pid": 3,
                "name": "Shore",
                "text": "Waves pull at your boots.",
                "tags": ["ending"],
            },
        ],
    }


@pytest.fixture
def store() -> Iterator[SqliteStoryStore]:
    """In-memory story store."""
    with SqliteStoryStore() as s:
        yield s
