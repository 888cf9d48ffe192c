"""Canonical story graph: schema, conversion, validation and storage."""

from loomport.graph.convert import convert_document, infer_node_type
from loomport.graph.models import (
    ImportOverrides,
    NodeType,
    StoryNode,
    StoryPath,
    StoryPayload,
    StoryTransition,
    Visibility,
)
from loomport.graph.sqlite_store import SqliteStoryStore, StoryRecord
from loomport.graph.validation import validate_payload
from loomport.graph.validation_types import ValidationCheck

__all__ = [
    "ImportOverrides",
    "NodeType",
    "SqliteStoryStore",
    "StoryNode",
    "StoryPath",
    "StoryPayload",
    "StoryRecord",
    "StoryTransition",
    "ValidationCheck",
    "Visibility",
    "convert_document",
    "infer_node_type",
    "validate_payload",
]
