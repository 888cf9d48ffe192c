"""Post-conversion validation of canonical story payloads.

The converter guarantees these invariants by construction. They are
re-checked here because a failure must block persistence: a payload that
reaches the store with duplicate keys or dangling references would leave a
story with a graph nobody can play.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from loomport.graph.models import NodeType, StoryPayload
from loomport.graph.validation_types import ValidationCheck

CHECK_NAME = "story_payload"


def _duplicates(keys: list[str]) -> list[str]:
    return sorted(key for key, count in Counter(keys).items() if count > 1)


def validate_payload(payload: StoryPayload | Mapping[str, Any]) -> ValidationCheck:
    """Check the invariants of a converted story graph.

    Checks run in order and stop at the first failure: nodes present, node
    keys unique, paths present, path keys unique, transitions present,
    transition references resolve, and nodes without outgoing transitions
    are ``RESOLUTION`` nodes.
    """
    if not isinstance(payload, StoryPayload):
        try:
            payload = StoryPayload.model_validate(payload)
        except ValidationError as e:
            return ValidationCheck.failed("payload_schema", f"Converted story is malformed: {e}")

    if not payload.nodes:
        return ValidationCheck.failed(
            "nodes_present",
            "Converted story has no nodes. Ensure at least one passage exists in Twine.",
        )

    node_keys = [node.key for node in payload.nodes]
    duplicate_nodes = _duplicates(node_keys)
    if duplicate_nodes:
        return ValidationCheck.failed(
            "unique_node_keys",
            "Converted story contains duplicate node keys "
            f"({', '.join(duplicate_nodes)}). Check for duplicate passage names in Twine.",
        )

    if not payload.paths:
        return ValidationCheck.failed(
            "paths_present", "Converted story has no paths. Add at least one link in Twine."
        )

    duplicate_paths = _duplicates([path.key for path in payload.paths])
    if duplicate_paths:
        return ValidationCheck.failed(
            "unique_path_keys",
            f"Converted story contains duplicate path keys ({', '.join(duplicate_paths)}).",
        )

    if not payload.transitions:
        return ValidationCheck.failed(
            "transitions_present",
            "Converted story has no transitions. Add links between passages in Twine.",
        )

    known_nodes = set(node_keys)
    known_paths = {path.key for path in payload.paths}
    for index, transition in enumerate(payload.transitions, start=1):
        if transition.from_key not in known_nodes:
            return ValidationCheck.failed(
                "transition_references",
                f"Transition {index} starts at unknown node '{transition.from_key}'.",
            )
        if transition.path not in known_paths:
            return ValidationCheck.failed(
                "transition_references",
                f"Transition {index} uses unknown path '{transition.path}'.",
            )
        if transition.to_key is not None and transition.to_key not in known_nodes:
            return ValidationCheck.failed(
                "transition_references",
                f"Transition {index} leads to unknown node '{transition.to_key}'.",
            )

    with_outgoing = {transition.from_key for transition in payload.transitions}
    for node in payload.nodes:
        if node.key not in with_outgoing and node.type not in (None, NodeType.RESOLUTION):
            return ValidationCheck.failed(
                "dead_end_type",
                f"Node '{node.key}' has no outgoing transitions but is typed {node.type}.",
            )

    return ValidationCheck.passed(CHECK_NAME)
