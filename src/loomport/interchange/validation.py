"""Pre-conversion validation of Twison documents.

Repair already guarantees most of these rules, but documents can reach the
converter without passing through repair (direct API calls, tests, other
adapters), so the checks run against the serialized shape regardless.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loomport.graph.validation_types import ValidationCheck
from loomport.interchange.models import StoryDocument

CHECK_NAME = "twison_document"


def validate_document(document: StoryDocument | Any) -> ValidationCheck:
    """Check that a document has the minimum shape the converter needs.

    Checks run in order and stop at the first failure:

    1. the document is a record
    2. it has a non-empty passage list
    3. every passage is a record with a non-blank name
    4. passage names are unique
    5. every ``links`` field that is present is a list

    Returns:
        A passing check, or a failing one whose message names the
        offending passage where possible.
    """
    if isinstance(document, StoryDocument):
        document = document.to_dict()

    if not isinstance(document, Mapping):
        return ValidationCheck.failed("document_record", "Missing Twine story payload.")

    passages = document.get("passages")
    if not isinstance(passages, list) or not passages:
        return ValidationCheck.failed("passages_present", "Twine story must include passages.")

    seen: set[str] = set()
    for index, passage in enumerate(passages, start=1):
        if not isinstance(passage, Mapping):
            return ValidationCheck.failed("passage_record", f"Passage {index} is invalid.")

        name = passage.get("name")
        if not isinstance(name, str) or not name.strip():
            return ValidationCheck.failed("passage_name", f"Passage {index} is missing a name.")

        if name in seen:
            return ValidationCheck.failed(
                "unique_names",
                f"Duplicate passage name '{name}'. Ensure passage titles are unique.",
            )
        seen.add(name)

        links = passage.get("links")
        if links is not None and not isinstance(links, list):
            return ValidationCheck.failed(
                "link_structure", f"Passage '{name}' has invalid link structure."
            )

    return ValidationCheck.passed(CHECK_NAME)
