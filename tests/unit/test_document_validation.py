"""Tests for pre-conversion Twison document validation."""

from __future__ import annotations

from typing import Any

from loomport.interchange.repair import repair_document
from loomport.interchange.validation import validate_document


class TestValidateDocument:
    """Tests for validate_document."""

    def test_valid_document_passes(self, lighthouse_story: dict[str, Any]) -> None:
        check = validate_document(lighthouse_story)
        assert check.ok
        assert check.name == "twison_document"
        assert check.message == ""

    def test_repaired_document_passes(self, lighthouse_story: dict[str, Any]) -> None:
        assert validate_document(repair_document(lighthouse_story)).ok

    def test_non_record_rejected(self) -> None:
        check = validate_document(["not", "a", "story"])
        assert not check.ok
        assert check.severity == "fail"
        assert check.name == "document_record"
        assert check.message == "Missing Twine story payload."

    def test_missing_passages_rejected(self) -> None:
        check = validate_document({"name": "Empty"})
        assert check.name == "passages_present"
        assert check.message == "Twine story must include passages."

    def test_empty_passage_list_rejected(self) -> None:
        assert validate_document({"passages": []}).name == "passages_present"

    def test_non_record_passage_rejected(self) -> None:
        check = validate_document({"passages": [{"name": "A"}, "junk"]})
        assert check.name == "passage_record"
        assert check.message == "Passage 2 is invalid."

    def test_blank_name_rejected(self) -> None:
        check = validate_document({"passages": [{"name": "   "}]})
        assert check.name == "passage_name"
        assert check.message == "Passage 1 is missing a name."

    def test_duplicate_names_rejected(self) -> None:
        check = validate_document({"passages": [{"name": "Hall"}, {"name": "Hall"}]})
        assert check.name == "unique_names"
        assert "Duplicate passage name 'Hall'" in check.message

    def test_non_list_links_rejected(self) -> None:
        check = validate_document({"passages": [{"name": "Hall", "links": "Cellar"}]})
        assert check.name == "link_structure"
        assert check.message == "Passage 'Hall' has invalid link structure."

    def test_stops_at_first_failure(self) -> None:
        """Only the first failing check is reported."""
        check = validate_document({"passages": [{"name": ""}, {"name": "A"}, {"name": "A"}]})
        assert check.name == "passage_name"
