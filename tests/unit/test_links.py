"""Tests for Twine link syntax extraction."""

from __future__ import annotations

from loomport.interchange.links import extract_links
from loomport.interchange.models import Link


class TestExtractLinks:
    """Tests for extract_links."""

    def test_plain_link_uses_text_as_label_and_target(self) -> None:
        links = extract_links("Go to [[Cellar]].")
        assert links == [Link(name="Cellar", link="Cellar", text="Cellar")]

    def test_arrow_link(self) -> None:
        (link,) = extract_links("[[Go north->North Hall]]")
        assert link.label == "Go north"
        assert link.target == "North Hall"

    def test_pipe_link(self) -> None:
        (link,) = extract_links("[[Go north|North Hall]]")
        assert link.label == "Go north"
        assert link.target == "North Hall"

    def test_arrow_takes_precedence_over_pipe(self) -> None:
        """A label containing a pipe is kept whole when an arrow is present."""
        (link,) = extract_links("[[Left|Right->Hallway]]")
        assert link.label == "Left|Right"
        assert link.target == "Hallway"

    def test_surrounding_whitespace_is_trimmed(self) -> None:
        (link,) = extract_links("[[  Run  ->  Exit  ]]")
        assert link.name == "Run"
        assert link.link == "Exit"

    def test_links_returned_in_order_of_appearance(self) -> None:
        text = "[[A]] then [[Second->B]] and finally [[Third|C]]"
        assert [link.target for link in extract_links(text)] == ["A", "B", "C"]

    def test_empty_interior_skipped(self) -> None:
        assert extract_links("[[   ]] [[Real]]") == [Link(name="Real", link="Real", text="Real")]

    def test_missing_target_skipped(self) -> None:
        assert extract_links("[[Dead end->]] [[Nowhere|  ]]") == []

    def test_text_without_links(self) -> None:
        assert extract_links("Just prose, [single brackets] only.") == []

    def test_non_string_text_yields_empty_list(self) -> None:
        assert extract_links(None) == []
        assert extract_links(42) == []
        assert extract_links(["[[A]]"]) == []


class TestLinkDescriptor:
    """Tests for Link target and label fallbacks."""

    def test_target_prefers_link(self) -> None:
        assert Link(name="Label", link="Target").target == "Target"

    def test_target_falls_back_to_name_then_text(self) -> None:
        assert Link(name="Label").target == "Label"
        assert Link(text="Only text").target == "Only text"
        assert Link().target == ""

    def test_label_prefers_text(self) -> None:
        assert Link(name="Name", link="Target", text="Text").label == "Text"
        assert Link(name="Name", link="Target").label == "Name"
        assert Link(link="Target").label == "Target"

    def test_to_dict_omits_missing_fields(self) -> None:
        assert Link(name="Go", link="Hall").to_dict() == {"name": "Go", "link": "Hall"}
