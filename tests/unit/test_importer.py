"""Tests for the import pipeline."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from loomport.errors import (
    DocumentValidationError,
    PayloadInvariantError,
    StoryConflictError,
    UnsupportedFormatError,
)
from loomport.graph.models import ImportOverrides, Visibility
from loomport.graph.validation_types import ValidationCheck
from loomport.pipeline import import_story, prepare_payload

if TYPE_CHECKING:
    from pathlib import Path

    from loomport.graph.sqlite_store import SqliteStoryStore


class TestPreparePayload:
    """Tests for prepare_payload."""

    def test_returns_validated_payload(self, lighthouse_story: dict[str, Any]) -> None:
        payload = prepare_payload(lighthouse_story)
        assert payload.slug == "the-lighthouse"
        assert len(payload.transitions) == 4

    def test_story_without_passages_rejected(self) -> None:
        with pytest.raises(DocumentValidationError) as exc_info:
            prepare_payload({"name": "Empty"})
        assert exc_info.value.check == "passages_present"
        assert str(exc_info.value) == "Twine story must include passages."

    def test_malformed_passages_are_repaired(self) -> None:
        payload = prepare_payload(
            {"passages": [{"name": "A", "text": "[[B]]", "tags": "decision"}, {"name": "A"}, 7]}
        )
        assert [n.key for n in payload.nodes] == ["a", "a-1", "passage-3"]

    def test_invariant_failure_blocks(
        self, lighthouse_story: dict[str, Any], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            "loomport.pipeline.importer.validate_payload",
            lambda payload: ValidationCheck.failed("dead_end_type", "Node 'x' is a dead end."),
        )
        with pytest.raises(PayloadInvariantError) as exc_info:
            prepare_payload(lighthouse_story)
        assert exc_info.value.check == "dead_end_type"


class TestImportStory:
    """Tests for import_story."""

    def test_imports_raw_data(
        self, store: SqliteStoryStore, lighthouse_story: dict[str, Any]
    ) -> None:
        result = import_story(lighthouse_story, store, owner_id="owner-1")

        assert result.story.slug == "the-lighthouse"
        assert result.story.owner_id == "owner-1"
        assert result.counts == {"nodes": 3, "paths": 4, "transitions": 4}
        assert result.duration_seconds >= 0
        assert store.load_story_graph(result.story.id) == result.payload.to_dict()

    def test_avatar_suggested_from_start_passage(
        self, store: SqliteStoryStore, lighthouse_story: dict[str, Any]
    ) -> None:
        lighthouse_story["startnode"] = 2

        result = import_story(lighthouse_story, store, owner_id="owner-1")

        assert result.avatar is not None
        assert result.avatar.name == "Lamp Room"
        assert result.avatar.background == "The lamp is dark.\nYou light it."

    def test_imports_file(
        self, tmp_path: Path, store: SqliteStoryStore, lighthouse_story: dict[str, Any]
    ) -> None:
        path = tmp_path / "lighthouse.json"
        path.write_text(json.dumps(lighthouse_story), encoding="utf-8")

        result = import_story(path, store, owner_id="owner-1")

        assert result.story.title == "The Lighthouse"

    def test_unsupported_file_rejected(self, tmp_path: Path, store: SqliteStoryStore) -> None:
        path = tmp_path / "story.txt"
        path.write_text("hello", encoding="utf-8")
        with pytest.raises(UnsupportedFormatError):
            import_story(path, store, owner_id="owner-1")

    def test_overrides_applied(
        self, store: SqliteStoryStore, lighthouse_story: dict[str, Any]
    ) -> None:
        overrides = ImportOverrides(slug="keeper", title="Keeper", visibility=Visibility.PUBLIC)
        result = import_story(lighthouse_story, store, owner_id="owner-1", overrides=overrides)

        assert result.story.slug == "keeper"
        assert result.story.title == "Keeper"
        assert result.story.visibility == Visibility.PUBLIC

    def test_enforced_visibility(
        self, store: SqliteStoryStore, lighthouse_story: dict[str, Any]
    ) -> None:
        result = import_story(
            lighthouse_story,
            store,
            owner_id="owner-1",
            overrides={"visibility": "PUBLIC"},
            enforce_visibility=Visibility.PRIVATE,
        )
        assert result.story.visibility == Visibility.PRIVATE

    def test_conflicting_slug_leaves_existing_story(
        self, store: SqliteStoryStore, lighthouse_story: dict[str, Any]
    ) -> None:
        first = import_story(lighthouse_story, store, owner_id="owner-1")
        before = store.load_story_graph(first.story.id)

        other = {"name": "The Lighthouse!", "passages": [{"name": "Elsewhere"}]}
        with pytest.raises(StoryConflictError) as exc_info:
            import_story(other, store, owner_id="owner-2", overrides={"title": "Another"})

        assert exc_info.value.conflict_on == "slug"
        assert store.load_story_graph(first.story.id) == before

    def test_conflicting_title_rejected(
        self, store: SqliteStoryStore, lighthouse_story: dict[str, Any]
    ) -> None:
        import_story(lighthouse_story, store, owner_id="owner-1")
        with pytest.raises(StoryConflictError) as exc_info:
            import_story(lighthouse_story, store, owner_id="owner-1", overrides={"slug": "copy"})
        assert exc_info.value.conflict_on == "title"

    def test_reimport_into_same_story(
        self, store: SqliteStoryStore, lighthouse_story: dict[str, Any]
    ) -> None:
        first = import_story(lighthouse_story, store, owner_id="owner-1")

        lighthouse_story["passages"][0]["text"] = "The keeper is gone."
        second = import_story(lighthouse_story, store, owner_id="owner-1", story_id=first.story.id)

        assert second.story.id == first.story.id
        assert second.counts == {"nodes": 3, "paths": 3, "transitions": 3}
        assert second.payload.nodes[0].content["text"] == "The keeper is gone."

    def test_conflict_checked_before_conversion(
        self,
        store: SqliteStoryStore,
        lighthouse_story: dict[str, Any],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        import_story(lighthouse_story, store, owner_id="owner-1")

        def must_not_convert(*args: Any, **kwargs: Any) -> None:
            raise AssertionError("conversion ran before the conflict check")

        monkeypatch.setattr("loomport.pipeline.importer.convert_document", must_not_convert)
        with pytest.raises(StoryConflictError):
            import_story(lighthouse_story, store, owner_id="owner-1")
