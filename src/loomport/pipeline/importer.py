"""Twine upload import pipeline.

Stages run strictly in order and any failure stops the import before
persistence:

1. load (files only) - raw Twison data from JSON, HTML or zip
2. repair - coerce the data into a well-formed :class:`StoryDocument`
3. document validation - minimum shape for conversion
4. conflict check - slug and title not held by another story
5. conversion - canonical nodes, paths and transitions
6. payload validation - graph invariants
7. persistence - atomic replace of the story graph
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loomport.errors import DocumentValidationError, PayloadInvariantError
from loomport.graph.convert import convert_document, resolve_slug, resolve_title
from loomport.graph.models import ImportOverrides, StoryPayload
from loomport.graph.validation import validate_payload
from loomport.interchange.avatar import AvatarSuggestion, suggest_avatar
from loomport.interchange.loader import load_export
from loomport.interchange.repair import repair_document
from loomport.interchange.validation import validate_document
from loomport.observability.logging import get_logger

if TYPE_CHECKING:
    from loomport.graph.models import Visibility
    from loomport.graph.sqlite_store import SqliteStoryStore, StoryRecord
    from loomport.interchange.loader import HtmlAdapter
    from loomport.interchange.models import StoryDocument

log = get_logger(__name__)


@dataclass
class ImportResult:
    """Outcome of a successful import."""

    story: StoryRecord
    payload: StoryPayload
    counts: dict[str, int] = field(default_factory=dict)
    avatar: AvatarSuggestion | None = None
    duration_seconds: float = 0.0


def _coerce_overrides(overrides: ImportOverrides | Mapping[str, Any] | None) -> ImportOverrides:
    if overrides is None:
        return ImportOverrides()
    if isinstance(overrides, ImportOverrides):
        return overrides
    return ImportOverrides.model_validate(overrides)


def _validated_document(raw: Any) -> StoryDocument:
    document = repair_document(raw)
    check = validate_document(document)
    if not check.ok:
        log.warning("document_rejected", check=check.name, reason=check.message)
        raise DocumentValidationError(check.message, check=check.name)
    return document


def _validated_payload(document: StoryDocument, overrides: ImportOverrides) -> StoryPayload:
    payload = convert_document(document, overrides)
    check = validate_payload(payload)
    if not check.ok:
        log.warning("payload_rejected", check=check.name, reason=check.message)
        raise PayloadInvariantError(check.message, check=check.name)
    return payload


def prepare_payload(
    raw: Any,
    overrides: ImportOverrides | Mapping[str, Any] | None = None,
) -> StoryPayload:
    """Run every stage that does not touch storage.

    Args:
        raw: Raw Twison data, or an already repaired document.
        overrides: Values that take precedence over derived ones.

    Returns:
        A payload that passed post-conversion validation.

    Raises:
        DocumentValidationError: If the repaired document is unusable.
        ConversionError: If conversion fails.
        PayloadInvariantError: If the converted graph breaks an invariant.
    """
    return _validated_payload(_validated_document(raw), _coerce_overrides(overrides))


def import_story(
    source: Path | Any,
    store: SqliteStoryStore,
    *,
    owner_id: str,
    overrides: ImportOverrides | Mapping[str, Any] | None = None,
    story_id: str | None = None,
    enforce_visibility: Visibility | None = None,
    html_adapter: HtmlAdapter | None = None,
) -> ImportResult:
    """Import a Twine story into *store*.

    Args:
        source: Path to an uploaded export, or raw Twison data.
        store: Destination story store.
        owner_id: Owner recorded on the story.
        overrides: Values that take precedence over derived ones.
        story_id: Existing story to overwrite.
        enforce_visibility: Visibility that wins over overrides and defaults.
        html_adapter: Converter for Twine HTML exports.

    Returns:
        The stored story, its payload, graph counts and a protagonist
        suggested from the start passage.

    Raises:
        LoomportError: Any stage failure. Storage is untouched unless the
            final replace succeeds.
    """
    start = time.perf_counter()
    raw = load_export(source, html_adapter=html_adapter) if isinstance(source, Path) else source
    overrides = _coerce_overrides(overrides)

    document = _validated_document(raw)
    store.ensure_identifier_available(
        resolve_slug(document, overrides.slug),
        resolve_title(document, overrides.title),
        exclude_story_id=story_id,
    )
    payload = _validated_payload(document, overrides)

    record = store.replace_story_graph(
        owner_id,
        payload,
        story_id=story_id,
        enforce_visibility=enforce_visibility,
    )
    counts = store.graph_counts(record.id)
    duration = time.perf_counter() - start

    log.info(
        "story_imported",
        story_id=record.id,
        slug=record.slug,
        owner_id=owner_id,
        duration_seconds=round(duration, 3),
        **counts,
    )
    return ImportResult(
        story=record,
        payload=payload,
        counts=counts,
        avatar=suggest_avatar(document.start_passage),
        duration_seconds=duration,
    )
