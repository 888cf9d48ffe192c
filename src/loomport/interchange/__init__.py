"""Twison interchange handling: loading, link extraction, repair, validation."""

from loomport.interchange.links import extract_links
from loomport.interchange.avatar import AvatarSuggestion, suggest_avatar
from loomport.interchange.loader import HtmlAdapter, load_export, parse_export_text
from loomport.interchange.models import Link, Passage, StoryDocument
from loomport.interchange.repair import repair_document
from loomport.interchange.validation import validate_document

__all__ = [
    "AvatarSuggestion",
    "HtmlAdapter",
    "Link",
    "Passage",
    "StoryDocument",
    "extract_links",
    "load_export",
    "parse_export_text",
    "repair_document",
    "suggest_avatar",
    "validate_document",
]
