"""Error types for the Twine import pipeline.

Errors fall into the categories a caller has to present differently:

- Export load errors: the upload itself is unreadable, empty, or in a format
  we do not understand. No repair is attempted.
- Validation errors: the document (or the converted payload) breaks a
  structural rule. These carry the validator's message verbatim so the
  author can fix the source story.
- Conversion errors: conversion cannot proceed at all.
- Persistence errors: identifier collisions and unresolvable references
  during the replace-all write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches


class LoomportError(Exception):
    """Base class for all loomport errors."""


# ---------------------------------------------------------------------------
# Export loading
# ---------------------------------------------------------------------------


class ExportLoadError(LoomportError):
    """Raised when an uploaded export cannot be read into a raw document."""


class EmptyExportError(ExportLoadError):
    """Raised when an export file has no content."""

    def __init__(self, source_name: str) -> None:
        self.source_name = source_name
        super().__init__(f'The file "{source_name}" is empty.')


class ExportParseError(ExportLoadError):
    """Raised when an export looks like JSON (or a zip) but cannot be parsed."""

    def __init__(self, source_name: str, reason: str) -> None:
        self.source_name = source_name
        self.reason = reason
        super().__init__(f'Unable to parse "{source_name}": {reason}')


class UnsupportedFormatError(ExportLoadError):
    """Raised when an export is neither Twison JSON nor Twine HTML."""


# ---------------------------------------------------------------------------
# Validation and conversion
# ---------------------------------------------------------------------------


class DocumentValidationError(LoomportError):
    """Raised when a repaired Twine document fails pre-conversion validation."""

    def __init__(self, message: str, check: str = "") -> None:
        self.check = check
        super().__init__(message)


class ConversionError(LoomportError):
    """Raised when a document cannot be converted into a story payload."""


class PayloadSchemaError(ConversionError):
    """Raised when a converted payload violates the payload schema."""


class PayloadInvariantError(LoomportError):
    """Raised when a converted payload fails post-conversion validation.

    Indicates a converter defect or adversarial input that evaded repair.
    Persistence must not run.
    """

    def __init__(self, message: str, check: str = "") -> None:
        self.check = check
        super().__init__(message)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class StoryConflictError(LoomportError):
    """Raised when a story slug or title is already taken by another story."""

    def __init__(self, message: str, conflict_on: str) -> None:
        self.conflict_on = conflict_on
        super().__init__(message)


class StoryNotFoundError(LoomportError):
    """Raised when a story id or slug does not exist in the store."""

    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(f"Story '{reference}' not found")


@dataclass
class MissingReferenceError(LoomportError):
    """Raised when a transition references a key that was not inserted.

    This is the storage equivalent of a foreign key violation. It aborts the
    replace-all transaction.

    Attributes:
        kind: "node" or "path".
        key: The key that was referenced but not inserted.
        available: Keys that were inserted in this write.
        context: Description of where the reference occurred.
    """

    kind: str
    key: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        super().__init__(self._format_message())

    def suggestions(self) -> list[str]:
        """Find inserted keys that look like typos of the missing one."""
        return get_close_matches(self.key, self.available, n=3, cutoff=0.6)

    def _format_message(self) -> str:
        msg = f"Transition references unknown {self.kind} '{self.key}'"
        if self.context:
            msg += f" ({self.context})"
        suggestions = self.suggestions()
        if suggestions:
            msg += "; did you mean " + ", ".join(f"'{s}'" for s in suggestions) + "?"
        return msg
