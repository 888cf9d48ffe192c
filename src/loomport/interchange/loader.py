"""Reading uploaded Twine exports into raw Twison data.

Accepted uploads:

- ``.json`` - Twison JSON
- ``.html`` / ``.htm`` - a Twine 2 story HTML export, converted by an
  :class:`HtmlAdapter`
- ``.zip`` - an archive holding one of the above

Content is sniffed rather than trusted: JSON is recognized by its first
character and HTML by the ``<tw-storydata`` element, whatever the file is
called. The result is raw, unrepaired data for :func:`repair_document`.
"""

from __future__ import annotations

import json
import zipfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loomport.errors import (
    EmptyExportError,
    ExportLoadError,
    ExportParseError,
    UnsupportedFormatError,
)
from loomport.observability.logging import get_logger

log = get_logger(__name__)

TEXT_SUFFIXES = (".json", ".html", ".htm")
ARCHIVE_SUFFIX = ".zip"
STORYDATA_MARKER = "<tw-storydata"


@runtime_checkable
class HtmlAdapter(Protocol):
    """Converts a Twine 2 HTML export into Twison-shaped data."""

    def __call__(self, html: str) -> Any:
        """Return Twison data for *html*; raise ``ExportLoadError`` if unusable."""
        ...


def parse_export_text(
    raw: str,
    source_name: str,
    *,
    html_adapter: HtmlAdapter | None = None,
) -> Any:
    """Parse the text of one export file.

    Args:
        raw: File content.
        source_name: Name used in error messages.
        html_adapter: Converter for Twine HTML exports.

    Returns:
        Raw Twison data.

    Raises:
        EmptyExportError: If the content is blank.
        ExportParseError: If the content looks like JSON but does not parse,
            including numbers past the int digit limit and overly deep nesting.
        UnsupportedFormatError: If the content is neither JSON nor Twine HTML,
            or is HTML and no adapter is configured.
    """
    trimmed = raw.strip() if isinstance(raw, str) else ""
    if not trimmed:
        raise EmptyExportError(source_name)

    if trimmed.startswith(("{", "[")):
        try:
            return json.loads(trimmed)
        except (ValueError, RecursionError) as e:
            raise ExportParseError(source_name, str(e)) from e

    if STORYDATA_MARKER in trimmed:
        if html_adapter is None:
            raise UnsupportedFormatError(
                f'"{source_name}" is a Twine HTML export, but no HTML adapter is configured. '
                "Upload the Twison JSON export instead."
            )
        return html_adapter(trimmed)

    raise UnsupportedFormatError(
        f'Unsupported Twine export format in "{source_name}". Upload Twison JSON or Twine HTML.'
    )


def _load_archive(path: Path, html_adapter: HtmlAdapter | None) -> Any:
    try:
        archive = zipfile.ZipFile(path)
    except zipfile.BadZipFile as e:
        raise ExportParseError(path.name, str(e)) from e

    with archive:
        entries = [
            info
            for info in archive.infolist()
            if not info.is_dir() and info.filename.lower().endswith(TEXT_SUFFIXES)
        ]
        if not entries:
            raise UnsupportedFormatError(
                "The uploaded zip does not contain a Twison JSON or Twine HTML export."
            )

        last_error: ExportLoadError | None = None
        for info in entries:
            try:
                raw = archive.read(info).decode("utf-8")
                data = parse_export_text(raw, info.filename, html_adapter=html_adapter)
            except UnicodeDecodeError as e:
                last_error = ExportParseError(info.filename, str(e))
            except ExportLoadError as e:
                last_error = e
            else:
                log.debug("archive_entry_loaded", archive=path.name, entry=info.filename)
                return data
            log.debug("archive_entry_skipped", entry=info.filename, reason=str(last_error))

    assert last_error is not None  # entries is non-empty
    raise last_error


def load_export(path: Path, *, html_adapter: HtmlAdapter | None = None) -> Any:
    """Read an uploaded export file into raw Twison data.

    For archives, candidate entries are tried in archive order and the first
    one that loads wins; when none load, the last entry's error is raised.

    Raises:
        ExportLoadError: If the file cannot be read as a Twine export.
    """
    suffix = path.suffix.lower()
    if suffix == ARCHIVE_SUFFIX:
        data = _load_archive(path, html_adapter)
    elif suffix in TEXT_SUFFIXES:
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ExportParseError(path.name, str(e)) from e
        data = parse_export_text(raw, path.name, html_adapter=html_adapter)
    else:
        raise UnsupportedFormatError(
            "Unsupported file type. Upload a Twine .zip, .json, or .html export."
        )

    log.info("export_loaded", source=path.name)
    return data
