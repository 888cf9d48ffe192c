"""Import pipeline: load, repair, validate, convert, persist."""

from loomport.pipeline.importer import ImportResult, import_story, prepare_payload

__all__ = [
    "ImportResult",
    "import_story",
    "prepare_payload",
]
