"""Observability module for loomport.

Provides structured logging for the import pipeline.
"""

from loomport.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
]
