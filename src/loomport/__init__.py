"""loomport - Twine export import pipeline for canonical story graphs."""

__version__ = "0.3.0"
