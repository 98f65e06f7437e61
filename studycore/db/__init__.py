"""Database package for studycore.

DuckDB-backed card store. Only FlashcardDatabase is exported as the public API.
"""

from .database import FlashcardDatabase

__all__ = ["FlashcardDatabase"]
