"""Source row extractors and legacy database access."""

from .base import BaseExtractor, ExtractionResult
from .row_file import RowFileExtractor
from .legacy_database import LegacyDatabase, unserialize

__all__ = [
    "BaseExtractor",
    "ExtractionResult",
    "RowFileExtractor",
    "LegacyDatabase",
    "unserialize",
]
