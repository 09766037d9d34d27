"""Base extractor interface for webform source rows."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Iterator
from datetime import datetime
import logging

from ..models.record import MigrateRow

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Rows read by an extractor, plus the problems met on the way."""
    rows: List[MigrateRow] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)  # Files (or tables) read

    @property
    def total_extracted(self) -> int:
        return len(self.rows)

    @property
    def success(self) -> bool:
        return not self.errors


class BaseExtractor(ABC):
    """
    Base class for source row extractors.

    An extractor produces the MigrateRow objects that a migration run hands
    to its PREPARE_ROW subscribers and then imports. Row level problems are
    collected instead of raised, so one bad row does not stop a run.
    """

    def __init__(self, batch_size: int = 50, id_keys: Optional[List[str]] = None):
        """
        Initialize the extractor.

        Args:
            batch_size: Default number of rows per streamed batch
            id_keys: Source properties that identify a row (the nid)
        """
        self.batch_size = batch_size
        self.id_keys = id_keys or ["nid"]
        self._errors: List[Dict[str, Any]] = []
        self._warnings: List[str] = []

    @abstractmethod
    def extract(self) -> ExtractionResult:
        """Read every source row."""
        pass

    @abstractmethod
    def extract_batch(self, offset: int = 0, limit: int = 50) -> List[MigrateRow]:
        """
        Read a slice of the source rows.

        Args:
            offset: Index of the first row
            limit: Maximum number of rows

        Returns:
            The rows, empty once the source is exhausted
        """
        pass

    def stream(self, batch_size: Optional[int] = None) -> Iterator[List[MigrateRow]]:
        """
        Yield the source rows in batches.

        Args:
            batch_size: Rows per batch (defaults to self.batch_size)
        """
        batch_size = batch_size or self.batch_size
        offset = 0

        while True:
            batch = self.extract_batch(offset=offset, limit=batch_size)
            if not batch:
                return
            yield batch
            if len(batch) < batch_size:
                return
            offset += len(batch)

    def create_row(self, data: Dict[str, Any]) -> MigrateRow:
        """Wrap source properties in a MigrateRow."""
        return MigrateRow(source=dict(data), id_keys=list(self.id_keys))

    def add_error(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Record a row or file that could not be read."""
        error = {"message": message, "timestamp": datetime.utcnow().isoformat()}
        error.update(details or {})
        self._errors.append(error)
        logger.error(f"Extraction error: {message}")

    def add_warning(self, message: str) -> None:
        self._warnings.append(message)
        logger.warning(f"Extraction warning: {message}")

    def get_errors(self) -> List[Dict[str, Any]]:
        return list(self._errors)

    def get_extraction_result(self, rows: List[MigrateRow], sources: Optional[List[str]] = None) -> ExtractionResult:
        """Bundle extracted rows with the collected errors and warnings."""
        return ExtractionResult(
            rows=rows,
            errors=list(self._errors),
            warnings=list(self._warnings),
            sources=sources or [],
        )

    def reset(self) -> None:
        """Forget errors and warnings of a previous extraction."""
        self._errors = []
        self._warnings = []
