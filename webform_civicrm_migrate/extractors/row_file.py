"""YAML/JSON file-based source row extractor."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
import glob as globmodule

import yaml

from .base import BaseExtractor, ExtractionResult
from ..models.record import MigrateRow

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yml", ".yaml")


class RowFileExtractor(BaseExtractor):
    """
    Extractor for exported webform source rows.

    Each file holds a list of rows, or a mapping with a "rows" list. A row
    carries at least nid and elements (the element tree as a YAML string or
    a mapping); webform_id and title are optional.

    Supports:
    - Single files
    - Multiple files via glob patterns
    - YAML and JSON files
    """

    def __init__(
        self,
        file_path: Optional[str] = None,
        file_pattern: Optional[str] = None,
        batch_size: int = 50,
        encoding: str = "utf-8"
    ):
        """
        Initialize the row file extractor.

        Args:
            file_path: Path of a single rows file
            file_pattern: Glob pattern matching rows files
            batch_size: Default number of rows per streamed batch
            encoding: File encoding
        """
        super().__init__(batch_size=batch_size)
        self.file_path = file_path
        self.file_pattern = file_pattern
        self.encoding = encoding
        self._result: Optional[ExtractionResult] = None

    def extract(self) -> ExtractionResult:
        """Extract all rows from the configured files (read again on every call)."""
        self.reset()
        self._result = self._read_files()
        return self._result

    def _read_files(self) -> ExtractionResult:
        all_rows: List[MigrateRow] = []

        files = self._get_files()
        if not files:
            self.add_warning(f"No rows files found matching: {self.file_path or self.file_pattern}")
            return self.get_extraction_result([])

        for file_path in files:
            logger.debug(f"Reading rows file: {file_path}")
            all_rows.extend(self._extract_file(file_path))

        logger.info(f"Extracted {len(all_rows)} rows from {len(files)} file(s)")
        return self.get_extraction_result(all_rows, sources=[str(f) for f in files])

    def extract_batch(self, offset: int = 0, limit: int = 50) -> List[MigrateRow]:
        """Extract a batch of rows, reading the files on the first call only."""
        if self._result is None or offset == 0:
            self.extract()
        return self._result.rows[offset:offset + limit]

    def _get_files(self) -> List[Path]:
        """Get list of files to process."""
        files = []

        if self.file_path:
            path = Path(self.file_path)
            if path.exists():
                files.append(path)

        if self.file_pattern:
            pattern_files = globmodule.glob(self.file_pattern, recursive=True)
            files.extend(Path(f) for f in pattern_files)

        return sorted(set(files))

    def _extract_file(self, file_path: Path) -> List[MigrateRow]:
        """Extract rows from one file."""
        try:
            with open(file_path, "r", encoding=self.encoding) as f:
                if file_path.suffix.lower() in YAML_SUFFIXES:
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            self.add_error(f"Invalid rows file {file_path}: {e}")
            return []
        except OSError as e:
            self.add_error(f"Failed to read rows file {file_path}: {e}")
            return []

        if isinstance(data, dict):
            items = data.get("rows", [data])
        elif isinstance(data, list):
            items = data
        else:
            self.add_error(f"Unexpected rows structure in {file_path}")
            return []

        rows = []
        for idx, item in enumerate(items):
            if not isinstance(item, dict):
                self.add_error(
                    f"Row {idx} in {file_path} is not a mapping",
                    details={"source_file": str(file_path), "item_index": idx},
                )
                continue
            rows.append(self._process_item(item))

        return rows

    def _process_item(self, item: Dict[str, Any]) -> MigrateRow:
        """Process a file item into a MigrateRow."""
        row = self.create_row(item)
        if not row.has_source_property("webform_id") and row.get("nid") is not None:
            row.set_source_property("webform_id", f"webform_{row.get('nid')}")
        return row
