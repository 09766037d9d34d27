"""Migration execution models."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
from datetime import datetime
import uuid

WEBFORM_MIGRATION_ID = "upgrade_d7_webform"
WEBFORM_SUBMISSIONS_MIGRATION_ID = "upgrade_d7_webform_submissions"


class MigrationStatus(str, Enum):
    """Status of a migration run or one of its phases."""
    PENDING = "pending"
    PRE_IMPORT = "pre_import"
    IMPORTING = "importing"
    POST_IMPORT = "post_import"
    COMPLETED = "completed"
    FAILED = "failed"


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class MigrationPhase:
    """Counters and timing of one phase (pre-import, import, post-import)."""
    phase: MigrationStatus
    status: MigrationStatus = MigrationStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    rows_processed: int = 0
    rows_imported: int = 0
    rows_skipped: int = 0
    rows_failed: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def start(self) -> None:
        self.status = self.phase
        self.started_at = datetime.utcnow()

    def finish(self, status: MigrationStatus) -> None:
        self.status = status
        self.completed_at = datetime.utcnow()

    def add_error(self, source_id: Any, message: str) -> None:
        self.errors.append({"nid": source_id, "error": message})

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "status": self.status.value,
            "started_at": _isoformat(self.started_at),
            "completed_at": _isoformat(self.completed_at),
            "duration_seconds": self.duration_seconds,
            "rows_processed": self.rows_processed,
            "rows_imported": self.rows_imported,
            "rows_skipped": self.rows_skipped,
            "rows_failed": self.rows_failed,
            "errors": self.errors,
        }


@dataclass
class MigrationRun:
    """
    A complete run of one migration.

    Row totals are summed over the phases; post-import reports the number
    of webforms that received a CiviCRM handler as imported rows.
    """
    migration_id: str = WEBFORM_MIGRATION_ID
    name: str = ""
    dry_run: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: MigrationStatus = MigrationStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    phases: List[MigrationPhase] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def start_phase(self, phase: MigrationStatus) -> MigrationPhase:
        """Enter a phase and start tracking it."""
        tracked = MigrationPhase(phase=phase)
        tracked.start()
        self.phases.append(tracked)
        self.status = phase
        return tracked

    def get_phase(self, phase: MigrationStatus) -> Optional[MigrationPhase]:
        for tracked in self.phases:
            if tracked.phase == phase:
                return tracked
        return None

    def _total(self, counter: str) -> int:
        return sum(getattr(p, counter) for p in self.phases)

    @property
    def rows_processed(self) -> int:
        return self._total("rows_processed")

    @property
    def rows_imported(self) -> int:
        return self._total("rows_imported")

    @property
    def rows_skipped(self) -> int:
        return self._total("rows_skipped")

    @property
    def rows_failed(self) -> int:
        return self._total("rows_failed")

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON report representation."""
        return {
            "id": self.id,
            "migration_id": self.migration_id,
            "name": self.name,
            "status": self.status.value,
            "dry_run": self.dry_run,
            "started_at": _isoformat(self.started_at),
            "completed_at": _isoformat(self.completed_at),
            "duration_seconds": self.duration_seconds,
            "rows_processed": self.rows_processed,
            "rows_imported": self.rows_imported,
            "rows_skipped": self.rows_skipped,
            "rows_failed": self.rows_failed,
            "phases": [p.to_dict() for p in self.phases],
            "errors": self.errors,
        }


@dataclass
class MigrationConfig:
    """Configuration for a webform migration run."""
    name: str
    migration_id: str = WEBFORM_MIGRATION_ID

    # Legacy (Drupal 7) database
    legacy_database_url: Optional[str] = None
    table_prefix: str = ""

    # Source rows
    rows_file: Optional[str] = None
    rows_pattern: Optional[str] = None  # Glob pattern for multiple files
    batch_size: int = 50

    # Destination config directory
    destination_dir: str = "./config/sync"

    # Execution options
    dry_run: bool = False
    continue_on_error: bool = True
    max_errors: int = 100  # Fail the run after this many skipped or failed rows

    # Output
    output_dir: str = "./data"
    id_map_file: Optional[str] = None
    save_report: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation (without the database URL)."""
        return {
            "name": self.name,
            "migration_id": self.migration_id,
            "table_prefix": self.table_prefix,
            "rows_file": self.rows_file,
            "rows_pattern": self.rows_pattern,
            "batch_size": self.batch_size,
            "destination_dir": self.destination_dir,
            "dry_run": self.dry_run,
            "continue_on_error": self.continue_on_error,
            "max_errors": self.max_errors,
            "output_dir": self.output_dir,
            "id_map_file": self.id_map_file,
            "save_report": self.save_report,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationConfig":
        """Create from a config file mapping; LEGACY_DATABASE_URL fills a missing URL."""
        return cls(
            name=data.get("name", ""),
            migration_id=data.get("migration_id", WEBFORM_MIGRATION_ID),
            legacy_database_url=data.get("legacy_database_url") or os.environ.get("LEGACY_DATABASE_URL"),
            table_prefix=data.get("table_prefix") or "",
            rows_file=data.get("rows_file"),
            rows_pattern=data.get("rows_pattern"),
            batch_size=data.get("batch_size", 50),
            destination_dir=data.get("destination_dir", "./config/sync"),
            dry_run=data.get("dry_run", False),
            continue_on_error=data.get("continue_on_error", True),
            max_errors=data.get("max_errors", 100),
            output_dir=data.get("output_dir", "./data"),
            id_map_file=data.get("id_map_file"),
            save_report=data.get("save_report", True),
        )


@dataclass
class Migration:
    """A migration definition as seen by event subscribers."""
    id: str
    id_map: Any = None  # IdMap of this migration
    label: str = ""

    def get_id_map(self) -> Any:
        """Get the source to destination id map."""
        return self.id_map
