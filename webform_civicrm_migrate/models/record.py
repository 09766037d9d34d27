"""Row and id map models for migration data."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class RowStatus(str, Enum):
    """Status of a source row in the id map."""
    IMPORTED = "imported"
    NEEDS_UPDATE = "needs_update"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass
class MigrateRow:
    """A source row handed to subscribers before it is imported."""
    source: Dict[str, Any]
    id_keys: List[str] = field(default_factory=lambda: ["nid"])
    destination: Dict[str, Any] = field(default_factory=dict)

    def get(self, property_name: str, default: Any = None) -> Any:
        """Get a source property, or a destination property prefixed with '@'."""
        if property_name.startswith("@"):
            return self.destination.get(property_name[1:], default)
        return self.source.get(property_name, default)

    def has_source_property(self, property_name: str) -> bool:
        """Check whether a source property is set."""
        return property_name in self.source

    def set_source_property(self, property_name: str, value: Any) -> None:
        """Set a source property, replacing any existing value."""
        self.source[property_name] = value

    def set_destination_property(self, property_name: str, value: Any) -> None:
        """Set a destination property."""
        self.destination[property_name] = value

    @property
    def source_id_values(self) -> Dict[str, Any]:
        """Get the values of the source id keys."""
        return {key: self.source.get(key) for key in self.id_keys}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "source": self.source,
            "id_keys": self.id_keys,
            "destination": self.destination,
        }


@dataclass
class IdMapEntry:
    """Mapping of one source row to its destination entity."""
    sourceid1: str
    destid1: Optional[str] = None
    status: RowStatus = RowStatus.IMPORTED
    message: Optional[str] = None
    last_imported: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "sourceid1": self.sourceid1,
            "destid1": self.destid1,
            "status": self.status.value,
            "message": self.message,
            "last_imported": self.last_imported.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdMapEntry":
        """Create from dictionary representation."""
        last_imported = data.get("last_imported")
        return cls(
            sourceid1=str(data["sourceid1"]),
            destid1=data.get("destid1"),
            status=RowStatus(data.get("status", RowStatus.IMPORTED.value)),
            message=data.get("message"),
            last_imported=datetime.fromisoformat(last_imported) if last_imported else datetime.utcnow(),
        )


class IdMap:
    """
    Source to destination id bookkeeping for a single migration.

    Optionally persisted as JSON so that later runs (and the post-import
    phase of a run) can find which destination came from which source row.
    """

    def __init__(self, migration_id: str, path: Optional[str] = None):
        """
        Initialize the id map.

        Args:
            migration_id: Id of the migration this map belongs to
            path: Optional JSON file to load from and save to
        """
        self.migration_id = migration_id
        self.path = Path(path) if path else None
        self._entries: Dict[str, IdMapEntry] = {}

        if self.path and self.path.exists():
            self.load()

    def save_id_mapping(
        self,
        source_id: Any,
        destination_id: Optional[str] = None,
        status: RowStatus = RowStatus.IMPORTED,
        message: Optional[str] = None
    ) -> IdMapEntry:
        """Record (or replace) the mapping for a source id."""
        entry = IdMapEntry(
            sourceid1=str(source_id),
            destid1=destination_id,
            status=status,
            message=message,
        )
        self._entries[entry.sourceid1] = entry
        return entry

    def get_row_by_source(self, source_id: Any) -> Optional[Dict[str, Any]]:
        """Get the map row for a source id."""
        entry = self._entries.get(str(source_id))
        return entry.to_dict() if entry else None

    def get_row_by_destination(self, destination_ids: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Get the map row whose destination matches destination_ids['id']."""
        destination_id = destination_ids.get("id")
        if destination_id is None:
            return None
        for entry in self._entries.values():
            if entry.destid1 == destination_id and entry.status == RowStatus.IMPORTED:
                return entry.to_dict()
        return None

    def entries(self, status: Optional[RowStatus] = None) -> List[IdMapEntry]:
        """List map entries, optionally filtered by status."""
        if status is None:
            return list(self._entries.values())
        return [e for e in self._entries.values() if e.status == status]

    def processed_count(self) -> int:
        return len(self._entries)

    def imported_count(self) -> int:
        return len(self.entries(RowStatus.IMPORTED))

    def error_count(self) -> int:
        return len(self.entries(RowStatus.FAILED))

    def load(self) -> None:
        """Load entries from the JSON file."""
        with open(self.path) as f:
            data = json.load(f)
        self._entries = {}
        for item in data.get("rows", []):
            entry = IdMapEntry.from_dict(item)
            self._entries[entry.sourceid1] = entry
        logger.info(f"Loaded {len(self._entries)} id map rows for {self.migration_id}")

    def save(self) -> None:
        """Write entries to the JSON file, if one is configured."""
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump({
                "migration_id": self.migration_id,
                "rows": [e.to_dict() for e in self._entries.values()],
            }, f, indent=2)
