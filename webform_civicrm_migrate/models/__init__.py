"""Data models for the migration application."""

from .migration import (
    Migration,
    MigrationConfig,
    MigrationRun,
    MigrationPhase,
    MigrationStatus,
    WEBFORM_MIGRATION_ID,
    WEBFORM_SUBMISSIONS_MIGRATION_ID,
)
from .record import (
    MigrateRow,
    IdMap,
    IdMapEntry,
    RowStatus,
)
from .legacy import (
    CivicrmFormRecord,
    ComponentRecord,
)
from .webform import (
    Webform,
    WebformHandler,
    flatten_elements,
)

__all__ = [
    "Migration",
    "MigrationConfig",
    "MigrationRun",
    "MigrationPhase",
    "MigrationStatus",
    "WEBFORM_MIGRATION_ID",
    "WEBFORM_SUBMISSIONS_MIGRATION_ID",
    "MigrateRow",
    "IdMap",
    "IdMapEntry",
    "RowStatus",
    "CivicrmFormRecord",
    "ComponentRecord",
    "Webform",
    "WebformHandler",
    "flatten_elements",
]
