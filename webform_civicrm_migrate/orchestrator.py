"""Migration orchestrator - runs the webform migration and fires its events."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

from .events import EventDispatcher, MigrateImportEvent, MigratePrepareRowEvent, MigrationEvent
from .exceptions import ConfigurationError, MigrateError, MigrateSkipRowError
from .extractors.base import BaseExtractor
from .extractors.legacy_database import LegacyDatabase
from .extractors.row_file import RowFileExtractor
from .loaders.base import BaseWebformStore
from .loaders.config_directory import ConfigDirectoryStore
from .loaders.memory_store import MemoryWebformStore
from .models.migration import Migration, MigrationConfig, MigrationPhase, MigrationRun, MigrationStatus
from .models.record import IdMap, MigrateRow, RowStatus
from .subscriber import WebformCivicrmMigrateSubscriber

logger = logging.getLogger(__name__)


class MigrationOrchestrator:
    """
    Orchestrates a webform migration run.

    Handles:
    - Firing PRE_IMPORT, PREPARE_ROW and POST_IMPORT to subscribers
    - Importing prepared rows into the destination store
    - Id map bookkeeping, including skipped rows
    - Per-phase counters and the JSON report
    """

    def __init__(
        self,
        config: MigrationConfig,
        legacy: Optional[LegacyDatabase] = None,
        extractor: Optional[BaseExtractor] = None,
        store: Optional[BaseWebformStore] = None,
        dispatcher: Optional[EventDispatcher] = None,
        civicrm: Optional[Any] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Migration configuration
            legacy: Legacy database reader (built from config if omitted)
            extractor: Source row extractor (built from config if omitted)
            store: Destination store (config directory, or memory on dry runs)
            dispatcher: Event dispatcher to register the subscriber on
            civicrm: CiviCRM service initialized before import
        """
        self.config = config
        self.legacy = legacy or self._create_legacy_database()
        self.extractor = extractor or RowFileExtractor(
            file_path=config.rows_file,
            file_pattern=config.rows_pattern,
            batch_size=config.batch_size,
        )
        self.store = store or self._create_store()
        self.id_map = IdMap(config.migration_id, None if config.dry_run else config.id_map_file)
        self.migration = Migration(id=config.migration_id, id_map=self.id_map, label=config.name)

        self.dispatcher = dispatcher or EventDispatcher()
        self.subscriber = WebformCivicrmMigrateSubscriber(self.legacy, self.store, civicrm=civicrm)
        self.dispatcher.add_subscriber(self.subscriber)

        self.run: Optional[MigrationRun] = None
        self.logs_dir = Path(config.output_dir) / "logs"

    def _create_legacy_database(self) -> LegacyDatabase:
        if not self.config.legacy_database_url:
            raise ConfigurationError("legacy_database_url is required (or set LEGACY_DATABASE_URL)")
        return LegacyDatabase(self.config.legacy_database_url, table_prefix=self.config.table_prefix)

    def _create_store(self) -> BaseWebformStore:
        if self.config.dry_run:
            return MemoryWebformStore()
        return ConfigDirectoryStore(self.config.destination_dir)

    def run_migration(self) -> MigrationRun:
        """
        Run the complete migration.

        Returns:
            MigrationRun with per-phase counters
        """
        self.run = MigrationRun(
            migration_id=self.config.migration_id,
            name=self.config.name,
            dry_run=self.config.dry_run,
        )
        self.run.started_at = datetime.utcnow()

        try:
            logger.info("=== PHASE 1: PRE IMPORT ===")
            self._run_phase(MigrationStatus.PRE_IMPORT, self._pre_import)

            logger.info("=== PHASE 2: IMPORT ===")
            self._run_phase(MigrationStatus.IMPORTING, self._import_rows)

            logger.info("=== PHASE 3: POST IMPORT ===")
            self._run_phase(MigrationStatus.POST_IMPORT, self._post_import)

            self.run.status = MigrationStatus.COMPLETED
            logger.info("=== MIGRATION COMPLETED ===")

        except Exception as e:
            logger.error(f"Migration failed during {self.run.status.value}: {e}")
            self.run.errors.append({
                "phase": self.run.status.value,
                "error": str(e),
                "timestamp": datetime.utcnow().isoformat(),
            })
            self.run.status = MigrationStatus.FAILED

        finally:
            self.run.completed_at = datetime.utcnow()
            self.id_map.save()
            if self.config.save_report:
                self._save_report()

        return self.run

    def _run_phase(self, status: MigrationStatus, work) -> None:
        phase = self.run.start_phase(status)
        try:
            work(phase)
        except Exception:
            phase.finish(MigrationStatus.FAILED)
            raise
        phase.finish(MigrationStatus.COMPLETED)

    def _pre_import(self, phase: MigrationPhase) -> None:
        self.dispatcher.dispatch(MigrationEvent.PRE_IMPORT, MigrateImportEvent(self.migration))

    def _import_rows(self, phase: MigrationPhase) -> None:
        for batch in self.extractor.stream(self.config.batch_size):
            for row in batch:
                self.import_row(row, phase)

        extraction_errors = self.extractor.get_errors()
        for error in extraction_errors:
            phase.add_error(None, error["message"])
        if extraction_errors and not phase.rows_processed:
            raise MigrateError(f"No source rows could be read: {extraction_errors[0]['message']}")

        logger.info(f"Imported {phase.rows_imported}/{phase.rows_processed} rows")

    def _post_import(self, phase: MigrationPhase) -> None:
        self.dispatcher.dispatch(MigrationEvent.POST_IMPORT, MigrateImportEvent(self.migration))
        phase.rows_imported = len(self.subscriber.installed_handlers)
        phase.rows_processed = phase.rows_imported

    def import_row(self, row: MigrateRow, phase: MigrationPhase) -> bool:
        """
        Prepare and import a single row.

        Returns:
            True if the row was imported

        Raises:
            RuntimeError: Once max_errors rows were skipped or failed
        """
        source_id = row.get("nid")
        phase.rows_processed += 1

        try:
            self.dispatcher.dispatch(MigrationEvent.PREPARE_ROW, MigratePrepareRowEvent(self.migration, row))
            webform = self.store.import_row(row)
            self.id_map.save_id_mapping(source_id, webform.id, RowStatus.IMPORTED)
            phase.rows_imported += 1
            return True

        except MigrateSkipRowError as e:
            logger.warning(f"Skipped row nid {source_id}: {e.message}")
            if e.save_to_map:
                self.id_map.save_id_mapping(source_id, None, RowStatus.FAILED, e.message)
            phase.rows_skipped += 1
            phase.add_error(source_id, e.message)

        except Exception as e:
            logger.error(f"Failed to import row nid {source_id}: {e}")
            self.id_map.save_id_mapping(source_id, None, RowStatus.FAILED, str(e))
            phase.rows_failed += 1
            phase.add_error(source_id, str(e))
            if not self.config.continue_on_error:
                raise

        if len(phase.errors) >= self.config.max_errors:
            raise RuntimeError(f"Max errors ({self.config.max_errors}) exceeded")
        return False

    def preview_rows(self, rows: List[MigrateRow]) -> List[MigrateRow]:
        """
        Prepare rows without importing them.

        Skipped rows are returned with a "skip_reason" destination property.
        """
        for row in rows:
            try:
                self.dispatcher.dispatch(MigrationEvent.PREPARE_ROW, MigratePrepareRowEvent(self.migration, row))
            except MigrateSkipRowError as e:
                row.set_destination_property("skip_reason", e.message)
        return rows

    def rollback(self) -> int:
        """Delete the webforms created by this run."""
        deleted = self.store.rollback()
        logger.info(f"Rollback completed: {deleted} webform(s) deleted")
        return deleted

    def _save_report(self):
        """Save the migration report."""
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.logs_dir / f"migration_report_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.json"
        report = self.run.to_dict()
        report["config"] = self.config.to_dict()
        report["id_map"] = [e.to_dict() for e in self.id_map.entries()]
        with open(filepath, 'w') as f:
            json.dump(report, f, indent=2, default=str)
        logger.info(f"Saved migration report to {filepath}")
