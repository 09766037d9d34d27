"""Webform CiviCRM migrate event subscriber."""

import logging
from typing import Any, Dict, List, Optional

import yaml

from .events import MigrateImportEvent, MigratePrepareRowEvent, MigrationEvent
from .exceptions import MigrateSkipRowError
from .models.migration import WEBFORM_MIGRATION_ID, WEBFORM_SUBMISSIONS_MIGRATION_ID
from .models.record import MigrateRow
from .models.webform import decode_elements
from .services.element_migrator import ElementMigrator
from .services.handler_installer import CivicrmHandlerInstaller
from .services.handler_manager import HandlerManager

logger = logging.getLogger(__name__)


class WebformCivicrmMigrateSubscriber:
    """
    Hooks the webform_civicrm migration into a migration run's events.

    - PRE_IMPORT: initializes the CiviCRM service once
    - PREPARE_ROW: rewrites the element tree of each webform row
    - POST_IMPORT: installs the webform_civicrm handler on migrated webforms
    """

    def __init__(
        self,
        legacy,
        store,
        civicrm: Optional[Any] = None,
        handler_manager: Optional[HandlerManager] = None
    ):
        """
        Initialize the subscriber.

        Args:
            legacy: Legacy database reader (LegacyDatabase)
            store: Destination webform store
            civicrm: Service with an initialize() method, run before import
                (defaults to the legacy database reader)
            handler_manager: Webform handler factory
        """
        self.legacy = legacy
        self.store = store
        self.civicrm = civicrm if civicrm is not None else legacy
        self.element_migrator = ElementMigrator(legacy)
        self.installer = CivicrmHandlerInstaller(legacy, store, handler_manager)
        self.installed_handlers: List[str] = []
        self._civicrm_initialized = False

    @staticmethod
    def get_subscribed_events() -> Dict[MigrationEvent, str]:
        return {
            MigrationEvent.PREPARE_ROW: "on_prepare_row",
            MigrationEvent.PRE_IMPORT: "on_pre_import",
            MigrationEvent.POST_IMPORT: "on_post_import",
        }

    def on_pre_import(self, event: MigrateImportEvent) -> None:
        """Initialize CiviCRM before a webform or submissions migration starts."""
        migration_id = event.get_migration().id
        if migration_id not in (WEBFORM_MIGRATION_ID, WEBFORM_SUBMISSIONS_MIGRATION_ID):
            return
        if self._civicrm_initialized:
            return

        self.civicrm.initialize()
        self._civicrm_initialized = True
        logger.info(f"CiviCRM initialized for {migration_id}")

    def on_prepare_row(self, event: MigratePrepareRowEvent) -> None:
        """
        React to a new row.

        Raises:
            MigrateSkipRowError: If the row cannot be migrated
        """
        if event.get_migration().id == WEBFORM_MIGRATION_ID:
            self.migrate_webform(event.get_row())

    def on_post_import(self, event: MigrateImportEvent) -> None:
        """Install the webform_civicrm handler on every migrated webform."""
        migration = event.get_migration()
        if migration.id != WEBFORM_MIGRATION_ID:
            return

        id_map = migration.get_id_map()
        self.installed_handlers = []

        for webform in self.store.load_all():
            webform_migration = id_map.get_row_by_destination({"id": webform.id}) if id_map else None
            if not webform_migration:
                # Not a migrated webform
                continue

            nid = webform_migration["sourceid1"]
            try:
                if self.installer.add_civicrm_handler(webform, int(nid)):
                    self.installed_handlers.append(webform.id)
            except MigrateSkipRowError as e:
                logger.warning(f"Skipped CiviCRM handler for webform {webform.id} (nid {nid}): {e}")

        logger.info(f"Installed CiviCRM handlers on {len(self.installed_handlers)} webform(s)")

    @staticmethod
    def get_nid(row: MigrateRow) -> int:
        """
        Get the legacy node id of a row.

        Raises:
            MigrateSkipRowError: If the nid is not numeric
        """
        nid = row.get("nid")
        if isinstance(nid, bool) or not (isinstance(nid, int) or (isinstance(nid, str) and nid.strip().isdigit())):
            raise MigrateSkipRowError(f"Expected numeric nid got something that's not an int: {nid!r}")
        return int(nid)

    def migrate_webform(self, row: MigrateRow) -> None:
        """
        Rewrite the element tree of a webform row.

        Rows of webforms without CiviCRM settings are left untouched.

        Raises:
            MigrateSkipRowError: If the row cannot be migrated
        """
        nid = self.get_nid(row)
        form_settings = self.legacy.get_form_settings(nid)
        if not form_settings:
            logger.debug(f"No CiviCRM settings for nid {nid}")
            return

        try:
            elements = decode_elements(row.get("elements"))
        except yaml.YAMLError as e:
            raise MigrateSkipRowError(f"Failed to decode elements of nid {nid}: {e}")

        row.set_source_property(
            "elements",
            self.element_migrator.migrate_elements(elements, form_settings, nid),
        )
        logger.debug(f"Migrated CiviCRM elements of nid {nid}")
