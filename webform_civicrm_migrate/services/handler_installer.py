"""Installation of the webform_civicrm handler on migrated webforms."""

import logging
from copy import deepcopy
from typing import Any, Dict, Optional

from ..models.webform import Webform
from .element_migrator import lowercase_sub_types
from .handler_manager import CIVICRM_HANDLER_ID, HandlerManager
from .key_parser import CIVICRM_NAMESPACE

logger = logging.getLogger(__name__)

# Settings that must exist as strings even when the legacy form left them empty
REQUIRED_SETTINGS_KEYS = (
    "block_unknown_users",
    "prefix_unknown",
    "prefix_known",
    "message",
)


def derive_contact_settings(data: Dict[Any, Any]) -> Dict[str, Any]:
    """
    Derive the per-contact handler settings from legacy form data.

    Args:
        data: Unserialized webform_civicrm_forms data

    Returns:
        number_of_contacts plus, for each contact block c and inner contact d,
        <c>_contact_type, <c>_webform_label and
        civicrm_<c>_contact_<d>_contact_contact_sub_type
    """
    contacts = data.get("contact") or {}
    derived: Dict[str, Any] = {"number_of_contacts": len(contacts)}

    for c, contact_data in contacts.items():
        if not isinstance(contact_data, dict) or not contact_data.get("contact"):
            continue
        for d, inner in contact_data["contact"].items():
            derived[f"{c}_contact_type"] = inner.get("contact_type", "")
            derived[f"{c}_webform_label"] = inner.get("webform_label", "")
            derived[f"civicrm_{c}_contact_{d}_contact_contact_sub_type"] = lowercase_sub_types(
                inner.get("contact_sub_type")
            )

    return derived


def migrate_civicrm_data(data: Dict[Any, Any]) -> Dict[Any, Any]:
    """
    Convert legacy form data into the handler's settings data.

    Returns a new mapping; contact sub-types are lower-cased and the
    derived per-contact settings are added at the top level.
    """
    result = deepcopy(data)

    for contact_data in (result.get("contact") or {}).values():
        if not isinstance(contact_data, dict):
            continue
        for inner in (contact_data.get("contact") or {}).values():
            if inner.get("contact_sub_type"):
                inner["contact_sub_type"] = lowercase_sub_types(inner["contact_sub_type"])

    result.update(derive_contact_settings(data))
    return result


class CivicrmHandlerInstaller:
    """
    Attaches and configures the webform_civicrm handler on a webform.

    The handler is attached and saved first so its default configuration
    exists, then its settings are rebuilt from the legacy form and saved
    again. A webform that already has the handler is reconfigured in place.
    """

    def __init__(self, legacy, store, handler_manager: Optional[HandlerManager] = None):
        """
        Initialize the installer.

        Args:
            legacy: Legacy database reader (get_form_record)
            store: Destination webform store
            handler_manager: Handler factory (defaults to HandlerManager())
        """
        self.legacy = legacy
        self.store = store
        self.handler_manager = handler_manager or HandlerManager()

    @staticmethod
    def has_civicrm_elements(webform: Webform) -> bool:
        """Check if any element key of the webform mentions civicrm."""
        return any(CIVICRM_NAMESPACE in key for key in webform.get_elements_flattened())

    def add_civicrm_handler(self, webform: Webform, nid: int) -> Optional[Webform]:
        """
        Install the webform_civicrm handler on a webform.

        Args:
            webform: Destination webform
            nid: Node id the webform was migrated from

        Returns:
            The saved webform, or None when nothing was installed

        Raises:
            MigrateSkipRowError: If the legacy form data is unusable
        """
        if not self.has_civicrm_elements(webform):
            return None

        record = self.legacy.get_form_record(nid)
        if record is None:
            logger.warning(f"Webform {webform.id} has CiviCRM elements but nid {nid} has no CiviCRM settings")
            return None

        handler = webform.get_handler(CIVICRM_HANDLER_ID)
        if handler is None:
            handler = self.handler_manager.create_instance(CIVICRM_HANDLER_ID)
            handler.status = True
            webform.add_handler(handler)
            self.store.save(webform)

            # Dry-run stores skip writes, so a reload may return a stale copy
            if not self.store.dry_run:
                reloaded = self.store.load(webform.id)
                if reloaded is not None and reloaded.has_handler(CIVICRM_HANDLER_ID):
                    webform = reloaded
                    handler = webform.get_handler(CIVICRM_HANDLER_ID)
        else:
            logger.info(f"Webform {webform.id} already has a {CIVICRM_HANDLER_ID} handler, updating it")

        config = handler.get_configuration()
        settings = config.setdefault("settings", {})
        settings["data"] = migrate_civicrm_data(record.data)
        settings.update(derive_contact_settings(record.data))
        settings.update(record.form_options())

        for key in REQUIRED_SETTINGS_KEYS:
            if not settings.get(key):
                settings[key] = ""

        handler.set_configuration(config)
        self.store.save(webform)

        logger.info(f"Installed {CIVICRM_HANDLER_ID} handler on webform {webform.id} (nid {nid})")
        return webform
