"""Factory for webform handler plugins."""

import logging
from copy import deepcopy
from typing import Any, Dict, List

from ..exceptions import PluginNotFoundError
from ..models.webform import WebformHandler

logger = logging.getLogger(__name__)

CIVICRM_HANDLER_ID = "webform_civicrm"

# Default settings of the webform_civicrm handler plugin
CIVICRM_HANDLER_DEFAULTS: Dict[str, Any] = {
    "label": "CiviCRM",
    "settings": {
        "nid": 1,
        "number_of_contacts": 1,
        "1_contact_type": "individual",
        "1_webform_label": "Contact 1",
        "civicrm_1_contact_1_contact_contact_sub_type": {},
        "civicrm_1_contact_1_contact_existing": "create_civicrm_webform_element",
        "prefix_known": "",
        "prefix_unknown": "",
        "message": "",
        "activity_type_id": 0,
        "confirm_subscription": 1,
        "block_unknown_users": 0,
        "create_new_relationship": 0,
        "disable_contact_paging": 0,
        "create_fieldsets": 1,
        "new_contact_source": "",
        "data": {
            "contact": {
                1: {
                    "contact": {
                        1: {
                            "contact_type": "individual",
                            "contact_sub_type": {},
                            "webform_label": "Contact 1",
                        },
                    },
                },
            },
            "reg_options": {
                "validate": 1,
            },
        },
    },
}


class HandlerManager:
    """
    Creates webform handler instances from registered plugin defaults.

    The webform_civicrm plugin is registered on construction; other plugins
    can be added with register_plugin().
    """

    def __init__(self):
        """Initialize the handler manager."""
        self._definitions: Dict[str, Dict[str, Any]] = {}
        self.register_plugin(CIVICRM_HANDLER_ID, CIVICRM_HANDLER_DEFAULTS)

    def register_plugin(self, plugin_id: str, defaults: Dict[str, Any]) -> None:
        """Register a handler plugin and its default configuration."""
        self._definitions[plugin_id] = deepcopy(defaults)

    def has_plugin(self, plugin_id: str) -> bool:
        return plugin_id in self._definitions

    def list_plugins(self) -> List[str]:
        return list(self._definitions.keys())

    def create_instance(self, plugin_id: str) -> WebformHandler:
        """
        Create a handler with the plugin's default configuration.

        Raises:
            PluginNotFoundError: If the plugin id is not registered
        """
        if plugin_id not in self._definitions:
            raise PluginNotFoundError(f"Unknown webform handler plugin: {plugin_id}")

        defaults = deepcopy(self._definitions[plugin_id])
        return WebformHandler(
            id=plugin_id,
            handler_id=plugin_id,
            label=defaults.get("label", plugin_id),
            notes=defaults.get("notes", ""),
            status=defaults.get("status", True),
            conditions=defaults.get("conditions", {}),
            weight=defaults.get("weight", 0),
            settings=defaults.get("settings", {}),
        )
