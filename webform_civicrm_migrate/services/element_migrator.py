"""Migration of webform element trees carrying webform_civicrm elements."""

import logging
from copy import deepcopy
from typing import Any, Dict, Optional, Tuple

from ..exceptions import MigrateSkipRowError
from ..models.webform import PROPERTY_PREFIX, is_child_key
from .key_parser import CIVICRM_NAMESPACE, get_settings_by_key, normalize_element_key

logger = logging.getLogger(__name__)

CONTACT_ELEMENT_TYPES = ("civicrm_contact",)
FIELDSET_ELEMENT_TYPES = ("fieldset",)

# Attribute order follows the civicrm_contact element plugin so that
# re-saving a migrated form in the UI produces no ordering diff.
CONTACT_ELEMENT_DEFAULTS: Tuple[Tuple[str, Any], ...] = (
    ("show_hidden_contact", 0),
    ("results_display", {"display_name": "display_name"}),
    ("widget", ""),
    ("search_prompt", ""),
    ("none_prompt", ""),
    ("allow_create", 0),
    ("no_autofill", []),
    ("hide_fields", []),
    ("hide_method", "hide"),
    ("no_hide_blank", False),
    ("submit_disabled", False),
    ("private", False),
    ("default", ""),
    ("default_contact_id", ""),
    ("default_relationship_to", ""),
    ("default_relationship", ""),
    ("allow_url_autofill", True),
    ("dupes_allowed", False),
    ("filter_relationship_types", []),
    ("filter_relationship_contact", []),
    ("group", []),
    ("tag", []),
    ("check_permissions", 1),
    ("expose_list", False),
    ("empty_option", ""),
)


def lowercase_sub_types(value: Any) -> Dict[str, str]:
    """Lower-case both keys and values of a contact sub-type map."""
    if not value:
        return {}
    if isinstance(value, dict):
        return {str(k).lower(): str(v).lower() for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return {str(v).lower(): str(v).lower() for v in value}
    return {str(value).lower(): str(value).lower()}


class ElementMigrator:
    """
    Rewrites a decoded webform element tree for webform_civicrm.

    Walks the tree depth first and returns a rebuilt copy:
    - Missing element types are resolved from webform_component
    - Suffixed CiviCRM child keys are renamed to their legacy form key
    - civicrm_contact elements get their component settings applied
    - CiviCRM fieldsets drop the UI-only #open property
    """

    def __init__(self, components):
        """
        Initialize the element migrator.

        Args:
            components: Source of legacy component data, providing
                get_component_type(nid, form_key) and
                get_component_extra(nid, form_key) (e.g. LegacyDatabase)
        """
        self.components = components

    def migrate_elements(
        self,
        elements: Dict[Any, Any],
        form_settings: Dict[Any, Any],
        nid: int
    ) -> Dict[Any, Any]:
        """
        Migrate the root elements of a form.

        Each root element is tagged with its own key as #form_key first,
        since legacy rows do not always carry it at the root.
        """
        tagged = {}
        for key, value in elements.items():
            if is_child_key(key) and isinstance(value, dict):
                value = dict(value)
                value["#form_key"] = normalize_element_key(key)
            tagged[key] = value
        return self._migrate_children(tagged, form_settings, nid)

    def migrate_element(
        self,
        element: Dict[Any, Any],
        form_settings: Dict[Any, Any],
        nid: int,
        form_key: Optional[str] = None
    ) -> Dict[Any, Any]:
        """
        Migrate one element and, recursively, its children.

        Args:
            element: The element to migrate (not modified)
            form_settings: Unserialized webform_civicrm_forms data of the form
            nid: Node id of the webform in Drupal 7
            form_key: Form key to use when the element has no #form_key

        Returns:
            The migrated element

        Raises:
            MigrateSkipRowError: If the form cannot be migrated
        """
        element = dict(element)
        form_key = element.get("#form_key", form_key)

        if not element.get("#type") and form_key:
            element_type = self.components.get_component_type(nid, str(form_key))
            if element_type:
                element["#type"] = element_type

        element = self._migrate_children(element, form_settings, nid)

        if not isinstance(form_key, str) or not form_key.startswith(CIVICRM_NAMESPACE):
            return element

        element_type = element.get("#type")
        if element_type in CONTACT_ELEMENT_TYPES:
            element = self.migrate_contact_element(element, form_settings, nid, form_key)
        elif element_type in FIELDSET_ELEMENT_TYPES:
            element.pop("#open", None)

        return element

    def _migrate_children(
        self,
        element: Dict[Any, Any],
        form_settings: Dict[Any, Any],
        nid: int
    ) -> Dict[Any, Any]:
        """Rebuild an element with its children migrated and renamed."""
        result: Dict[Any, Any] = {}

        for key, value in element.items():
            if not (is_child_key(key) and isinstance(value, dict)):
                result[key] = deepcopy(value)
                continue

            new_key = normalize_element_key(key)
            if new_key != key and (new_key in element or new_key in result):
                logger.warning(f"Cannot rename element {key} to {new_key} for nid {nid}: key already in use")
                new_key = key
            elif new_key != key:
                logger.debug(f"Renamed element {key} to {new_key}")

            result[new_key] = self.migrate_element(value, form_settings, nid, form_key=new_key)

        return result

    def migrate_contact_element(
        self,
        element: Dict[Any, Any],
        form_settings: Dict[Any, Any],
        nid: int,
        form_key: Optional[str] = None
    ) -> Dict[Any, Any]:
        """
        Apply legacy settings and component extra data to a civicrm_contact element.

        Args:
            element: The civicrm_contact element
            form_settings: Unserialized webform_civicrm_forms data of the form
            nid: Node id of the webform in Drupal 7
            form_key: Form key to use when the element has no #form_key

        Returns:
            The enriched element

        Raises:
            MigrateSkipRowError: If no contact settings exist for the element
        """
        form_key = element.get("#form_key", form_key)
        settings = get_settings_by_key(form_key, form_settings, "contact")
        if not settings or "contact_type" not in settings:
            raise MigrateSkipRowError(
                f"Failed to find contact type from D7 Webform CiviCRM Settings for {form_key} (nid {nid})"
            )

        extra = self.components.get_component_extra(nid, form_key)
        element = dict(element)

        for attribute, default in CONTACT_ELEMENT_DEFAULTS:
            value = extra.get(attribute)
            element[PROPERTY_PREFIX + attribute] = deepcopy(default if value is None else value)

        known = {attribute for attribute, _ in CONTACT_ELEMENT_DEFAULTS}
        for key, value in extra.items():
            if key in known:
                continue
            if isinstance(value, dict):
                for inner_key, inner_value in value.items():
                    if inner_key == "results_display" and not isinstance(inner_value, (dict, list)):
                        element["#results_display"] = {inner_value: inner_value}
                    else:
                        element[f"#{inner_key}"] = deepcopy(inner_value)
            else:
                element[f"#{key}"] = deepcopy(value)

        element["#contact_type"] = settings["contact_type"]
        sub_types = lowercase_sub_types(settings.get("contact_sub_type"))
        if sub_types:
            element["#contact_sub_type"] = sub_types

        if not element.get("#contact_sub_type"):
            element.pop("#contact_sub_type", None)

        return element
