"""Parsing of webform_civicrm element keys (civicrm_<i>_<entity>_<n>_<id>)."""

import re
from typing import Any, Dict, NamedTuple, Optional

CIVICRM_NAMESPACE = "civicrm"

_NUMERIC_SUFFIX = re.compile(r"_\d+$")
_CUSTOM_FIELD_ID = re.compile(r"(?:^|_)custom_\d+$")


class CivicrmKey(NamedTuple):
    """The parts of a civicrm_<i>_<entity>_<n>_<id> key."""
    i: str
    entity: str
    n: str
    id: str


def parse_civicrm_key(key: Any) -> Optional[CivicrmKey]:
    """
    Split a webform_civicrm key into its parts.

    Args:
        key: Element key such as "civicrm_1_contact_1_contact_first_name"

    Returns:
        CivicrmKey, or None when the key is not a CiviCRM key
    """
    if not isinstance(key, str):
        return None

    parts = key.split("_", 4)
    if len(parts) != 5 or parts[0] != CIVICRM_NAMESPACE:
        return None

    _, i, entity, n, field_id = parts
    return CivicrmKey(i=i, entity=entity, n=n, id=field_id)


def is_civicrm_key(key: Any) -> bool:
    return parse_civicrm_key(key) is not None


def _lookup(container: Any, key: str) -> Any:
    # Unserialized PHP arrays use int keys for numeric indexes
    if not isinstance(container, dict):
        return None
    if key in container:
        return container[key]
    if key.isdigit() and int(key) in container:
        return container[int(key)]
    return None


def get_settings_by_key(
    key: str,
    settings: Dict[Any, Any],
    entity: str = "contact"
) -> Optional[Dict[Any, Any]]:
    """
    Get the settings entry for a key from a form settings blob.

    The blob is laid out as settings[entity][i][ent][n].

    Args:
        key: Element key in the form civicrm_<i>_<ent>_<n>_<id>
        settings: Unserialized webform_civicrm_forms data
        entity: Top level entity to look under

    Returns:
        The settings entry, or None when the key does not parse or the
        entry is not present
    """
    parsed = parse_civicrm_key(key)
    if parsed is None:
        return None

    value = _lookup(settings, entity)
    for part in (parsed.i, parsed.entity, parsed.n):
        value = _lookup(value, part)
        if value is None:
            return None
    return value if isinstance(value, dict) else None


def normalize_element_key(key: Any) -> Any:
    """
    Strip a trailing numeric disambiguation suffix from a CiviCRM key.

    "civicrm_1_contact_1_first_name_3" becomes "civicrm_1_contact_1_first_name".
    Keys that are not CiviCRM keys, or would stop being one once stripped,
    are returned unchanged. So are custom field keys such as
    "civicrm_1_contact_1_cg1_custom_5", whose number is the custom field id.
    """
    parsed = parse_civicrm_key(key)
    if parsed is None or _CUSTOM_FIELD_ID.search(parsed.id):
        return key

    stripped = _NUMERIC_SUFFIX.sub("", key)
    if stripped != key and is_civicrm_key(stripped):
        return stripped
    return key
