"""Service layer for the migration application."""

from .key_parser import (
    CivicrmKey,
    parse_civicrm_key,
    get_settings_by_key,
    normalize_element_key,
)
from .element_migrator import ElementMigrator
from .handler_manager import HandlerManager
from .handler_installer import CivicrmHandlerInstaller, migrate_civicrm_data

__all__ = [
    "CivicrmKey",
    "parse_civicrm_key",
    "get_settings_by_key",
    "normalize_element_key",
    "ElementMigrator",
    "HandlerManager",
    "CivicrmHandlerInstaller",
    "migrate_civicrm_data",
]
