"""Destination webform entity and handler models."""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml

PROPERTY_PREFIX = "#"


def is_property_key(key: Any) -> bool:
    """Check if an element key is a property (starts with '#')."""
    return isinstance(key, str) and key.startswith(PROPERTY_PREFIX)


def is_child_key(key: Any) -> bool:
    """Check if an element key names a child element."""
    if isinstance(key, int):
        return True
    return isinstance(key, str) and key != "" and not key.startswith(PROPERTY_PREFIX)


def iter_children(element: Dict[Any, Any]) -> Iterator[Tuple[Any, Dict[Any, Any]]]:
    """Yield (key, child) for every child element of an element."""
    for key, value in element.items():
        if is_child_key(key) and isinstance(value, dict):
            yield key, value


def flatten_elements(elements: Dict[Any, Any]) -> Dict[str, Dict[Any, Any]]:
    """
    Flatten an element tree into a mapping of key to element.

    Args:
        elements: Root mapping of element key to element

    Returns:
        Every element in the tree keyed by its element key, in tree order
    """
    flattened: Dict[str, Dict[Any, Any]] = {}
    for key, element in iter_children(elements):
        flattened[str(key)] = element
        flattened.update(flatten_elements(element))
    return flattened


def decode_elements(value: Any) -> Dict[Any, Any]:
    """Decode an elements value stored as YAML (or already decoded)."""
    if value is None or value == "":
        return {}
    if isinstance(value, dict):
        return value
    decoded = yaml.safe_load(value)
    return decoded if isinstance(decoded, dict) else {}


def encode_elements(elements: Dict[Any, Any]) -> str:
    """Encode an element tree as YAML, keeping key order."""
    if not elements:
        return ""
    return yaml.safe_dump(elements, default_flow_style=False, sort_keys=False, allow_unicode=True)


@dataclass
class WebformHandler:
    """A handler plugin attached to a webform."""
    id: str  # Plugin id
    handler_id: str
    label: str = ""
    notes: str = ""
    status: bool = True
    conditions: Dict[str, Any] = field(default_factory=dict)
    weight: int = 0
    settings: Dict[str, Any] = field(default_factory=dict)

    def get_configuration(self) -> Dict[str, Any]:
        """Get a copy of the handler configuration."""
        return {
            "id": self.id,
            "label": self.label,
            "notes": self.notes,
            "handler_id": self.handler_id,
            "status": self.status,
            "conditions": deepcopy(self.conditions),
            "weight": self.weight,
            "settings": deepcopy(self.settings),
        }

    def set_configuration(self, configuration: Dict[str, Any]) -> None:
        """Replace the handler configuration; the plugin id is fixed."""
        self.label = configuration.get("label", self.label)
        self.notes = configuration.get("notes", self.notes)
        self.handler_id = configuration.get("handler_id", self.handler_id)
        self.status = bool(configuration.get("status", self.status))
        self.conditions = deepcopy(configuration.get("conditions", self.conditions))
        self.weight = configuration.get("weight", self.weight)
        self.settings = deepcopy(configuration.get("settings", self.settings))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.get_configuration()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WebformHandler":
        """Create from dictionary representation."""
        return cls(
            id=data.get("id", ""),
            handler_id=data.get("handler_id", data.get("id", "")),
            label=data.get("label", ""),
            notes=data.get("notes", ""),
            status=bool(data.get("status", True)),
            conditions=data.get("conditions") or {},
            weight=data.get("weight", 0),
            settings=data.get("settings") or {},
        )


@dataclass
class Webform:
    """A destination webform config entity."""
    id: str
    title: str = ""
    status: str = "open"
    description: str = ""
    elements: Dict[Any, Any] = field(default_factory=dict)
    handlers: Dict[str, WebformHandler] = field(default_factory=dict)
    settings: Dict[str, Any] = field(default_factory=dict)

    def get_elements_flattened(self) -> Dict[str, Dict[Any, Any]]:
        """Get every element in the tree keyed by element key."""
        return flatten_elements(self.elements)

    def add_handler(self, handler: WebformHandler) -> None:
        """Attach a handler, replacing any handler with the same handler id."""
        self.handlers[handler.handler_id] = handler

    def get_handler(self, handler_id: str) -> Optional[WebformHandler]:
        return self.handlers.get(handler_id)

    def get_handlers(self, plugin_id: Optional[str] = None) -> List[WebformHandler]:
        """Get handlers, optionally only those of a plugin id."""
        if plugin_id is None:
            return list(self.handlers.values())
        return [h for h in self.handlers.values() if h.id == plugin_id]

    def has_handler(self, handler_id: str) -> bool:
        return handler_id in self.handlers

    def to_dict(self) -> Dict[str, Any]:
        """Convert to Drupal config export representation."""
        return {
            "langcode": "en",
            "status": self.status,
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "elements": encode_elements(self.elements),
            "settings": self.settings,
            "handlers": {key: h.to_dict() for key, h in self.handlers.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Webform":
        """Create from Drupal config export representation."""
        handlers = {}
        for key, handler_data in (data.get("handlers") or {}).items():
            handler = WebformHandler.from_dict(handler_data)
            handlers[handler.handler_id or key] = handler

        return cls(
            id=data["id"],
            title=data.get("title", ""),
            status=data.get("status", "open"),
            description=data.get("description", ""),
            elements=decode_elements(data.get("elements")),
            handlers=handlers,
            settings=data.get("settings") or {},
        )
