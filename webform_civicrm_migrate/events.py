"""Migration lifecycle events and their dispatcher."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List

from .models.migration import Migration
from .models.record import MigrateRow

logger = logging.getLogger(__name__)


class MigrationEvent(str, Enum):
    """Lifecycle events fired during a migration run."""
    PRE_IMPORT = "migrate.pre_import"
    PREPARE_ROW = "migrate_plus.prepare_row"
    POST_IMPORT = "migrate.post_import"


@dataclass
class MigrateImportEvent:
    """Fired before and after a migration imports its rows."""
    migration: Migration

    def get_migration(self) -> Migration:
        return self.migration


@dataclass
class MigratePrepareRowEvent:
    """Fired for each source row before it is imported."""
    migration: Migration
    row: MigrateRow

    def get_migration(self) -> Migration:
        return self.migration

    def get_row(self) -> MigrateRow:
        return self.row


class EventDispatcher:
    """
    Synchronous event dispatcher.

    Listeners run in registration order. Exceptions raised by a listener
    propagate to the caller of dispatch().
    """

    def __init__(self):
        self._listeners: Dict[MigrationEvent, List[Callable[[Any], None]]] = {}

    def add_listener(self, event_name: MigrationEvent, listener: Callable[[Any], None]) -> None:
        """Register a listener for an event."""
        self._listeners.setdefault(MigrationEvent(event_name), []).append(listener)

    def add_subscriber(self, subscriber: Any) -> None:
        """Register every listener a subscriber declares in get_subscribed_events()."""
        for event_name, method_name in subscriber.get_subscribed_events().items():
            self.add_listener(event_name, getattr(subscriber, method_name))

    def get_listeners(self, event_name: MigrationEvent) -> List[Callable[[Any], None]]:
        return list(self._listeners.get(MigrationEvent(event_name), []))

    def dispatch(self, event_name: MigrationEvent, event: Any) -> Any:
        """
        Call every listener of an event.

        Returns:
            The event, after all listeners have seen it
        """
        for listener in self.get_listeners(event_name):
            listener(event)
        return event
