"""Base store interface for destination webforms."""

from abc import ABC, abstractmethod
from typing import List, Optional
import logging

from ..models.record import MigrateRow
from ..models.webform import Webform, decode_elements

logger = logging.getLogger(__name__)


class BaseWebformStore(ABC):
    """
    Base class for destination webform stores.

    Stores persist webform config entities and turn prepared source rows
    into webforms.
    """

    def __init__(self, dry_run: bool = False):
        """
        Initialize the store.

        Args:
            dry_run: If True, log saves without persisting them
        """
        self.dry_run = dry_run
        self._created_ids: List[str] = []

    @abstractmethod
    def load(self, webform_id: str) -> Optional[Webform]:
        """
        Load a webform by id.

        Returns:
            The webform, or None if it does not exist
        """
        pass

    @abstractmethod
    def load_all(self) -> List[Webform]:
        """Load every webform in the store."""
        pass

    @abstractmethod
    def _write(self, webform: Webform) -> None:
        """Persist a webform."""
        pass

    @abstractmethod
    def delete(self, webform_id: str) -> bool:
        """
        Delete a webform.

        Returns:
            True if the webform existed and was deleted
        """
        pass

    def save(self, webform: Webform) -> None:
        """Save a webform, unless this is a dry run."""
        if self.dry_run:
            logger.info(f"[DRY RUN] Would save webform {webform.id}")
            return
        self._write(webform)
        logger.debug(f"Saved webform {webform.id}")

    def import_row(self, row: MigrateRow) -> Webform:
        """
        Create or update the webform for a prepared source row.

        Handlers of an existing webform are kept, so re-importing a row
        does not drop an installed handler.

        Args:
            row: Source row after subscribers have prepared it

        Returns:
            The saved webform
        """
        webform_id = str(row.get("webform_id") or f"webform_{row.get('nid')}")
        existing = self.load(webform_id)

        webform = Webform(
            id=webform_id,
            title=row.get("title") or "",
            status=row.get("status") or "open",
            description=row.get("description") or "",
            elements=decode_elements(row.get("elements")),
            handlers=existing.handlers if existing else {},
            settings=existing.settings if existing else {},
        )
        self.save(webform)

        if existing is None:
            self._created_ids.append(webform_id)
        row.set_destination_property("id", webform_id)
        return webform

    def rollback(self) -> int:
        """
        Delete webforms created through import_row.

        Returns:
            Number of webforms deleted
        """
        count = 0
        for webform_id in self._created_ids:
            try:
                if self.delete(webform_id):
                    count += 1
            except OSError as e:
                logger.error(f"Failed to delete webform {webform_id}: {e}")
        self._created_ids = []
        logger.info(f"Rolled back {count} webforms")
        return count

    def get_created_ids(self) -> List[str]:
        """Get ids of webforms created through import_row."""
        return list(self._created_ids)
