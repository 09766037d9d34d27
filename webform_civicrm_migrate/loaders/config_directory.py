"""Webform store backed by a Drupal config sync directory."""

import logging
from pathlib import Path
from typing import List, Optional

import yaml

from .base import BaseWebformStore
from ..models.webform import Webform

logger = logging.getLogger(__name__)

CONFIG_PREFIX = "webform.webform."


class ConfigDirectoryStore(BaseWebformStore):
    """
    Stores webforms as webform.webform.<id>.yml config files.

    The resulting directory can be imported into the destination site with
    its regular config import.
    """

    def __init__(self, directory: str, dry_run: bool = False):
        """
        Initialize the config directory store.

        Args:
            directory: Config sync directory
            dry_run: If True, log saves without writing files
        """
        super().__init__(dry_run=dry_run)
        self.directory = Path(directory)
        if not dry_run:
            self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, webform_id: str) -> Path:
        """Get the config file path of a webform."""
        return self.directory / f"{CONFIG_PREFIX}{webform_id}.yml"

    def load(self, webform_id: str) -> Optional[Webform]:
        path = self.path_for(webform_id)
        if not path.exists():
            return None
        return self._read(path)

    def load_all(self) -> List[Webform]:
        if not self.directory.exists():
            return []
        return [self._read(path) for path in sorted(self.directory.glob(f"{CONFIG_PREFIX}*.yml"))]

    def _read(self, path: Path) -> Webform:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if "id" not in data:
            data["id"] = path.name[len(CONFIG_PREFIX):-len(".yml")]
        return Webform.from_dict(data)

    def _write(self, webform: Webform) -> None:
        path = self.path_for(webform.id)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(webform.to_dict(), f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    def delete(self, webform_id: str) -> bool:
        path = self.path_for(webform_id)
        if not path.exists():
            return False
        path.unlink()
        return True
