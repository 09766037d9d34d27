"""In-memory webform store, used for dry runs and previews."""

from copy import deepcopy
from typing import Dict, List, Optional

from .base import BaseWebformStore
from ..models.webform import Webform


class MemoryWebformStore(BaseWebformStore):
    """Keeps webforms in a dictionary; loads return copies."""

    def __init__(self, webforms: Optional[List[Webform]] = None):
        super().__init__(dry_run=False)
        self._webforms: Dict[str, Webform] = {}
        self.save_count = 0
        for webform in webforms or []:
            self._webforms[webform.id] = deepcopy(webform)

    def load(self, webform_id: str) -> Optional[Webform]:
        webform = self._webforms.get(webform_id)
        return deepcopy(webform) if webform else None

    def load_all(self) -> List[Webform]:
        return [deepcopy(w) for w in self._webforms.values()]

    def _write(self, webform: Webform) -> None:
        self._webforms[webform.id] = deepcopy(webform)
        self.save_count += 1

    def delete(self, webform_id: str) -> bool:
        return self._webforms.pop(webform_id, None) is not None
