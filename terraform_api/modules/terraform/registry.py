"""In-memory store of active templates, keyed by template name.

The registry does no locking of its own; callers serialize access per name
(see ``locks.KeyedLock``). Contents live only as long as the process.
"""
import logging
from typing import Dict, Optional

from terraform_api.modules.terraform.models import TemplateRecord

logger = logging.getLogger(__name__)


class TemplateRegistry:
    def __init__(self):
        self._records: Dict[str, TemplateRecord] = {}

    def get(self, name: str) -> Optional[TemplateRecord]:
        return self._records.get(name)

    def set(self, name: str, record: TemplateRecord) -> None:
        self._records[name] = record
        logger.debug(f"Stored record for template {name}")

    def delete(self, name: str) -> None:
        self._records.pop(name, None)
        logger.debug(f"Removed record for template {name}")

    def list_all(self) -> Dict[str, TemplateRecord]:
        return dict(self._records)

    def clear(self) -> None:
        self._records.clear()

    def __contains__(self, name: str) -> bool:
        return name in self._records

    def __len__(self) -> int:
        return len(self._records)
