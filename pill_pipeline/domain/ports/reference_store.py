"""
Reference Store Port

Abstract interface for the read-only pill reference database.
"""

from abc import ABC, abstractmethod
from typing import List

from ..entities.search import SearchQuery, PillRecord


class ReferenceStorePort(ABC):
    """
    Port (interface) for reference pill lookups.

    Matching policy: case-insensitive containment for shape, color and
    imprints; a symmetric tolerance window for size; exact scoring.
    Records come back in the store's own order.
    """

    @abstractmethod
    async def search(self, query: SearchQuery, limit: int = 20) -> List[PillRecord]:
        """
        Query the store.

        Raises:
            ReferenceStoreError: If the store cannot answer
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass
