"""
In-Memory Reference Store

Reference pill lookups over records loaded from a JSON file.
"""

from typing import Optional, List, Iterable, Any, Dict
from pathlib import Path
import json
import logging

from ...domain.ports.reference_store import ReferenceStorePort
from ...domain.entities.search import SearchQuery, PillRecord
from ...domain.exceptions import ReferenceStoreError


logger = logging.getLogger(__name__)


def _contains(needle: Optional[str], haystack: Optional[str]) -> bool:
    if needle is None:
        return True
    return needle.lower() in (haystack or "").lower()


def record_matches(
    record: PillRecord,
    query: SearchQuery,
    size_tolerance_mm: float = 2.0
) -> bool:
    """
    Apply the store matching policy to one record.

    Text fields match by case-insensitive containment, size by a symmetric
    tolerance window and scoring exactly. Unset query fields match anything.
    """
    if not _contains(query.shape, record.shape):
        return False
    if not _contains(query.color, record.color):
        return False
    if not _contains(query.front_imprint, record.front_imprint):
        return False
    if not _contains(query.back_imprint, record.back_imprint):
        return False
    if query.size_mm is not None:
        if record.size_mm is None or abs(record.size_mm - query.size_mm) > size_tolerance_mm:
            return False
    if query.scoring is not None and (record.scoring or "").lower() != query.scoring:
        return False
    return True


class InMemoryReferenceStore(ReferenceStorePort):
    """
    Reference store holding all records in memory.

    Records are returned in file order, like a database without ORDER BY.

    Attributes:
        size_tolerance_mm: Half-width of the size window
    """

    def __init__(
        self,
        records: Optional[Iterable[PillRecord]] = None,
        size_tolerance_mm: float = 2.0,
        source: str = "memory"
    ):
        self._records: List[PillRecord] = list(records or [])
        self.size_tolerance_mm = size_tolerance_mm
        self._source = source

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @classmethod
    def from_records(cls, rows: Iterable[Dict[str, Any]], **kwargs) -> "InMemoryReferenceStore":
        """Build a store from plain dictionaries."""
        return cls(records=[PillRecord.from_dict(row) for row in rows], **kwargs)

    @classmethod
    def from_json_file(cls, path: str, **kwargs) -> "InMemoryReferenceStore":
        """
        Load records from a JSON file.

        The file holds either a list of pill objects or {"pills": [...]}.

        Raises:
            ReferenceStoreError: If the file is missing or unreadable
        """
        file_path = Path(path)
        if not file_path.exists():
            raise ReferenceStoreError(f"Reference data file not found: {path}", is_recoverable=False)

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ReferenceStoreError(f"Failed to load reference data: {e}", is_recoverable=False)

        rows = data.get("pills", []) if isinstance(data, dict) else data
        try:
            store = cls.from_records(rows, source=str(file_path), **kwargs)
        except (TypeError, ValueError) as e:
            raise ReferenceStoreError(f"Invalid pill record in {path}: {e}", is_recoverable=False)

        logger.info(f"Loaded {len(store)} pills from {file_path}")
        return store

    def __len__(self) -> int:
        return len(self._records)

    async def search(self, query: SearchQuery, limit: int = 20) -> List[PillRecord]:
        matches = []
        for record in self._records:
            if record_matches(record, query, self.size_tolerance_mm):
                matches.append(record)
                if len(matches) >= limit:
                    break

        self.logger.debug(f"Query {query.supplied_fields} matched {len(matches)} record(s)")
        return matches

    @property
    def name(self) -> str:
        return f"memory:{self._source}"


class DummyReferenceStore(ReferenceStorePort):
    """
    Dummy store for testing.

    Returns the configured records for every query (up to the limit), or
    raises the configured error.
    """

    def __init__(
        self,
        records: Optional[List[PillRecord]] = None,
        error: Optional[Exception] = None
    ):
        self._records = list(records or [])
        self._error = error
        self.queries: List[SearchQuery] = []

    async def search(self, query: SearchQuery, limit: int = 20) -> List[PillRecord]:
        self.queries.append(query)
        if self._error is not None:
            raise self._error
        return self._records[:limit]

    @property
    def name(self) -> str:
        return "dummy"
