"""
Supabase Reference Store

Reference pill lookups against a Supabase (PostgREST) table.
"""

from typing import Optional, List, Callable, Any
import asyncio
import logging
import os

from ...domain.ports.reference_store import ReferenceStorePort
from ...domain.entities.search import SearchQuery, PillRecord
from ...domain.exceptions import ReferenceStoreError, PipelineConfigurationError


logger = logging.getLogger(__name__)


class SupabaseClientProvider:
    """
    Lazy Supabase client.

    The supabase SDK is synchronous; callers run queries through
    run_query(), which moves them to a worker thread.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        client: Any = None
    ):
        self._url = url or os.environ.get("SUPABASE_URL")
        self._key = key or os.environ.get("SUPABASE_KEY")
        self._client = client

    def get(self) -> Any:
        if self._client is None:
            if not self._url or not self._key:
                raise PipelineConfigurationError(
                    "Supabase is not configured",
                    missing_components=[
                        name for name, value in (("SUPABASE_URL", self._url), ("SUPABASE_KEY", self._key))
                        if not value
                    ],
                )
            from supabase import create_client
            self._client = create_client(self._url, self._key)
            logger.info("Supabase client initialized")
        return self._client

    async def run_query(self, fn: Callable[[Any], Any]) -> Any:
        client = self.get()
        return await asyncio.to_thread(fn, client)


class SupabaseReferenceStore(ReferenceStorePort):
    """
    Reference store backed by a Supabase table.

    Query: ilike containment for shape, color and imprints, a gte/lte window
    for size, eq for scoring, then limit.
    """

    TEXT_COLUMNS = ("shape", "color", "front_imprint", "back_imprint")

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        table: str = "pills",
        size_tolerance_mm: float = 2.0,
        client: Any = None
    ):
        self._provider = SupabaseClientProvider(url=url, key=key, client=client)
        self.table = table
        self.size_tolerance_mm = size_tolerance_mm

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _build(self, client: Any, query: SearchQuery, limit: int) -> Any:
        request = client.table(self.table).select("*")
        for column in self.TEXT_COLUMNS:
            value = getattr(query, column)
            if value:
                request = request.ilike(column, f"%{value}%")
        if query.size_mm is not None:
            request = (
                request
                .gte("size_mm", query.size_mm - self.size_tolerance_mm)
                .lte("size_mm", query.size_mm + self.size_tolerance_mm)
            )
        if query.scoring is not None:
            request = request.eq("scoring", query.scoring)
        return request.limit(limit)

    async def search(self, query: SearchQuery, limit: int = 20) -> List[PillRecord]:
        def _query(client: Any) -> List[dict]:
            return self._build(client, query, limit).execute().data

        try:
            rows = await self._provider.run_query(_query)
        except PipelineConfigurationError:
            raise
        except Exception as e:
            self.logger.error(f"Supabase search failed: {e}")
            raise ReferenceStoreError(f"Database search failed: {e}")

        try:
            records = [PillRecord.from_dict(row) for row in rows or []]
        except (TypeError, ValueError) as e:
            raise ReferenceStoreError(f"Database returned an invalid pill row: {e}", is_recoverable=False)

        self.logger.info(f"Supabase search matched {len(records)} record(s)")
        return records

    @property
    def name(self) -> str:
        return f"supabase:{self.table}"
