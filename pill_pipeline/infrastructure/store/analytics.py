"""
Analytics Sinks

Persistence of confirmed searches.
"""

from typing import Optional, Any, List
import json
import logging

from ...domain.ports.analytics_sink import AnalyticsSinkPort, SearchAnalyticsRecord
from ...domain.exceptions import AnalyticsError
from .supabase_store import SupabaseClientProvider


class SupabaseAnalyticsSink(AnalyticsSinkPort):
    """Inserts one row per search into a Supabase table."""

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        table: str = "user_searches",
        client: Any = None
    ):
        self._provider = SupabaseClientProvider(url=url, key=key, client=client)
        self.table = table

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def save_search(self, record: SearchAnalyticsRecord) -> Optional[str]:
        row = record.to_row()

        def _insert(client: Any) -> List[dict]:
            return client.table(self.table).insert(row).execute().data

        try:
            data = await self._provider.run_query(_insert)
        except Exception as e:
            raise AnalyticsError(f"Failed to save search: {e}")

        row_id = data[0].get("id") if data else None
        self.logger.debug(f"Saved search {record.session_id} as row {row_id}")
        return str(row_id) if row_id is not None else None


class LoggingAnalyticsSink(AnalyticsSinkPort):
    """Writes each search as one JSON log line."""

    def __init__(self, level: int = logging.INFO):
        self.level = level
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def save_search(self, record: SearchAnalyticsRecord) -> Optional[str]:
        self.logger.log(self.level, f"search {json.dumps(record.to_row(), default=str)}")
        return None


class NullAnalyticsSink(AnalyticsSinkPort):
    """Discards every record."""

    async def save_search(self, record: SearchAnalyticsRecord) -> Optional[str]:
        return None
