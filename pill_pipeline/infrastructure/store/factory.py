"""
Store Factories

Factories for reference stores and analytics sinks.
"""

from typing import Dict, Any
from enum import Enum

from ...domain.ports.reference_store import ReferenceStorePort
from ...domain.ports.analytics_sink import AnalyticsSinkPort
from .memory_store import InMemoryReferenceStore, DummyReferenceStore
from .supabase_store import SupabaseReferenceStore
from .analytics import SupabaseAnalyticsSink, LoggingAnalyticsSink, NullAnalyticsSink


class StoreType(Enum):
    """Available reference store implementations."""

    MEMORY = "memory"
    SUPABASE = "supabase"
    DUMMY = "dummy"


class AnalyticsType(Enum):
    """Available analytics sinks."""

    SUPABASE = "supabase"
    LOG = "log"
    NONE = "none"


class ReferenceStoreFactory:
    """
    Factory for creating reference store instances.

    Usage:
        store = ReferenceStoreFactory.create(StoreType.MEMORY, data_path="./data/pills.json")
        store = ReferenceStoreFactory.create(StoreType.SUPABASE, supabase_url=..., supabase_key=...)
    """

    @staticmethod
    def create(store_type: StoreType, **kwargs) -> ReferenceStorePort:
        tolerance = kwargs.get("size_tolerance_mm", 2.0)

        if store_type == StoreType.MEMORY:
            data_path = kwargs.get("data_path")
            if data_path:
                return InMemoryReferenceStore.from_json_file(data_path, size_tolerance_mm=tolerance)
            return InMemoryReferenceStore.from_records(kwargs.get("records", []), size_tolerance_mm=tolerance)

        elif store_type == StoreType.SUPABASE:
            return SupabaseReferenceStore(
                url=kwargs.get("supabase_url"),
                key=kwargs.get("supabase_key"),
                table=kwargs.get("table", "pills"),
                size_tolerance_mm=tolerance,
                client=kwargs.get("client"),
            )

        elif store_type == StoreType.DUMMY:
            return DummyReferenceStore(records=kwargs.get("records"), error=kwargs.get("error"))

        else:
            raise ValueError(f"Unknown store type: {store_type}")

    @staticmethod
    def create_from_config(config: Dict[str, Any]) -> ReferenceStorePort:
        """Create store from configuration dictionary."""
        try:
            store_type = StoreType(config.get("type", "memory"))
        except ValueError:
            raise ValueError(f"Unknown store type: {config.get('type')}")

        options = {key: value for key, value in config.items() if key != "type"}
        return ReferenceStoreFactory.create(store_type, **options)


class AnalyticsSinkFactory:
    """Factory for creating analytics sinks."""

    @staticmethod
    def create(analytics_type: AnalyticsType, **kwargs) -> AnalyticsSinkPort:
        if analytics_type == AnalyticsType.SUPABASE:
            return SupabaseAnalyticsSink(
                url=kwargs.get("supabase_url"),
                key=kwargs.get("supabase_key"),
                table=kwargs.get("table", "user_searches"),
                client=kwargs.get("client"),
            )

        elif analytics_type == AnalyticsType.LOG:
            return LoggingAnalyticsSink()

        elif analytics_type == AnalyticsType.NONE:
            return NullAnalyticsSink()

        else:
            raise ValueError(f"Unknown analytics type: {analytics_type}")

    @staticmethod
    def create_from_config(config: Dict[str, Any]) -> AnalyticsSinkPort:
        try:
            analytics_type = AnalyticsType(config.get("type", "log"))
        except ValueError:
            raise ValueError(f"Unknown analytics type: {config.get('type')}")

        options = {key: value for key, value in config.items() if key != "type"}
        return AnalyticsSinkFactory.create(analytics_type, **options)
