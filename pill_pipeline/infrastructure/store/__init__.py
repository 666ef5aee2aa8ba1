"""
Store Infrastructure

Reference pill stores and search analytics sinks.
"""

from .memory_store import InMemoryReferenceStore, DummyReferenceStore, record_matches
from .supabase_store import SupabaseReferenceStore, SupabaseClientProvider
from .analytics import SupabaseAnalyticsSink, LoggingAnalyticsSink, NullAnalyticsSink
from .factory import ReferenceStoreFactory, AnalyticsSinkFactory, StoreType, AnalyticsType

__all__ = [
    "InMemoryReferenceStore",
    "DummyReferenceStore",
    "record_matches",
    "SupabaseReferenceStore",
    "SupabaseClientProvider",
    "SupabaseAnalyticsSink",
    "LoggingAnalyticsSink",
    "NullAnalyticsSink",
    "ReferenceStoreFactory",
    "AnalyticsSinkFactory",
    "StoreType",
    "AnalyticsType",
]
