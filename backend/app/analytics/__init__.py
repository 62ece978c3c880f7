"""Analytics module for visit recording and aggregated statistics."""
from .cache import ResultCache
from .dedup import DedupGuard
from .router import router as analytics_router
from .service import AnalyticsService
from .store import RecordStore, SqliteRecordStore
from .supabase_store import SupabaseRecordStore
from .types import AnalyticsError, StoreError, ValidationError

__all__ = [
    "AnalyticsError",
    "AnalyticsService",
    "DedupGuard",
    "RecordStore",
    "ResultCache",
    "SqliteRecordStore",
    "StoreError",
    "SupabaseRecordStore",
    "ValidationError",
    "analytics_router",
]
