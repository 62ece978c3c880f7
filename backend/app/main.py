from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from .analytics import (
    AnalyticsService,
    DedupGuard,
    RecordStore,
    ResultCache,
    SqliteRecordStore,
    SupabaseRecordStore,
    analytics_router,
)
from .analytics.router import http_error_handler, request_validation_handler, set_service
from .config import Settings, get_settings

logger = logging.getLogger("uvicorn.error")
settings = get_settings()


def build_store(settings: Settings) -> RecordStore:
    if settings.record_store == "supabase":
        return SupabaseRecordStore(settings.supabase_url, settings.supabase_key)
    return SqliteRecordStore(settings.visits_db_path)


def build_service(settings: Settings) -> AnalyticsService:
    store = build_store(settings)
    cache = ResultCache(
        ttl_seconds=settings.stats_cache_ttl_seconds,
        max_entries=settings.stats_cache_max_entries,
    )
    dedup = DedupGuard(store, window=timedelta(seconds=settings.visit_dedup_window_seconds))
    return AnalyticsService(store, cache, dedup=dedup, page_size=settings.stats_page_size)


app = FastAPI(title="Blog Stats Backend", version="1.0.0")
app.include_router(analytics_router)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
set_service(build_service(settings))

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=86400,
)


@app.get("/api/ping")
def ping() -> dict:
    return {"status": "ok"}


@app.on_event("startup")
def log_startup() -> None:
    settings = get_settings()
    logger.info("Record store: %s", settings.record_store)
    logger.info(
        "Stats cache: ttl=%ss, max_entries=%s, page_size=%s",
        settings.stats_cache_ttl_seconds,
        settings.stats_cache_max_entries,
        settings.stats_page_size,
    )
