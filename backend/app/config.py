"""Application settings."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)

SUPPORTED_RECORD_STORES = {"sqlite", "supabase"}


@dataclass(frozen=True)
class Settings:
    record_store: str
    visits_db_path: Path
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    api_secret: str
    cors_allow_origins: tuple[str, ...]
    stats_cache_ttl_seconds: float
    stats_cache_max_entries: int
    stats_page_size: int
    visit_dedup_window_seconds: int


@lru_cache()
def get_settings() -> Settings:
    record_store = os.getenv("RECORD_STORE", "sqlite").strip().lower()
    if record_store not in SUPPORTED_RECORD_STORES:
        raise RuntimeError(f"Unsupported RECORD_STORE: {record_store}")

    supabase_url = os.getenv("SUPABASE_URL")
    supabase_key = os.getenv("SUPABASE_KEY")
    if record_store == "supabase" and not (supabase_url and supabase_key):
        raise RuntimeError("Missing required environment variables: SUPABASE_URL, SUPABASE_KEY")

    origins_env = os.getenv("ALLOWED_ORIGINS", "*")
    raw_origins = [origin.strip() for origin in origins_env.split(",")]
    cors_allow_origins = tuple(origin for origin in raw_origins if origin) or ("*",)

    return Settings(
        record_store=record_store,
        visits_db_path=Path(os.getenv("VISITS_DB_PATH", "data/visits.sqlite3")),
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        api_secret=os.getenv("API_SECRET", "default-salt"),
        cors_allow_origins=cors_allow_origins,
        stats_cache_ttl_seconds=float(os.getenv("STATS_CACHE_TTL_SECONDS", "60")),
        stats_cache_max_entries=int(os.getenv("STATS_CACHE_MAX_ENTRIES", "100")),
        stats_page_size=int(os.getenv("STATS_PAGE_SIZE", "1000")),
        visit_dedup_window_seconds=int(os.getenv("VISIT_DEDUP_WINDOW_SECONDS", "300")),
    )
