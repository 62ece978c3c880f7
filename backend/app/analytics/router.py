"""Analytics API router."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import Settings, get_settings
from .privacy import get_client_ip, get_country, hash_visitor
from .service import AnalyticsService
from .types import QueryKind, StoreError, ValidationError

router = APIRouter(prefix="/api", tags=["analytics"])
logger = logging.getLogger("uvicorn.error")

# Service instance (initialized in main.py)
_service: Optional[AnalyticsService] = None


def set_service(service: AnalyticsService) -> None:
    """Set the analytics service instance."""
    global _service
    _service = service


def get_service() -> AnalyticsService:
    """Get the analytics service instance."""
    if _service is None:
        raise HTTPException(status_code=500, detail="Analytics service not initialized")
    return _service


class ApiResponse(BaseModel):
    success: bool = True
    message: str = "Success"
    data: Any = None


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors in the widget envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Rejected malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"success": False, "error": "Invalid request"})


class VisitRequest(BaseModel):
    # Type is checked by validate_path
    path: Any = Field(default=None, description="Normalized URL path, e.g. /posts/hello")
    referrer: Optional[str] = None


STATS_FAILURE_MESSAGES = {
    QueryKind.SUMMARY: "Failed to fetch summary stats",
    QueryKind.DAILY: "Failed to fetch daily stats",
    QueryKind.PAGE: "Failed to fetch page stats",
    QueryKind.RECENT: "Failed to fetch recent visits",
}


@router.get("/stats", response_model=ApiResponse)
def get_stats(
    type: str = Query("summary", description="summary, daily, page or recent"),
    path: Optional[str] = Query(None, description="Page path for type=page"),
    days: Optional[str] = Query(None, description="Window in days for daily and recent"),
    service: AnalyticsService = Depends(get_service),
) -> ApiResponse:
    """Get aggregated visit statistics."""
    try:
        kind = QueryKind(type)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid stats type") from None

    try:
        if kind == QueryKind.SUMMARY:
            data = service.get_summary()
        elif kind == QueryKind.DAILY:
            data = service.get_daily_stats(days)
        elif kind == QueryKind.PAGE:
            data = service.get_page_stats(path)
        else:
            data = service.get_recent_visits(days)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreError as exc:
        logger.error("Stats query %s failed: %s", kind.value, exc)
        raise HTTPException(status_code=500, detail=STATS_FAILURE_MESSAGES[kind]) from exc

    return ApiResponse(data=data)


@router.post("/visit", response_model=ApiResponse)
def record_visit(
    payload: VisitRequest,
    request: Request,
    service: AnalyticsService = Depends(get_service),
    settings: Settings = Depends(get_settings),
) -> ApiResponse:
    """Record a page visit unless the same visitor saw the page moments ago."""
    user_agent = request.headers.get("user-agent", "")
    visitor_hash = hash_visitor(get_client_ip(request), user_agent, settings.api_secret)
    try:
        outcome = service.record_visit(
            payload.path,
            visitor_hash,
            user_agent=user_agent,
            referrer=payload.referrer,
            country=get_country(request),
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreError as exc:
        logger.error("Failed to record visit: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to record visit") from exc

    if not outcome.recorded:
        return ApiResponse(message="Visit already recorded recently")
    return ApiResponse(message="Visit recorded successfully", data={"id": outcome.id})
