import logging
from fastapi import APIRouter, Depends, Path, Query

from src.analytics import AnalyticsService, DatasetQueryClient
from src.cache import ResponseCache, get_response_cache
from src.config import settings
from src.db import engine
from src.models import (
    ContentPerformance,
    ErrorResponse,
    RealtimeStats,
    RevenueReport,
    StudioStats,
)

router = APIRouter(
    prefix="/api",
    tags=["Analytics"],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)

logger = logging.getLogger("AnalyticsAPI.Analytics")


def get_query_client() -> DatasetQueryClient:
    return DatasetQueryClient(engine)


def get_analytics_service(
    queries: DatasetQueryClient = Depends(get_query_client),
    cache: ResponseCache = Depends(get_response_cache),
) -> AnalyticsService:
    return AnalyticsService(queries, cache)


@router.get("/stats/{studio_id}", response_model=StudioStats)
def get_studio_stats(
    studio_id: str = Path(..., min_length=1, max_length=100),
    days: int = Query(settings.DEFAULT_STATS_DAYS, ge=1, le=365, description="Trailing window in days"),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """
    Overview, content, revenue and audience statistics for a studio.
    Cached for STATS_CACHE_TTL seconds per studio and window.
    """
    logger.info(f"Stats requested for studio {studio_id} ({days}d)")
    return service.studio_stats(studio_id, days)


@router.get("/realtime/{studio_id}", response_model=RealtimeStats)
def get_realtime_stats(
    studio_id: str = Path(..., min_length=1, max_length=100),
    minutes: int = Query(settings.DEFAULT_REALTIME_MINUTES, ge=1, le=60, description="Trailing window in minutes"),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Active users, locations and content over the last few minutes. Never cached."""
    return service.realtime(studio_id, minutes)


@router.get("/revenue/{studio_id}", response_model=RevenueReport)
def get_revenue(
    studio_id: str = Path(..., min_length=1, max_length=100),
    days: int = Query(settings.DEFAULT_STATS_DAYS, ge=1, le=365, description="Trailing window in days"),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Revenue totals with breakdowns by country, payment method and day."""
    logger.info(f"Revenue requested for studio {studio_id} ({days}d)")
    return service.revenue_report(studio_id, days)


@router.get("/content/{studio_id}/{content_id}", response_model=ContentPerformance)
def get_content_performance(
    studio_id: str = Path(..., min_length=1, max_length=100),
    content_id: str = Path(..., min_length=1, max_length=200),
    days: int = Query(settings.DEFAULT_CONTENT_DAYS, ge=1, le=365, description="Trailing window in days"),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Daily views, users and completions of one chapter, flick or episode."""
    return service.content_performance(studio_id, content_id, days)
