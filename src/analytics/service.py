import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List

from src.analytics.aggregations import (
    build_content_performance,
    build_content_stats,
    build_demographics,
    build_overview,
    build_realtime_stats,
    build_revenue_stats,
    now_millis,
)
from src.analytics.queries import DatasetQueryClient
from src.cache import ResponseCache, content_cache_key, revenue_cache_key, stats_cache_key
from src.config import settings
from src.errors import DependencyError
from src.models import ContentPerformance, RealtimeStats, RevenueReport, StudioStats

logger = logging.getLogger("AnalyticsAPI.Service")

DAY_MS = 24 * 60 * 60 * 1000
MINUTE_MS = 60 * 1000

Rows = List[Dict[str, Any]]


class AnalyticsService:
    """
    Serves the read side: runs dataset queries, folds the rows and caches the
    responses. A failed query is logged and contributes an empty row set, so
    one broken dataset never takes down a whole response.
    """

    def __init__(self, queries: DatasetQueryClient, cache: ResponseCache):
        self.queries = queries
        self.cache = cache

    def _rows(self, branch: str, studio_id: str, fetch: Callable[[], Rows]) -> Rows:
        try:
            return fetch()
        except DependencyError as e:
            logger.error(f"{branch} query failed for studio {studio_id}, using empty result: {e}")
            return []

    def studio_stats(self, studio_id: str, days: int) -> StudioStats:
        return self.cache.get_or_compute(
            stats_cache_key(studio_id, days),
            settings.STATS_CACHE_TTL,
            lambda: self._compute_studio_stats(studio_id, days),
            StudioStats,
        )

    def _compute_studio_stats(self, studio_id: str, days: int) -> StudioStats:
        now_ms = now_millis()
        since = now_ms - days * DAY_MS

        # The three branches are independent, combined only once all have resolved
        with ThreadPoolExecutor(max_workers=3) as pool:
            content_future = pool.submit(
                self._rows, "content", studio_id, lambda: self.queries.content_stats(studio_id, since))
            revenue_future = pool.submit(
                self._rows, "revenue", studio_id, lambda: self.queries.revenue_details(studio_id, since))
            demographics_future = pool.submit(
                self._rows, "demographics", studio_id, lambda: self.queries.demographics(studio_id, since))

            content_rows = content_future.result()
            revenue_rows = revenue_future.result()
            demographic_rows = demographics_future.result()

        revenue_summary, revenue_stats = build_revenue_stats(revenue_rows, days, now_ms)

        return StudioStats(
            studio_id=studio_id,
            period=f"{days}d",
            generated=now_ms,
            overview=build_overview(content_rows, revenue_summary, demographic_rows),
            content=build_content_stats(content_rows),
            revenue=revenue_stats,
            demographics=build_demographics(demographic_rows),
        )

    def revenue_report(self, studio_id: str, days: int) -> RevenueReport:
        return self.cache.get_or_compute(
            revenue_cache_key(studio_id, days),
            settings.REVENUE_CACHE_TTL,
            lambda: self._compute_revenue_report(studio_id, days),
            RevenueReport,
        )

    def _compute_revenue_report(self, studio_id: str, days: int) -> RevenueReport:
        now_ms = now_millis()
        rows = self._rows(
            "revenue", studio_id,
            lambda: self.queries.revenue_details(studio_id, now_ms - days * DAY_MS),
        )
        summary, stats = build_revenue_stats(rows, days, now_ms)

        return RevenueReport(
            studio_id=studio_id,
            period=f"{days}d",
            summary=summary,
            by_country=stats.by_country,
            by_method=stats.by_method,
            timeline=stats.timeline,
        )

    def realtime(self, studio_id: str, minutes: int) -> RealtimeStats:
        now_ms = now_millis()
        rows = self._rows(
            "realtime", studio_id,
            lambda: self.queries.realtime_events(studio_id, now_ms - minutes * MINUTE_MS),
        )
        return build_realtime_stats(rows, studio_id, minutes, now_ms)

    def content_performance(self, studio_id: str, content_id: str, days: int) -> ContentPerformance:
        return self.cache.get_or_compute(
            content_cache_key(studio_id, content_id, days),
            settings.CONTENT_CACHE_TTL,
            lambda: self._compute_content_performance(studio_id, content_id, days),
            ContentPerformance,
        )

    def _compute_content_performance(self, studio_id: str, content_id: str, days: int) -> ContentPerformance:
        now_ms = now_millis()
        rows = self._rows(
            "content performance", studio_id,
            lambda: self.queries.content_performance(studio_id, content_id, now_ms - days * DAY_MS),
        )
        return build_content_performance(rows, studio_id, content_id, days, now_ms)
