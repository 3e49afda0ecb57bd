"""
Folds over dataset query rows.

Every fold is a sum, count, max or set union, so the result never depends on
row order. Top-N lists are cut after an explicit sort with a tie breaker.
Empty row sets produce zero-valued results.
"""

import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from src.models import (
    ActiveContent,
    ContentEngagement,
    ContentPerformance,
    ContentStats,
    ContentSummary,
    ContentTimelineDay,
    ContentTypeStats,
    CountryRevenue,
    Demographics,
    LocationStats,
    PaymentMethodStats,
    RealtimeLocation,
    RealtimeStats,
    RevenueStats,
    RevenueSummary,
    RevenueTimeline,
    StatsOverview,
    TopContent,
)

Row = Mapping[str, Any]

TOP_CONTENT_LIMIT = 10
TOP_COUNTRY_LIMIT = 20
TOP_LOCATION_LIMIT = 50
REALTIME_LOCATION_LIMIT = 10
REALTIME_CONTENT_LIMIT = 10
PERCENTAGE_PRECISION = 2

COMPLETION_EVENTS = {"chapter_completed", "flick_completed", "episode_completed"}
ENGAGEMENT_EVENTS = {
    "content_liked": "likes",
    "comment_added": "comments",
    "content_shared": "shares",
}


def now_millis() -> int:
    return int(time.time() * 1000)


def safe_divide(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def number(row: Row, key: str) -> float:
    value = row.get(key)
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def count(row: Row, key: str) -> int:
    return int(number(row, key))


def text(row: Row, key: str) -> str:
    value = row.get(key)
    return str(value) if value is not None else ""


def utc_day(timestamp_ms: float) -> str:
    """Calendar day (UTC) of an epoch-millisecond timestamp, as YYYY-MM-DD."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).date().isoformat()


def _row_day(row: Row, now_ms: int) -> str:
    """Day of a row; rows with no usable timestamp land on the current day."""
    timestamp = number(row, "timestamp")
    if timestamp > 0:
        try:
            return utc_day(timestamp)
        except (OverflowError, OSError, ValueError):
            pass
    return utc_day(now_ms)


def infer_content_type(content_id: str) -> str:
    """Guesses the content type from its identifier."""
    lowered = content_id.lower()
    if "chapter" in lowered:
        return "chapter"
    if "episode" in lowered:
        return "episode"
    return "flick"


# Content

def build_content_stats(rows: Iterable[Row]) -> ContentStats:
    """
    Turns grouped (event, content id, content type) rows into per-type stats
    and a top-content ranking merged across event types.
    """
    by_type: List[ContentTypeStats] = []
    merged: Dict[str, Dict[str, float]] = {}

    for row in rows:
        event_type = text(row, "event_type")
        content_id = text(row, "content_id")
        views = count(row, "event_count")
        users = count(row, "unique_users")
        avg_completion = number(row, "avg_completion")

        if event_type:
            by_type.append(ContentTypeStats(
                event=event_type,
                content_id=content_id,
                content_type=text(row, "content_type"),
                views=views,
                unique_users=users,
                avg_value=avg_completion,
                total_time=number(row, "total_time"),
            ))

        if content_id:
            entry = merged.setdefault(content_id, {"views": 0, "users": 0, "completion": 0.0})
            entry["views"] += views
            # Distinct users are not additive across event types
            entry["users"] = max(entry["users"], users)
            entry["completion"] += avg_completion * views

    by_type.sort(key=lambda s: (s.event, s.content_id, s.content_type))

    ranked = sorted(merged.items(), key=lambda item: (-item[1]["views"], item[0]))
    top_content = [
        TopContent(
            id=content_id,
            views=int(entry["views"]),
            users=int(entry["users"]),
            completion_rate=safe_divide(entry["completion"], entry["views"]),
        )
        for content_id, entry in ranked[:TOP_CONTENT_LIMIT]
    ]

    return ContentStats(by_type=by_type, top_content=top_content)


# Revenue

def build_revenue_stats(
    rows: Iterable[Row],
    days: int,
    now_ms: Optional[int] = None,
) -> Tuple[RevenueSummary, RevenueStats]:
    """
    Folds individual revenue rows into totals plus breakdowns by UTC day,
    by country and by payment method.
    """
    now_ms = now_ms if now_ms is not None else now_millis()

    timeline: Dict[str, Dict[str, float]] = defaultdict(lambda: {"revenue": 0.0, "coins": 0.0, "transactions": 0})
    by_country: Dict[str, Dict[str, float]] = defaultdict(lambda: {"revenue": 0.0, "coins": 0.0, "transactions": 0})
    by_method: Dict[str, Dict[str, float]] = defaultdict(lambda: {"revenue": 0.0, "transactions": 0})
    total_revenue = 0.0
    total_coins = 0.0
    total_transactions = 0

    for row in rows:
        revenue = number(row, "revenue")
        coins = number(row, "coins")

        day = timeline[_row_day(row, now_ms)]
        day["revenue"] += revenue
        day["coins"] += coins
        day["transactions"] += 1

        country = text(row, "country")
        if country:
            bucket = by_country[country]
            bucket["revenue"] += revenue
            bucket["coins"] += coins
            bucket["transactions"] += 1

        method = text(row, "payment_method")
        if method:
            bucket = by_method[method]
            bucket["revenue"] += revenue
            bucket["transactions"] += 1

        total_revenue += revenue
        total_coins += coins
        total_transactions += 1

    countries = sorted(by_country.items(), key=lambda item: (-item[1]["revenue"], item[0]))
    methods = sorted(by_method.items(), key=lambda item: (-item[1]["revenue"], item[0]))
    dates = sorted(timeline.items(), key=lambda item: item[0], reverse=True)

    stats = RevenueStats(
        by_country=[
            CountryRevenue(
                country=country,
                revenue=bucket["revenue"],
                coins=bucket["coins"],
                transactions=int(bucket["transactions"]),
                avg_transaction=safe_divide(bucket["revenue"], bucket["transactions"]),
            )
            for country, bucket in countries[:TOP_COUNTRY_LIMIT]
        ],
        by_method=[
            PaymentMethodStats(
                method=method,
                revenue=bucket["revenue"],
                transactions=int(bucket["transactions"]),
                percentage=round(safe_divide(bucket["revenue"], total_revenue), PERCENTAGE_PRECISION),
            )
            for method, bucket in methods
        ],
        timeline=[
            RevenueTimeline(
                date=date,
                revenue=bucket["revenue"],
                coins=bucket["coins"],
                transactions=int(bucket["transactions"]),
            )
            for date, bucket in dates[:max(days, 0)]
        ],
    )

    summary = RevenueSummary(
        total=total_revenue,
        coins=total_coins,
        transactions=total_transactions,
        avg_transaction=safe_divide(total_revenue, total_transactions),
    )
    return summary, stats


# Demographics

def build_demographics(rows: Iterable[Row]) -> Demographics:
    """Ranks (country, city) rows by distinct users, keeping the top 50."""
    locations = [
        LocationStats(
            country=text(row, "country") or "Unknown",
            city=text(row, "city") or "Unknown",
            users=count(row, "unique_users"),
            events=count(row, "total_events"),
        )
        for row in rows
        if text(row, "country")
    ]
    locations.sort(key=lambda loc: (-loc.users, loc.country, loc.city))
    return Demographics(by_location=locations[:TOP_LOCATION_LIMIT])


def build_overview(
    content_rows: List[Row],
    revenue: RevenueSummary,
    demographic_rows: List[Row],
) -> StatsOverview:
    total_time = sum(number(row, "total_time") for row in content_rows)
    completion = sum(number(row, "avg_completion") for row in content_rows)

    return StatsOverview(
        total_views=sum(count(row, "event_count") for row in content_rows),
        unique_users=sum(count(row, "unique_users") for row in demographic_rows),
        total_revenue=revenue.total,
        total_coins=revenue.coins,
        transactions=revenue.transactions,
        avg_session_time=safe_divide(total_time, len(content_rows)),
        completion_rate=safe_divide(completion, len(content_rows)),
    )


# Realtime

def build_realtime_stats(
    rows: Iterable[Row],
    studio_id: str,
    minutes: int,
    now_ms: Optional[int] = None,
) -> RealtimeStats:
    """Summarises the events of the trailing `minutes` window."""
    users: Set[str] = set()
    locations: Dict[Tuple[str, str], int] = defaultdict(int)
    content_users: Dict[str, Set[str]] = defaultdict(set)
    total_events = 0

    for row in rows:
        total_events += 1
        user_id = text(row, "user_id")
        if user_id:
            users.add(user_id)

        location = (text(row, "country") or "Unknown", text(row, "city") or "Unknown")
        locations[location] += 1

        content_id = text(row, "content_id")
        if content_id:
            viewers = content_users[content_id]
            if user_id:
                viewers.add(user_id)

    ranked_locations = sorted(locations.items(), key=lambda item: (-item[1], item[0]))
    ranked_content = sorted(content_users.items(), key=lambda item: (-len(item[1]), item[0]))

    return RealtimeStats(
        studio_id=studio_id,
        timestamp=now_ms if now_ms is not None else now_millis(),
        window_minutes=minutes,
        active_users=len(users),
        total_events=total_events,
        events_per_minute=round(safe_divide(total_events, minutes), 2),
        locations=[
            RealtimeLocation(country=country, city=city, count=hits)
            for (country, city), hits in ranked_locations[:REALTIME_LOCATION_LIMIT]
        ],
        active_content=[
            ActiveContent(
                content_id=content_id,
                content_type=infer_content_type(content_id),
                users=len(viewers),
            )
            for content_id, viewers in ranked_content[:REALTIME_CONTENT_LIMIT]
        ],
    )


# Per-content performance

def build_content_performance(
    rows: Iterable[Row],
    studio_id: str,
    content_id: str,
    days: int,
    now_ms: Optional[int] = None,
) -> ContentPerformance:
    """Per-day views, users and completions of a single piece of content."""
    now_ms = now_ms if now_ms is not None else now_millis()

    timeline: Dict[str, Dict[str, Any]] = {}
    all_users: Set[str] = set()
    engagement = {"likes": 0, "comments": 0, "shares": 0}
    total_views = 0
    total_completions = 0
    total_time = 0.0

    for row in rows:
        event_type = text(row, "event_type")
        user_id = text(row, "user_id")
        duration = number(row, "duration")

        day = timeline.setdefault(_row_day(row, now_ms), {
            "views": 0, "users": set(), "completions": 0, "time": 0.0,
        })
        day["views"] += 1
        if user_id:
            day["users"].add(user_id)
            all_users.add(user_id)
        day["time"] += duration

        if event_type in COMPLETION_EVENTS:
            day["completions"] += 1
            total_completions += 1

        if event_type in ENGAGEMENT_EVENTS:
            engagement[ENGAGEMENT_EVENTS[event_type]] += 1

        total_views += 1
        total_time += duration

    return ContentPerformance(
        studio_id=studio_id,
        content_id=content_id,
        period=f"{days}d",
        summary=ContentSummary(
            total_views=total_views,
            unique_users=len(all_users),
            completions=total_completions,
            completion_rate=safe_divide(total_completions, total_views),
            avg_view_time=safe_divide(total_time, total_views),
        ),
        timeline=[
            ContentTimelineDay(
                date=date,
                views=day["views"],
                users=len(day["users"]),
                completions=day["completions"],
                completion_rate=safe_divide(day["completions"], day["views"]),
                avg_time=safe_divide(day["time"], day["views"]),
            )
            for date, day in sorted(timeline.items(), key=lambda item: item[0], reverse=True)
        ],
        engagement=ContentEngagement(**engagement),
    )
