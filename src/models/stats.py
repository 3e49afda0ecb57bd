from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional


class CamelModel(BaseModel):
    """Response models are serialised with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Tracking responses

class EnrichedGeo(CamelModel):
    country: str
    city: str
    timezone: str


class TrackingResponse(CamelModel):
    success: bool = True
    tracked: str
    timestamp: int
    enriched: Optional[EnrichedGeo] = None


class BatchItemResult(CamelModel):
    index: int
    success: bool
    tracked: Optional[str] = None
    error: Optional[str] = None


class BatchTrackingResponse(CamelModel):
    success: bool = True
    total: int
    successful: int
    failed: int
    results: List[BatchItemResult]


class ErrorResponse(CamelModel):
    error: str
    details: Optional[str] = None
    code: int


# Studio statistics

class StatsOverview(CamelModel):
    total_views: int = 0
    unique_users: int = 0
    total_revenue: float = 0.0
    total_coins: float = 0.0
    transactions: int = 0
    avg_session_time: float = 0.0
    completion_rate: float = 0.0


class ContentTypeStats(CamelModel):
    event: str
    content_id: str
    content_type: str = ""
    views: int
    unique_users: int
    avg_value: float
    total_time: float = 0.0


class TopContent(CamelModel):
    id: str
    title: Optional[str] = None
    views: int
    users: int
    revenue: Optional[float] = None
    completion_rate: Optional[float] = None


class ContentStats(CamelModel):
    by_type: List[ContentTypeStats] = Field(default_factory=list)
    top_content: List[TopContent] = Field(default_factory=list)


class CountryRevenue(CamelModel):
    country: str
    revenue: float
    coins: float
    transactions: int
    avg_transaction: float


class PaymentMethodStats(CamelModel):
    method: str
    revenue: float
    transactions: int
    percentage: float


class RevenueTimeline(CamelModel):
    date: str
    revenue: float
    coins: float
    transactions: int


class RevenueStats(CamelModel):
    by_country: List[CountryRevenue] = Field(default_factory=list)
    by_method: List[PaymentMethodStats] = Field(default_factory=list)
    timeline: List[RevenueTimeline] = Field(default_factory=list)


class RevenueSummary(CamelModel):
    total: float = 0.0
    coins: float = 0.0
    transactions: int = 0
    avg_transaction: float = 0.0


class RevenueReport(RevenueStats):
    """Response of /api/revenue: the summary plus every breakdown."""
    studio_id: str
    period: str
    summary: RevenueSummary


class LocationStats(CamelModel):
    country: str
    city: str
    users: int
    events: int
    revenue: Optional[float] = None


class Demographics(CamelModel):
    by_location: List[LocationStats] = Field(default_factory=list)


class StudioStats(CamelModel):
    studio_id: str
    period: str
    generated: int
    overview: StatsOverview
    content: ContentStats
    revenue: RevenueStats
    demographics: Demographics


# Realtime

class RealtimeLocation(CamelModel):
    country: str
    city: str
    count: int


class ActiveContent(CamelModel):
    content_id: str
    content_type: str
    users: int


class RealtimeStats(CamelModel):
    studio_id: str
    timestamp: int
    window_minutes: int
    active_users: int
    total_events: int
    events_per_minute: float
    locations: List[RealtimeLocation] = Field(default_factory=list)
    active_content: List[ActiveContent] = Field(default_factory=list)


# Per-content performance

class ContentTimelineDay(CamelModel):
    date: str
    views: int
    users: int
    completions: int
    completion_rate: float
    avg_time: float


class ContentSummary(CamelModel):
    total_views: int = 0
    unique_users: int = 0
    completions: int = 0
    completion_rate: float = 0.0
    avg_view_time: float = 0.0


class ContentEngagement(CamelModel):
    likes: int = 0
    comments: int = 0
    shares: int = 0


class ContentPerformance(CamelModel):
    studio_id: str
    content_id: str
    period: str
    summary: ContentSummary
    timeline: List[ContentTimelineDay] = Field(default_factory=list)
    engagement: ContentEngagement = Field(default_factory=ContentEngagement)
