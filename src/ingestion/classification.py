from src.models import DatasetCategory

REVENUE_PATTERNS = (
    "purchase_completed",
    "coins_purchased",
    "subscription_started",
    "subscription_cancelled",
    "payment_failed",
    "refund_processed",
    "revenue",
    "payment",
)

CONTENT_PATTERNS = (
    "chapter_opened",
    "chapter_completed",
    "page_viewed",
    "reading_session",
    "flick_started",
    "flick_completed",
    "watch_progress",
    "content_liked",
    "content_shared",
    "content_saved",
    "chapter",
    "flick",
    "episode",
)


def is_revenue_event(event_name: str) -> bool:
    name = event_name.lower()
    return any(pattern in name for pattern in REVENUE_PATTERNS)


def is_content_event(event_name: str) -> bool:
    name = event_name.lower()
    return any(pattern in name for pattern in CONTENT_PATTERNS)


def classify_event(event_name: str) -> DatasetCategory:
    """
    Maps an event name onto its dataset by substring match.
    Revenue is checked first, so "payment_for_chapter" is revenue.
    """
    if is_revenue_event(event_name):
        return DatasetCategory.revenue
    if is_content_event(event_name):
        return DatasetCategory.content
    return DatasetCategory.user_behavior
