import pytest

from src.ingestion import classify_event
from src.models import DatasetCategory


@pytest.mark.parametrize("name", [
    "purchase_completed",
    "coins_purchased",
    "subscription_started",
    "subscription_cancelled",
    "payment_failed",
    "refund_processed",
    "daily_revenue_report",
    "payment_method_added",
    "Purchase_Completed",
])
def test_revenue_events(name):
    assert classify_event(name) is DatasetCategory.revenue


@pytest.mark.parametrize("name", [
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
    "chapter_bookmarked",
    "flick_paused",
    "episode_started",
    "CHAPTER_OPENED",
])
def test_content_events(name):
    assert classify_event(name) is DatasetCategory.content


@pytest.mark.parametrize("name", ["login", "app_opened", "search", "content_unliked", "comment_added", ""])
def test_everything_else_is_user_behavior(name):
    assert classify_event(name) is DatasetCategory.user_behavior


def test_revenue_takes_precedence_over_content():
    assert classify_event("payment_for_chapter") is DatasetCategory.revenue


def test_known_ambiguity_chapter_revenue_shared():
    # Matches both "chapter" and "revenue"; revenue is checked first.
    assert classify_event("chapter_revenue_shared") is DatasetCategory.revenue


def test_classification_is_deterministic():
    names = ["purchase_completed", "chapter_opened", "login", "payment_for_chapter"]
    first = [classify_event(name) for name in names]
    assert [classify_event(name) for name in names] == first
    assert first == [
        DatasetCategory.revenue,
        DatasetCategory.content,
        DatasetCategory.user_behavior,
        DatasetCategory.revenue,
    ]
