import pytest

from src.db import build_engine
from src.ingestion import SQLDatasetWriter, get_dataset_writer
from src.main import app
from src.models import DatasetCategory, DatasetRecord

GEO_HEADERS = {
    "cf-ipcountry": "US",
    "cf-ipcity": "Austin",
    "cf-region": "Texas",
    "cf-timezone": "America/Chicago",
    "cf-iplatitude": "30.27",
    "cf-iplongitude": "-97.74",
    "cf-asn": "7922",
    "cf-ray": "8a1b2c3d4e5f6789-DFW",
    "cf-connecting-ip": "198.51.100.4",
    "user-agent": "reader-app/3.0",
}


def track(client, event, **fields):
    payload = {"event": event, "userId": fields.pop("userId", "user-1"), "studioId": "studio-1"}
    payload.update(fields)
    return client.post("/track", json=payload, headers=GEO_HEADERS)


class TestTracking:

    def test_track_returns_enriched_location(self, client):
        response = track(client, "chapter_opened", chapterId="chapter-1")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["tracked"] == "chapter_opened"
        assert body["timestamp"] > 0
        assert body["enriched"] == {"country": "US", "city": "Austin", "timezone": "America/Chicago"}

    def test_track_without_proxy_headers_uses_defaults(self, client):
        response = client.post("/track", json={"event": "login", "userId": "user-1"})

        assert response.status_code == 200
        assert response.json()["enriched"] == {"country": "XX", "city": "Unknown", "timezone": "UTC"}

    @pytest.mark.parametrize("payload, details", [
        ({"userId": "user-1"}, "Missing required field: event"),
        ({"event": "login"}, "Missing required field: userId"),
        ({"event": 42, "userId": "user-1"}, "Invalid event name"),
    ])
    def test_invalid_event_is_rejected(self, client, payload, details):
        response = client.post("/track", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": "Validation failed", "code": 400, "details": details}

    def test_failed_write_returns_500_without_store_internals(self, client, tmp_path):
        # A dataset store whose tables were never created
        bare_engine = build_engine(f"sqlite:///{tmp_path / 'bare.db'}")
        app.dependency_overrides[get_dataset_writer] = lambda: SQLDatasetWriter(bare_engine)

        response = track(client, "purchase_completed", amount=5)

        assert response.status_code == 500
        assert response.json() == {
            "error": "Failed to track event",
            "details": "Write to revenue dataset failed: OperationalError",
            "code": 500,
        }
        assert "no such table" not in response.text
        assert "revenue_tracking" not in response.text
        bare_engine.dispose()

    def test_far_future_timestamp_is_replaced_by_ingestion_time(self, client):
        response = track(client, "purchase_completed", amount=5, timestamp=1e20)

        assert response.status_code == 200
        assert 0 < response.json()["timestamp"] < 253_402_300_800_000

        revenue = client.get("/api/revenue/studio-1")
        assert revenue.status_code == 200
        assert revenue.json()["summary"]["total"] == 5

    def test_batch(self, client):
        events = [
            {"event": "purchase_completed", "userId": "user-1", "studioId": "studio-1", "amount": 2},
            {"event": "chapter_opened", "studioId": "studio-1"},
            {"event": "login", "userId": "user-2"},
        ]

        response = client.post("/track/batch", json={"events": events}, headers=GEO_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert (body["total"], body["successful"], body["failed"]) == (3, 2, 1)
        assert body["results"][1] == {
            "index": 1, "success": False, "tracked": None, "error": "Missing required field: userId",
        }
        assert body["results"][2]["tracked"] == "login"

    def test_batch_over_limit_is_rejected(self, client):
        events = [{"event": "login", "userId": f"user-{i}"} for i in range(101)]

        response = client.post("/track/batch", json={"events": events})

        assert response.status_code == 400
        assert response.json()["details"] == "Maximum 100 events per batch"

    @pytest.mark.parametrize("body", [{}, {"events": []}, {"events": "login"}, []])
    def test_batch_requires_event_array(self, client, body):
        response = client.post("/track/batch", json=body)

        assert response.status_code == 400
        assert response.json()["details"] == "Events must be a non-empty array"


class TestAnalytics:

    def test_stats_reflect_tracked_events(self, client):
        track(client, "purchase_completed", amount=4.99, coins=100, paymentMethod="card")
        track(client, "chapter_opened", chapterId="chapter-1", contentType="chapter", readingTime=30)
        track(client, "chapter_opened", chapterId="chapter-1", contentType="chapter", userId="user-2")

        response = client.get("/api/stats/studio-1")

        assert response.status_code == 200
        body = response.json()
        assert body["studioId"] == "studio-1"
        assert body["period"] == "30d"
        assert body["overview"]["totalViews"] == 2
        assert body["overview"]["uniqueUsers"] == 2
        assert body["overview"]["totalRevenue"] == pytest.approx(4.99)
        assert body["overview"]["totalCoins"] == 100
        assert body["content"]["topContent"][0]["id"] == "chapter-1"
        assert body["content"]["topContent"][0]["views"] == 2
        assert body["revenue"]["byCountry"][0]["country"] == "US"
        assert body["demographics"]["byLocation"] == [
            {"country": "US", "city": "Austin", "users": 2, "events": 2, "revenue": None},
        ]

    def test_stats_for_unknown_studio_are_zero(self, client):
        body = client.get("/api/stats/nobody?days=7").json()

        assert body["period"] == "7d"
        assert body["overview"]["totalViews"] == 0
        assert body["overview"]["completionRate"] == 0.0
        assert body["demographics"] == {"byLocation": []}

    def test_second_stats_call_is_served_from_cache(self, client, fake_redis):
        track(client, "chapter_opened", chapterId="chapter-1")
        first = client.get("/api/stats/studio-1").json()

        track(client, "chapter_opened", chapterId="chapter-1", userId="user-2")
        second = client.get("/api/stats/studio-1").json()

        assert "stats:studio-1:30d" in fake_redis.store
        assert fake_redis.ttls["stats:studio-1:30d"] == 300
        assert second == first
        assert second["overview"]["totalViews"] == 1

    def test_revenue(self, client):
        track(client, "purchase_completed", amount=10, paymentMethod="card")
        track(client, "coins_purchased", amount=5, coins=500, paymentMethod="paypal")

        body = client.get("/api/revenue/studio-1").json()

        assert body["summary"]["total"] == 15
        assert body["summary"]["transactions"] == 2
        assert body["summary"]["avgTransaction"] == 7.5
        assert [m["method"] for m in body["byMethod"]] == ["card", "paypal"]
        assert [m["percentage"] for m in body["byMethod"]] == [0.67, 0.33]
        assert body["byCountry"][0] == {
            "country": "US", "revenue": 15.0, "coins": 500.0, "transactions": 2, "avgTransaction": 7.5,
        }
        assert len(body["timeline"]) == 1

    def test_realtime(self, client):
        track(client, "chapter_opened", chapterId="chapter-1")
        track(client, "flick_started", flickId="flick-1", userId="user-2")
        track(client, "login", userId="user-3")

        body = client.get("/api/realtime/studio-1?minutes=5").json()

        assert body["windowMinutes"] == 5
        assert body["activeUsers"] == 2
        assert body["totalEvents"] == 2
        assert body["eventsPerMinute"] == 0.4
        assert body["locations"] == [{"country": "US", "city": "Austin", "count": 2}]
        assert {c["contentId"]: c["contentType"] for c in body["activeContent"]} == {
            "chapter-1": "chapter", "flick-1": "flick",
        }

    def test_content_performance(self, client):
        track(client, "chapter_opened", chapterId="chapter-1", readingTime=20)
        track(client, "chapter_completed", chapterId="chapter-1", readingTime=40)
        track(client, "chapter_opened", chapterId="chapter-2")

        body = client.get("/api/content/studio-1/chapter-1").json()

        assert body["period"] == "7d"
        assert body["summary"]["totalViews"] == 2
        assert body["summary"]["uniqueUsers"] == 1
        assert body["summary"]["completions"] == 1
        assert body["summary"]["completionRate"] == 0.5
        assert body["summary"]["avgViewTime"] == 30
        assert len(body["timeline"]) == 1

    def test_stored_far_future_rows_do_not_break_reads(self, client, engine):
        SQLDatasetWriter(engine).write(DatasetCategory.revenue, DatasetRecord(
            blobs=["purchase_completed", "studio-1", "user-1", "US", "Austin", "card", "USD", "chapter-1"],
            doubles=[5.0, 0.0, 0.0, 0.0, 1e20, 0.0, 0.0],
            indexes=["studio-1"],
        ))
        SQLDatasetWriter(engine).write(DatasetCategory.content, DatasetRecord(
            blobs=["chapter_opened", "chapter-1", "user-1", "US", "Austin", "chapter", "", ""],
            doubles=[0.0, 0.0, 10.0, 0.0, 0.0, 0.0, 1e20],
            indexes=["studio-1"],
        ))

        revenue = client.get("/api/revenue/studio-1")
        stats = client.get("/api/stats/studio-1")
        content = client.get("/api/content/studio-1/chapter-1")

        assert (revenue.status_code, stats.status_code, content.status_code) == (200, 200, 200)
        assert len(revenue.json()["timeline"]) == 1
        assert stats.json()["overview"]["totalRevenue"] == 5
        assert content.json()["summary"]["totalViews"] == 1

    @pytest.mark.parametrize("path", [
        "/api/stats/studio-1?days=abc",
        "/api/stats/studio-1?days=0",
        "/api/stats/studio-1?days=366",
        "/api/realtime/studio-1?minutes=61",
    ])
    def test_invalid_query_parameters(self, client, path):
        response = client.get(path)

        assert response.status_code == 400
        assert response.json()["error"] == "Validation failed"


class TestServiceRoutes:

    def test_root_describes_the_service(self, client):
        body = client.get("/").json()

        assert body["status"] == "operational"
        assert body["endpoints"]["tracking"]["single"] == "POST /track"

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["uptime"] >= 0

    def test_other_http_errors_carry_the_error_shape(self, client):
        response = client.post("/health")

        assert response.status_code == 405
        assert response.json() == {"error": "Method Not Allowed", "details": None, "code": 405}

    def test_unknown_route(self, client):
        response = client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {
            "error": "Not Found",
            "message": "The requested endpoint /does-not-exist does not exist",
            "code": 404,
        }
