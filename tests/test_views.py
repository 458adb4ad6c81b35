"""Tests for the dashboard JSON views, backed by a fake analytics store."""

import pytest
from rest_framework.test import APIClient

from dashboard.client import RemoteAnalyticsError

from .conftest import FakeStoreClient


@pytest.fixture
def api():
    return APIClient()


class TestOverview:
    def test_counts_for_latest_analysis(self, api, use_store, fake_store):
        use_store(fake_store)

        response = api.get("/dashboard/overview/")

        assert response.status_code == 200
        assert response.data["time_analysis"] == 5
        assert response.data["counts"] == {
            "locations": 3,
            "websites": 2,
            "messages": 2,
            "contacts": 3,
        }

    def test_needs_analysis_affordance(self, api, use_store, empty_store):
        use_store(empty_store)

        response = api.get("/dashboard/overview/")

        assert response.status_code == 200
        assert response.data["needs_analysis"] is True
        assert response.data["refresh"] == "/dashboard/refresh/"
        assert response.data["counts"]["locations"] == 0

    def test_store_error_offers_retry(self, api, use_store, failing_store):
        use_store(failing_store)

        response = api.get("/dashboard/overview/?time_analysis=5")

        assert response.status_code == 502
        assert response.data == {
            "error": "Internal Server Error",
            "retry": "/dashboard/overview/?time_analysis=5",
        }

    def test_scope_lookup_failure(self, api, use_store):
        use_store(FakeStoreClient({"/api/time-analyses/": RemoteAnalyticsError("Request timed out after 15s")}))

        response = api.get("/dashboard/overview/")

        assert response.status_code == 502
        assert response.data["error"] == "Request timed out after 15s"

    def test_malformed_records_offer_retry(self, api, use_store):
        use_store(FakeStoreClient({"/api/time-analyses/": ["oops"]}))

        response = api.get("/dashboard/overview/")

        assert response.status_code == 502
        assert response.data["error"] == "Unexpected record in response: 'oops'"
        assert response.data["retry"] == "/dashboard/overview/"

    def test_invalid_scope_parameter(self, api, use_store, fake_store):
        use_store(fake_store)
        response = api.get("/dashboard/overview/?time_analysis=abc")
        assert response.status_code == 400


class TestCalendar:
    def test_month_view_requests_padded_range(self, api, use_store, fake_store):
        use_store(fake_store)

        response = api.get("/dashboard/calendar/?month=2024-01")

        assert response.status_code == 200
        assert response.data["range"] == {"start_date": "2023-12-25", "end_date": "2024-02-07"}
        assert ("/api/days/", {
            "start_date": "2023-12-25",
            "end_date": "2024-02-07",
            "time_analysis": "5",
        }) in fake_store.calls

        cell = response.data["days"]["2024-01-01"]
        assert cell["score"] == 8.5
        assert cell["level"] == "Very Happy"
        assert list(response.data["days"]) == ["2024-01-01", "2024-01-02", "2024-01-03"]

    def test_week_view(self, api, use_store, fake_store):
        use_store(fake_store)

        response = api.get("/dashboard/calendar/?view=weekly&start=2024-01-01")

        assert response.data["view"] == "weekly"
        assert response.data["range"] == {"start_date": "2024-01-01", "end_date": "2024-01-07"}

    @pytest.mark.parametrize(
        "query",
        [
            "month=2024-13",
            "month=January",
            "view=daily",
            "month=0000-01",
            "month=0001-01",
            "month=9999-12",
            "view=weekly&start=9999-12-30",
        ],
    )
    def test_bad_parameters(self, api, use_store, fake_store, query):
        use_store(fake_store)
        assert api.get(f"/dashboard/calendar/?{query}").status_code == 400


class TestDayDetail:
    def test_day_with_messages(self, api, use_store, fake_store):
        use_store(fake_store)

        response = api.get("/dashboard/days/2024-01-01/")

        assert response.status_code == 200
        assert response.data["day"]["message_count"] == 12
        assert response.data["happiest"][0]["id"] == 11
        assert response.data["saddest"][0]["text"] == "x" * 120 + "..."
        assert ("/api/messages/happiest/", {
            "time_analysis": "5",
            "date": "2024-01-01",
            "limit": "5",
        }) in fake_store.calls

    def test_invalid_date(self, api, use_store, fake_store):
        use_store(fake_store)
        response = api.get("/dashboard/days/yesterday/")
        assert response.status_code == 400

    @pytest.mark.parametrize("day", ["20240101", "2024-W01-1", "2024-02-30"])
    def test_only_calendar_dates_are_accepted(self, api, use_store, fake_store, day):
        use_store(fake_store)
        response = api.get(f"/dashboard/days/{day}/")
        assert response.status_code == 400
        assert fake_store.calls == []


class TestMap:
    def test_pins_skip_bad_coordinates(self, api, use_store, fake_store):
        use_store(fake_store)

        response = api.get("/dashboard/map/")

        assert response.status_code == 200
        assert [pin["id"] for pin in response.data["pins"]] == [1, 3]
        assert response.data["skipped"] == 1
        assert [p["id"] for p in response.data["most_visited"]] == [1, 3, 2]
        assert [p["id"] for p in response.data["least_visited"]] == [2, 3, 1]
        assert response.data["most_visited"][0]["total_time"] == "90h"

    def test_place_error_fails_closed(self, api, use_store, failing_store):
        use_store(failing_store)

        response = api.get("/dashboard/map/")

        assert response.status_code == 502
        assert "pins" not in response.data


class TestRankings:
    def test_people_ranked_by_correlation(self, api, use_store, fake_store):
        use_store(fake_store)

        response = api.get("/dashboard/people/")

        assert [p["contact_name"] for p in response.data["ranking"]] == [
            "Sam Rivera",
            "Alex Chen",
            "billing",
        ]
        top = response.data["top"][0]
        assert top["impact"] == "Very Positive"
        assert top["initials"] == "SR"
        assert top["happiness_when_interacted"] == 7.5
        assert response.data["bottom"][0]["impact"] == "Very Negative"

    def test_websites_ranked_by_correlation(self, api, use_store, fake_store):
        use_store(fake_store)

        response = api.get("/dashboard/websites/")

        assert response.data["total"] == 2
        assert response.data["top"][0]["domain"] == "music.example.com"
        assert response.data["top"][0]["impact"] == "Positive"
        assert response.data["bottom"][0]["domain"] == "news.example.com"
        assert response.data["bottom"][0]["impact"] == "Negative"

    def test_needs_analysis(self, api, use_store, empty_store):
        use_store(empty_store)
        response = api.get("/dashboard/websites/")
        assert response.data["needs_analysis"] is True
        assert response.data["ranking"] == []


class TestRefresh:
    def test_creates_analysis(self, api, use_store, fake_store):
        fake_store.created = {"id": 12}
        use_store(fake_store)

        response = api.post(
            "/dashboard/refresh/",
            {"name": "Spring", "start_date": "2024-03-01", "end_date": "2024-06-01"},
            format="json",
        )

        assert response.status_code == 201
        assert response.data["id"] == 12
        assert response.data["status"] == "pending"
        assert fake_store.posts[0][1]["name"] == "Spring"
        assert fake_store.posts[0][1]["start_date"] == "2024-03-01"

    def test_rejects_inverted_range(self, api, use_store, fake_store):
        use_store(fake_store)
        response = api.post(
            "/dashboard/refresh/",
            {"start_date": "2024-06-01", "end_date": "2024-03-01"},
            format="json",
        )
        assert response.status_code == 400
        assert fake_store.posts == []

    def test_store_rejection(self, api, use_store, fake_store):
        fake_store.created = RemoteAnalyticsError("CSRF Failed: CSRF token missing.", status_code=403)
        use_store(fake_store)

        response = api.post("/dashboard/refresh/", {}, format="json")

        assert response.status_code == 502
        assert response.data["error"] == "CSRF Failed: CSRF token missing."
