"""Shared fixtures: a fake analytics store and sample records."""

import json
from unittest.mock import patch

import pytest
import requests

from dashboard.client import RemoteAnalyticsError, normalize_results

# =============================================================================
# Helper Functions
# =============================================================================


def make_response(status_code=200, json_body=None, text=None, reason=None):
    """Build a real requests.Response without a network round trip."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    if text is not None:
        response._content = text.encode("utf-8")
    elif json_body is not None:
        response._content = json.dumps(json_body).encode("utf-8")
    else:
        response._content = b""
    response.encoding = "utf-8"
    return response


class FakeStoreClient:
    """
    Stand-in for RemoteAnalyticsClient.

    ``routes`` maps a path to a list of records, a callable taking the
    params, or an exception to raise. Records go through the same
    ``normalize_results`` check as real responses.
    Every call is recorded as ``(path, params)``.
    """

    def __init__(self, routes=None, created=None):
        self.routes = dict(routes or {})
        self.created = created
        self.calls = []
        self.posts = []

    def get_list(self, path, params=None):
        self.calls.append((path, dict(params or {})))
        result = self.routes.get(path, [])
        if isinstance(result, Exception):
            raise result
        if callable(result):
            result = result(params or {})
        return normalize_results(list(result))

    def post(self, path, payload):
        self.posts.append((path, payload))
        if isinstance(self.created, Exception):
            raise self.created
        return dict(self.created or {}, **payload, status="pending")

    def paths(self):
        return [path for path, _ in self.calls]


# =============================================================================
# Sample Records
# =============================================================================


@pytest.fixture
def time_analyses():
    return [
        {"id": 7, "name": "Pending run", "status": "pending", "created_at": "2024-03-01T09:00:00Z"},
        {"id": 2, "name": "Older run", "status": "completed", "created_at": "2024-01-10T09:00:00Z"},
        {"id": 5, "name": "Newer run", "status": "completed", "created_at": "2024-02-10T09:00:00Z"},
    ]


@pytest.fixture
def days():
    return [
        {"id": 1, "date": "2024-01-01", "sentiment": 0.7, "sentiment_label": "Positive", "message_count": 12},
        {"id": 2, "date": "2024-01-02", "sentiment": -0.4, "sentiment_label": "Negative", "message_count": 3},
        {"id": 3, "date": "2024-01-03", "sentiment": 0.0, "sentiment_label": "Neutral", "message_count": 0},
    ]


@pytest.fixture
def messages():
    return [
        {
            "id": 11,
            "text": "Had the best day at the beach with everyone!",
            "sentiment": 0.92,
            "sentiment_label": "Positive",
            "source": "iMessage",
            "contact": "Sam Rivera",
            "timestamp": "2024-01-01T18:03:00Z",
        },
        {
            "id": 12,
            "text": "x" * 200,
            "sentiment": -0.81,
            "sentiment_label": "Negative",
            "source": "Gmail",
            "contact": "billing@example.com",
            "timestamp": "2024-01-01T08:15:00Z",
        },
    ]


@pytest.fixture
def places():
    return [
        {
            "id": 1,
            "name": "Home",
            "center_latitude": "40.71280000",
            "center_longitude": "-74.00600000",
            "visit_count": 45,
            "total_time_minutes": 5400,
            "average_time_per_visit": 120.0,
            "address": "1 Main St",
            "activity_types": {"STILL": 40},
        },
        {
            "id": 2,
            "name": "Broken",
            "center_latitude": "abc",
            "center_longitude": "-73.98510000",
            "visit_count": 3,
            "total_time_minutes": 45,
            "average_time_per_visit": 15.0,
            "address": "",
            "activity_types": {},
        },
        {
            "id": 3,
            "name": "Coffee Shop",
            "center_latitude": "40.75050000",
            "center_longitude": "-73.99340000",
            "visit_count": 28,
            "total_time_minutes": 90,
            "average_time_per_visit": 3.2,
            "address": "",
            "activity_types": {"WALKING": 2},
        },
    ]


@pytest.fixture
def person_analyses():
    return [
        {
            "id": 1,
            "contact_name": "Sam Rivera",
            "correlation_coefficient": 0.62,
            "days_interacted": 20,
            "days_not_interacted": 10,
            "total_messages": 310,
            "avg_sentiment_when_interacted": 0.5,
            "avg_sentiment_when_not_interacted": 0.1,
            "significance_score": 0.8,
        },
        {
            "id": 2,
            "contact_name": "billing",
            "correlation_coefficient": -0.55,
            "days_interacted": 4,
            "days_not_interacted": 26,
            "total_messages": 9,
            "avg_sentiment_when_interacted": -0.3,
            "avg_sentiment_when_not_interacted": 0.2,
            "significance_score": 0.4,
        },
        {
            "id": 3,
            "contact_name": "Alex Chen",
            "correlation_coefficient": 0.1,
            "days_interacted": 12,
            "days_not_interacted": 18,
            "total_messages": 80,
            "avg_sentiment_when_interacted": 0.2,
            "avg_sentiment_when_not_interacted": 0.15,
            "significance_score": 0.1,
        },
    ]


@pytest.fixture
def website_analyses():
    return [
        {
            "id": 1,
            "domain": "news.example.com",
            "example_url": "https://news.example.com/today",
            "correlation_coefficient": -0.3,
            "days_visited": 25,
            "days_not_visited": 5,
            "total_visits": 140,
            "avg_sentiment_when_visited": -0.1,
            "avg_sentiment_when_not_visited": 0.3,
            "significance_score": 0.5,
        },
        {
            "id": 2,
            "domain": "music.example.com",
            "example_url": "",
            "correlation_coefficient": 0.45,
            "days_visited": 15,
            "days_not_visited": 15,
            "total_visits": 60,
            "avg_sentiment_when_visited": 0.6,
            "avg_sentiment_when_not_visited": 0.0,
            "significance_score": 0.7,
        },
    ]


@pytest.fixture
def store_routes(time_analyses, days, messages, places, person_analyses, website_analyses):
    return {
        "/api/time-analyses/": time_analyses,
        "/api/days/": days,
        "/api/messages/": messages,
        "/api/messages/happiest/": messages[:1],
        "/api/messages/saddest/": messages[1:],
        "/api/locations/": places,
        "/api/person-analyses/": person_analyses,
        "/api/website-analyses/": website_analyses,
    }


@pytest.fixture
def fake_store(store_routes):
    return FakeStoreClient(store_routes)


@pytest.fixture
def empty_store():
    return FakeStoreClient(
        {"/api/time-analyses/": [{"id": 1, "status": "processing", "created_at": "2024-03-01T00:00:00Z"}]}
    )


@pytest.fixture
def failing_store(store_routes):
    routes = dict(store_routes)
    routes["/api/locations/"] = RemoteAnalyticsError("Internal Server Error", status_code=500)
    return FakeStoreClient(routes)


@pytest.fixture
def use_store():
    """Route the dashboard views to a given fake store."""

    def _use(store):
        patcher = patch("dashboard.views.get_client", return_value=store)
        patcher.start()
        return store

    yield _use
    patch.stopall()
