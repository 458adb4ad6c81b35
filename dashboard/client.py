"""
HTTP client for the remote analytics store.

Wraps a ``requests.Session`` so that every call:
1. Carries a client-side timeout
2. Collapses transport failures, non-2xx statuses and malformed bodies
   into a single human-readable message
3. Sends the Django CSRF token on writes
"""

import logging
import re
from urllib.parse import urljoin

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

CSRF_COOKIE_NAME = "csrftoken"
CSRF_HEADER_NAME = "X-CSRFToken"

CSRF_INPUT_RE = re.compile(
    r"""name=["']csrfmiddlewaretoken["']\s+value=["']([^"']+)["']"""
)
CSRF_META_RE = re.compile(r"""name=["']csrf-token["']\s+content=["']([^"']+)["']""")


class RemoteAnalyticsError(Exception):
    """Any failed exchange with the analytics store."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self):
        return self.message


class RemoteTimeoutError(RemoteAnalyticsError):
    """The store did not answer within the configured timeout."""


class RemoteHTTPError(RemoteAnalyticsError):
    """The store answered with a non-2xx status."""


class MalformedResponseError(RemoteAnalyticsError):
    """The store answered 2xx with a body that is not usable JSON."""


def normalize_results(payload):
    """
    Return the list of records in a list response.

    The store answers either with a bare JSON array or with a paginated
    envelope ``{"results": [...]}``. Anything else counts as no records yet.
    Every record must be a JSON object.
    """
    if isinstance(payload, list):
        results = payload
    elif isinstance(payload, dict) and "results" in payload:
        results = payload["results"]
        if results is None:
            return []
        if not isinstance(results, list):
            raise MalformedResponseError("Unexpected 'results' value in response")
    else:
        return []

    for record in results:
        if not isinstance(record, dict):
            raise MalformedResponseError(
                f"Unexpected record in response: {record!r}"
            )
    return results


def error_message_from_response(response):
    """Pick the most useful error text out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        message = body.get("error") or body.get("detail")
        if message:
            return str(message)

    if response.reason:
        return response.reason
    return f"HTTP error! status: {response.status_code}"


class RemoteAnalyticsClient:
    """Thin read/write client for the analytics REST API."""

    def __init__(self, base_url, timeout=15, csrf_token=None, session=None):
        """
        Initialize the client.

        Args:
            base_url: Root URL of the analytics store, e.g. http://localhost:8000
            timeout: Seconds to wait for any single request
            csrf_token: Explicit CSRF token for writes, overrides cookie lookup
            session: Optional pre-configured requests.Session
        """
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self.csrf_token = csrf_token
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, session=None):
        """Build a client from the DASHBOARD_* Django settings."""
        return cls(
            base_url=settings.DASHBOARD_API_BASE_URL,
            timeout=settings.DASHBOARD_REQUEST_TIMEOUT,
            csrf_token=getattr(settings, "DASHBOARD_CSRF_TOKEN", None) or None,
            session=session,
        )

    def url_for(self, path):
        return urljoin(self.base_url, path.lstrip("/"))

    def get(self, path, params=None):
        """GET a JSON document from the store."""
        return self._request("GET", path, params=params)

    def get_list(self, path, params=None):
        """GET a list endpoint and normalize it to a plain list."""
        return normalize_results(self.get(path, params=params))

    def post(self, path, payload):
        """POST a JSON payload to the store with the CSRF header set."""
        headers = {
            "Content-Type": "application/json",
            CSRF_HEADER_NAME: self.get_csrf_token(),
        }
        return self._request("POST", path, json=payload, headers=headers)

    def get_csrf_token(self):
        """
        Find a CSRF token for write requests.

        Looks at the explicit token first, then the ``csrftoken`` cookie,
        then the hidden form field or meta tag on the store's root page.
        Returns an empty string when none is found; the store rejects the
        write in that case.
        """
        if self.csrf_token:
            return self.csrf_token

        cookie_value = self.session.cookies.get(CSRF_COOKIE_NAME)
        if cookie_value:
            return cookie_value

        try:
            response = self.session.get(self.base_url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Could not load page to look up CSRF token: {e}")
            return ""

        # Loading the page usually sets the cookie as a side effect
        cookie_value = self.session.cookies.get(CSRF_COOKIE_NAME)
        if cookie_value:
            return cookie_value

        for pattern in (CSRF_INPUT_RE, CSRF_META_RE):
            match = pattern.search(response.text or "")
            if match:
                return match.group(1)

        logger.warning("No CSRF token found; write request will likely be rejected")
        return ""

    def _request(self, method, path, **kwargs):
        url = self.url_for(path)
        logger.debug(f"{method} {url} params={kwargs.get('params')}")

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout:
            raise RemoteTimeoutError(f"Request timed out after {self.timeout:g}s")
        except requests.RequestException as e:
            raise RemoteAnalyticsError(f"Network error: {e}")

        if not response.ok:
            message = error_message_from_response(response)
            logger.warning(f"{method} {url} failed with {response.status_code}: {message}")
            raise RemoteHTTPError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError:
            raise MalformedResponseError(
                f"Could not parse response from {path}",
                status_code=response.status_code,
            )
