"""
Data access layer: filtered reads against the analytics store.

Each ``Query`` is one consumer slot with a ``{data, loading, error}`` state.
Its request is keyed by the values of the filters the endpoint depends on,
so equal filters never refetch, and only the most recently issued request
is allowed to write its result into the state.
"""

import logging
import threading
from datetime import date, datetime, timedelta, timezone

from dateutil.parser import parse as parse_date
from dateutil.relativedelta import relativedelta

from .client import RemoteAnalyticsError
from .serializers import QueryFiltersSerializer

logger = logging.getLogger(__name__)

# kind -> (path, [(filter name, query param name), ...])
QUERY_KINDS = {
    "time_analyses": (
        "/api/time-analyses/",
        [("start_date", "start_date"), ("end_date", "end_date"), ("status", "status")],
    ),
    "days": (
        "/api/days/",
        [
            ("start_date", "start_date"),
            ("end_date", "end_date"),
            ("time_analysis", "time_analysis"),
        ],
    ),
    "messages": (
        "/api/messages/",
        [
            ("start_date", "day_date_after"),
            ("end_date", "day_date_before"),
            ("time_analysis", "time_analysis"),
            ("date", "day_date"),
            ("limit", "limit"),
        ],
    ),
    "happiest_messages": (
        "/api/messages/happiest/",
        [("time_analysis", "time_analysis"), ("date", "date"), ("limit", "limit")],
    ),
    "saddest_messages": (
        "/api/messages/saddest/",
        [("time_analysis", "time_analysis"), ("date", "date"), ("limit", "limit")],
    ),
    "places": (
        "/api/locations/",
        [("time_analysis", "time_analysis"), ("limit", "limit")],
    ),
    "person_analyses": ("/api/person-analyses/", [("time_analysis", "time_analysis")]),
    "website_analyses": ("/api/website-analyses/", [("time_analysis", "time_analysis")]),
}

# Kinds that only make sense inside one analysis run
SCOPED_KINDS = frozenset(QUERY_KINDS) - {"time_analyses"}


class InvalidFilters(ValueError):
    """Filter values that cannot be sent to the store."""

    def __init__(self, errors):
        super().__init__(f"Invalid filters: {errors}")
        self.errors = errors


def build_key(kind, filters=None):
    """
    Build the request key for ``kind`` from a filter mapping.

    Only the fields the endpoint depends on take part, in a fixed order, and
    empty values are dropped. The key is a plain tuple, so two filter
    mappings with the same values give equal keys.
    """
    if kind not in QUERY_KINDS:
        raise KeyError(f"Unknown query kind: {kind}")

    serializer = QueryFiltersSerializer(data=filters or {})
    if not serializer.is_valid():
        raise InvalidFilters(serializer.errors)
    cleaned = serializer.validated_data

    _, mapping = QUERY_KINDS[kind]
    params = []
    for field, param in mapping:
        value = cleaned.get(field)
        if value in (None, ""):
            continue
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        params.append((param, str(value)))
    return (kind, tuple(params))


class QueryState:
    """Snapshot of one query's data, loading flag and error message."""

    def __init__(self):
        self.data = []
        self.loading = False
        self.error = None
        self.key = None

    def as_dict(self):
        return {"data": self.data, "loading": self.loading, "error": self.error}

    def __repr__(self):
        return (
            f"QueryState(key={self.key}, {len(self.data)} records, "
            f"loading={self.loading}, error={self.error!r})"
        )


class Query:
    """One consumer of a query kind whose filters may change over time."""

    def __init__(self, client, kind, executor=None):
        self.client = client
        self.kind = kind
        self.path = QUERY_KINDS[kind][0]
        self.executor = executor
        self.state = QueryState()
        self._issued = 0
        self._future = None
        self._lock = threading.Lock()

    def update(self, filters=None):
        """Point the query at new filters, fetching only if the key changed."""
        key = build_key(self.kind, filters)
        if key == self.state.key:
            return self.state
        return self._issue(key)

    def refetch(self):
        """Re-issue the current request (manual retry)."""
        if self.state.key is None:
            return self.state
        return self._issue(self.state.key)

    def skip(self):
        """Reset to an empty, settled state without touching the network."""
        with self._lock:
            self._issued += 1
            self.state.key = None
            self.state.data = []
            self.state.loading = False
            self.state.error = None
        return self.state

    def wait(self):
        """Block until the latest background request has settled."""
        future = self._future
        if future is not None:
            future.exception()
        return self.state

    def _issue(self, key):
        with self._lock:
            self._issued += 1
            ticket = self._issued
            self.state.key = key
            self.state.loading = True
            self.state.error = None

        if self.executor is None:
            self._run(ticket, key)
        else:
            self._future = self.executor.submit(self._run, ticket, key)
        return self.state

    def _run(self, ticket, key):
        self._settle(ticket, *self._fetch(key))

    def _fetch(self, key):
        params = dict(key[1])
        try:
            return self.client.get_list(self.path, params=params), None
        except RemoteAnalyticsError as e:
            return [], str(e)

    def _settle(self, ticket, data, error):
        with self._lock:
            if ticket != self._issued:
                logger.debug(f"Dropping stale {self.kind} response (ticket {ticket})")
                return
            self.state.data = data
            self.state.error = error
            self.state.loading = False

        if error:
            logger.warning(f"{self.kind} query failed: {error}")


class QueryStore:
    """Named query slots sharing one client."""

    def __init__(self, client, executor=None):
        self.client = client
        self.executor = executor
        self.slots = {}

    def slot(self, kind, name=None):
        name = name or kind
        query = self.slots.get(name)
        if query is None:
            query = Query(self.client, kind, executor=self.executor)
            self.slots[name] = query
        elif query.kind != kind:
            raise ValueError(f"Slot '{name}' already holds a {query.kind} query")
        return query

    def use(self, kind, filters=None, slot=None):
        """Return the state of a slot after pointing it at ``filters``."""
        return self.slot(kind, slot).update(filters)

    def invalidate(self, name):
        """Forget a slot so its next use fetches again."""
        self.slots.pop(name, None)

    def refetch_all(self):
        for query in self.slots.values():
            query.refetch()


def _created_at(analysis):
    value = analysis.get("created_at")
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    try:
        created = parse_date(value)
    except (ValueError, OverflowError, TypeError):
        logger.warning(f"Unparseable created_at on analysis {analysis.get('id')}: {value}")
        return datetime.min.replace(tzinfo=timezone.utc)
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def latest_completed(analyses):
    """Return the most recently created completed analysis, or None."""
    completed = [a for a in analyses if a.get("status") == "completed"]
    if not completed:
        return None
    return max(completed, key=lambda a: (_created_at(a), a.get("id") or 0))


class AnalysisScope:
    """Resolves which analysis run dependent queries are filtered by."""

    SLOT = "scope:time_analyses"

    def __init__(self, store, time_analysis=None):
        self.store = store
        self.explicit_id = time_analysis

    @property
    def state(self):
        return self.store.slot("time_analyses", self.SLOT).state

    def resolve(self):
        """Return the scope id, or None when no completed analysis exists."""
        if self.explicit_id is not None:
            return self.explicit_id

        state = self.store.use("time_analyses", slot=self.SLOT)
        if state.loading:
            state = self.store.slot("time_analyses", self.SLOT).wait()
        if state.error:
            raise RemoteAnalyticsError(state.error)

        analysis = latest_completed(state.data)
        if analysis is None:
            logger.info("No completed analysis available yet")
            return None
        return analysis["id"]

    def reset(self):
        self.store.invalidate(self.SLOT)


class Dashboard:
    """
    One dashboard session: a query store plus the analysis scope.

    Every dependent query goes through ``fetch`` so all views read from the
    same analysis run.
    """

    def __init__(self, client, time_analysis=None, executor=None):
        self.client = client
        self.store = QueryStore(client, executor=executor)
        self.scope = AnalysisScope(self.store, time_analysis=time_analysis)
        self._scope_id = None
        self._scope_resolved = False

    @property
    def scope_id(self):
        if not self._scope_resolved:
            self._scope_id = self.scope.resolve()
            self._scope_resolved = True
        return self._scope_id

    @property
    def needs_analysis(self):
        return self.scope_id is None

    def fetch(self, kind, filters=None, slot=None):
        """
        Return the state for ``kind`` scoped to the current analysis.

        With no completed analysis the slot is skipped and comes back empty.
        """
        filters = dict(filters or {})
        if kind in SCOPED_KINDS and not filters.get("time_analysis"):
            if self.scope_id is None:
                return self.store.slot(kind, slot).skip()
            filters["time_analysis"] = self.scope_id

        state = self.store.use(kind, filters, slot=slot)
        if state.loading:
            state = self.store.slot(kind, slot).wait()
        return state

    def create_analysis(
        self, name=None, description=None, start_date=None, end_date=None, today=None
    ):
        """
        Ask the store to run a new analysis.

        By default the run covers the last four months up to tomorrow.
        """
        today = today or date.today()
        start_date = start_date or today - relativedelta(months=4)
        end_date = end_date or today + timedelta(days=1)
        payload = {
            "name": name or f"Analysis {today.isoformat()}",
            "description": description
            or "Sentiment analysis generated from dashboard refresh",
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
        }
        created = self.client.post(QUERY_KINDS["time_analyses"][0], payload)
        logger.info(f"Requested analysis {created.get('id')}: {created.get('name')}")

        self.scope.reset()
        self._scope_resolved = False
        return created
