import logging
from datetime import datetime

from django.urls import reverse
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .client import RemoteAnalyticsClient, RemoteAnalyticsError
from .maps import LeafletMapProvider, build_pins
from .metrics import bottom_n, calendar_cells, rank, top_n
from .queries import Dashboard, InvalidFilters
from .serializers import (
    AnalysisRequestSerializer,
    CalendarQuerySerializer,
    DayCellSerializer,
    MessageSerializer,
    PersonAnalysisSerializer,
    PlaceSerializer,
    QueryFiltersSerializer,
    WebsiteAnalysisSerializer,
)

logger = logging.getLogger(__name__)

NEEDS_ANALYSIS_MESSAGE = "No completed analysis yet. Run an analysis to fill the dashboard."


def get_client():
    return RemoteAnalyticsClient.from_settings()


def get_map_provider():
    return LeafletMapProvider.from_settings()


class DashboardView(APIView):
    """
    Base view for dashboard screens.

    Builds one ``Dashboard`` per request, scoped either to the
    ``time_analysis`` query parameter or to the latest completed analysis,
    and turns store failures into an error body with a retry link.
    """

    def get_dashboard(self):
        filters = QueryFiltersSerializer(
            data={"time_analysis": self.request.query_params.get("time_analysis")}
        )
        if not filters.is_valid():
            raise InvalidFilters(filters.errors)
        return Dashboard(
            get_client(), time_analysis=filters.validated_data.get("time_analysis")
        )

    def load(self, dashboard, kind, filters=None, slot=None):
        """Fetch ``kind`` and fail the request if the store reported an error."""
        state = dashboard.fetch(kind, filters, slot=slot)
        if state.error:
            raise RemoteAnalyticsError(state.error)
        return state.data

    def needs_analysis_response(self, **empty):
        return Response(
            {
                "needs_analysis": True,
                "time_analysis": None,
                "message": NEEDS_ANALYSIS_MESSAGE,
                "refresh": reverse("dashboard-refresh"),
                **empty,
            }
        )

    def handle_exception(self, exc):
        if isinstance(exc, RemoteAnalyticsError):
            logger.error(f"{self.request.path} failed: {exc}")
            return Response(
                {"error": str(exc), "retry": self.request.get_full_path()},
                status=status.HTTP_502_BAD_GATEWAY,
            )
        if isinstance(exc, InvalidFilters):
            return Response(
                {"error": "Invalid filters", "details": exc.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return super().handle_exception(exc)


class OverviewView(DashboardView):
    """Headline counts for the current analysis."""

    def get(self, request):
        dashboard = self.get_dashboard()
        counts = {"locations": 0, "websites": 0, "messages": 0, "contacts": 0}
        if dashboard.needs_analysis:
            return self.needs_analysis_response(counts=counts)

        counts["locations"] = len(self.load(dashboard, "places"))
        counts["websites"] = len(self.load(dashboard, "website_analyses"))
        counts["messages"] = len(self.load(dashboard, "messages"))
        counts["contacts"] = len(self.load(dashboard, "person_analyses"))

        return Response(
            {
                "needs_analysis": False,
                "time_analysis": dashboard.scope_id,
                "counts": counts,
            }
        )


class CalendarView(DashboardView):
    """
    Happiness per day for a month or a week.

    Monthly views fetch the month padded by a week either side so the
    leading and trailing grid cells are filled too.
    """

    def get(self, request):
        params = CalendarQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        view = params.validated_data["view"]
        date_range = params.validated_data["range"]

        dashboard = self.get_dashboard()
        if dashboard.needs_analysis:
            return self.needs_analysis_response(view=view, range=date_range, days={})

        days = self.load(dashboard, "days", date_range, slot="calendar")
        cells = calendar_cells(days)
        return Response(
            {
                "needs_analysis": False,
                "time_analysis": dashboard.scope_id,
                "view": view,
                "range": date_range,
                "days": {
                    key: DayCellSerializer(cells[key]).data for key in sorted(cells)
                },
            }
        )


class DayDetailView(DashboardView):
    """One day's happiness with its five happiest and saddest messages."""

    message_limit = 5

    def get(self, request, day):
        try:
            selected = datetime.strptime(day, "%Y-%m-%d").date()
        except ValueError:
            return Response(
                {"error": f"Invalid date: {day}"}, status=status.HTTP_400_BAD_REQUEST
            )

        dashboard = self.get_dashboard()
        if dashboard.needs_analysis:
            return self.needs_analysis_response(
                date=selected.isoformat(), day=None, happiest=[], saddest=[]
            )

        day_filters = {"start_date": selected, "end_date": selected}
        message_filters = {"date": selected, "limit": self.message_limit}

        cells = calendar_cells(self.load(dashboard, "days", day_filters, slot="day"))
        happiest = self.load(dashboard, "happiest_messages", message_filters)
        saddest = self.load(dashboard, "saddest_messages", message_filters)

        cell = cells.get(selected.isoformat())
        return Response(
            {
                "needs_analysis": False,
                "time_analysis": dashboard.scope_id,
                "date": selected.isoformat(),
                "day": DayCellSerializer(cell).data if cell else None,
                "happiest": MessageSerializer(happiest, many=True).data,
                "saddest": MessageSerializer(saddest, many=True).data,
            }
        )


class MapView(DashboardView):
    """Visited places as map pins plus most and least visited lists."""

    top_count = 5
    bottom_count = 3

    def get(self, request):
        provider = get_map_provider()
        dashboard = self.get_dashboard()
        if dashboard.needs_analysis:
            return self.needs_analysis_response(
                map=provider.assets(), pins=[], most_visited=[], least_visited=[]
            )

        places = self.load(dashboard, "places")
        pins = build_pins(places, provider)

        return Response(
            {
                "needs_analysis": False,
                "time_analysis": dashboard.scope_id,
                "map": provider.assets(),
                "pins": pins,
                "skipped": len(places) - len(pins),
                "most_visited": PlaceSerializer(
                    top_n(places, self.top_count, "visit_count"), many=True
                ).data,
                "least_visited": PlaceSerializer(
                    bottom_n(places, self.bottom_count, "visit_count"), many=True
                ).data,
            }
        )


class CorrelationRankingView(DashboardView):
    """Records ranked by correlation coefficient, best and worst ten."""

    kind = None
    serializer_class = None
    list_size = 10

    def get(self, request):
        dashboard = self.get_dashboard()
        if dashboard.needs_analysis:
            return self.needs_analysis_response(total=0, ranking=[], top=[], bottom=[])

        records = self.load(dashboard, self.kind)
        ranking = rank(records, "correlation_coefficient")
        serializer = self.serializer_class

        return Response(
            {
                "needs_analysis": False,
                "time_analysis": dashboard.scope_id,
                "total": len(ranking),
                "ranking": serializer(ranking, many=True).data,
                "top": serializer(
                    top_n(ranking, self.list_size, "correlation_coefficient"),
                    many=True,
                ).data,
                "bottom": serializer(
                    bottom_n(ranking, self.list_size, "correlation_coefficient"),
                    many=True,
                ).data,
            }
        )


class PeopleView(CorrelationRankingView):
    """Contacts whose messages lift or lower your mood."""

    kind = "person_analyses"
    serializer_class = PersonAnalysisSerializer


class WebsitesView(CorrelationRankingView):
    """Websites whose visits go with happier or sadder days."""

    kind = "website_analyses"
    serializer_class = WebsiteAnalysisSerializer


class RefreshView(DashboardView):
    """Ask the analytics store to run a new analysis."""

    def post(self, request):
        serializer = AnalysisRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        dashboard = Dashboard(get_client())
        created = dashboard.create_analysis(**serializer.validated_data)
        return Response(created, status=status.HTTP_201_CREATED)
