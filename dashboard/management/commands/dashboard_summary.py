from django.core.management.base import BaseCommand, CommandError

from dashboard.client import RemoteAnalyticsClient, RemoteAnalyticsError
from dashboard.metrics import (
    bottom_n,
    correlation_band,
    happiness_band,
    sentiment_to_happiness,
    top_n,
)
from dashboard.queries import Dashboard


class Command(BaseCommand):
    help = "Print a text summary of the latest completed analysis"

    def add_arguments(self, parser):
        parser.add_argument("--time-analysis", type=int, help="Analysis id to summarise")
        parser.add_argument("--limit", type=int, default=3, help="Entries per list")

    def handle(self, *args, **options):
        dashboard = Dashboard(
            RemoteAnalyticsClient.from_settings(),
            time_analysis=options.get("time_analysis"),
        )
        limit = options["limit"]

        try:
            if dashboard.needs_analysis:
                self.stdout.write("ℹ️  No completed analysis yet. Run request_analysis first.")
                return
            self.stdout.write(f"📊 Analysis {dashboard.scope_id}")
            self._days(dashboard, limit)
            self._correlations(dashboard, "person_analyses", "contact_name", "👥 People", limit)
            self._correlations(dashboard, "website_analyses", "domain", "🌐 Websites", limit)
        except RemoteAnalyticsError as e:
            raise CommandError(f"❌ {e}")

    def _load(self, dashboard, kind):
        state = dashboard.fetch(kind)
        if state.error:
            raise RemoteAnalyticsError(state.error)
        return state.data

    def _days(self, dashboard, limit):
        days = self._load(dashboard, "days")
        self.stdout.write(f"\n📅 Days ({len(days)})")
        for label, picked in (
            ("Happiest", top_n(days, limit, "sentiment")),
            ("Saddest", bottom_n(days, limit, "sentiment")),
        ):
            self.stdout.write(f"  {label}:")
            for day in picked:
                score = sentiment_to_happiness(day.get("sentiment"))
                self.stdout.write(
                    f"    {day.get('date')}  {score:.1f}  {happiness_band(score).label}"
                )

    def _correlations(self, dashboard, kind, name_field, title, limit):
        records = self._load(dashboard, kind)
        self.stdout.write(f"\n{title} ({len(records)})")
        for record in top_n(records, limit, "correlation_coefficient"):
            coefficient = record.get("correlation_coefficient") or 0.0
            self.stdout.write(
                f"  {record.get(name_field)}: {coefficient:+.3f} "
                f"({correlation_band(coefficient).label})"
            )
