from django.core.management.base import BaseCommand, CommandError

from dashboard.client import RemoteAnalyticsClient, RemoteAnalyticsError
from dashboard.queries import Dashboard


class Command(BaseCommand):
    help = "Ask the analytics store to run a new sentiment analysis"

    def add_arguments(self, parser):
        parser.add_argument("--name", help="Name for the new analysis")

    def handle(self, *args, **options):
        client = RemoteAnalyticsClient.from_settings()
        self.stdout.write(f"🔗 Using analytics store at {client.base_url}")

        try:
            created = Dashboard(client).create_analysis(name=options.get("name"))
        except RemoteAnalyticsError as e:
            raise CommandError(f"❌ Could not create analysis: {e}")

        self.stdout.write(f"🚀 Analysis created: {created.get('name')}")
        self.stdout.write(
            f"📅 Date range: {created.get('start_date')} to {created.get('end_date')}"
        )
        self.stdout.write(f"📊 Status: {created.get('status', 'pending')}")
