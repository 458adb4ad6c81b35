from datetime import date, datetime

from rest_framework import serializers

from .metrics import (
    calendar_range,
    correlation_band,
    format_duration,
    happiness_band,
    initials,
    sentiment_to_happiness,
    truncate_text,
    week_dates,
)

ANALYSIS_STATUSES = [
    ("pending", "Pending"),
    ("processing", "Processing"),
    ("completed", "Completed"),
    ("error", "Error"),
]


class QueryFiltersSerializer(serializers.Serializer):
    """Validates the filters a dashboard query may send to the store."""

    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    status = serializers.ChoiceField(choices=ANALYSIS_STATUSES, required=False)
    time_analysis = serializers.IntegerField(min_value=1, required=False)
    date = serializers.DateField(required=False)
    limit = serializers.IntegerField(min_value=1, required=False)

    def to_internal_value(self, data):
        # Unset filters arrive as None or "" and mean "no filter"
        data = {key: value for key, value in data.items() if value not in (None, "")}
        return super().to_internal_value(data)

    def validate(self, data):
        """Validate that end_date is not before start_date."""
        start_date = data.get("start_date")
        end_date = data.get("end_date")
        if start_date and end_date and start_date > end_date:
            raise serializers.ValidationError("End date must not be before start date.")
        return data


class AnalysisRequestSerializer(serializers.Serializer):
    """Validates a request to run a new analysis."""

    name = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)

    def validate(self, data):
        """Validate that end_date is after start_date."""
        start_date = data.get("start_date")
        end_date = data.get("end_date")
        if start_date and end_date and start_date >= end_date:
            raise serializers.ValidationError("End date must be after start date.")
        return data


class CalendarQuerySerializer(serializers.Serializer):
    """Query parameters for the calendar view."""

    view = serializers.ChoiceField(
        choices=[("monthly", "Monthly"), ("weekly", "Weekly")], default="monthly"
    )
    month = serializers.RegexField(r"^\d{4}-\d{2}$", required=False)
    start = serializers.DateField(required=False)

    def validate_month(self, value):
        """Validate that month names a real calendar month."""
        if not 1 <= int(value[5:]) <= 12:
            raise serializers.ValidationError("Month must be between 01 and 12.")
        return value

    def validate(self, data):
        """Resolve the date range to fetch; it must fit the calendar."""
        try:
            if data["view"] == "weekly":
                dates = week_dates(data.get("start") or date.today())
                data["range"] = {
                    "start_date": dates[0].isoformat(),
                    "end_date": dates[-1].isoformat(),
                }
            else:
                month = data.get("month")
                if month:
                    active_date = datetime.strptime(month + "-01", "%Y-%m-%d").date()
                else:
                    active_date = date.today()
                data["range"] = calendar_range(active_date)
        except (ValueError, OverflowError):
            raise serializers.ValidationError("Dates are outside the supported range.")
        return data


class DayCellSerializer(serializers.Serializer):
    """Calendar cell for one day."""

    date = serializers.CharField()
    score = serializers.SerializerMethodField()
    level = serializers.CharField()
    color = serializers.CharField()
    sentiment = serializers.FloatField(allow_null=True)
    sentiment_label = serializers.CharField(default="")
    message_count = serializers.IntegerField(default=0)

    def get_score(self, obj):
        return round(obj["score"], 1)


class MessageSerializer(serializers.Serializer):
    """Message shown in a day's happiest/saddest lists."""

    id = serializers.IntegerField()
    text = serializers.SerializerMethodField()
    sentiment = serializers.FloatField()
    sentiment_label = serializers.CharField(default="")
    source = serializers.CharField(default="")
    contact = serializers.CharField(default="")
    timestamp = serializers.CharField(default="")

    def get_text(self, obj):
        return truncate_text(obj.get("text"))


class PlaceSerializer(serializers.Serializer):
    """Visited place with formatted durations."""

    id = serializers.IntegerField()
    name = serializers.CharField(default="")
    address = serializers.CharField(default="", allow_null=True)
    visit_count = serializers.IntegerField(default=0)
    total_time = serializers.SerializerMethodField()
    average_time = serializers.SerializerMethodField()
    first_visit = serializers.CharField(default=None, allow_null=True)
    last_visit = serializers.CharField(default=None, allow_null=True)
    activity_types = serializers.DictField(child=serializers.IntegerField(), default=dict)

    def get_total_time(self, obj):
        return format_duration(obj.get("total_time_minutes"))

    def get_average_time(self, obj):
        return format_duration(obj.get("average_time_per_visit"))


class CorrelationSerializer(serializers.Serializer):
    """Shared fields of person and website correlation records."""

    id = serializers.IntegerField()
    correlation_coefficient = serializers.FloatField()
    impact = serializers.SerializerMethodField()
    color = serializers.SerializerMethodField()
    significance_score = serializers.FloatField(default=0.0)

    def get_impact(self, obj):
        return correlation_band(obj.get("correlation_coefficient")).label

    def get_color(self, obj):
        return correlation_band(obj.get("correlation_coefficient")).color


class PersonAnalysisSerializer(CorrelationSerializer):
    """Contact ranked by how interacting with them relates to mood."""

    contact_name = serializers.CharField()
    initials = serializers.SerializerMethodField()
    days_interacted = serializers.IntegerField(default=0)
    days_not_interacted = serializers.IntegerField(default=0)
    total_messages = serializers.IntegerField(default=0)
    happiness_when_interacted = serializers.SerializerMethodField()
    happiness_level = serializers.SerializerMethodField()

    def get_initials(self, obj):
        return initials(obj.get("contact_name"))

    def get_happiness_when_interacted(self, obj):
        return round(sentiment_to_happiness(obj.get("avg_sentiment_when_interacted")), 1)

    def get_happiness_level(self, obj):
        score = sentiment_to_happiness(obj.get("avg_sentiment_when_interacted"))
        return happiness_band(score).label


class WebsiteAnalysisSerializer(CorrelationSerializer):
    """Website ranked by how visiting it relates to mood."""

    domain = serializers.CharField()
    example_url = serializers.CharField(default="", allow_blank=True, allow_null=True)
    days_visited = serializers.IntegerField(default=0)
    days_not_visited = serializers.IntegerField(default=0)
    total_visits = serializers.IntegerField(default=0)
    happiness_when_visited = serializers.SerializerMethodField()
    happiness_level = serializers.SerializerMethodField()

    def get_happiness_when_visited(self, obj):
        return round(sentiment_to_happiness(obj.get("avg_sentiment_when_visited")), 1)

    def get_happiness_level(self, obj):
        score = sentiment_to_happiness(obj.get("avg_sentiment_when_visited"))
        return happiness_band(score).label
