"""
Display metrics derived from raw analytics values.

Everything here is a pure function: no I/O and no state. Values that need
aggregation across days or entities come from the analytics store, not
from this module.
"""

import calendar
import math
from datetime import timedelta
from enum import Enum

HAPPINESS_MIN = 0.0
HAPPINESS_MAX = 10.0
NEUTRAL_HAPPINESS = 5.0


class HappinessBand(Enum):
    """Five-way partition of the 0-10 happiness scale."""

    VERY_HAPPY = ("Very Happy", "bg-green-500")
    HAPPY = ("Happy", "bg-green-400")
    NEUTRAL = ("Neutral", "bg-yellow-400")
    SOMEWHAT_SAD = ("Somewhat Sad", "bg-orange-400")
    SAD = ("Sad", "bg-red-500")

    def __init__(self, label, color):
        self.label = label
        self.color = color


class CorrelationBand(Enum):
    """Five-way partition of the -1..1 correlation scale."""

    VERY_POSITIVE = ("Very Positive", "text-green-600 bg-green-100")
    POSITIVE = ("Positive", "text-green-500 bg-green-50")
    NEUTRAL = ("Neutral", "text-yellow-600 bg-yellow-100")
    NEGATIVE = ("Negative", "text-orange-600 bg-orange-100")
    VERY_NEGATIVE = ("Very Negative", "text-red-600 bg-red-100")

    def __init__(self, label, color):
        self.label = label
        self.color = color


# Lower bounds, inclusive, highest first
HAPPINESS_BREAKPOINTS = [
    (8.0, HappinessBand.VERY_HAPPY),
    (7.0, HappinessBand.HAPPY),
    (6.0, HappinessBand.NEUTRAL),
    (5.0, HappinessBand.SOMEWHAT_SAD),
]

CORRELATION_BREAKPOINTS = [
    (0.5, CorrelationBand.VERY_POSITIVE),
    (0.2, CorrelationBand.POSITIVE),
    (-0.2, CorrelationBand.NEUTRAL),
    (-0.5, CorrelationBand.NEGATIVE),
]


def _as_number(value):
    """Return ``value`` as a float, or None when it is not a usable number."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def clamp(value, low, high):
    return max(low, min(high, value))


def sentiment_to_happiness(sentiment):
    """
    Map a sentiment score in [-1, 1] onto the 0-10 happiness scale.

    Out-of-range input is clamped. Missing or non-numeric input maps to
    the neutral midpoint.
    """
    number = _as_number(sentiment)
    if number is None:
        return NEUTRAL_HAPPINESS
    return clamp(((number + 1) / 2) * 10, HAPPINESS_MIN, HAPPINESS_MAX)


def happiness_band(score):
    """Band for a 0-10 happiness score."""
    number = _as_number(score)
    if number is None:
        number = NEUTRAL_HAPPINESS
    for lower_bound, band in HAPPINESS_BREAKPOINTS:
        if number >= lower_bound:
            return band
    return HappinessBand.SAD


def correlation_band(coefficient):
    """Band for a -1..1 correlation coefficient."""
    number = _as_number(coefficient)
    if number is None:
        number = 0.0
    for lower_bound, band in CORRELATION_BREAKPOINTS:
        if number >= lower_bound:
            return band
    return CorrelationBand.VERY_NEGATIVE


def _score_getter(key):
    def score(item):
        if key is None:
            value = item
        elif callable(key):
            value = key(item)
        else:
            value = item.get(key)
        number = _as_number(value)
        return float("-inf") if number is None else number

    return score


def rank(items, key=None):
    """
    Sort ``items`` by score, highest first.

    ``key`` is a field name, a callable, or None to rank bare numbers.
    The sort is stable, so items with equal scores keep their fetch order.
    """
    getter = _score_getter(key)
    return sorted(items, key=getter, reverse=True)


def top_n(items, n, key=None):
    """The ``n`` highest-scoring items, best first."""
    if n <= 0:
        return []
    return rank(items, key)[:n]


def bottom_n(items, n, key=None):
    """The ``n`` lowest-scoring items, worst first."""
    if n <= 0:
        return []
    return rank(items, key)[-n:][::-1]


def format_duration(minutes):
    """Render minutes as ``45m``, ``1h`` or ``1h 30m``."""
    number = _as_number(minutes)
    if number is None or not math.isfinite(number):
        return "0m"
    total = max(0, int(round(number)))
    if total < 60:
        return f"{total}m"
    hours, remainder = divmod(total, 60)
    if remainder:
        return f"{hours}h {remainder}m"
    return f"{hours}h"


def truncate_text(text, max_length=120):
    """Shorten message text for list display."""
    text = text or ""
    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "..."


def initials(name):
    """Up to two upper-case initials for an avatar."""
    return "".join(part[0] for part in (name or "").split() if part)[:2].upper()


def calendar_range(active_date, buffer_days=7):
    """
    Date range a month view needs, as ISO strings.

    Covers the whole month of ``active_date`` plus ``buffer_days`` either
    side for the leading and trailing cells of the grid.
    """
    first = active_date.replace(day=1)
    last_day = calendar.monthrange(active_date.year, active_date.month)[1]
    last = active_date.replace(day=last_day)
    return {
        "start_date": (first - timedelta(days=buffer_days)).isoformat(),
        "end_date": (last + timedelta(days=buffer_days)).isoformat(),
    }


def week_dates(start):
    """Seven consecutive dates starting at ``start``."""
    return [start + timedelta(days=offset) for offset in range(7)]


def day_cell(day):
    """Calendar cell values for one Day record."""
    score = sentiment_to_happiness(day.get("sentiment"))
    band = happiness_band(score)
    return {
        "date": day.get("date"),
        "score": score,
        "level": band.label,
        "color": band.color,
        "sentiment": day.get("sentiment"),
        "sentiment_label": day.get("sentiment_label", ""),
        "message_count": day.get("message_count", 0),
    }


def calendar_cells(days):
    """Map each Day record's date to its calendar cell."""
    return {day["date"]: day_cell(day) for day in days if day.get("date")}
