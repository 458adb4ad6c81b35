"""
Map pins for visited places.

Place coordinates arrive as decimal strings and are parsed here; a place
whose coordinates cannot be used is left off the map with a warning
instead of failing the whole view. How the map itself is drawn is hidden
behind ``MapProvider``.
"""

import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple

from django.conf import settings

from .metrics import format_duration

logger = logging.getLogger(__name__)


def _parse_degrees(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_coordinates(place: Dict) -> Optional[Tuple[float, float]]:
    """Return ``(latitude, longitude)`` for a place, or None if unusable."""
    latitude = _parse_degrees(place.get("center_latitude"))
    longitude = _parse_degrees(place.get("center_longitude"))
    if latitude is None or longitude is None:
        return None
    if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
        return None
    return latitude, longitude


class MapPin:
    """A place that can be drawn on the map."""

    def __init__(self, place: Dict, latitude: float, longitude: float):
        self.place = place
        self.latitude = latitude
        self.longitude = longitude

    @property
    def name(self) -> str:
        return self.place.get("name") or f"{self.latitude:.6f}, {self.longitude:.6f}"

    def __repr__(self):
        return f"MapPin({self.name}, {self.latitude}, {self.longitude})"


class MapProvider:
    """Capability interface for whatever draws the map."""

    name = ""

    def assets(self) -> Dict:
        """Scripts, stylesheets and tile settings the page must load."""
        raise NotImplementedError

    def marker(self, pin: MapPin) -> Dict:
        """Provider-specific marker payload for one pin."""
        raise NotImplementedError


class LeafletMapProvider(MapProvider):
    """Leaflet with a raster tile layer."""

    name = "leaflet"
    version = "1.9.4"

    def __init__(self, tile_url: str, attribution: str = ""):
        self.tile_url = tile_url
        self.attribution = attribution

    @classmethod
    def from_settings(cls):
        return cls(
            tile_url=settings.DASHBOARD_MAP_TILE_URL,
            attribution=settings.DASHBOARD_MAP_ATTRIBUTION,
        )

    def assets(self) -> Dict:
        base = f"https://unpkg.com/leaflet@{self.version}/dist"
        return {
            "provider": self.name,
            "scripts": [f"{base}/leaflet.js"],
            "stylesheets": [f"{base}/leaflet.css"],
            "tile_url": self.tile_url,
            "attribution": self.attribution,
        }

    def marker(self, pin: MapPin) -> Dict:
        place = pin.place
        return {
            "id": place.get("id"),
            "lat": pin.latitude,
            "lng": pin.longitude,
            "title": pin.name,
            "popup": {
                "address": place.get("address") or "",
                "visits": place.get("visit_count", 0),
                "total_time": format_duration(place.get("total_time_minutes")),
                "average_time": format_duration(place.get("average_time_per_visit")),
            },
        }


def locate_places(places: List[Dict]) -> List[MapPin]:
    """Pins for every place with usable coordinates, in input order."""
    pins = []
    for place in places:
        coordinates = parse_coordinates(place)
        if coordinates is None:
            logger.warning(
                f"Skipping place {place.get('id')} ({place.get('name')!r}): "
                f"bad coordinates {place.get('center_latitude')!r}, "
                f"{place.get('center_longitude')!r}"
            )
            continue
        pins.append(MapPin(place, *coordinates))
    return pins


def build_pins(places: List[Dict], provider: MapProvider) -> List[Dict]:
    """Provider markers for the places that can be placed on the map."""
    return [provider.marker(pin) for pin in locate_places(places)]
