"""Driving routes (OSRM), distances and navigation deep links."""

from urllib.parse import quote, urlencode

import requests

from .config import get_settings
from .errors import LocationUnavailable
from .issues import coordinates_of
from .location import calculate_distance as haversine_km
from .logging_config import get_logger

logger = get_logger(__name__)

FALLBACK_SPEED_KMH = 50
FALLBACK_SEGMENTS = 10


def calculate_distance(lat1, lng1, lat2, lng2):
    """Kilometres, rounded to 2 decimals."""
    return round(haversine_km(lat1, lng1, lat2, lng2), 2)


def format_distance_km(km):
    if km < 1:
        return f"{round(km * 1000)}m"
    return f"{km}km"


def format_distance(meters):
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000:.1f} km"


def format_duration(seconds):
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


# ----------------- deep links -----------------

def google_maps_url(dest_lat, dest_lng, dest_address="", origin=None):
    destination = dest_address or f"{dest_lat},{dest_lng}"
    if origin:
        origin_str = f"{origin[0]},{origin[1]}"
        return f"https://www.google.com/maps/dir/{quote(origin_str, safe='')}/{quote(destination, safe='')}"
    query = urlencode({"api": 1, "destination": destination, "travelmode": "driving"})
    return f"https://www.google.com/maps/dir/?{query}"


def osm_directions_url(dest_lat, dest_lng, origin=None):
    url = f"https://www.openstreetmap.org/directions?to={dest_lat}%2C{dest_lng}"
    if origin:
        url += f"&from={origin[0]}%2C{origin[1]}"
    return url


def waze_url(dest_lat, dest_lng):
    return f"https://waze.com/ul?ll={dest_lat}%2C{dest_lng}&navigate=yes"


def _destination(issue):
    coords = coordinates_of(issue)
    if coords is None:
        raise LocationUnavailable("Issue location not available")
    address = (issue.get("address") or {}).get("formatted") or ""
    return coords[0], coords[1], address


def directions_url(issue, origin=None):
    """Google Maps directions to the issue; from ``origin`` when it is known."""
    lat, lng, address = _destination(issue)
    return google_maps_url(lat, lng, address, origin=origin)


def routing_options(issue, origin=None):
    try:
        lat, lng, address = _destination(issue)
    except LocationUnavailable:
        return []
    return [
        {
            "name": "Google Maps",
            "url": google_maps_url(lat, lng, address, origin=origin),
            "description": "Get directions using Google Maps",
        },
        {
            "name": "OpenStreetMap",
            "url": osm_directions_url(lat, lng, origin=origin),
            "description": "Get directions using OpenStreetMap",
        },
        {
            "name": "Waze",
            "url": waze_url(lat, lng),
            "description": "Navigate with Waze",
        },
        {
            "name": "Copy Coordinates",
            "text": f"{lat}, {lng}",
            "description": "Copy coordinates to clipboard",
        },
    ]


# ----------------- routes -----------------

def fallback_route(start, end, segments=FALLBACK_SEGMENTS):
    """Straight line between two ``{"lat", "lng"}`` points, interpolated for drawing."""
    coordinates = []
    for i in range(segments + 1):
        ratio = i / segments
        coordinates.append([
            start["lat"] + (end["lat"] - start["lat"]) * ratio,
            start["lng"] + (end["lng"] - start["lng"]) * ratio,
        ])
    distance = haversine_km(start["lat"], start["lng"], end["lat"], end["lng"]) * 1000
    duration = round(distance / FALLBACK_SPEED_KMH * 3.6)
    return {
        "coordinates": coordinates,
        "distance": distance,
        "duration": duration,
        "steps": [],
        "summary": {"distance": distance, "duration": duration},
        "isFallback": True,
    }


class RoutingService:
    def __init__(self, osrm_url=None, session=None, timeout=15):
        self.osrm_url = (osrm_url or get_settings().osrm_url).rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def route_url(self, start, end):
        return (f"{self.osrm_url}/route/v1/driving/"
                f"{start['lng']},{start['lat']};{end['lng']},{end['lat']}")

    def get_osrm_route(self, start, end):
        """Road route from OSRM; raises on any service or payload problem."""
        response = self.session.get(
            self.route_url(start, end),
            params={"overview": "full", "geometries": "geojson", "steps": "true"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        routes = response.json().get("routes") or []
        if not routes:
            raise ValueError("No route found in OSRM response")
        route = routes[0]
        legs = route.get("legs") or [{}]
        return {
            # GeoJSON is [lng, lat]; Leaflet wants [lat, lng]
            "coordinates": [[c[1], c[0]] for c in route["geometry"]["coordinates"]],
            "distance": route["distance"],
            "duration": route["duration"],
            "steps": legs[0].get("steps") or [],
            "summary": {"distance": route["distance"], "duration": route["duration"]},
            "isFallback": False,
        }

    def get_route(self, start, end):
        try:
            route = self.get_osrm_route(start, end)
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("osrm_route_failed", error=str(e))
            return fallback_route(start, end)
        if len(route["coordinates"]) <= 2:
            return fallback_route(start, end)
        logger.info("osrm_route", distance=route["distance"], points=len(route["coordinates"]))
        return route

