"""
Geocoding via OpenStreetMap Nominatim (geopy).

Reverse lookups are cached per coordinate (rounded to 6 decimals) for a
limited time; when Nominatim is unreachable an estimated address is built
from the coordinates instead.
"""

import json
import math
import time
import urllib.request

from geopy.exc import GeopyError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim

from .config import get_settings
from .errors import GeocodingError
from .logging_config import get_logger

logger = get_logger(__name__)

EARTH_RADIUS_KM = 6371

CITY_ZIP_CODES = {
    "new york": ["10001", "10002", "10003", "10004", "10005"],
    "los angeles": ["90001", "90002", "90003", "90004", "90005"],
    "chicago": ["60601", "60602", "60603", "60604", "60605"],
    "houston": ["77001", "77002", "77003", "77004", "77005"],
    "phoenix": ["85001", "85002", "85003", "85004", "85005"],
    "philadelphia": ["19101", "19102", "19103", "19104", "19105"],
    "san antonio": ["78201", "78202", "78203", "78204", "78205"],
    "san diego": ["92101", "92102", "92103", "92104", "92105"],
    "dallas": ["75201", "75202", "75203", "75204", "75205"],
    "san jose": ["95101", "95102", "95103", "95104", "95105"],
}

# (lat_min, lat_max, lng_min, lng_max, city, zip)
METRO_AREAS = [
    (40.4774, 40.9176, -74.2591, -73.7004, "New York", "10001"),
    (34.0522, 34.3373, -118.6682, -118.1553, "Los Angeles", "90001"),
    (41.8781, 42.0126, -87.9073, -87.5298, "Chicago", "60601"),
    (29.5230, 30.1107, -95.7890, -95.0146, "Houston", "77001"),
]

# (lat_min, lat_max, lng_min, lng_max, state)
STATE_AREAS = [
    (40.4774, 45.0153, -79.7624, -71.7773, "NY"),
    (32.5343, 42.0095, -124.4096, -114.1312, "CA"),
    (41.6954, 45.5081, -90.6390, -82.4194, "IL"),
    (25.8371, 36.5007, -106.6456, -93.5083, "TX"),
]


def _first(mapping, *keys):
    for key in keys:
        value = mapping.get(key)
        if value:
            return value
    return ""


def _within(lat, lng, area):
    return area[0] <= lat <= area[1] and area[2] <= lng <= area[3]


def generic_zip_code(lat, lng):
    """Pseudo ZIP from the coordinate hundredths, e.g. ``"97059"``."""
    lat_part = abs(math.floor(lat * 100)) % 100
    lng_part = abs(math.floor(lng * 100)) % 100
    return f"{lat_part:02d}{lng_part:03d}"


def estimate_us_zip_code(lat, lng, address):
    city = (address.get("city") or address.get("town") or "").lower()
    if city in CITY_ZIP_CODES:
        return CITY_ZIP_CODES[city][0]
    for area in METRO_AREAS:
        if _within(lat, lng, area):
            return area[5]
    return generic_zip_code(lat, lng)


def estimate_zip_code(lat, lng, address):
    country = (address.get("country_code") or address.get("country") or "US").upper()
    if country == "US":
        return estimate_us_zip_code(lat, lng, address)
    return generic_zip_code(lat, lng)


def estimate_city(lat, lng):
    for area in METRO_AREAS:
        if _within(lat, lng, area):
            return area[4]
    return "Unknown City"


def estimate_state(lat, lng):
    for area in STATE_AREAS:
        if _within(lat, lng, area):
            return area[4]
    return "Unknown"


def parse_nominatim(raw):
    """Turn a Nominatim reverse-lookup payload into the client's address dict."""
    address = raw.get("address") or {}
    lat = float(raw.get("lat", 0))
    lng = float(raw.get("lon", 0))

    street_name = _first(address, "road", "street", "highway", "pedestrian")
    street = f"{address.get('house_number', '')} {street_name}".strip()
    city = _first(address, "city", "town", "village", "municipality", "county",
                  "suburb", "neighbourhood", "hamlet")
    state = _first(address, "state", "province", "region", "ISO3166-2-lvl4")
    zip_code = _first(address, "postcode", "postal_code", "zip_code", "zip") or estimate_zip_code(lat, lng, address)
    country = _first(address, "country", "country_code") or "Unknown"

    parts = [p for p in (street, city, state, zip_code) if p.strip()]
    formatted = ", ".join(parts) if parts else (raw.get("display_name") or "Address not found")

    return {
        "street": street,
        "city": city,
        "state": state,
        "zipCode": zip_code,
        "country": country,
        "formatted": formatted,
        "coordinates": [lng, lat],
    }


def fallback_address(lat, lng):
    zip_code = generic_zip_code(lat, lng)
    city = estimate_city(lat, lng)
    state = estimate_state(lat, lng)
    return {
        "street": f"Location at {lat:.4f}, {lng:.4f}",
        "city": city,
        "state": state,
        "zipCode": zip_code,
        "country": "US",
        "formatted": f"{city}, {state} {zip_code}",
        "coordinates": [lng, lat],
        "isEstimated": True,
    }


def calculate_distance(lat1, lng1, lat2, lng2):
    """Great-circle distance in kilometres (haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2)
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class LocationService:
    def __init__(self, geolocator=None, ttl=None, min_delay=None, clock=time.time):
        settings = get_settings()
        self.geolocator = geolocator or Nominatim(user_agent=settings.nominatim_user_agent)
        self.ttl = settings.geocode_cache_ttl if ttl is None else ttl
        delay = settings.geocode_min_delay if min_delay is None else min_delay
        # errors must reach us, not be retried or swallowed by the limiter
        self._reverse = RateLimiter(self.geolocator.reverse, min_delay_seconds=delay,
                                    max_retries=0, swallow_exceptions=False)
        self._geocode = RateLimiter(self.geolocator.geocode, min_delay_seconds=delay,
                                    max_retries=0, swallow_exceptions=False)
        self.clock = clock
        self.cache = {}

    @staticmethod
    def cache_key(lat, lng):
        return f"{lat:.6f}_{lng:.6f}"

    def _is_valid(self, entry):
        return self.clock() - entry["timestamp"] < self.ttl

    def reverse_geocode(self, lat, lng):
        key = self.cache_key(lat, lng)
        cached = self.cache.get(key)
        if cached and self._is_valid(cached):
            logger.debug("reverse_geocode_cache_hit", lat=lat, lng=lng)
            return cached["data"]

        try:
            location = self._reverse((lat, lng), exactly_one=True, zoom=18, addressdetails=True)
            if location is None:
                raise GeocodingError("Address not found")
            address = parse_nominatim(location.raw)
        except (GeopyError, GeocodingError) as e:
            logger.warning("reverse_geocode_failed", lat=lat, lng=lng, error=str(e))
            return fallback_address(lat, lng)

        self._evict_expired()
        self.cache[key] = {"data": address, "timestamp": self.clock()}
        return address

    def geocode(self, address):
        query = (address or "").strip()
        if not query:
            raise GeocodingError("Address is empty")
        try:
            location = self._geocode(query, exactly_one=True)
        except GeopyError as e:
            logger.warning("geocode_failed", address=query, error=str(e))
            raise GeocodingError("Geocoding service unavailable") from e
        if location is None:
            raise GeocodingError("Address not found")
        return {
            "lat": location.latitude,
            "lng": location.longitude,
            "formatted": location.address,
            "coordinates": [location.longitude, location.latitude],
        }

    def _evict_expired(self):
        for key in [k for k, entry in self.cache.items() if not self._is_valid(entry)]:
            del self.cache[key]

    def clear_cache(self):
        self.cache.clear()

    def cache_stats(self):
        valid = sum(1 for entry in self.cache.values() if self._is_valid(entry))
        return {"total": len(self.cache), "valid": valid, "expired": len(self.cache) - valid}


def ip_location(url=None):
    """Approximate (lat, lng) from the caller's IP, or None."""
    try:
        with urllib.request.urlopen(url or get_settings().ip_lookup_url, timeout=10) as resp:
            data = json.load(resp)
    except (OSError, ValueError) as e:
        logger.warning("ip_location_failed", error=str(e))
        return None
    if data.get("status") == "success":
        return [float(data.get("lat")), float(data.get("lon"))]
    return None
