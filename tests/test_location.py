"""Unit tests for geocoding, the reverse-lookup cache and address estimation."""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from geopy.exc import GeocoderUnavailable

from civic_client.errors import GeocodingError
from civic_client.location import (
    LocationService, calculate_distance, estimate_city, estimate_state, estimate_zip_code,
    fallback_address, generic_zip_code, parse_nominatim,
)

NOMINATIM_RAW = {
    "lat": "40.7128",
    "lon": "-74.0060",
    "display_name": "City Hall, New York, NY 10007, USA",
    "address": {
        "house_number": "260",
        "road": "Broadway",
        "city": "New York",
        "state": "New York",
        "postcode": "10007",
        "country": "United States",
        "country_code": "us",
    },
}


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def geolocator():
    geo = Mock()
    geo.reverse.return_value = SimpleNamespace(raw=NOMINATIM_RAW)
    return geo


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(geolocator, clock):
    return LocationService(geolocator=geolocator, ttl=300, min_delay=0, clock=clock)


class TestParseNominatim:
    def test_full_address(self):
        address = parse_nominatim(NOMINATIM_RAW)

        assert address["street"] == "260 Broadway"
        assert address["city"] == "New York"
        assert address["zipCode"] == "10007"
        assert address["formatted"] == "260 Broadway, New York, New York, 10007"
        assert address["coordinates"] == [-74.0060, 40.7128]

    def test_fallback_fields(self):
        raw = {
            "lat": "12.97", "lon": "77.59",
            "address": {"pedestrian": "MG Road", "suburb": "Shivajinagar", "region": "South",
                        "country_code": "in"},
        }

        address = parse_nominatim(raw)

        assert address["street"] == "MG Road"
        assert address["city"] == "Shivajinagar"
        assert address["state"] == "South"
        assert address["country"] == "in"
        assert address["zipCode"] == generic_zip_code(12.97, 77.59)

    def test_display_name_when_nothing_parsed(self):
        raw = {"lat": "0", "lon": "0", "display_name": "Somewhere", "address": {"postcode": " "}}

        assert parse_nominatim(raw)["formatted"] == "Somewhere"


class TestEstimates:
    def test_generic_zip_code(self):
        assert generic_zip_code(12.9716, 77.5946) == "97059"
        assert generic_zip_code(-1.5, -2.5) == "50050"

    def test_us_city_table(self):
        assert estimate_zip_code(0, 0, {"city": "Chicago", "country_code": "us"}) == "60601"

    def test_us_metro_box(self):
        assert estimate_zip_code(34.1, -118.3, {"country_code": "us"}) == "90001"

    def test_city_and_state(self):
        assert estimate_city(40.7, -74.0) == "New York"
        assert estimate_state(40.7, -74.0) == "NY"
        assert estimate_city(0, 0) == "Unknown City"
        assert estimate_state(0, 0) == "Unknown"

    def test_fallback_address(self):
        address = fallback_address(12.9716, 77.5946)

        assert address["isEstimated"] is True
        assert address["street"] == "Location at 12.9716, 77.5946"
        assert address["coordinates"] == [77.5946, 12.9716]

    def test_distance(self):
        # Bengaluru -> Chennai is roughly 290 km as the crow flies
        assert 280 < calculate_distance(12.9716, 77.5946, 13.0827, 80.2707) < 300
        assert calculate_distance(1, 1, 1, 1) == 0


class TestReverseGeocodeCache:
    def test_second_lookup_uses_cache(self, service, geolocator):
        first = service.reverse_geocode(40.7128, -74.0060)
        second = service.reverse_geocode(40.71280001, -74.00600001)

        assert first == second
        assert geolocator.reverse.call_count == 1

    def test_entry_expires(self, service, geolocator, clock):
        service.reverse_geocode(40.7128, -74.0060)
        clock.now += 301

        service.reverse_geocode(40.7128, -74.0060)

        assert geolocator.reverse.call_count == 2

    def test_service_failure_returns_estimate_uncached(self, service, geolocator):
        geolocator.reverse.side_effect = GeocoderUnavailable("down")

        address = service.reverse_geocode(40.7, -74.0)

        assert address["isEstimated"] is True
        assert address["city"] == "New York"
        assert service.cache_stats()["total"] == 0

    def test_cache_stats_and_clear(self, service, clock):
        service.reverse_geocode(40.7128, -74.0060)
        clock.now += 200
        service.reverse_geocode(41.0, -73.9)
        clock.now += 150

        assert service.cache_stats() == {"total": 2, "valid": 1, "expired": 1}
        service.clear_cache()
        assert service.cache_stats()["total"] == 0

    def test_expired_entries_are_dropped_on_write(self, service, clock):
        for i in range(1000):
            service.reverse_geocode(10 + i * 0.001, 20.0)
            clock.now += 301

        assert service.cache_stats() == {"total": 1, "valid": 0, "expired": 1}


class TestForwardGeocode:
    def test_found(self, service, geolocator):
        geolocator.geocode.return_value = SimpleNamespace(latitude=12.97, longitude=77.59, address="MG Road")

        result = service.geocode("  MG Road, Bengaluru ")

        geolocator.geocode.assert_called_once_with("MG Road, Bengaluru", exactly_one=True)
        assert result == {"lat": 12.97, "lng": 77.59, "formatted": "MG Road", "coordinates": [77.59, 12.97]}

    def test_not_found(self, service, geolocator):
        geolocator.geocode.return_value = None

        with pytest.raises(GeocodingError, match="Address not found"):
            service.geocode("nowhere")

    def test_service_down(self, service, geolocator):
        geolocator.geocode.side_effect = GeocoderUnavailable("down")

        with pytest.raises(GeocodingError):
            service.geocode("MG Road")

    def test_empty_address(self, service):
        with pytest.raises(GeocodingError):
            service.geocode("   ")
