import pytest

from isp_finder.core.geo import (
    calculate_distance,
    find_city_by_name,
    find_nearest_city,
    get_security_warning,
    is_suspicious_ip,
    resolve_city,
    search_cities,
)
from isp_finder.models import GeolocationData, SecurityAssessment

from conftest import make_city


def _geo(city="Nowhere", lat=27.70, lng=85.32, security=None) -> GeolocationData:
    return GeolocationData(ip="203.0.113.7", city=city, region="Bagmati", country="Nepal",
                           latitude=lat, longitude=lng, security=security)


class TestDistance:
    def test_same_point_is_zero(self):
        assert calculate_distance(27.7, 85.3, 27.7, 85.3) == 0

    @pytest.mark.parametrize("a,b", [
        ((27.7172, 85.324), (28.2096, 83.9856)),
        ((-33.86, 151.21), (51.5, -0.12)),
        ((0, 179.9), (0, -179.9)),
    ])
    def test_symmetric(self, a, b):
        assert calculate_distance(*a, *b) == pytest.approx(calculate_distance(*b, *a))

    def test_kathmandu_to_pokhara(self):
        distance = calculate_distance(27.7172, 85.324, 28.2096, 83.9856)
        assert 130 < distance < 160


class TestCityByName:
    def test_case_and_whitespace_insensitive(self, cities):
        assert find_city_by_name("  kathmandu ", cities).id == "ktm"

    def test_first_in_catalog_order_wins(self):
        first = make_city("a", "Springfield", 10, 10)
        second = make_city("b", "springfield", 20, 20)
        assert find_city_by_name("SPRINGFIELD", [first, second]) is first

    def test_no_match(self, cities):
        assert find_city_by_name("Delhi", cities) is None
        assert find_city_by_name("", cities) is None


class TestNearestCity:
    def test_picks_closest(self):
        far = make_city("far", "Far", 27.9, 84.0)
        near = make_city("near", "Near", 27.71, 85.33)
        assert find_nearest_city(27.70, 85.32, [far, near]).id == "near"

    def test_tie_keeps_first(self):
        east = make_city("east", "East", 0, 1)
        west = make_city("west", "West", 0, -1)
        assert find_nearest_city(0, 0, [east, west]).id == "east"
        assert find_nearest_city(0, 0, [west, east]).id == "west"

    def test_rejects_beyond_radius(self, cities):
        # Delhi is roughly 800 km from Kathmandu
        assert find_nearest_city(28.61, 77.21, cities) is None

    def test_custom_radius(self, cities):
        assert find_nearest_city(28.61, 77.21, cities, max_distance_km=2000) is not None

    def test_empty_catalog(self):
        assert find_nearest_city(0, 0, []) is None


class TestResolveCity:
    def test_name_match_takes_precedence(self, cities):
        geo = _geo(city="Pokhara", lat=27.70, lng=85.32)
        assert resolve_city(geo, cities).id == "pokhara"

    def test_falls_back_to_distance(self, cities):
        assert resolve_city(_geo(lat=27.72, lng=85.33), cities).id == "ktm"

    def test_idempotent(self, cities):
        geo = _geo(lat=27.66, lng=85.32)
        assert resolve_city(geo, cities) == resolve_city(geo, cities)

    def test_none_and_empty(self, cities):
        assert resolve_city(None, cities) is None
        assert resolve_city(_geo(), []) is None


class TestSearchCities:
    def test_matches_name_and_state(self, cities):
        assert [c.id for c in search_cities("gandaki", cities)] == ["pokhara"]
        assert [c.id for c in search_cities("bagmati", cities)] == ["ktm", "lalitpur"]

    def test_limit_and_empty_query(self, cities):
        assert len(search_cities("a", cities, limit=2)) == 2
        assert search_cities("   ", cities) == []


class TestSecurity:
    def test_no_security_payload(self):
        geo = _geo()
        assert is_suspicious_ip(geo) is False
        assert get_security_warning(geo) is None

    @pytest.mark.parametrize("security,expected", [
        (SecurityAssessment(is_proxy=True), True),
        (SecurityAssessment(is_tor=True), True),
        (SecurityAssessment(threat_level="medium"), True),
        (SecurityAssessment(threat_level="high"), True),
        (SecurityAssessment(threat_level="low"), False),
    ])
    def test_suspicious(self, security, expected):
        assert is_suspicious_ip(_geo(security=security)) is expected

    def test_tor_beats_proxy(self):
        geo = _geo(security=SecurityAssessment(is_tor=True, is_proxy=True, threat_level="high"))
        assert get_security_warning(geo).startswith("Tor network detected")

    def test_proxy_beats_threat_level(self):
        geo = _geo(security=SecurityAssessment(is_proxy=True, threat_level="high"))
        assert get_security_warning(geo).startswith("Proxy or VPN detected")

    def test_high_threat_lists_types(self):
        geo = _geo(security=SecurityAssessment(threat_level="high", threat_types=["attack_source", "botnet"]))
        assert get_security_warning(geo) == "High threat level detected: attack_source, botnet"

    def test_medium_threat_generic(self):
        geo = _geo(security=SecurityAssessment(threat_level="medium", threat_types=["spam"]))
        assert get_security_warning(geo) == "Moderate security concern detected with your connection."

    def test_low_threat_no_warning(self):
        assert get_security_warning(_geo(security=SecurityAssessment())) is None
