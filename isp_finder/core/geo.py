"""
City resolution from IP-derived locations, and connection risk classification.
"""

import math
from typing import List, Optional, Sequence

from isp_finder.models import City, GeolocationData, ThreatLevel

EARTH_RADIUS_KM = 6371.0
DEFAULT_MAX_DISTANCE_KM = 500.0


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two coordinates using the Haversine formula.

    Args:
        lat1: Latitude of point 1
        lon1: Longitude of point 1
        lat2: Latitude of point 2
        lon2: Longitude of point 2

    Returns:
        Distance in kilometers
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def find_city_by_name(city_name: str, cities: Sequence[City]) -> Optional[City]:
    """Case-insensitive name match; the first city in catalog order wins."""
    normalized = (city_name or "").strip().lower()
    if not normalized:
        return None
    for city in cities:
        if city.name.strip().lower() == normalized:
            return city
    return None


def find_nearest_city(
    lat: float,
    lon: float,
    cities: Sequence[City],
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
) -> Optional[City]:
    """
    Find the catalog city closest to a coordinate.

    Ties keep the earlier city (strict comparison). A nearest city farther
    than max_distance_km is not returned.
    """
    nearest: Optional[City] = None
    min_distance = math.inf

    for city in cities:
        distance = calculate_distance(lat, lon, city.coordinates.lat, city.coordinates.lng)
        if distance < min_distance:
            min_distance = distance
            nearest = city

    if nearest is None or min_distance > max_distance_km:
        return None
    return nearest


def resolve_city(
    geo: Optional[GeolocationData],
    cities: Sequence[City],
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
) -> Optional[City]:
    """Resolve a geolocation to a catalog city by name first, then by distance."""
    if geo is None or not cities:
        return None

    city = find_city_by_name(geo.city, cities)
    if city is not None:
        return city
    return find_nearest_city(geo.latitude, geo.longitude, cities, max_distance_km)


def search_cities(query: str, cities: Sequence[City], limit: int = 5) -> List[City]:
    """Suggest cities whose "Name, State" label contains the query."""
    needle = (query or "").strip().lower()
    if not needle:
        return []
    matches = [city for city in cities if needle in f"{city.name}, {city.state}".lower()]
    return matches[:limit]


def is_suspicious_ip(geo: GeolocationData) -> bool:
    """True for proxies, Tor exit nodes and medium/high threat levels."""
    security = geo.security
    if security is None:
        return False
    return (
        security.is_proxy
        or security.is_tor
        or security.threat_level in (ThreatLevel.MEDIUM, ThreatLevel.HIGH)
    )


def get_security_warning(geo: GeolocationData) -> Optional[str]:
    """User-facing warning for the most severe applicable security finding."""
    security = geo.security
    if security is None:
        return None

    if security.is_tor:
        return "Tor network detected. Some features may be restricted."
    if security.is_proxy:
        return "Proxy or VPN detected. Location may not be accurate."
    if security.threat_level == ThreatLevel.HIGH:
        return f"High threat level detected: {', '.join(security.threat_types)}"
    if security.threat_level == ThreatLevel.MEDIUM:
        return "Moderate security concern detected with your connection."
    return None
