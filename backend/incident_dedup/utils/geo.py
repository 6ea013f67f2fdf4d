"""Great-circle distance and coordinate sanity checks for incident positions."""
from __future__ import annotations

import math

_EARTH_RADIUS_NM: float = 3440.065   # Earth mean radius in nautical miles


def haversine_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in nautical miles between two WGS-84 coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    return _EARTH_RADIUS_NM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_valid_coordinate(lat: float | None, lon: float | None) -> bool:
    """True when both values are numeric, in range, and not the (0, 0) placeholder.

    Several collectors emit 0/0 when a report carries no position, so null
    island is treated as missing rather than as a real fix in the Gulf of Guinea.
    """
    if lat is None or lon is None:
        return False
    if isinstance(lat, bool) or isinstance(lon, bool):
        return False
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return False
    if math.isnan(lat) or math.isnan(lon):
        return False
    if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
        return False
    if lat == 0 and lon == 0:
        return False
    return True
