"""
Great-circle distance helpers.
"""

import math

EARTH_RADIUS_KM = 6371.0


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the haversine distance between two points in kilometers.

    Inputs are not validated: NaN in gives NaN out.
    """
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # near-antipodal points can round a slightly past 1.0; NaN passes through
    if a > 1.0:
        a = 1.0
    elif a < 0.0:
        a = 0.0
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def format_distance(distance_km: float) -> str:
    """Human readable distance: "< 0.1 km", "550 m", "5.6 km"."""
    if distance_km < 0.1:
        return "< 0.1 km"
    if distance_km < 1:
        # half rounds up: 312.5 m -> "313 m"
        return f"{int(math.floor(distance_km * 1000 + 0.5))} m"
    return f"{distance_km:.1f} km"
