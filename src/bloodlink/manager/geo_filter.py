"""Great-circle distance and radius inclusion.

A tiny geometry layer so the dispatcher can do eligibility checks without a
GIS dependency. NaN coordinates propagate through ``distance_km`` and never
satisfy ``within``.
"""

from math import asin, cos, radians, sin, sqrt

from bloodlink.models.party import Location

EARTH_RADIUS_KM = 6371.0


def distance_km(a: Location, b: Location) -> float:
    """Haversine distance between two points, in kilometres."""
    lat1 = radians(a.latitude)
    lat2 = radians(b.latitude)
    dlat = lat2 - lat1
    dlon = radians(b.longitude - a.longitude)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push h marginally above 1 for antipodal points
    return 2 * EARTH_RADIUS_KM * asin(sqrt(min(h, 1.0)))


def within(a: Location | None, b: Location | None, radius_km: float) -> bool:
    """True iff both points are known and no further apart than radius_km.

    The boundary is inclusive.
    """
    if a is None or b is None:
        return False
    # NaN compares False, so unknown distances are never matched
    return distance_km(a, b) <= radius_km
