"""Geodesic position math on the WGS84 ellipsoid."""

from functools import lru_cache

from pyproj import Geod

from kayaknav.core.constants import ELLIPSOID
from kayaknav.core.types import LatLon


@lru_cache(maxsize=1)
def get_geod() -> Geod:
    """Shared geodesic solver for the WGS84 ellipsoid."""
    return Geod(ellps=ELLIPSOID)


def bearing_and_distance(a: LatLon, b: LatLon) -> tuple[float, float]:
    """Solve the inverse geodesic problem from a to b.

    Args:
        a: Start position.
        b: End position.

    Returns:
        (bearing, distance): initial azimuth at a in degrees clockwise from
        north, and geodesic distance in meters. For coincident points the
        distance is 0 and the bearing is meaningless.
    """
    azimuth, _, distance = get_geod().inv(a.lon, a.lat, b.lon, b.lat)
    return float(azimuth), float(distance)


def distance_m(a: LatLon, b: LatLon) -> float:
    """Geodesic distance between two positions in meters."""
    return bearing_and_distance(a, b)[1]


def project(origin: LatLon, bearing: float, distance: float) -> LatLon:
    """Move from origin along a bearing by a distance.

    Args:
        origin: Start position.
        bearing: Azimuth in degrees clockwise from north.
        distance: Distance in meters. Negative values move backwards.

    Returns:
        The position reached.
    """
    lon, lat, _ = get_geod().fwd(origin.lon, origin.lat, bearing, distance)
    return LatLon(lat=float(lat), lon=float(lon))
