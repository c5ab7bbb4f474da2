"""Trip waypoints placed on the map plane."""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Self

from pyproj import Transformer

from kayaknav.core.constants import CRS_WEB_MERCATOR, CRS_WGS84
from kayaknav.core.types import LatLon


class WaypointKind(str, Enum):
    """What the paddler does on reaching a waypoint."""

    MOVE = "move"  # Paddle to this point
    PAUSE = "pause"  # Rest in place


@lru_cache(maxsize=1)
def _to_lat_lon() -> Transformer:
    return Transformer.from_crs(CRS_WEB_MERCATOR, CRS_WGS84, always_xy=True)


@lru_cache(maxsize=1)
def _to_map() -> Transformer:
    return Transformer.from_crs(CRS_WGS84, CRS_WEB_MERCATOR, always_xy=True)


@dataclass(frozen=True)
class Waypoint:
    """A point on the trip, in Web Mercator (EPSG:3857) map coordinates.

    Waypoints are created by the user placing them on the map, so the map
    plane is the source of truth and lat/lon are derived.
    """

    x: float
    y: float
    kind: WaypointKind = WaypointKind.MOVE

    @property
    def position(self) -> LatLon:
        """Geographic position of the waypoint."""
        lon, lat = _to_lat_lon().transform(self.x, self.y)
        return LatLon(lat=float(lat), lon=float(lon))

    @property
    def lat(self) -> float:
        return self.position.lat

    @property
    def lon(self) -> float:
        return self.position.lon

    @property
    def is_pause(self) -> bool:
        return self.kind is WaypointKind.PAUSE

    @classmethod
    def from_lat_lon(
        cls, lat: float, lon: float, kind: WaypointKind = WaypointKind.MOVE
    ) -> Self:
        """Create a waypoint from a geographic position."""
        x, y = _to_map().transform(lon, lat)
        return cls(x=float(x), y=float(y), kind=kind)
