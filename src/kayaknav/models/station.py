"""Current prediction stations."""

from dataclasses import dataclass, field
from enum import Enum

from kayaknav.core.types import LatLon


class StationType(str, Enum):
    """How a station's current predictions are computed."""

    HARMONIC = "H"  # Full harmonic model, hourly speed/direction
    SUBORDINATE = "S"  # Offsets from a reference station, max/slack events


@dataclass(frozen=True)
class Station:
    """A current prediction station.

    Equality and hashing use the station id alone.
    """

    id: str
    name: str = field(compare=False)
    lat: float = field(compare=False)
    lon: float = field(compare=False)
    type: StationType = field(default=StationType.HARMONIC, compare=False)

    @property
    def position(self) -> LatLon:
        return LatLon(lat=self.lat, lon=self.lon)

    @property
    def is_subordinate(self) -> bool:
        return self.type is StationType.SUBORDINATE
