"""Nearest-station lookup with a bounded memoization cache.

Stepwise simulation asks for the station nearest to the paddler thousands of
times per leg, and sweeps replay the same positions for every departure
time. Answers are memoized by exact query coordinates.
"""

import logging
from collections import OrderedDict
from collections.abc import Hashable, Sequence
from functools import lru_cache
from typing import Any, NamedTuple

import numpy as np
from pyproj import Transformer
from scipy.spatial import cKDTree

from kayaknav.core.constants import CRS_ECEF, CRS_WGS84
from kayaknav.core.errors import InsufficientDataError
from kayaknav.models.geodesy import get_geod
from kayaknav.models.station import Station

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 1024 * 1024

# Chord distances are compared against geodesic ones; allow for round-off (m)
_BALL_SLACK_M = 1e-3


class CacheInfo(NamedTuple):
    hits: int
    misses: int
    max_size: int
    size: int


class LRUCache:
    """Bounded mapping that evicts the least recently used entry."""

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def get(self, key: Hashable) -> Any | None:
        """Get a value and mark it most recently used, or None on a miss."""
        if key not in self._entries:
            self._misses += 1
            return None
        self._entries.move_to_end(key)
        self._hits += 1
        return self._entries[key]

    def put(self, key: Hashable, value: Any) -> None:
        """Insert a value, evicting the least recently used entry if full."""
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def info(self) -> CacheInfo:
        return CacheInfo(
            hits=self._hits,
            misses=self._misses,
            max_size=self.max_size,
            size=len(self._entries),
        )


@lru_cache(maxsize=1)
def _to_ecef() -> Transformer:
    return Transformer.from_crs(CRS_WGS84, CRS_ECEF, always_xy=True)


def to_ecef(lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """Earth-centred (x, y, z) coordinates in meters of points on the ellipsoid."""
    lats = np.atleast_1d(np.asarray(lats, dtype=np.float64))
    lons = np.atleast_1d(np.asarray(lons, dtype=np.float64))
    x, y, z = _to_ecef().transform(lons, lats, np.zeros_like(lats))
    return np.column_stack([x, y, z])


class NearestNeighborCalculator:
    """Find the station nearest to a position by geodesic distance.

    A k-d tree over Earth-centred coordinates proposes candidates and the
    geodesic distance ranks them. The straight-line chord between two
    points never exceeds the geodesic between them, so every station that
    could beat the chord-nearest one lies within a chord radius equal to
    that station's geodesic distance. Re-ranking that ball gives the exact
    geodesic nearest neighbor.

    Ties go to the station earliest in ``stations``.
    """

    def __init__(self, stations: Sequence[Station], cache_size: int = DEFAULT_CACHE_SIZE):
        if not stations:
            raise InsufficientDataError("Cannot build a station index without stations")

        self.stations: tuple[Station, ...] = tuple(stations)
        self._lats = np.array([s.lat for s in self.stations], dtype=np.float64)
        self._lons = np.array([s.lon for s in self.stations], dtype=np.float64)
        self._tree = cKDTree(to_ecef(self._lats, self._lons))
        self._cache = LRUCache(cache_size)

        logger.debug("Built station index over %d stations", len(self.stations))

    def nearest_neighbor(self, lat: float, lon: float) -> Station:
        """Nearest station to (lat, lon), memoized by the exact coordinates."""
        key = (lat, lon)
        station = self._cache.get(key)
        if station is None:
            station = self.stations[self._query(lat, lon)]
            self._cache.put(key, station)
        return station

    def _query(self, lat: float, lon: float) -> int:
        point = to_ecef(lat, lon)[0]
        _, chord_nearest = self._tree.query(point)

        bound = self._geodesic_distances(lat, lon, np.array([chord_nearest]))[0]
        candidates = np.array(
            sorted(self._tree.query_ball_point(point, r=bound + _BALL_SLACK_M)),
            dtype=np.int64,
        )
        if candidates.shape[0] == 0:
            return int(chord_nearest)

        distances = self._geodesic_distances(lat, lon, candidates)
        return int(candidates[int(np.argmin(distances))])

    def _geodesic_distances(self, lat: float, lon: float, idx: np.ndarray) -> np.ndarray:
        n = idx.shape[0]
        _, _, distances = get_geod().inv(
            np.full(n, lon), np.full(n, lat), self._lons[idx], self._lats[idx]
        )
        return np.asarray(distances, dtype=np.float64)

    def cache_info(self) -> CacheInfo:
        return self._cache.info()

    def cache_clear(self) -> None:
        self._cache.clear()
