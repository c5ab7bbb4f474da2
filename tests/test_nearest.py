"""Tests for nearest-station lookup."""

import numpy as np
import pytest

from conftest import make_station
from kayaknav.core.errors import InsufficientDataError
from kayaknav.models.geodesy import get_geod
from kayaknav.simulation.nearest import LRUCache, NearestNeighborCalculator


def brute_force_nearest(stations, lat, lon):
    """Index of the geodesic nearest station, ties to the lowest index."""
    n = len(stations)
    _, _, distances = get_geod().inv(
        np.full(n, lon),
        np.full(n, lat),
        np.array([s.lon for s in stations]),
        np.array([s.lat for s in stations]),
    )
    return int(np.argmin(distances))


@pytest.fixture
def harbor_stations():
    """Scattered stations around New York Harbor."""
    rng = np.random.default_rng(42)
    lats = rng.uniform(40.4, 40.9, size=60)
    lons = rng.uniform(-74.3, -73.7, size=60)
    return [make_station(f"n{i:03d}", lat, lon) for i, (lat, lon) in enumerate(zip(lats, lons))]


class TestLRUCache:
    """Tests for the bounded memoization cache."""

    def test_miss_then_hit(self):
        cache = LRUCache(max_size=4)
        assert cache.get("a") is None
        cache.put("a", 1)
        assert cache.get("a") == 1

        info = cache.info()
        assert info.hits == 1
        assert info.misses == 1
        assert info.size == 1

    def test_evicts_least_recently_used(self):
        cache = LRUCache(max_size=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")
        cache.put("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache
        assert len(cache) == 2

    def test_clear(self):
        cache = LRUCache(max_size=2)
        cache.put("a", 1)
        cache.get("a")
        cache.clear()

        assert len(cache) == 0
        assert cache.info().hits == 0

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            LRUCache(max_size=0)


class TestNearestNeighborCalculator:
    """Tests for geodesic nearest-neighbor queries."""

    def test_no_stations(self):
        with pytest.raises(InsufficientDataError):
            NearestNeighborCalculator([])

    def test_single_station(self, station):
        calc = NearestNeighborCalculator([station])
        assert calc.nearest_neighbor(0.0, 0.0) == station

    def test_exact_location(self, harbor_stations):
        calc = NearestNeighborCalculator(harbor_stations)
        for s in harbor_stations[:10]:
            assert calc.nearest_neighbor(s.lat, s.lon) == s

    def test_matches_brute_force(self, harbor_stations):
        """Indexed answers match an exhaustive geodesic search."""
        calc = NearestNeighborCalculator(harbor_stations)
        rng = np.random.default_rng(7)
        queries = zip(rng.uniform(40.3, 41.0, size=200), rng.uniform(-74.4, -73.6, size=200))

        for lat, lon in queries:
            expected = harbor_stations[brute_force_nearest(harbor_stations, lat, lon)]
            assert calc.nearest_neighbor(float(lat), float(lon)) == expected

    def test_warm_cache_returns_same_answers(self, harbor_stations):
        """Repeated queries are served from the cache with identical results."""
        calc = NearestNeighborCalculator(harbor_stations)
        points = [(40.5 + 0.01 * i, -74.0 + 0.005 * i) for i in range(20)]

        cold = [calc.nearest_neighbor(lat, lon) for lat, lon in points]
        warm = [calc.nearest_neighbor(lat, lon) for lat, lon in points]

        assert cold == warm
        info = calc.cache_info()
        assert info.misses == 20
        assert info.hits == 20

    def test_tiny_cache_stays_correct(self, harbor_stations):
        """Eviction never changes answers."""
        calc = NearestNeighborCalculator(harbor_stations, cache_size=1)
        points = [(40.45, -74.25), (40.85, -73.75), (40.45, -74.25)]

        answers = [calc.nearest_neighbor(lat, lon) for lat, lon in points]
        for (lat, lon), answer in zip(points, answers):
            assert answer == harbor_stations[brute_force_nearest(harbor_stations, lat, lon)]
        assert calc.cache_info().size == 1

    def test_tie_goes_to_first_station(self):
        """Stations at the same position resolve to the earliest one."""
        first = make_station("first", 40.7, -74.0)
        second = make_station("second", 40.7, -74.0)
        calc = NearestNeighborCalculator([first, second])

        assert calc.nearest_neighbor(40.71, -74.01).id == "first"

    def test_cache_clear(self, harbor_stations):
        calc = NearestNeighborCalculator(harbor_stations)
        calc.nearest_neighbor(40.6, -74.0)
        calc.cache_clear()
        assert calc.cache_info().size == 0
