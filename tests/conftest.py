"""Shared fixtures for planner tests."""

from datetime import datetime

import numpy as np
import pytest

from kayaknav.core.config import TripSettings
from kayaknav.models.geodesy import project
from kayaknav.models.prediction import CurrentPrediction
from kayaknav.models.station import Station, StationType
from kayaknav.models.waypoint import Waypoint, WaypointKind

# Saturday
START = datetime(2024, 6, 1, 0, 0)

# Lower Manhattan
ORIGIN_LAT = 40.70
ORIGIN_LON = -74.02


def make_station(
    station_id: str,
    lat: float = ORIGIN_LAT,
    lon: float = ORIGIN_LON,
    type: StationType = StationType.HARMONIC,
) -> Station:
    return Station(id=station_id, name=f"Station {station_id}", lat=lat, lon=lon, type=type)


def make_prediction(
    station: Station,
    speed,
    direction,
    start: datetime = START,
    hours: int = 24 * 7,
    resolution_minutes: int = 30,
) -> CurrentPrediction:
    """Table of `hours` length; speed/direction may be scalars or callables of row index."""
    n = hours * 60 // resolution_minutes
    rows = np.arange(n)
    times = np.datetime64(start, "s") + rows * np.timedelta64(resolution_minutes * 60, "s")
    speeds = speed(rows) if callable(speed) else np.full(n, float(speed))
    directions = direction(rows) if callable(direction) else np.full(n, float(direction))
    return CurrentPrediction(
        station=station,
        time=times,
        speed=speeds,
        direction=directions,
        resolution_minutes=resolution_minutes,
    )


def waypoint_at(bearing: float, distance: float, kind: WaypointKind = WaypointKind.MOVE) -> Waypoint:
    """Waypoint at a bearing and distance (m) from the origin."""
    origin = Waypoint.from_lat_lon(ORIGIN_LAT, ORIGIN_LON).position
    target = project(origin, bearing, distance)
    return Waypoint.from_lat_lon(target.lat, target.lon, kind)


@pytest.fixture
def station() -> Station:
    return make_station("n01010")


@pytest.fixture
def origin() -> Waypoint:
    return Waypoint.from_lat_lon(ORIGIN_LAT, ORIGIN_LON)


@pytest.fixture
def trip_settings() -> TripSettings:
    return TripSettings()
