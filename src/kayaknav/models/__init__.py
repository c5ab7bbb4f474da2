"""Domain models: positions, stations and prediction tables."""

from kayaknav.models.geodesy import bearing_and_distance, distance_m, project
from kayaknav.models.prediction import CurrentPrediction, select_direction
from kayaknav.models.station import Station, StationType
from kayaknav.models.tide import TideTable
from kayaknav.models.waypoint import Waypoint, WaypointKind

__all__ = [
    "CurrentPrediction",
    "Station",
    "StationType",
    "TideTable",
    "Waypoint",
    "WaypointKind",
    "bearing_and_distance",
    "distance_m",
    "project",
    "select_direction",
]
