"""Leg-by-leg trip simulation through the current field.

A virtual paddler holds the initial bearing from one waypoint to the next
and advances in fixed time increments. At each increment the current at the
nearest station is projected onto the heading and added to the paddling
speed. Cross-track drift is ignored.
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass

from kayaknav.core.constants import (
    DISTANCE_EPSILON_M,
    KNOTS_TO_MS,
    MINUTES_TO_SECONDS,
    MS_TO_KNOTS,
)
from kayaknav.models.geodesy import bearing_and_distance, project
from kayaknav.models.prediction import CurrentPrediction
from kayaknav.models.station import Station
from kayaknav.models.waypoint import Waypoint
from kayaknav.simulation.nearest import NearestNeighborCalculator

logger = logging.getLogger(__name__)

PAUSE_MINUTES = 30.0


@dataclass(frozen=True)
class StepResult:
    """Outcome of one leg.

    distance_m may overshoot the straight-line distance by up to one
    increment of travel.
    """

    distance_m: float = 0.0
    time_s: float = 0.0
    time_steps: int = 0  # Fine-resolution increments consumed

    @property
    def speed_ms(self) -> float:
        """Mean speed over ground in m/s."""
        if self.time_s <= 0:
            return 0.0
        return self.distance_m / self.time_s

    @property
    def speed_knots(self) -> float:
        return self.speed_ms * MS_TO_KNOTS


@dataclass(frozen=True)
class TripResult:
    """Per-leg results for a whole trip, starting with a zero leg."""

    steps: tuple[StepResult, ...]

    @property
    def distance_m(self) -> float:
        return sum(step.distance_m for step in self.steps)

    @property
    def time_s(self) -> float:
        return sum(step.time_s for step in self.steps)

    @property
    def time_steps(self) -> int:
        return sum(step.time_steps for step in self.steps)


def calculate_step(
    start: Waypoint,
    end: Waypoint,
    base_speed_knots: float,
    current_predictions: Mapping[Station, CurrentPrediction],
    start_time_idx: int,
    nn_calc: NearestNeighborCalculator,
    increment_minutes: int | None = None,
    pause_minutes: float = PAUSE_MINUTES,
) -> StepResult | None:
    """Simulate travel from one waypoint to the next.

    Args:
        start: Leg origin.
        end: Leg destination. A pause waypoint means resting in place.
        base_speed_knots: Paddling speed through the water.
        current_predictions: Fine-resolution table for every station known
            to ``nn_calc``.
        start_time_idx: Row of the fine tables at which the leg begins.
        nn_calc: Nearest-station lookup.
        increment_minutes: Simulation time step. Defaults to the resolution
            of the prediction tables.
        pause_minutes: Duration of a pause.

    Returns:
        The leg result, or None if the leg runs past the end of the
        forecast.
    """
    if increment_minutes is None:
        increment_minutes = next(iter(current_predictions.values())).resolution_minutes
    dt = increment_minutes * MINUTES_TO_SECONDS

    if end.is_pause:
        pause_s = pause_minutes * MINUTES_TO_SECONDS
        return StepResult(distance_m=0.0, time_s=pause_s, time_steps=int(pause_s / dt))

    position = start.position
    bearing, distance_remaining = bearing_and_distance(position, end.position)
    base_speed = base_speed_knots * KNOTS_TO_MS

    time_idx = start_time_idx
    total_time = 0.0
    total_distance = 0.0

    while distance_remaining > DISTANCE_EPSILON_M:
        station = nn_calc.nearest_neighbor(position.lat, position.lon)
        prediction = current_predictions[station]

        if time_idx >= prediction.height:
            logger.debug(
                "Leg ran past forecast of station %s at row %d", station.id, time_idx
            )
            return None

        current_speed, current_direction = prediction.at(time_idx)

        # Along-track component of the current
        along_track = math.cos(math.radians(bearing - current_direction))
        net_speed = base_speed + along_track * current_speed * KNOTS_TO_MS

        step_distance = net_speed * dt
        distance_remaining -= step_distance
        position = project(position, bearing, step_distance)

        time_idx += 1
        total_time += dt
        total_distance += step_distance

    return StepResult(
        distance_m=total_distance,
        time_s=total_time,
        time_steps=time_idx - start_time_idx,
    )
