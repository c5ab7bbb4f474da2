"""Trip simulation engine."""

from kayaknav.simulation.leg import StepResult, TripResult, calculate_step
from kayaknav.simulation.nearest import NearestNeighborCalculator
from kayaknav.simulation.trip import SweepResult, Trip, WeekdayFlags

__all__ = [
    "NearestNeighborCalculator",
    "StepResult",
    "SweepResult",
    "Trip",
    "TripResult",
    "WeekdayFlags",
    "calculate_step",
]
