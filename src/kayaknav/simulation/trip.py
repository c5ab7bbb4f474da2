"""Trip state, memoized evaluation and departure-time sweeps."""

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from enum import IntFlag
from itertools import pairwise
from typing import Self

import numpy as np

from kayaknav.core.config import TripSettings, get_settings
from kayaknav.core.errors import InsufficientDataError
from kayaknav.core.types import to_datetime
from kayaknav.models.prediction import CurrentPrediction
from kayaknav.models.station import Station
from kayaknav.models.waypoint import Waypoint
from kayaknav.simulation.leg import StepResult, TripResult, calculate_step
from kayaknav.simulation.nearest import NearestNeighborCalculator

logger = logging.getLogger(__name__)


class WeekdayFlags(IntFlag):
    """Days of the week on which a trip may start."""

    NONE = 0
    MON = 1
    TUE = 2
    WED = 4
    THU = 8
    FRI = 16
    SAT = 32
    SUN = 64
    WEEKDAYS = 31
    WEEKEND = 96
    ALL = 127

    @classmethod
    def from_weekday(cls, weekday: int) -> Self:
        """Flag for a ``datetime.weekday()`` value (Monday is 0)."""
        return cls(1 << weekday)

    @classmethod
    def parse(cls, text: str) -> Self:
        """Parse a comma-separated list such as "sat,sun" or "weekend"."""
        flags = cls.NONE
        for name in text.split(","):
            name = name.strip().upper()
            if not name:
                continue
            try:
                flags |= cls[name]
            except KeyError:
                raise ValueError(f"Unknown weekday: {name.lower()!r}") from None
        return flags


@dataclass(frozen=True, eq=False)
class SweepResult:
    """Fastest departure windows found by a sweep.

    idx are rows of the reference station's coarse table, ascending.
    """

    idx: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint64))
    duration_s: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))
    percentile_s: float = float("nan")  # Duration cutoff
    n_candidates: int = 0  # Completed departures before the cutoff

    def __len__(self) -> int:
        return int(self.idx.shape[0])


class Trip:
    """A planned trip and the current data it is simulated against.

    Results of ``calculate`` are memoized per start index and ``sweep`` is
    memoized as a whole. Every mutator clears both caches while holding the
    trip lock, so ``calculate`` and ``sweep`` never pair stale results with
    new inputs.
    """

    def __init__(
        self,
        speed_knots: float,
        current_predictions: Iterable[CurrentPrediction],
        settings: TripSettings | None = None,
    ):
        """Initialize a trip.

        Args:
            speed_knots: Paddling speed through the water.
            current_predictions: Coarse-resolution table for every station.
            settings: Trip configuration.

        Raises:
            InsufficientDataError: If there are no predictions or a table
                is empty.
            ValueError: If a table is not at the configured coarse
                resolution.
        """
        self.settings = settings or get_settings().trip

        coarse = {p.station: p for p in current_predictions}
        if not coarse:
            raise InsufficientDataError("A trip needs current predictions for at least one station")
        if any(p.height == 0 for p in coarse.values()):
            raise InsufficientDataError("Current predictions must not be empty")
        coarse_minutes = self.settings.coarse_resolution_minutes
        for p in coarse.values():
            if p.resolution_minutes != coarse_minutes:
                raise ValueError(
                    f"Predictions for station {p.station.id} are at {p.resolution_minutes} min, "
                    f"expected {coarse_minutes} min"
                )

        # Row i of every table must refer to the same time
        common_start = max(p.time[0] for p in coarse.values())
        coarse = {station: p.since(common_start) for station, p in coarse.items()}

        self.stations: list[Station] = sorted(coarse, key=lambda s: (-s.lat, s.lon))
        fine_minutes = self.settings.fine_resolution_minutes

        self.current_predictions_coarse: dict[Station, CurrentPrediction] = coarse
        self.current_predictions_fine: dict[Station, CurrentPrediction] = {
            station: prediction.resampled(fine_minutes)
            for station, prediction in coarse.items()
        }

        self.waypoints: list[Waypoint] = []
        self.speed_knots = speed_knots
        self.weekdays = WeekdayFlags.ALL
        self.daytime = False

        self._results: dict[int, TripResult | None] = {}
        self._sweep_result: SweepResult | None = None
        self._nn_calc = NearestNeighborCalculator(
            self.stations, cache_size=self.settings.nn_cache_size
        )
        self._lock = threading.RLock()

        logger.info(
            "Trip initialized with %d stations at %d min resolution",
            len(self.stations),
            fine_minutes,
        )

    @property
    def reference_prediction(self) -> CurrentPrediction:
        """Coarse table whose timestamps define the sweep horizon."""
        return self.current_predictions_coarse[self.stations[0]]

    @property
    def time_ratio(self) -> int:
        """Fine-resolution rows per coarse-resolution row."""
        return self.settings.coarse_resolution_minutes // self.settings.fine_resolution_minutes

    def time_at(self, idx: int) -> datetime:
        """Timestamp of a coarse row of the reference table."""
        return to_datetime(self.reference_prediction.time[idx])

    def nearest_station(self, lat: float, lon: float) -> Station:
        with self._lock:
            return self._nn_calc.nearest_neighbor(lat, lon)

    def _clear_cache(self) -> None:
        self._results.clear()
        self._sweep_result = None

    def add_waypoint(self, waypoint: Waypoint) -> None:
        with self._lock:
            self.waypoints.append(waypoint)
            self._clear_cache()

    def remove_waypoint(self, idx: int) -> Waypoint:
        with self._lock:
            waypoint = self.waypoints.pop(idx)
            self._clear_cache()
            return waypoint

    def clear_waypoints(self) -> None:
        with self._lock:
            self.waypoints.clear()
            self._clear_cache()

    def set_speed(self, speed_knots: float) -> None:
        with self._lock:
            self.speed_knots = speed_knots
            self._clear_cache()

    def set_weekdays(self, weekdays: WeekdayFlags) -> None:
        with self._lock:
            if self.weekdays != weekdays:
                self.weekdays = weekdays
                self._clear_cache()

    def set_daytime(self, daytime: bool) -> None:
        with self._lock:
            if self.daytime != daytime:
                self.daytime = daytime
                self._clear_cache()

    def calculate(self, start_time_idx: int) -> TripResult | None:
        """Simulate the trip departing at a fine-resolution row.

        Returns:
            Per-leg results, or None if the trip runs past the end of the
            forecast. Both outcomes are memoized.
        """
        with self._lock:
            if start_time_idx not in self._results:
                self._results[start_time_idx] = self._simulate(start_time_idx)
            return self._results[start_time_idx]

    def _simulate(self, time_idx: int) -> TripResult | None:
        steps = [StepResult()]

        for start, end in pairwise(self.waypoints):
            result = calculate_step(
                start,
                end,
                self.speed_knots,
                self.current_predictions_fine,
                time_idx,
                self._nn_calc,
                increment_minutes=self.settings.fine_resolution_minutes,
                pause_minutes=self.settings.pause_minutes,
            )
            if result is None:
                return None
            time_idx += result.time_steps
            steps.append(result)

        return TripResult(steps=tuple(steps))

    def sweep(self) -> SweepResult:
        """Find the fastest departures over the forecast horizon.

        Candidate departures are the reference table's coarse rows on
        enabled weekdays. With the daytime filter on, departures must be at
        or after the daytime start hour and arrive before the end hour on
        the same day. Departures that run out of forecast are dropped, and
        of the rest only those at or below the configured duration quantile
        (nearest rank) are kept.
        """
        with self._lock:
            if self._sweep_result is None:
                self._sweep_result = self._sweep()
            return self._sweep_result

    def _sweep(self) -> SweepResult:
        ratio = self.time_ratio
        start_hour = self.settings.daytime_start_hour
        end_hour = self.settings.daytime_end_hour

        starts: list[datetime] = self.reference_prediction.time.astype("datetime64[s]").tolist()
        candidates = [
            (idx, start)
            for idx, start in enumerate(starts)
            if WeekdayFlags.from_weekday(start.weekday()) in self.weekdays
        ]
        if self.daytime:
            candidates = [(idx, start) for idx, start in candidates if start.hour >= start_hour]

        completed: list[tuple[int, float]] = []
        for idx, start in candidates:
            result = self.calculate(ratio * idx)
            if result is None:
                continue
            if self.daytime:
                arrival = start + timedelta(seconds=result.time_s)
                if arrival >= datetime.combine(start.date(), time(end_hour)):
                    continue
            completed.append((idx, result.time_s))

        if not completed:
            logger.info("Sweep found no departures that complete within the forecast")
            return SweepResult()

        idx = np.array([i for i, _ in completed], dtype=np.uint64)
        durations = np.array([d for _, d in completed], dtype=np.float64)
        percentile = float(
            np.quantile(durations, self.settings.sweep_quantile, method="nearest")
        )
        keep = durations <= percentile

        logger.info(
            "Sweep kept %d of %d departures (cutoff %.0f s)",
            int(keep.sum()),
            len(completed),
            percentile,
        )
        return SweepResult(
            idx=idx[keep],
            duration_s=durations[keep],
            percentile_s=percentile,
            n_candidates=len(completed),
        )
