"""Current prediction time series.

Each station's predictions are held as a fixed-schema structure of arrays
(time, speed, direction) on a uniform time grid. Tables are built at a
coarse resolution from published data and resampled to a fine resolution
for simulation.
"""

from dataclasses import dataclass
from typing import Self

import numpy as np

from kayaknav.core.constants import MINUTES_TO_SECONDS
from kayaknav.core.errors import InsufficientDataError
from kayaknav.core.types import ArrayLike, FloatArray, TimeArray, to_datetime64
from kayaknav.models.station import Station

# Resolution of tables built from published predictions (minutes)
COARSE_RESOLUTION_MINUTES = 30


def select_direction(
    speed: ArrayLike,
    flood_direction: ArrayLike,
    ebb_direction: ArrayLike,
) -> tuple[FloatArray, FloatArray]:
    """Apply the subordinate-station sign convention.

    Subordinate predictions carry a signed speed: positive is flood,
    negative is ebb. The current flows along the flood direction when the
    speed is non-negative and along the ebb direction otherwise.

    Args:
        speed: Signed speed (knots).
        flood_direction: Mean flood direction per sample (degrees).
        ebb_direction: Mean ebb direction per sample (degrees).

    Returns:
        (magnitude, direction) with a non-negative magnitude. Samples with a
        missing speed get a NaN direction.
    """
    speed = np.asarray(speed, dtype=np.float64)
    flood_direction = np.asarray(flood_direction, dtype=np.float64)
    ebb_direction = np.asarray(ebb_direction, dtype=np.float64)

    direction = np.where(
        speed >= 0,
        flood_direction,
        np.where(speed < 0, ebb_direction, np.nan),
    )
    return np.abs(speed), direction


def interpolate_gaps(values: ArrayLike) -> FloatArray:
    """Linearly interpolate NaN gaps, then fill the ends.

    Interior gaps are interpolated by position, which on a uniform grid is
    interpolation in time. Trailing gaps are forward-filled from the last
    valid value and leading gaps take the first valid value.

    Raises:
        InsufficientDataError: If there is no valid value at all.
    """
    values = np.asarray(values, dtype=np.float64)
    valid = ~np.isnan(values)
    if not valid.any():
        raise InsufficientDataError("Cannot interpolate a column with no valid values")

    positions = np.arange(values.shape[0])
    # np.interp holds the end values constant outside the valid range
    return np.interp(positions, positions[valid], values[valid])


def forward_fill(values: ArrayLike) -> FloatArray:
    """Replace NaN with the last valid value (first valid value for leading gaps).

    Raises:
        InsufficientDataError: If there is no valid value at all.
    """
    values = np.asarray(values, dtype=np.float64)
    valid = ~np.isnan(values)
    if not valid.any():
        raise InsufficientDataError("Cannot fill a column with no valid values")

    last_valid = np.where(valid, np.arange(values.shape[0]), 0)
    np.maximum.accumulate(last_valid, out=last_valid)
    filled = values[last_valid]
    first = int(np.argmax(valid))
    filled[:first] = values[first]
    return filled


def snap_to_grid(times: ArrayLike, resolution_minutes: int) -> tuple[TimeArray, np.ndarray]:
    """Map sample timestamps onto a uniform time grid.

    Samples snap to the nearest multiple of the resolution. The grid runs
    from the first snapped timestamp to the last, so row 0 always holds a
    sample. When two samples land on the same point the earlier one wins.

    Args:
        times: Sample timestamps, any order.
        resolution_minutes: Grid interval.

    Returns:
        (grid_times, source): source[i] is the index into ``times`` of the
        sample on grid row i, or -1 where the row has no sample.

    Raises:
        InsufficientDataError: If there are no samples.
    """
    times = to_datetime64(times)
    if times.shape[0] == 0:
        raise InsufficientDataError("Cannot resample an empty table")

    order = np.argsort(times, kind="stable")
    seconds = times[order].astype(np.int64)
    step = int(resolution_minutes * MINUTES_TO_SECONDS)

    nearest = np.floor(seconds / step + 0.5).astype(np.int64)
    origin = int(nearest[0]) * step
    slots = nearest - nearest[0]
    slots, first_in_slot = np.unique(slots, return_index=True)

    n = int(slots[-1]) + 1
    grid_times = (origin + np.arange(n, dtype=np.int64) * step).astype("datetime64[s]")
    source = np.full(n, -1, dtype=np.int64)
    source[slots] = order[first_in_slot]
    return grid_times, source


def upsample(
    times: ArrayLike,
    columns: dict[str, ArrayLike],
    resolution_minutes: int,
    interpolate: tuple[str, ...] = (),
) -> tuple[TimeArray, dict[str, FloatArray]]:
    """Place samples on a uniform time grid and fill the gaps.

    Args:
        times: Sample timestamps, any order.
        columns: Value arrays aligned with times.
        resolution_minutes: Grid interval.
        interpolate: Columns filled by linear interpolation. All others are
            forward-filled.

    Returns:
        (grid_times, grid_columns)

    Raises:
        InsufficientDataError: If there are no samples or a column has no
            valid values.
    """
    grid_times, source = snap_to_grid(times, resolution_minutes)
    present = source >= 0

    grid_columns = {}
    for name, values in columns.items():
        values = np.asarray(values, dtype=np.float64)
        gridded = np.full(source.shape[0], np.nan)
        gridded[present] = values[source[present]]
        if name in interpolate:
            grid_columns[name] = interpolate_gaps(gridded)
        else:
            grid_columns[name] = forward_fill(gridded)

    return grid_times, grid_columns


@dataclass
class CurrentPrediction:
    """Current predictions for one station at a fixed resolution.

    Arrays are aligned by position:
        time: datetime64[s] timestamps, local time as published, ascending.
        speed: Current speed in knots, non-negative.
        direction: Direction the current flows toward, degrees from north.
    """

    station: Station
    time: TimeArray
    speed: FloatArray
    direction: FloatArray
    resolution_minutes: int = COARSE_RESOLUTION_MINUTES

    def __post_init__(self):
        self.time = to_datetime64(self.time)
        self.speed = np.asarray(self.speed, dtype=np.float64)
        self.direction = np.asarray(self.direction, dtype=np.float64)
        if not (self.time.shape == self.speed.shape == self.direction.shape):
            raise InsufficientDataError(
                f"Misaligned prediction columns for station {self.station.id}"
            )

    @property
    def height(self) -> int:
        """Number of rows."""
        return int(self.time.shape[0])

    def at(self, idx: int) -> tuple[float, float]:
        """(speed, direction) at a row index."""
        return float(self.speed[idx]), float(self.direction[idx])

    def resampled(self, resolution_minutes: int) -> "CurrentPrediction":
        """Resample onto a grid at another resolution.

        Speed and direction are linearly interpolated between samples and
        the ends are forward-filled. Resampling an aligned table to its own
        resolution returns the same rows.

        Raises:
            InsufficientDataError: If the table is empty.
        """
        if self.height == 0:
            raise InsufficientDataError(
                f"No predictions to resample for station {self.station.id}"
            )

        grid_times, columns = upsample(
            self.time,
            {"speed": self.speed, "direction": self.direction},
            resolution_minutes,
            interpolate=("speed", "direction"),
        )
        return CurrentPrediction(
            station=self.station,
            time=grid_times,
            speed=columns["speed"],
            direction=columns["direction"],
            resolution_minutes=resolution_minutes,
        )

    def since(self, start: np.datetime64) -> "CurrentPrediction":
        """Rows at or after a timestamp."""
        keep = self.time >= np.datetime64(start, "s")
        return CurrentPrediction(
            station=self.station,
            time=self.time[keep],
            speed=self.speed[keep],
            direction=self.direction[keep],
            resolution_minutes=self.resolution_minutes,
        )

    @classmethod
    def from_harmonic(
        cls,
        station: Station,
        times: ArrayLike,
        speeds: ArrayLike,
        directions: ArrayLike,
        resolution_minutes: int = COARSE_RESOLUTION_MINUTES,
    ) -> Self:
        """Build a table from harmonic speed/direction predictions.

        Speed is interpolated onto the grid; direction holds its last value.
        """
        grid_times, columns = upsample(
            to_datetime64(times),
            {"speed": speeds, "direction": directions},
            resolution_minutes,
            interpolate=("speed",),
        )
        return cls(
            station=station,
            time=grid_times,
            speed=columns["speed"],
            direction=columns["direction"],
            resolution_minutes=resolution_minutes,
        )

    @classmethod
    def from_subordinate(
        cls,
        station: Station,
        times: ArrayLike,
        velocity_major: ArrayLike,
        flood_directions: ArrayLike,
        ebb_directions: ArrayLike,
        resolution_minutes: int = COARSE_RESOLUTION_MINUTES,
    ) -> Self:
        """Build a table from subordinate max-flood/max-ebb/slack events.

        The signed speed is interpolated between events before the flow
        direction is chosen, so each grid row takes the flood or ebb
        direction by the sign of its own interpolated speed. Missing ebb
        directions fall back to the opposite of the first flood direction,
        wrapped into [0, 360).
        """
        flood_directions = np.asarray(flood_directions, dtype=np.float64)
        ebb_directions = np.asarray(ebb_directions, dtype=np.float64)
        if flood_directions.shape[0] == 0:
            raise InsufficientDataError(
                f"No subordinate events for station {station.id}"
            )

        fallback_ebb = (flood_directions[0] + 180.0) % 360.0
        ebb_directions = np.where(np.isnan(ebb_directions), fallback_ebb, ebb_directions)

        grid_times, columns = upsample(
            to_datetime64(times),
            {
                "speed": velocity_major,
                "flood_direction": flood_directions,
                "ebb_direction": ebb_directions,
            },
            resolution_minutes,
            interpolate=("speed",),
        )
        speed, direction = select_direction(
            columns["speed"], columns["flood_direction"], columns["ebb_direction"]
        )
        return cls(
            station=station,
            time=grid_times,
            speed=speed,
            direction=direction,
            resolution_minutes=resolution_minutes,
        )
