"""Type definitions shared across the planner."""

from datetime import datetime
from typing import NamedTuple, TypeAlias

import numpy as np

# Array types
FloatArray: TypeAlias = np.ndarray
TimeArray: TypeAlias = np.ndarray  # datetime64[s]
ArrayLike: TypeAlias = FloatArray | list[float] | tuple[float, ...]


class LatLon(NamedTuple):
    """Geographic position in degrees."""

    lat: float
    lon: float


def to_datetime64(times) -> TimeArray:
    """Convert datetimes (or strings) to a second-resolution datetime64 array."""
    return np.asarray(times, dtype="datetime64[s]")


def to_datetime(t: np.datetime64) -> datetime:
    """Convert a datetime64 scalar to a naive datetime."""
    return t.astype("datetime64[s]").astype(datetime)
