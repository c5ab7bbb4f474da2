"""Core data structures and utilities."""

from kayaknav.core.config import Settings, get_settings
from kayaknav.core.errors import InsufficientDataError, KayakNavError, StationDataError
from kayaknav.core.types import (
    ArrayLike,
    FloatArray,
    LatLon,
    TimeArray,
)

__all__ = [
    "ArrayLike",
    "FloatArray",
    "InsufficientDataError",
    "KayakNavError",
    "LatLon",
    "Settings",
    "StationDataError",
    "TimeArray",
    "get_settings",
]
