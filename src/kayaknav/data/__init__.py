"""Data ingestion from NOAA CO-OPS."""

from kayaknav.data.noaa import (
    ApiProxy,
    fetch_current_prediction,
    fetch_current_predictions,
    fetch_station,
    fetch_stations_in_area,
    fetch_tide_prediction,
    parse_current_predictions,
    parse_station,
    parse_stations_in_area,
    parse_tide_predictions,
)

__all__ = [
    "ApiProxy",
    "fetch_current_prediction",
    "fetch_current_predictions",
    "fetch_station",
    "fetch_stations_in_area",
    "fetch_tide_prediction",
    "parse_current_predictions",
    "parse_station",
    "parse_stations_in_area",
    "parse_tide_predictions",
]
