"""Station discovery and predictions from NOAA CO-OPS.

Current predictions come in two shapes. Harmonic stations publish hourly
speed and direction. Subordinate stations publish max-flood, max-ebb and
slack events with a signed speed and mean flood/ebb directions. Both are
turned into coarse-resolution ``CurrentPrediction`` tables here.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from urllib.parse import quote

import httpx

from kayaknav.core.config import DataSourceSettings, get_settings
from kayaknav.core.errors import InsufficientDataError, KayakNavError, StationDataError
from kayaknav.models.prediction import COARSE_RESOLUTION_MINUTES, CurrentPrediction
from kayaknav.models.station import Station, StationType
from kayaknav.models.tide import TideTable

logger = logging.getLogger(__name__)

# Timestamp format of datagetter responses
TIME_FORMAT = "%Y-%m-%d %H:%M"


@dataclass(frozen=True)
class ApiProxy:
    """Forwarding proxy taking the target URL as an ``apiurl`` parameter."""

    url: str

    def proxied_url(self, url: str) -> str:
        return f"{self.url}?apiurl={quote(url, safe='')}"


def api_proxy_from_settings(settings: DataSourceSettings) -> ApiProxy | None:
    if settings.use_api_proxy:
        return ApiProxy(url=settings.api_proxy_url)
    return None


def metadata_url(station_id: str, settings: DataSourceSettings) -> str:
    return f"{settings.noaa_metadata_url}/stations/{station_id}.json"


def stations_url(settings: DataSourceSettings) -> str:
    return f"{settings.noaa_metadata_url}/stations.json?type=currentpredictions"


def datagetter_url(
    station_id: str,
    begin_date: date,
    hours: int,
    settings: DataSourceSettings,
    **product: str,
) -> str:
    """Build a datagetter URL in local standard/daylight time and English units."""
    params = {
        "time_zone": "lst_ldt",
        "units": "english",
        "application": settings.application_name,
        "format": "json",
        "station": station_id,
        "begin_date": begin_date.strftime("%Y%m%d"),
        "range": str(hours),
        **product,
    }
    return str(httpx.URL(settings.noaa_datagetter_url, params=params))


def current_prediction_url(
    station: Station, begin_date: date, hours: int, settings: DataSourceSettings
) -> str:
    # Omitting `bin` selects the surface-most bin
    if station.is_subordinate:
        interval, vel_type = "max_slack", "default"
    else:
        interval, vel_type = "h", "speed_dir"
    return datagetter_url(
        station.id,
        begin_date,
        hours,
        settings,
        product="currents_predictions",
        interval=interval,
        vel_type=vel_type,
    )


def tide_prediction_url(
    station_id: str, begin_date: date, hours: int, settings: DataSourceSettings
) -> str:
    return datagetter_url(
        station_id,
        begin_date,
        hours,
        settings,
        product="predictions",
        interval="hilo",
        datum="MLLW",
    )


def _parse_time(value: str) -> datetime:
    try:
        return datetime.strptime(value, TIME_FORMAT)
    except (TypeError, ValueError) as e:
        raise StationDataError(f"Bad timestamp {value!r}") from e


def _station_type(code: str | None) -> StationType:
    return StationType.HARMONIC if code == "H" else StationType.SUBORDINATE


def parse_station(station_id: str, payload: dict) -> Station:
    """Parse a station metadata response."""
    try:
        station = payload["stations"][0]
        return Station(
            id=station_id,
            name=str(station["name"]),
            lat=float(station["lat"]),
            lon=float(station["lng"]),
            type=StationType.SUBORDINATE if station.get("type") == "S" else StationType.HARMONIC,
        )
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise StationDataError(f"Malformed metadata for station {station_id}") from e


def parse_stations_in_area(
    payload: dict,
    lat_range: tuple[float, float],
    lon_range: tuple[float, float],
) -> set[Station]:
    """Select current prediction stations inside a lat/lon box.

    Bounds may be given in either order. Stations of type "W" are skipped.
    """
    lat_lo, lat_hi = sorted(lat_range)
    lon_lo, lon_hi = sorted(lon_range)

    stations = set()
    try:
        for item in payload["stations"]:
            lat = float(item["lat"])
            lon = float(item["lng"])
            if not (lat_lo <= lat <= lat_hi and lon_lo <= lon <= lon_hi):
                continue
            if item["type"] == "W":
                continue
            stations.add(
                Station(
                    id=str(item["id"]),
                    name=str(item["name"]),
                    lat=lat,
                    lon=lon,
                    type=_station_type(item["type"]),
                )
            )
    except (KeyError, TypeError, ValueError) as e:
        raise StationDataError("Malformed station list") from e

    return stations


def parse_current_predictions(
    station: Station,
    payload: dict,
    resolution_minutes: int = COARSE_RESOLUTION_MINUTES,
) -> CurrentPrediction:
    """Parse a currents_predictions response into a coarse table.

    Raises:
        StationDataError: If the response is malformed.
        InsufficientDataError: If it contains no predictions.
    """
    try:
        records = payload["current_predictions"]["cp"]
    except (KeyError, TypeError) as e:
        raise StationDataError(f"Missing current predictions for station {station.id}") from e

    if not records:
        raise InsufficientDataError(f"Current predictions were empty for station {station.id}")

    try:
        times = [_parse_time(r["Time"]) for r in records]
        if station.is_subordinate:
            return CurrentPrediction.from_subordinate(
                station,
                times,
                velocity_major=[float(r["Velocity_Major"]) for r in records],
                flood_directions=[float(r["meanFloodDir"]) for r in records],
                ebb_directions=[
                    float("nan") if r.get("meanEbbDir") is None else float(r["meanEbbDir"])
                    for r in records
                ],
                resolution_minutes=resolution_minutes,
            )
        return CurrentPrediction.from_harmonic(
            station,
            times,
            speeds=[float(r["Speed"]) for r in records],
            directions=[float(r["Direction"]) for r in records],
            resolution_minutes=resolution_minutes,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise StationDataError(f"Malformed current predictions for station {station.id}") from e


def parse_tide_predictions(
    station_id: str,
    payload: dict,
    resolution_minutes: int = COARSE_RESOLUTION_MINUTES,
) -> TideTable:
    """Parse a hilo predictions response into a labelled coarse table."""
    try:
        records = payload["predictions"]
    except (KeyError, TypeError) as e:
        raise StationDataError(f"Missing tide predictions for station {station_id}") from e

    if not records:
        raise InsufficientDataError(f"Tide predictions were empty for station {station_id}")

    try:
        times = [_parse_time(r["t"]) for r in records]
        labels = [str(r["type"]) for r in records]
    except (KeyError, TypeError) as e:
        raise StationDataError(f"Malformed tide predictions for station {station_id}") from e

    return TideTable.from_hilo(times, labels, resolution_minutes)


@asynccontextmanager
async def _open_client(
    client: httpx.AsyncClient | None, settings: DataSourceSettings
) -> AsyncIterator[httpx.AsyncClient]:
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=settings.request_timeout_s) as new_client:
        yield new_client


async def fetch_json(
    client: httpx.AsyncClient,
    url: str,
    proxy: ApiProxy | None = None,
) -> dict:
    """GET a JSON document.

    Raises:
        StationDataError: On HTTP errors, undecodable bodies, or an
            ``error`` member in the response.
    """
    if proxy is not None:
        url = proxy.proxied_url(url)

    logger.info("Fetching url %s", url)
    try:
        response = await client.get(url)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPError as e:
        logger.error("Request to %s failed: %s", url, e)
        raise StationDataError(f"Request to {url} failed") from e
    except ValueError as e:
        logger.error("Could not decode response from %s: %s", url, e)
        raise StationDataError(f"Could not decode response from {url}") from e

    if not isinstance(data, dict) or "error" in data:
        logger.error("Response from %s contained an error: %s", url, data)
        raise StationDataError(f"Response from {url} contained an error")

    return data


async def fetch_station(
    station_id: str,
    settings: DataSourceSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> Station:
    """Fetch metadata for one station."""
    if settings is None:
        settings = get_settings().data_sources

    async with _open_client(client, settings) as http:
        payload = await fetch_json(
            http, metadata_url(station_id, settings), api_proxy_from_settings(settings)
        )
    return parse_station(station_id, payload)


async def fetch_stations_in_area(
    lat_range: tuple[float, float],
    lon_range: tuple[float, float],
    settings: DataSourceSettings | None = None,
    client: httpx.AsyncClient | None = None,
) -> set[Station]:
    """Fetch all current prediction stations inside a lat/lon box."""
    if settings is None:
        settings = get_settings().data_sources

    async with _open_client(client, settings) as http:
        payload = await fetch_json(http, stations_url(settings), api_proxy_from_settings(settings))

    stations = parse_stations_in_area(payload, lat_range, lon_range)
    logger.info("Found %d stations", len(stations))
    return stations


async def fetch_current_prediction(
    station: Station,
    begin_date: date,
    hours: int,
    settings: DataSourceSettings | None = None,
    client: httpx.AsyncClient | None = None,
    resolution_minutes: int = COARSE_RESOLUTION_MINUTES,
) -> CurrentPrediction:
    """Fetch a station's current predictions as a coarse table."""
    if settings is None:
        settings = get_settings().data_sources

    async with _open_client(client, settings) as http:
        payload = await fetch_json(
            http,
            current_prediction_url(station, begin_date, hours, settings),
            api_proxy_from_settings(settings),
        )
    return parse_current_predictions(station, payload, resolution_minutes)


async def fetch_current_predictions(
    stations: Iterable[Station],
    begin_date: date,
    hours: int,
    settings: DataSourceSettings | None = None,
    client: httpx.AsyncClient | None = None,
    resolution_minutes: int = COARSE_RESOLUTION_MINUTES,
) -> list[CurrentPrediction]:
    """Fetch predictions for many stations concurrently.

    Stations whose predictions cannot be fetched or parsed are logged and
    left out.
    """
    if settings is None:
        settings = get_settings().data_sources

    stations = list(stations)
    async with _open_client(client, settings) as http:
        results = await asyncio.gather(
            *(
                fetch_current_prediction(
                    station, begin_date, hours, settings, http, resolution_minutes
                )
                for station in stations
            ),
            return_exceptions=True,
        )

    predictions = []
    for station, result in zip(stations, results):
        if isinstance(result, KayakNavError):
            logger.warning("Skipping station %s (%s): %s", station.id, station.name, result)
            continue
        if isinstance(result, BaseException):
            raise result
        predictions.append(result)
    return predictions


async def fetch_tide_prediction(
    station_id: str,
    begin_date: date,
    hours: int,
    settings: DataSourceSettings | None = None,
    client: httpx.AsyncClient | None = None,
    resolution_minutes: int = COARSE_RESOLUTION_MINUTES,
) -> TideTable:
    """Fetch high/low tide predictions as a labelled coarse table."""
    if settings is None:
        settings = get_settings().data_sources

    async with _open_client(client, settings) as http:
        payload = await fetch_json(
            http,
            tide_prediction_url(station_id, begin_date, hours, settings),
            api_proxy_from_settings(settings),
        )
    return parse_tide_predictions(station_id, payload, resolution_minutes)
