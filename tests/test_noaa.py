"""Tests for NOAA CO-OPS parsing and fetching."""

from datetime import date

import httpx
import numpy as np
import pytest

from conftest import make_station
from kayaknav.core.config import DataSourceSettings
from kayaknav.core.errors import InsufficientDataError, StationDataError
from kayaknav.data.noaa import (
    ApiProxy,
    current_prediction_url,
    fetch_current_predictions,
    fetch_json,
    fetch_station,
    fetch_tide_prediction,
    parse_current_predictions,
    parse_station,
    parse_stations_in_area,
    parse_tide_predictions,
    tide_prediction_url,
)
from kayaknav.models.station import StationType

BEGIN = date(2024, 6, 1)

HARMONIC_PAYLOAD = {
    "current_predictions": {
        "cp": [
            {"Time": "2024-06-01 00:00", "Speed": 1.0, "Direction": 40.0},
            {"Time": "2024-06-01 01:00", "Speed": 2.0, "Direction": 45.0},
        ]
    }
}

SUBORDINATE_PAYLOAD = {
    "current_predictions": {
        "cp": [
            {"Time": "2024-06-01 00:10", "Velocity_Major": 1.2, "meanFloodDir": 30, "meanEbbDir": 210},
            {"Time": "2024-06-01 02:55", "Velocity_Major": -0.6, "meanFloodDir": 30, "meanEbbDir": 210},
        ]
    }
}

STATIONS_PAYLOAD = {
    "stations": [
        {"id": "n01", "name": "Harbor", "lat": 40.70, "lng": -74.02, "type": "H"},
        {"id": "s01", "name": "East River", "lat": 40.75, "lng": -73.96, "type": "S"},
        {"id": "w01", "name": "Weak", "lat": 40.72, "lng": -74.00, "type": "W"},
        {"id": "far", "name": "Boston", "lat": 42.35, "lng": -71.05, "type": "H"},
    ]
}

TIDE_PAYLOAD = {
    "predictions": [
        {"t": "2024-06-01 03:14", "v": "4.9", "type": "H"},
        {"t": "2024-06-01 09:31", "v": "0.2", "type": "L"},
    ]
}


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestUrls:
    """Tests for request URL construction."""

    def test_harmonic_current_url(self):
        url = httpx.URL(current_prediction_url(make_station("n01"), BEGIN, 48, DataSourceSettings()))

        assert url.params["product"] == "currents_predictions"
        assert url.params["interval"] == "h"
        assert url.params["vel_type"] == "speed_dir"
        assert url.params["begin_date"] == "20240601"
        assert url.params["range"] == "48"
        assert url.params["time_zone"] == "lst_ldt"
        assert "bin" not in url.params

    def test_subordinate_current_url(self):
        station = make_station("s01", type=StationType.SUBORDINATE)
        url = httpx.URL(current_prediction_url(station, BEGIN, 48, DataSourceSettings()))

        assert url.params["interval"] == "max_slack"
        assert url.params["vel_type"] == "default"

    def test_tide_url(self):
        url = httpx.URL(tide_prediction_url("8518750", BEGIN, 24, DataSourceSettings()))

        assert url.params["product"] == "predictions"
        assert url.params["interval"] == "hilo"
        assert url.params["datum"] == "MLLW"
        assert url.params["station"] == "8518750"

    def test_proxied_url(self):
        proxy = ApiProxy(url="https://proxy.example/fwd")
        assert proxy.proxied_url("https://api.example/x?a=1&b=2") == (
            "https://proxy.example/fwd?apiurl=https%3A%2F%2Fapi.example%2Fx%3Fa%3D1%26b%3D2"
        )


class TestParsing:
    """Tests for response parsing."""

    def test_parse_station(self):
        payload = {"stations": [{"name": "The Narrows", "lat": 40.6, "lng": -74.04, "type": "S"}]}
        station = parse_station("s99", payload)

        assert station.id == "s99"
        assert station.name == "The Narrows"
        assert station.lon == pytest.approx(-74.04)
        assert station.is_subordinate

    def test_parse_station_malformed(self):
        with pytest.raises(StationDataError):
            parse_station("s99", {"stations": []})

    def test_stations_in_area(self):
        """Stations outside the box and weak-current stations are skipped."""
        stations = parse_stations_in_area(STATIONS_PAYLOAD, (42.0, 39.0), (-75.0, -73.0))

        assert {s.id for s in stations} == {"n01", "s01"}
        by_id = {s.id: s for s in stations}
        assert by_id["n01"].type is StationType.HARMONIC
        assert by_id["s01"].type is StationType.SUBORDINATE

    def test_harmonic_predictions(self):
        prediction = parse_current_predictions(make_station("n01"), HARMONIC_PAYLOAD)

        assert prediction.resolution_minutes == 30
        np.testing.assert_allclose(prediction.speed, [1.0, 1.5, 2.0])
        np.testing.assert_array_equal(prediction.direction, [40.0, 40.0, 45.0])

    def test_configured_resolution(self):
        """Tables are built at the requested coarse resolution."""
        prediction = parse_current_predictions(make_station("n01"), HARMONIC_PAYLOAD, resolution_minutes=60)
        tides = parse_tide_predictions("8518750", TIDE_PAYLOAD, resolution_minutes=60)

        assert prediction.resolution_minutes == 60
        np.testing.assert_allclose(prediction.speed, [1.0, 2.0])
        # 03:14 -> 03:00 and 09:31 -> 10:00 on an hourly grid
        assert tides.height == 8
        assert tides.high_low[1] == "H + 1"

    def test_subordinate_predictions(self):
        """Events snap to the half hour and direction follows the sign of the speed."""
        station = make_station("s01", type=StationType.SUBORDINATE)
        prediction = parse_current_predictions(station, SUBORDINATE_PAYLOAD)

        assert prediction.time[0] == np.datetime64("2024-06-01T00:00")
        assert prediction.time[-1] == np.datetime64("2024-06-01T03:00")
        assert prediction.direction[0] == 30.0
        assert prediction.direction[-1] == 210.0
        assert np.all(prediction.speed >= 0)

    def test_empty_predictions(self):
        with pytest.raises(InsufficientDataError):
            parse_current_predictions(make_station("n01"), {"current_predictions": {"cp": []}})

    def test_missing_predictions(self):
        with pytest.raises(StationDataError):
            parse_current_predictions(make_station("n01"), {"something": "else"})

    def test_malformed_record(self):
        payload = {"current_predictions": {"cp": [{"Time": "yesterday", "Speed": 1, "Direction": 0}]}}
        with pytest.raises(StationDataError):
            parse_current_predictions(make_station("n01"), payload)

    def test_tide_predictions(self):
        table = parse_tide_predictions("8518750", TIDE_PAYLOAD)

        assert table.high_low[0] == "H"
        assert table.high_low[1] == "H + 0.5"
        assert table.high_low[-1] == "L"


class TestFetching:
    """Tests for HTTP fetching against a mock transport."""

    @pytest.mark.asyncio
    async def test_fetch_station(self):
        settings = DataSourceSettings()

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/stations/s99.json")
            return httpx.Response(
                200, json={"stations": [{"name": "Hell Gate", "lat": 40.78, "lng": -73.94, "type": "H"}]}
            )

        async with mock_client(handler) as client:
            station = await fetch_station("s99", settings, client)

        assert station.name == "Hell Gate"
        assert not station.is_subordinate

    @pytest.mark.asyncio
    async def test_error_member(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": {"message": "No data was found"}})

        async with mock_client(handler) as client:
            with pytest.raises(StationDataError):
                await fetch_json(client, "https://api.example/data")

    @pytest.mark.asyncio
    async def test_http_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(504)

        async with mock_client(handler) as client:
            with pytest.raises(StationDataError):
                await fetch_json(client, "https://api.example/data")

    @pytest.mark.asyncio
    async def test_undecodable_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>busy</html>")

        async with mock_client(handler) as client:
            with pytest.raises(StationDataError):
                await fetch_json(client, "https://api.example/data")

    @pytest.mark.asyncio
    async def test_requests_go_through_proxy(self):
        settings = DataSourceSettings(use_api_proxy=True, api_proxy_url="https://proxy.example/fwd")
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            return httpx.Response(200, json=TIDE_PAYLOAD)

        async with mock_client(handler) as client:
            await fetch_tide_prediction("8518750", BEGIN, 24, settings, client)

        assert seen[0].host == "proxy.example"
        target = httpx.URL(seen[0].params["apiurl"])
        assert target.params["station"] == "8518750"

    @pytest.mark.asyncio
    async def test_failed_stations_are_dropped(self):
        """Stations with errors are left out and the rest are returned."""
        stations = [make_station("good"), make_station("bad")]

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params["station"] == "bad":
                return httpx.Response(200, json={"error": {"message": "No data was found"}})
            return httpx.Response(200, json=HARMONIC_PAYLOAD)

        async with mock_client(handler) as client:
            predictions = await fetch_current_predictions(
                stations, BEGIN, 24, DataSourceSettings(), client
            )

        assert [p.station.id for p in predictions] == ["good"]
