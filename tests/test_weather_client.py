"""Tests for the OpenWeatherMap client and payload parsing."""

import asyncio
import os
import sys
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from custom_components.umbrella_alert.exceptions import FetchFailed
from custom_components.umbrella_alert.weather_client import (
    OpenWeatherClient,
    parse_current,
    parse_forecast,
)

CURRENT = {
    "coord": {"lat": 52.52, "lon": 13.41},
    "weather": [{"id": 501, "description": "moderate rain"}],
    "main": {"temp": 12.3, "humidity": 88},
    "wind": {"speed": 4.1},
    "rain": {"1h": 1.2},
    "dt": 1714550400,
}

FORECAST = {
    "list": [
        {
            "dt": 1714554000,
            "main": {"temp": 13.0, "temp_min": 11.0, "temp_max": 14.0, "humidity": 70},
            "weather": [{"id": 803, "description": "broken clouds"}],
            "wind": {"speed": 2.0},
            "pop": 0.42,
            "dt_txt": "2024-05-01 09:00:00",
        },
        {
            "dt": 1714564800,
            "main": {"temp": 15.0, "humidity": 60},
            "weather": [{"id": 800}],
            "dt_txt": "2024-05-01 12:00:00",
        },
    ]
}


def _response(status=200, payload=None, json_exc=None):
    resp = MagicMock()
    resp.status = status
    if json_exc is not None:
        resp.json = AsyncMock(side_effect=json_exc)
    else:
        resp.json = AsyncMock(return_value=payload)
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=resp)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


def _client(ctx=None, side_effect=None):
    session = MagicMock()
    if side_effect is not None:
        session.get = MagicMock(side_effect=side_effect)
    else:
        session.get = MagicMock(return_value=ctx)
    return OpenWeatherClient(session, "secret", language="de"), session


class TestParseCurrent:
    def test_fields(self):
        r = parse_current(CURRENT, 0.0, 0.0)
        assert r.latitude == 52.52
        assert r.condition_code == 501
        assert r.humidity_pct == 88.0
        assert r.has_precipitation is True
        assert r.captured_at_ms == 1714550400 * 1000
        assert r.description == "moderate rain"
        assert r.pop is None

    def test_defaults_condition_to_clear(self):
        payload = {"main": {"temp": 20, "humidity": 40}, "weather": []}
        r = parse_current(payload, 1.0, 2.0)
        assert r.condition_code == 800
        assert r.has_precipitation is False
        assert (r.latitude, r.longitude) == (1.0, 2.0)

    def test_missing_main_raises(self):
        with pytest.raises(FetchFailed):
            parse_current({"weather": [{"id": 800}]}, 0.0, 0.0)


class TestParseForecast:
    def test_points(self):
        points = parse_forecast(FORECAST, 52.5, 13.4)
        assert len(points) == 2
        first, second = points
        assert first.forecast_date == "2024-05-01"
        assert first.pop == 0.42
        assert first.temp_min_c == 11.0
        assert second.pop == 0.0
        assert second.temp_max_c is None

    def test_missing_list_raises(self):
        with pytest.raises(FetchFailed):
            parse_forecast({"cod": "200"}, 0.0, 0.0)


class TestOpenWeatherClient:
    def test_current_request_params(self):
        client, session = _client(_response(payload=CURRENT))
        reading = asyncio.run(client.async_fetch_current(52.5, 13.4))
        assert reading.condition_code == 501
        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        assert url.endswith("/weather")
        assert params["units"] == "metric"
        assert params["lang"] == "de"
        assert params["appid"] == "secret"

    def test_forecast_endpoint(self):
        client, session = _client(_response(payload=FORECAST))
        points = asyncio.run(client.async_fetch_forecast(52.5, 13.4))
        assert len(points) == 2
        assert session.get.call_args.args[0].endswith("/forecast")

    def test_http_error_carries_status(self):
        client, _ = _client(_response(status=401, payload={"cod": 401}))
        with pytest.raises(FetchFailed) as exc:
            asyncio.run(client.async_fetch_current(0.0, 0.0))
        assert exc.value.status == 401

    def test_network_error(self):
        client, _ = _client(side_effect=aiohttp.ClientConnectionError("down"))
        with pytest.raises(FetchFailed):
            asyncio.run(client.async_fetch_current(0.0, 0.0))

    def test_timeout(self):
        client, _ = _client(side_effect=asyncio.TimeoutError())
        with pytest.raises(FetchFailed):
            asyncio.run(client.async_fetch_current(0.0, 0.0))

    def test_invalid_json(self):
        client, _ = _client(_response(json_exc=ValueError("bad json")))
        with pytest.raises(FetchFailed):
            asyncio.run(client.async_fetch_current(0.0, 0.0))

    def test_non_dict_payload(self):
        client, _ = _client(_response(payload=["unexpected"]))
        with pytest.raises(FetchFailed):
            asyncio.run(client.async_fetch_forecast(0.0, 0.0))
