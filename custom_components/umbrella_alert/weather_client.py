"""OpenWeatherMap client for Umbrella Alert.

Uses the current-weather and 5-day/3-hour forecast endpoints with metric
units. Every failure mode surfaces as FetchFailed; callers never see
aiohttp exceptions.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import aiohttp

from .const import (
    DEFAULT_CONDITION_CODE,
    DEFAULT_LANGUAGE,
    FETCH_TIMEOUT_S,
    OWM_BASE_URL,
    OWM_UNITS,
)
from .exceptions import FetchFailed
from .models import ForecastPoint, WeatherReading

_LOGGER = logging.getLogger(__name__)


def _first_condition(item: dict[str, Any]) -> dict[str, Any]:
    conditions = item.get("weather") or [{}]
    return conditions[0] or {}


def _has_precipitation(item: dict[str, Any]) -> bool:
    return item.get("rain") is not None or item.get("snow") is not None


def parse_current(payload: dict[str, Any], lat: float, lon: float) -> WeatherReading:
    """Normalize a /weather response. Raises FetchFailed on missing fields."""
    try:
        main = payload["main"]
        wind = payload.get("wind") or {}
        cond = _first_condition(payload)
        coord = payload.get("coord") or {}
        dt = payload.get("dt")
        return WeatherReading(
            latitude=float(coord.get("lat", lat)),
            longitude=float(coord.get("lon", lon)),
            temperature_c=float(main["temp"]),
            humidity_pct=float(main["humidity"]),
            wind_speed_mps=float(wind.get("speed", 0.0)),
            condition_code=int(cond.get("id", DEFAULT_CONDITION_CODE)),
            has_precipitation=_has_precipitation(payload),
            captured_at_ms=int(dt) * 1000 if dt is not None else int(time.time() * 1000),
            description=str(cond.get("description", "")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise FetchFailed(f"malformed current weather payload: {exc}") from exc


def parse_forecast(payload: dict[str, Any], lat: float, lon: float) -> list[ForecastPoint]:
    """Normalize a /forecast response into 3-hour points."""
    try:
        items = payload["list"]
        points = []
        for item in items:
            main = item["main"]
            wind = item.get("wind") or {}
            cond = _first_condition(item)
            points.append(
                ForecastPoint(
                    latitude=lat,
                    longitude=lon,
                    temperature_c=float(main["temp"]),
                    humidity_pct=float(main.get("humidity", 0.0)),
                    wind_speed_mps=float(wind.get("speed", 0.0)),
                    condition_code=int(cond.get("id", DEFAULT_CONDITION_CODE)),
                    has_precipitation=_has_precipitation(item),
                    captured_at_ms=int(item.get("dt", 0)) * 1000,
                    description=str(cond.get("description", "")),
                    pop=float(item.get("pop", 0.0)),
                    # "2024-05-01 12:00:00" -> "2024-05-01"
                    forecast_date=str(item["dt_txt"])[:10],
                    temp_min_c=float(main["temp_min"]) if "temp_min" in main else None,
                    temp_max_c=float(main["temp_max"]) if "temp_max" in main else None,
                )
            )
        return points
    except (KeyError, TypeError, ValueError) as exc:
        raise FetchFailed(f"malformed forecast payload: {exc}") from exc


class OpenWeatherClient:
    """Thin async wrapper over the OpenWeatherMap 2.5 REST API."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: str,
        *,
        language: str = DEFAULT_LANGUAGE,
        base_url: str = OWM_BASE_URL,
        timeout: float = FETCH_TIMEOUT_S,
    ) -> None:
        self._session = session
        self._api_key = api_key
        self._language = language
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def _get(self, endpoint: str, lat: float, lon: float) -> dict[str, Any]:
        params = {
            "lat": lat,
            "lon": lon,
            "appid": self._api_key,
            "units": OWM_UNITS,
            "lang": self._language,
        }
        url = f"{self._base_url}/{endpoint}"
        try:
            async with self._session.get(url, params=params, timeout=self._timeout) as resp:
                if resp.status != 200:
                    _LOGGER.warning("OpenWeatherMap %s returned HTTP %s", endpoint, resp.status)
                    raise FetchFailed(f"HTTP {resp.status} from {endpoint}", status=resp.status)
                payload = await resp.json(content_type=None)
        except asyncio.TimeoutError as exc:
            raise FetchFailed(f"timeout fetching {endpoint}") from exc
        except aiohttp.ClientError as exc:
            raise FetchFailed(f"request to {endpoint} failed: {exc}") from exc
        except ValueError as exc:
            raise FetchFailed(f"invalid JSON from {endpoint}") from exc

        if not isinstance(payload, dict):
            raise FetchFailed(f"unexpected payload type from {endpoint}")
        return payload

    async def async_fetch_current(self, lat: float, lon: float) -> WeatherReading:
        payload = await self._get("weather", lat, lon)
        reading = parse_current(payload, lat, lon)
        _LOGGER.debug(
            "Current weather: code=%s humidity=%s precip=%s",
            reading.condition_code,
            reading.humidity_pct,
            reading.has_precipitation,
        )
        return reading

    async def async_fetch_forecast(self, lat: float, lon: float) -> list[ForecastPoint]:
        payload = await self._get("forecast", lat, lon)
        points = parse_forecast(payload, lat, lon)
        _LOGGER.debug("Forecast: %d points", len(points))
        return points
