"""Location resolution for Umbrella Alert.

Coordinates come from a person / device_tracker / zone entity when one is
configured, otherwise from the Home Assistant home location. A tracked
entity without a fix is given up to LOCATION_TIMEOUT_S to report one,
after which the last known coordinates are used.
"""

from __future__ import annotations

import asyncio
import logging

from homeassistant.const import ATTR_LATITUDE, ATTR_LONGITUDE
from homeassistant.core import Event, HomeAssistant, State, callback
from homeassistant.helpers.event import async_track_state_change_event

from .const import LOCATION_TIMEOUT_S
from .exceptions import LocationUnavailable

_LOGGER = logging.getLogger(__name__)


def coords_from_state(state: State | None) -> tuple[float, float] | None:
    if state is None:
        return None
    lat = state.attributes.get(ATTR_LATITUDE)
    lon = state.attributes.get(ATTR_LONGITUDE)
    if lat is None or lon is None:
        return None
    try:
        return float(lat), float(lon)
    except (TypeError, ValueError):
        return None


class LocationProvider:
    """Resolve (latitude, longitude) for a check."""

    def __init__(
        self,
        hass: HomeAssistant,
        entity_id: str | None = None,
        *,
        timeout: float = LOCATION_TIMEOUT_S,
    ) -> None:
        self.hass = hass
        self.entity_id = entity_id or None
        self.timeout = timeout
        self.last_known: tuple[float, float] | None = None

    async def async_get_location(self) -> tuple[float, float]:
        """Current coordinates; raises LocationUnavailable when there are none."""
        coords: tuple[float, float] | None
        if self.entity_id is None:
            coords = self._home_coords()
        else:
            try:
                async with asyncio.timeout(self.timeout):
                    coords = await self._async_wait_for_fix()
            except TimeoutError:
                _LOGGER.warning(
                    "No location from %s within %ss, using last known", self.entity_id, self.timeout
                )
                coords = None

        if coords is None:
            coords = self.last_known
        if coords is None:
            raise LocationUnavailable(f"no coordinates available for {self.entity_id or 'home'}")
        self.last_known = coords
        return coords

    def _home_coords(self) -> tuple[float, float] | None:
        lat = getattr(self.hass.config, "latitude", None)
        lon = getattr(self.hass.config, "longitude", None)
        if lat is None or lon is None:
            return None
        return float(lat), float(lon)

    async def _async_wait_for_fix(self) -> tuple[float, float] | None:
        coords = coords_from_state(self.hass.states.get(self.entity_id))
        if coords is not None:
            return coords

        loop = asyncio.get_running_loop()
        fix: asyncio.Future[tuple[float, float]] = loop.create_future()

        @callback
        def _handle_change(event: Event) -> None:
            found = coords_from_state(event.data.get("new_state"))
            if found is not None and not fix.done():
                fix.set_result(found)

        unsub = async_track_state_change_event(self.hass, [self.entity_id], _handle_change)
        try:
            return await fix
        finally:
            unsub()
