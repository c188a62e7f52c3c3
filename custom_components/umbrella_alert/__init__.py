"""Umbrella Alert integration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import voluptuous as vol
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers import device_registry as dr

from .const import (
    ATTR_ENTRY_ID,
    DOMAIN,
    PLATFORMS,
    SERVICE_CHECK_NOW,
    SERVICE_RESET_LAST_SENT,
)

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)
_LOGGER = logging.getLogger(__name__)

if TYPE_CHECKING:
    from .coordinator import UmbrellaCheckCoordinator

SERVICE_SCHEMA = vol.Schema({vol.Optional(ATTR_ENTRY_ID): cv.string})


def _targets(hass: HomeAssistant, call: ServiceCall) -> list[UmbrellaCheckCoordinator]:
    entry_id = call.data.get(ATTR_ENTRY_ID)
    if entry_id:
        coord = hass.data[DOMAIN].get(entry_id)
        if coord is None:
            _LOGGER.warning("No Umbrella Alert entry with id %s", entry_id)
            return []
        return [coord]
    return list(hass.data[DOMAIN].values())


async def async_setup(hass: HomeAssistant, config: dict) -> bool:
    hass.data.setdefault(DOMAIN, {})
    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    from .coordinator import UmbrellaCheckCoordinator

    hass.data.setdefault(DOMAIN, {})
    coordinator = UmbrellaCheckCoordinator(hass, entry.entry_id, dict(entry.data), dict(entry.options))
    hass.data[DOMAIN][entry.entry_id] = coordinator

    await coordinator.async_start()

    # Create a device for the entry
    dev_reg = dr.async_get(hass)
    dev_reg.async_get_or_create(
        config_entry_id=entry.entry_id,
        identifiers={(DOMAIN, entry.entry_id)},
        name=entry.title,
        manufacturer="Umbrella Alert",
        model="OpenWeatherMap umbrella check",
    )

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    # Reload the entry whenever the user saves new options
    entry.async_on_unload(entry.add_update_listener(async_update_options))

    async def _check_now(call: ServiceCall) -> None:
        for coord in _targets(hass, call):
            await coord.async_run_check()

    async def _reset_last_sent(call: ServiceCall) -> None:
        for coord in _targets(hass, call):
            await coord.async_reset_last_sent()

    # Register services once per integration domain (idempotent)
    if not hass.services.has_service(DOMAIN, SERVICE_CHECK_NOW):
        hass.services.async_register(DOMAIN, SERVICE_CHECK_NOW, _check_now, schema=SERVICE_SCHEMA)
    if not hass.services.has_service(DOMAIN, SERVICE_RESET_LAST_SENT):
        hass.services.async_register(
            DOMAIN, SERVICE_RESET_LAST_SENT, _reset_last_sent, schema=SERVICE_SCHEMA
        )

    return True


async def async_update_options(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle options update."""
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    coordinator: UmbrellaCheckCoordinator | None = hass.data[DOMAIN].pop(entry.entry_id, None)
    if coordinator is not None:
        await coordinator.async_stop()
    if not hass.data[DOMAIN]:
        hass.services.async_remove(DOMAIN, SERVICE_CHECK_NOW)
        hass.services.async_remove(DOMAIN, SERVICE_RESET_LAST_SENT)
    return unload_ok
