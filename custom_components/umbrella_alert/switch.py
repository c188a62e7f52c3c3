"""Switch entities for Umbrella Alert.

The enable switch is backed by the persisted notification state rather
than entry.options: toggling it re-registers (or cancels) the periodic
check without reloading the entry.
"""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.switch import SwitchEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import EntityCategory
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity
from homeassistant.util import slugify

from .const import DEFAULT_PREFIX, DOMAIN, KEY_ENABLED

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up switch entities."""
    coordinator = hass.data[DOMAIN][entry.entry_id]
    prefix = slugify(entry.title) or DEFAULT_PREFIX
    async_add_entities([UmbrellaEnabledSwitch(coordinator, entry, prefix)])


class UmbrellaEnabledSwitch(CoordinatorEntity, SwitchEntity):
    """Turns umbrella notifications (and the periodic check) on or off."""

    _attr_entity_category = EntityCategory.CONFIG
    _attr_has_entity_name = False

    def __init__(self, coordinator, entry: ConfigEntry, prefix: str) -> None:
        super().__init__(coordinator)
        self._entry = entry
        self._attr_unique_id = f"{entry.entry_id}_{KEY_ENABLED}"
        self._attr_suggested_object_id = f"{prefix}_notifications_enabled"
        self._attr_name = "Umbrella Notifications"
        self._attr_icon = "mdi:bell-badge-outline"

    @property
    def device_info(self) -> dict[str, Any]:
        return {"identifiers": {(DOMAIN, self._entry.entry_id)}}

    @property
    def is_on(self) -> bool:
        return self.coordinator.state_store.state.enabled

    async def async_turn_on(self, **kwargs) -> None:
        await self._write(True)

    async def async_turn_off(self, **kwargs) -> None:
        await self._write(False)

    async def _write(self, value: bool) -> None:
        _LOGGER.info("Umbrella notifications %s", "enabled" if value else "disabled")
        await self.coordinator.async_update_settings(**{KEY_ENABLED: value})
