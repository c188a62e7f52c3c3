"""Binary sensors for Umbrella Alert."""

from __future__ import annotations

from homeassistant.components.binary_sensor import BinarySensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.update_coordinator import CoordinatorEntity
from homeassistant.util import slugify

from .const import DEFAULT_PREFIX, DOMAIN, KEY_PROBABILITY, KEY_VERDICT
from .models import UmbrellaVerdict


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry, async_add_entities) -> None:
    coordinator = hass.data[DOMAIN][entry.entry_id]
    prefix = slugify(entry.title) or DEFAULT_PREFIX
    async_add_entities([UmbrellaNeeded(coordinator, entry, prefix)])


class UmbrellaNeeded(CoordinatorEntity, BinarySensorEntity):
    """On when the last check called for an umbrella (NEEDED or MAYBE)."""

    def __init__(self, coordinator, entry: ConfigEntry, prefix: str):
        super().__init__(coordinator)
        self._entry = entry
        self._attr_unique_id = f"{entry.entry_id}_umbrella_needed"
        self._attr_suggested_object_id = f"{prefix}_umbrella_needed"
        self._attr_name = "Umbrella Needed"
        self._attr_icon = "mdi:umbrella-outline"

    @property
    def device_info(self):
        return {"identifiers": {(DOMAIN, self._entry.entry_id)}}

    @property
    def is_on(self) -> bool | None:
        d = self.coordinator.data or {}
        v = d.get(KEY_VERDICT)
        if v is None:
            return None
        return v != UmbrellaVerdict.NOT_NEEDED

    @property
    def extra_state_attributes(self):
        d = self.coordinator.data or {}
        return {"verdict": d.get(KEY_VERDICT), "probability": d.get(KEY_PROBABILITY)}
