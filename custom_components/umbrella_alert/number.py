"""Number entities for Umbrella Alert.

Exposes the quiet-hours window and the rain threshold on the device page.
Values live in the persisted notification state; a change is applied
through the coordinator, which re-registers the periodic check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from homeassistant.components.number import NumberEntity, NumberMode
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import EntityCategory
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity
from homeassistant.util import slugify

from .const import (
    DEFAULT_PREFIX,
    DOMAIN,
    KEY_RAIN_THRESHOLD_PCT,
    KEY_WINDOW_END_HOUR,
    KEY_WINDOW_START_HOUR,
)

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class UmbrellaNumberDesc:
    """Descriptor for a state-backed number entity."""

    key: str
    name: str
    icon: str
    native_min: float
    native_max: float
    native_step: float
    native_unit: str | None = None
    mode: NumberMode = NumberMode.BOX


SETTING_NUMBERS: tuple[UmbrellaNumberDesc, ...] = (
    UmbrellaNumberDesc(
        key=KEY_WINDOW_START_HOUR,
        name="Notification Window Start",
        icon="mdi:weather-sunset-up",
        native_min=0,
        native_max=23,
        native_step=1,
        native_unit="h",
    ),
    UmbrellaNumberDesc(
        key=KEY_WINDOW_END_HOUR,
        name="Notification Window End",
        icon="mdi:weather-sunset-down",
        native_min=0,
        native_max=23,
        native_step=1,
        native_unit="h",
    ),
    UmbrellaNumberDesc(
        key=KEY_RAIN_THRESHOLD_PCT,
        name="Rain Threshold",
        icon="mdi:water-percent-alert",
        native_min=0,
        native_max=100,
        native_step=5,
        native_unit="%",
        mode=NumberMode.SLIDER,
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up state-backed number entities."""
    coordinator = hass.data[DOMAIN][entry.entry_id]
    prefix = slugify(entry.title) or DEFAULT_PREFIX
    async_add_entities([UmbrellaSettingNumber(coordinator, entry, prefix, desc) for desc in SETTING_NUMBERS])


class UmbrellaSettingNumber(CoordinatorEntity, NumberEntity):
    """A number entity backed by a NotificationState field."""

    _attr_entity_category = EntityCategory.CONFIG
    _attr_has_entity_name = False

    def __init__(self, coordinator, entry: ConfigEntry, prefix: str, desc: UmbrellaNumberDesc) -> None:
        super().__init__(coordinator)
        self._entry = entry
        self._desc = desc
        self._attr_unique_id = f"{entry.entry_id}_{desc.key}"
        self._attr_suggested_object_id = f"{prefix}_{desc.key}"
        self._attr_name = desc.name
        self._attr_icon = desc.icon
        self._attr_native_min_value = desc.native_min
        self._attr_native_max_value = desc.native_max
        self._attr_native_step = desc.native_step
        self._attr_native_unit_of_measurement = desc.native_unit
        self._attr_mode = desc.mode

    @property
    def device_info(self) -> dict[str, Any]:
        return {"identifiers": {(DOMAIN, self._entry.entry_id)}}

    @property
    def native_value(self) -> float:
        return float(getattr(self.coordinator.state_store.state, self._desc.key))

    async def async_set_native_value(self, value: float) -> None:
        """Store the new value and reschedule."""
        clamped = int(max(self._desc.native_min, min(self._desc.native_max, value)))
        _LOGGER.debug("Setting %s to %s", self._desc.key, clamped)
        await self.coordinator.async_update_settings(**{self._desc.key: clamped})
