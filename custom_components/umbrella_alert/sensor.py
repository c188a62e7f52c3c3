"""Sensors for Umbrella Alert."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import EntityCategory
from homeassistant.helpers.update_coordinator import CoordinatorEntity
from homeassistant.util import slugify

from .const import (
    DEFAULT_PREFIX,
    DOMAIN,
    KEY_BODY,
    KEY_CATEGORY,
    KEY_DESCRIPTION,
    KEY_ERROR,
    KEY_FORECAST_POINTS_TODAY,
    KEY_LAST_CHECK,
    KEY_LAST_SENT_AT_MS,
    KEY_NOTIFIED,
    KEY_PROBABILITY,
    KEY_REASON,
    KEY_RESULT,
    KEY_TASK_STATE,
    KEY_TEMPERATURE_C,
    KEY_TITLE,
    KEY_VERDICT,
)
from .models import TaskState, UmbrellaVerdict, WeatherCategory


def _last_sent(d: dict[str, Any]) -> datetime | None:
    ms = d.get(KEY_LAST_SENT_AT_MS) or 0
    if ms <= 0:
        return None
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


@dataclass(frozen=True, kw_only=True)
class UmbrellaSensorDescription:
    """Describes Umbrella Alert sensor entities."""

    key: str
    device_class: SensorDeviceClass | None = None
    entity_category: EntityCategory | None = None
    icon: str | None = None
    name: str | None = None
    native_unit: str | None = None
    options: list[str] | None = None
    state_class: SensorStateClass | None = None
    value_fn: Callable[[dict[str, Any]], Any] | None = None
    attrs_fn: Callable[[dict[str, Any]], dict[str, Any]] | None = None


SENSORS: list[UmbrellaSensorDescription] = [
    UmbrellaSensorDescription(
        key=KEY_VERDICT,
        name="Umbrella Verdict",
        icon="mdi:umbrella",
        device_class=SensorDeviceClass.ENUM,
        options=[v.value for v in UmbrellaVerdict],
        attrs_fn=lambda d: {
            "reason": d.get(KEY_REASON),
            "notified": d.get(KEY_NOTIFIED),
            "forecast_points_today": d.get(KEY_FORECAST_POINTS_TODAY),
        },
    ),
    UmbrellaSensorDescription(
        key=KEY_PROBABILITY,
        name="Rain Probability",
        icon="mdi:weather-pouring",
        native_unit="%",
        state_class=SensorStateClass.MEASUREMENT,
    ),
    UmbrellaSensorDescription(
        key=KEY_CATEGORY,
        name="Weather Category",
        icon="mdi:weather-partly-rainy",
        device_class=SensorDeviceClass.ENUM,
        options=[c.value for c in WeatherCategory],
        attrs_fn=lambda d: {
            "description": d.get(KEY_DESCRIPTION),
            "temperature_c": d.get(KEY_TEMPERATURE_C),
        },
    ),
    UmbrellaSensorDescription(
        key=KEY_TITLE,
        name="Umbrella Message",
        icon="mdi:message-text",
        attrs_fn=lambda d: {"body": d.get(KEY_BODY)},
    ),
    UmbrellaSensorDescription(
        key=KEY_LAST_SENT_AT_MS,
        name="Last Umbrella Notification",
        icon="mdi:bell-ring",
        device_class=SensorDeviceClass.TIMESTAMP,
        value_fn=_last_sent,
    ),
    UmbrellaSensorDescription(
        key=KEY_TASK_STATE,
        name="Umbrella Check State",
        icon="mdi:timer-cog-outline",
        device_class=SensorDeviceClass.ENUM,
        entity_category=EntityCategory.DIAGNOSTIC,
        options=[s.value for s in TaskState],
        attrs_fn=lambda d: {
            "result": d.get(KEY_RESULT),
            "error": d.get(KEY_ERROR),
            "last_check": d.get(KEY_LAST_CHECK),
        },
    ),
]

_SLUGS = {
    KEY_TITLE: "message",
    KEY_LAST_SENT_AT_MS: "last_notification",
    KEY_TASK_STATE: "check_state",
}


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry, async_add_entities) -> None:
    coordinator = hass.data[DOMAIN][entry.entry_id]
    prefix = slugify(entry.title) or DEFAULT_PREFIX
    async_add_entities([UmbrellaSensor(coordinator, entry, desc, prefix) for desc in SENSORS])


class UmbrellaSensor(CoordinatorEntity, SensorEntity):
    """One value from the latest umbrella check."""

    def __init__(self, coordinator, entry: ConfigEntry, desc: UmbrellaSensorDescription, prefix: str):
        super().__init__(coordinator)
        self._desc = desc
        self._entry = entry

        self._attr_unique_id = f"{entry.entry_id}_{desc.key}"
        self._attr_suggested_object_id = f"{prefix}_{_SLUGS.get(desc.key, desc.key)}"
        self._attr_name = desc.name
        self._attr_icon = desc.icon
        self._attr_device_class = desc.device_class
        self._attr_native_unit_of_measurement = desc.native_unit
        self._attr_state_class = desc.state_class
        if desc.options is not None:
            self._attr_options = desc.options
        if desc.entity_category is not None:
            self._attr_entity_category = desc.entity_category

    @property
    def device_info(self):
        return {"identifiers": {(DOMAIN, self._entry.entry_id)}}

    @property
    def native_value(self):
        d = self.coordinator.data or {}
        if self._desc.value_fn is not None:
            return self._desc.value_fn(d)
        value = d.get(self._desc.key)
        # StrEnum members go out as their plain value
        return str(value) if isinstance(value, str) else value

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        d = self.coordinator.data or {}
        if self._desc.key == KEY_TASK_STATE:
            attrs = dict(self._desc.attrs_fn(d))
            attrs["scheduled"] = self.coordinator.is_scheduled()
            return {k: v for k, v in attrs.items() if v is not None}
        if self._desc.attrs_fn is None:
            return {}
        return {k: v for k, v in self._desc.attrs_fn(d).items() if v is not None}
