"""Diagnostics support for Umbrella Alert."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import CONF_API_KEY, CONF_LOCATION_ENTITY, DOMAIN

REDACTED = "**REDACTED**"


def _redact(d: dict[str, Any]) -> dict[str, Any]:
    """Hide the API key and which person is being tracked."""
    out = dict(d)
    for key in (CONF_API_KEY, CONF_LOCATION_ENTITY):
        if out.get(key):
            out[key] = REDACTED
    return out


async def async_get_config_entry_diagnostics(hass: HomeAssistant, entry: ConfigEntry) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coord = hass.data.get(DOMAIN, {}).get(entry.entry_id)

    runtime_info: dict[str, Any] = {}
    state_info: dict[str, Any] = {}
    schedule_info: dict[str, Any] = {}
    last_outcome: dict[str, Any] = {}
    if coord:
        rt = coord.runtime
        runtime_info = {
            "checks": rt.checks,
            "notifications_sent": rt.notifications_sent,
            "consecutive_retries": rt.consecutive_retries,
            "failures": rt.failures,
            "location_known": coord.location.last_known is not None,
        }
        state_info = asdict(coord.state_store.state)
        schedule_info = {"task": coord.task.name, **coord.scheduler.info(coord.task.name)}
        last_outcome = asdict(rt.last_outcome)

    return {
        "title": entry.title,
        "version": "1.0.0",
        "entry_data": _redact(dict(entry.data)),
        "entry_options": _redact(dict(entry.options)),
        "notification_state": state_info,
        "schedule": schedule_info,
        "runtime": runtime_info,
        "last_outcome": last_outcome,
    }
