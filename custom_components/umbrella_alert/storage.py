"""Persisted notification state for Umbrella Alert.

Backed by Home Assistant's JSON ``Store`` (``.storage/umbrella_alert.<entry>``).
All writers go through ``lock`` so the scheduled check and a manual
``check_now`` never interleave their read-check-send-write sequences.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, replace
from typing import Any, Protocol

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .const import (
    KEY_ENABLED,
    KEY_LAST_SENT_AT_MS,
    KEY_RAIN_THRESHOLD_PCT,
    KEY_WINDOW_END_HOUR,
    KEY_WINDOW_START_HOUR,
    STORAGE_KEY_PREFIX,
    STORAGE_VERSION,
)
from .models import NotificationState

_LOGGER = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """The subset of ``homeassistant.helpers.storage.Store`` we rely on."""

    async def async_load(self) -> dict[str, Any] | None: ...

    async def async_save(self, data: dict[str, Any]) -> None: ...


def _clamp_int(value: Any, default: int, low: int, high: int) -> int:
    try:
        v = int(value)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, v))


def state_from_dict(raw: dict[str, Any] | None, defaults: NotificationState) -> NotificationState:
    """Build a NotificationState from stored JSON, tolerating junk values."""
    if not raw:
        return defaults
    try:
        last_sent = int(raw.get(KEY_LAST_SENT_AT_MS, defaults.last_sent_at_ms))
    except (TypeError, ValueError):
        last_sent = defaults.last_sent_at_ms
    return NotificationState(
        last_sent_at_ms=max(0, last_sent),
        enabled=bool(raw.get(KEY_ENABLED, defaults.enabled)),
        window_start_hour=_clamp_int(
            raw.get(KEY_WINDOW_START_HOUR), defaults.window_start_hour, 0, 23
        ),
        window_end_hour=_clamp_int(raw.get(KEY_WINDOW_END_HOUR), defaults.window_end_hour, 0, 23),
        rain_threshold_pct=_clamp_int(
            raw.get(KEY_RAIN_THRESHOLD_PCT), defaults.rain_threshold_pct, 0, 100
        ),
    )


class NotificationStateStore:
    """Single-writer wrapper around the persisted NotificationState."""

    def __init__(self, store: KeyValueStore, defaults: NotificationState | None = None) -> None:
        self._store = store
        self._defaults = defaults or NotificationState()
        self._state: NotificationState | None = None
        self.lock = asyncio.Lock()

    @classmethod
    def for_entry(
        cls, hass: HomeAssistant, entry_id: str, defaults: NotificationState | None = None
    ) -> NotificationStateStore:
        store = Store(hass, STORAGE_VERSION, f"{STORAGE_KEY_PREFIX}.{entry_id}")
        return cls(store, defaults)

    @property
    def state(self) -> NotificationState:
        """Last loaded state (defaults until the first load)."""
        return self._state or self._defaults

    async def async_load(self) -> NotificationState:
        """Read state from disk. Callers that write afterwards must hold ``lock``."""
        if self._state is None:
            raw = await self._store.async_load()
            self._state = state_from_dict(raw, self._defaults)
            _LOGGER.debug("Loaded notification state: %s", self._state)
        return self._state

    async def async_save(self, state: NotificationState) -> None:
        """Persist ``state``. Callers must hold ``lock``."""
        await self._store.async_save(asdict(state))
        self._state = state

    async def async_update(self, **changes: Any) -> NotificationState:
        """Apply a user setting change atomically."""
        async with self.lock:
            current = await self.async_load()
            new_state = replace(current, **changes)
            await self.async_save(new_state)
        _LOGGER.debug("Notification settings changed: %s", changes)
        return new_state
