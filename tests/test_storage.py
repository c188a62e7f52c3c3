"""Tests for the persisted notification state."""

import asyncio
import os
import sys
from unittest.mock import AsyncMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from custom_components.umbrella_alert.models import NotificationState
from custom_components.umbrella_alert.storage import NotificationStateStore, state_from_dict


def _store(raw=None):
    backend = AsyncMock()
    backend.async_load.return_value = raw
    return NotificationStateStore(backend), backend


class TestStateFromDict:
    def test_empty_gives_defaults(self):
        defaults = NotificationState(window_start_hour=7, window_end_hour=18)
        assert state_from_dict(None, defaults) is defaults
        assert state_from_dict({}, defaults) is defaults

    def test_missing_keys_fall_back(self):
        state = state_from_dict({"last_sent_at_ms": 1234}, NotificationState())
        assert state.last_sent_at_ms == 1234
        assert state.enabled is True
        assert state.window_start_hour == 6
        assert state.window_end_hour == 19
        assert state.rain_threshold_pct == 30

    def test_clamps_out_of_range(self):
        state = state_from_dict(
            {"window_start_hour": -3, "window_end_hour": 40, "rain_threshold_pct": 250},
            NotificationState(),
        )
        assert state.window_start_hour == 0
        assert state.window_end_hour == 23
        assert state.rain_threshold_pct == 100

    def test_junk_values(self):
        state = state_from_dict(
            {"last_sent_at_ms": "never", "window_start_hour": "early"}, NotificationState()
        )
        assert state.last_sent_at_ms == 0
        assert state.window_start_hour == 6


class TestNotificationStateStore:
    def test_load_caches(self):
        store, backend = _store({"enabled": False})

        async def run():
            first = await store.async_load()
            second = await store.async_load()
            return first, second

        first, second = asyncio.run(run())
        assert first.enabled is False
        assert first is second
        backend.async_load.assert_awaited_once()

    def test_state_before_load_is_defaults(self):
        store, _ = _store({"enabled": False})
        assert store.state == NotificationState()

    def test_save_persists_dict(self):
        store, backend = _store()
        new_state = NotificationState(last_sent_at_ms=42)
        asyncio.run(store.async_save(new_state))
        saved = backend.async_save.await_args.args[0]
        assert saved["last_sent_at_ms"] == 42
        assert saved["enabled"] is True
        assert store.state is new_state

    def test_update_merges(self):
        store, backend = _store({"last_sent_at_ms": 99})
        updated = asyncio.run(store.async_update(enabled=False))
        assert updated.enabled is False
        assert updated.last_sent_at_ms == 99
        assert backend.async_save.await_args.args[0]["enabled"] is False

    def test_update_releases_lock(self):
        store, _ = _store()
        asyncio.run(store.async_update(rain_threshold_pct=50))
        assert not store.lock.locked()
