"""Coordinator for Umbrella Alert.

Owns one umbrella check pipeline per config entry:

  location -> current weather -> forecast -> classify -> decide
           -> (under the state lock) quiet hours / spacing -> notify -> persist

The periodic schedule lives in PeriodicTaskScheduler; this class is the
job it runs. Every cycle ends in a terminal state and never raises into
Home Assistant, except for cancellation which is allowed to propagate so
that a torn-down cycle persists nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from homeassistant.core import HomeAssistant
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator
from homeassistant.util import dt as dt_util

from .algorithms import (
    commute_hint,
    decide_batch,
    describe_verdict,
    evaluate,
    strongest,
    today_points,
)
from .const import (
    CONF_API_KEY,
    CONF_FLEX_MINUTES,
    CONF_INTERVAL_HOURS,
    CONF_LANGUAGE,
    CONF_LOCATION_ENTITY,
    CONF_NOTIFY_SERVICE,
    CONF_PROFILE,
    DEFAULT_FLEX_MINUTES,
    DEFAULT_INTERVAL_HOURS,
    DEFAULT_LANGUAGE,
    DEFAULT_PROFILE,
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
    NOTIFICATION_ID_PREFIX,
    PROFILE_WINDOWS,
    TASK_NAME_PREFIX,
)
from .exceptions import FetchFailed, InternalError, LocationUnavailable, NotifyFailed
from .location import LocationProvider
from .models import (
    CheckOutcome,
    NotificationState,
    ScheduleTask,
    TaskResult,
    TaskState,
    UmbrellaVerdict,
)
from .notifier import Notifier
from .rate_limiter import denial_reason, record_sent
from .scheduler import PeriodicTaskScheduler
from .storage import NotificationStateStore
from .weather_client import OpenWeatherClient

_LOGGER = logging.getLogger(__name__)

REASON_NOT_NEEDED = "not_needed"
REASON_NOTIFY_FAILED = "notify_failed"


# ---------------------------------------------------------------------------
# Runtime state
# ---------------------------------------------------------------------------


@dataclass
class UmbrellaRuntime:
    """Counters and the last outcome, kept in memory for diagnostics."""

    last_outcome: CheckOutcome = field(default_factory=CheckOutcome)
    checks: int = 0
    notifications_sent: int = 0
    consecutive_retries: int = 0
    failures: int = 0

    def record(self, outcome: CheckOutcome) -> None:
        self.last_outcome = outcome
        self.checks += 1
        if outcome.notified:
            self.notifications_sent += 1
        if outcome.state is TaskState.RETRY_WAIT:
            self.consecutive_retries += 1
        else:
            self.consecutive_retries = 0
        if outcome.state is TaskState.FAILED:
            self.failures += 1


def default_state_for_profile(profile: str) -> NotificationState:
    start, end = PROFILE_WINDOWS.get(profile, PROFILE_WINDOWS[DEFAULT_PROFILE])
    return NotificationState(window_start_hour=start, window_end_hour=end)


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class UmbrellaCheckCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Runs umbrella checks and publishes the latest outcome to entities."""

    def __init__(
        self,
        hass: HomeAssistant,
        entry_id: str,
        entry_data: dict[str, Any],
        entry_options: dict[str, Any] | None = None,
    ):
        self.hass = hass
        self.entry_id = entry_id
        self.entry_data = entry_data
        self.entry_options = entry_options or {}
        self.runtime = UmbrellaRuntime()

        def _get(key: str, default: Any) -> Any:
            return self.entry_options.get(key, entry_data.get(key, default))

        self.profile = str(_get(CONF_PROFILE, DEFAULT_PROFILE))
        self.task = ScheduleTask(
            name=f"{TASK_NAME_PREFIX}_{entry_id}",
            interval_hours=float(_get(CONF_INTERVAL_HOURS, DEFAULT_INTERVAL_HOURS)),
            flex_minutes=float(_get(CONF_FLEX_MINUTES, DEFAULT_FLEX_MINUTES)),
        )

        self.client = OpenWeatherClient(
            async_get_clientsession(hass),
            str(entry_data[CONF_API_KEY]),
            language=str(_get(CONF_LANGUAGE, DEFAULT_LANGUAGE)),
        )
        self.location = LocationProvider(hass, _get(CONF_LOCATION_ENTITY, None))
        self.notifier = Notifier(
            hass, f"{NOTIFICATION_ID_PREFIX}_{entry_id}", _get(CONF_NOTIFY_SERVICE, None)
        )
        self.state_store = NotificationStateStore.for_entry(
            hass, entry_id, default_state_for_profile(self.profile)
        )
        self.scheduler = PeriodicTaskScheduler(hass)

        super().__init__(
            hass,
            logger=_LOGGER,
            name="Umbrella Alert",
            update_interval=None,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def async_start(self) -> None:
        state = await self.state_store.async_load()
        if state.enabled:
            await self.scheduler.async_register(self.task, self.async_run_check)
        else:
            _LOGGER.info("Umbrella notifications disabled, not scheduling %s", self.task.name)
        self.async_set_updated_data(self._snapshot())

    async def async_stop(self) -> None:
        await self.scheduler.async_shutdown()

    async def async_reschedule(self) -> None:
        """Re-register the periodic task after a settings change."""
        state = await self.state_store.async_load()
        if state.enabled:
            await self.scheduler.async_register(self.task, self.async_run_check, run_immediately=False)
        else:
            await self.scheduler.async_cancel(self.task.name)
        self.async_set_updated_data(self._snapshot())

    async def async_update_settings(self, **changes: Any) -> None:
        await self.state_store.async_update(**changes)
        await self.async_reschedule()

    async def async_reset_last_sent(self) -> None:
        await self.state_store.async_update(last_sent_at_ms=0)
        self.async_set_updated_data(self._snapshot())

    def is_scheduled(self) -> bool:
        return self.scheduler.is_scheduled(self.task.name)

    async def _async_update_data(self) -> dict[str, Any]:
        return self._snapshot()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def async_run_check(self, now: datetime | None = None) -> TaskResult:
        """Run one full check. ``now`` must be timezone-aware local time."""
        now = now or dt_util.now()
        outcome = CheckOutcome(state=TaskState.RUNNING, started_at=now)

        try:
            await self._async_pipeline(now, outcome)
            outcome.state, result = TaskState.SUCCESS, TaskResult.SUCCESS
        except LocationUnavailable as err:
            _LOGGER.warning("Location unavailable, will retry: %s", err)
            outcome.state, result, outcome.error = TaskState.RETRY_WAIT, TaskResult.RETRY, str(err)
        except FetchFailed as err:
            _LOGGER.warning("Weather fetch failed, will retry: %s", err)
            outcome.state, result, outcome.error = TaskState.RETRY_WAIT, TaskResult.RETRY, str(err)
        except InternalError as err:
            _LOGGER.error("Umbrella check aborted: %s", err)
            outcome.state, result, outcome.error = TaskState.FAILED, TaskResult.FAILURE, str(err)
        except Exception as err:
            _LOGGER.exception("Unexpected error during umbrella check")
            outcome.state, result, outcome.error = TaskState.FAILED, TaskResult.FAILURE, repr(err)

        outcome.result = result
        outcome.finished_at = dt_util.now()
        self.runtime.record(outcome)
        self.async_set_updated_data(self._snapshot())
        return result

    async def _async_pipeline(self, now: datetime, outcome: CheckOutcome) -> None:
        lat, lon = await self.location.async_get_location()
        current = await self.client.async_fetch_current(lat, lon)
        try:
            forecast = await self.client.async_fetch_forecast(lat, lon)
        except FetchFailed as err:
            _LOGGER.warning("Forecast unavailable, deciding on current weather only: %s", err)
            forecast = []

        state = await self.state_store.async_load()
        today = today_points(forecast, now.date())

        try:
            thresholds = state.thresholds
            verdict = evaluate(current, thresholds)[2]
            needed = verdict is not UmbrellaVerdict.NOT_NEEDED or decide_batch(today, thresholds)
            category, probability, verdict = strongest([current, *today], thresholds)
            title, body = describe_verdict(verdict, probability)
        except Exception as exc:
            raise InternalError(f"decision failed: {exc!r}") from exc

        outcome.verdict = verdict
        outcome.category = category
        outcome.probability = probability
        outcome.title, outcome.body = title, body
        outcome.description = current.description
        outcome.temperature_c = current.temperature_c
        outcome.forecast_points_today = len(today)
        _LOGGER.debug(
            "Umbrella check: verdict=%s category=%s probability=%s forecast_points=%d",
            verdict,
            category,
            probability,
            len(today),
        )

        if not needed:
            outcome.reason = REASON_NOT_NEEDED
            return

        async with self.state_store.lock:
            state = await self.state_store.async_load()
            reason = denial_reason(now, state)
            if reason is not None:
                _LOGGER.debug("Notification suppressed: %s", reason)
                outcome.reason = reason
                return

            message = f"{body} {commute_hint(now.hour)}"
            try:
                await self.notifier.async_send(title, message)
            except NotifyFailed as err:
                outcome.reason, outcome.error = REASON_NOTIFY_FAILED, str(err)
                return

            await self.state_store.async_save(record_sent(state, now))
            outcome.body = message
            outcome.notified = True

    # ------------------------------------------------------------------
    # Published data
    # ------------------------------------------------------------------

    def _snapshot(self) -> dict[str, Any]:
        o = self.runtime.last_outcome
        state = self.state_store.state
        return {
            KEY_TASK_STATE: o.state,
            KEY_RESULT: o.result,
            KEY_VERDICT: o.verdict,
            KEY_CATEGORY: o.category,
            KEY_PROBABILITY: o.probability,
            KEY_TITLE: o.title,
            KEY_BODY: o.body,
            KEY_NOTIFIED: o.notified,
            KEY_REASON: o.reason,
            KEY_ERROR: o.error,
            KEY_DESCRIPTION: o.description,
            KEY_TEMPERATURE_C: o.temperature_c,
            KEY_FORECAST_POINTS_TODAY: o.forecast_points_today,
            KEY_LAST_CHECK: o.finished_at,
            KEY_LAST_SENT_AT_MS: state.last_sent_at_ms,
        }
