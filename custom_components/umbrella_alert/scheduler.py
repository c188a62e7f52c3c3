"""Periodic task scheduling for Umbrella Alert.

A small periodic job scheduler on top of Home Assistant's timer
helpers:

  - tasks are keyed by a unique name; registering an existing name
    replaces it (pending timers and any in-flight run are cancelled)
  - each period fires somewhere inside the last ``flex`` of the interval,
    anchored to the registration time so ticks do not drift
  - a job returning RETRY is re-run after a linear backoff
    (base_delay * attempt, attempt counted per period); retries that would
    land at or after the next periodic tick are dropped, the tick
    re-triggers instead
  - runs of the same task never overlap

State per task: IDLE -> RUNNING -> SUCCESS (back to IDLE) | RETRY_WAIT |
FAILED. FAILED and RETRY_WAIT stay visible until the next run starts.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from homeassistant.core import CALLBACK_TYPE, HomeAssistant, callback
from homeassistant.helpers.event import async_track_point_in_utc_time
from homeassistant.util import dt as dt_util

from .models import ScheduleTask, TaskResult, TaskState

_LOGGER = logging.getLogger(__name__)

Job = Callable[[], Awaitable[TaskResult]]


@dataclass
class _Registration:
    task: ScheduleTask
    job: Job
    period_start: datetime
    state: TaskState = TaskState.IDLE
    attempt: int = 0
    next_tick: datetime | None = None
    next_retry: datetime | None = None
    unsub_tick: CALLBACK_TYPE | None = None
    unsub_retry: CALLBACK_TYPE | None = None
    running: asyncio.Task | None = None
    last_result: TaskResult | None = None
    last_run: datetime | None = None
    runs: int = 0


class PeriodicTaskScheduler:
    """Registry of uniquely named periodic jobs."""

    def __init__(
        self,
        hass: HomeAssistant,
        *,
        now_fn: Callable[[], datetime] = dt_util.utcnow,
        jitter_fn: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.hass = hass
        self._now = now_fn
        self._jitter = jitter_fn
        self._tasks: dict[str, _Registration] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def async_register(self, task: ScheduleTask, job: Job, *, run_immediately: bool = True) -> None:
        """Register ``task`` or replace an existing task of the same name."""
        if task.name in self._tasks:
            _LOGGER.debug("Replacing scheduled task %s", task.name)
            await self.async_cancel(task.name)

        now = self._now()
        # The first tick closes a virtual period that ended now
        reg = _Registration(task=task, job=job, period_start=now - task.interval)
        self._tasks[task.name] = reg
        if run_immediately:
            self._schedule_tick(reg, now)
        else:
            reg.period_start = now
            self._schedule_tick(reg, self._fire_time(reg))
        _LOGGER.info(
            "Scheduled %s every %sh (flex %smin)", task.name, task.interval_hours, task.flex_minutes
        )

    async def async_cancel(self, name: str) -> bool:
        """Remove all pending and running work for ``name``."""
        reg = self._tasks.pop(name, None)
        if reg is None:
            return False
        self._clear_timers(reg)
        running = reg.running
        if running is not None and running is not asyncio.current_task() and not running.done():
            running.cancel()
        reg.state = TaskState.IDLE
        _LOGGER.info("Cancelled scheduled task %s", name)
        return True

    async def async_shutdown(self) -> None:
        for name in list(self._tasks):
            await self.async_cancel(name)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_scheduled(self, name: str) -> bool:
        """True while the task is enqueued (tick or retry pending) or running."""
        reg = self._tasks.get(name)
        if reg is None:
            return False
        return (
            reg.unsub_tick is not None
            or reg.unsub_retry is not None
            or reg.state is TaskState.RUNNING
        )

    def state(self, name: str) -> TaskState:
        reg = self._tasks.get(name)
        return reg.state if reg else TaskState.IDLE

    def info(self, name: str) -> dict[str, Any]:
        """Snapshot for diagnostics and sensors."""
        reg = self._tasks.get(name)
        if reg is None:
            return {"scheduled": False, "state": TaskState.IDLE}
        return {
            "scheduled": self.is_scheduled(name),
            "state": reg.state,
            "attempt": reg.attempt,
            "next_tick": reg.next_tick,
            "next_retry": reg.next_retry,
            "last_result": reg.last_result,
            "last_run": reg.last_run,
            "runs": reg.runs,
            "interval_hours": reg.task.interval_hours,
            "flex_minutes": reg.task.flex_minutes,
            "requires_network": reg.task.requires_network,
        }

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def async_run_now(self, name: str) -> TaskState:
        """Run the job for ``name`` once and apply the result."""
        reg = self._tasks.get(name)
        if reg is None:
            raise KeyError(name)
        if reg.state is TaskState.RUNNING:
            _LOGGER.debug("Task %s already running, skipping overlapping run", name)
            return reg.state

        if reg.unsub_retry is not None:
            reg.unsub_retry()
            reg.unsub_retry = None
            reg.next_retry = None

        reg.state = TaskState.RUNNING
        reg.running = asyncio.current_task()
        reg.last_run = self._now()
        reg.runs += 1
        try:
            result = await reg.job()
        except asyncio.CancelledError:
            reg.state = TaskState.IDLE
            raise
        except Exception:
            _LOGGER.exception("Task %s raised unexpectedly", name)
            result = TaskResult.FAILURE
        finally:
            reg.running = None

        if self._tasks.get(name) is not reg:
            # Cancelled or replaced while the job was finishing
            return TaskState.IDLE

        reg.last_result = result
        if result is TaskResult.SUCCESS:
            reg.attempt = 0
            reg.state = TaskState.IDLE
        elif result is TaskResult.RETRY:
            reg.state = TaskState.RETRY_WAIT
            self._schedule_retry(reg)
        else:
            reg.state = TaskState.FAILED
        return reg.state

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _fire_time(self, reg: _Registration) -> datetime:
        flex_s = reg.task.flex.total_seconds()
        jitter = self._jitter(0.0, flex_s) if flex_s > 0 else 0.0
        return reg.period_start + reg.task.interval - timedelta(seconds=jitter)

    def _schedule_tick(self, reg: _Registration, fire_at: datetime) -> None:
        name = reg.task.name

        @callback
        def _on_tick(_now: datetime) -> None:
            reg.unsub_tick = None
            if self._tasks.get(name) is not reg:
                return
            now = self._now()
            reg.period_start += reg.task.interval
            if reg.period_start + reg.task.interval <= now:
                # Host was asleep for more than a period; re-anchor
                reg.period_start = now
            self._schedule_tick(reg, max(self._fire_time(reg), now))
            # Each period gets its own backoff sequence
            reg.attempt = 0
            self._start_run(reg)

        reg.next_tick = fire_at
        reg.unsub_tick = async_track_point_in_utc_time(self.hass, _on_tick, fire_at)

    def _schedule_retry(self, reg: _Registration) -> None:
        name = reg.task.name
        reg.attempt += 1
        due = self._now() + reg.task.backoff.delay_for(reg.attempt)
        if reg.next_tick is not None and due >= reg.next_tick:
            _LOGGER.debug(
                "Retry %d for %s would land after the next tick at %s, waiting for the tick",
                reg.attempt,
                name,
                reg.next_tick,
            )
            return

        @callback
        def _on_retry(_now: datetime) -> None:
            reg.unsub_retry = None
            reg.next_retry = None
            if self._tasks.get(name) is reg:
                self._start_run(reg)

        _LOGGER.warning("Task %s will retry (attempt %d) at %s", name, reg.attempt, due)
        reg.next_retry = due
        reg.unsub_retry = async_track_point_in_utc_time(self.hass, _on_retry, due)

    @callback
    def _start_run(self, reg: _Registration) -> None:
        if reg.state is TaskState.RUNNING:
            _LOGGER.debug("Task %s still running at tick, skipping", reg.task.name)
            return
        self.hass.async_create_task(self.async_run_now(reg.task.name))

    @staticmethod
    def _clear_timers(reg: _Registration) -> None:
        for attr in ("unsub_tick", "unsub_retry"):
            unsub = getattr(reg, attr)
            if unsub is not None:
                unsub()
                setattr(reg, attr, None)
        reg.next_tick = None
        reg.next_retry = None
