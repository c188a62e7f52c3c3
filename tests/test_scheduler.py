"""Tests for the periodic task scheduler.

Timers are captured instead of scheduled; each test drives the clock and
fires callbacks by hand.
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from custom_components.umbrella_alert.models import ScheduleTask, TaskResult, TaskState
from custom_components.umbrella_alert.scheduler import PeriodicTaskScheduler

T0 = datetime(2024, 5, 1, 6, 0, tzinfo=timezone.utc)
TIMER_PATH = "custom_components.umbrella_alert.scheduler.async_track_point_in_utc_time"


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now


class FakeTimers:
    """Stand-in for async_track_point_in_utc_time."""

    def __init__(self):
        self.calls = []

    def __call__(self, hass, action, when):
        unsub = MagicMock()
        self.calls.append((action, when, unsub))
        return unsub

    @property
    def last(self):
        return self.calls[-1]


def _scheduler(jitter=0.0):
    hass = MagicMock()
    # Drop coroutines handed to the loop so they are not left un-awaited
    hass.async_create_task = MagicMock(side_effect=lambda coro: coro.close())
    clock = FakeClock()
    sched = PeriodicTaskScheduler(hass, now_fn=clock, jitter_fn=lambda a, b: jitter)
    return sched, clock, hass


def _job(*results):
    calls = []
    queue = list(results)

    async def job():
        calls.append(True)
        return queue.pop(0) if queue else TaskResult.SUCCESS

    job.calls = calls
    return job


TASK = ScheduleTask(name="umbrella_check_work_test")


class TestRegistration:
    def test_first_tick_is_immediate(self):
        sched, _, _ = _scheduler()
        timers = FakeTimers()
        with patch(TIMER_PATH, timers):
            asyncio.run(sched.async_register(TASK, _job()))
        assert timers.last[1] == T0
        assert sched.is_scheduled(TASK.name)
        assert sched.state(TASK.name) is TaskState.IDLE

    def test_deferred_first_tick_ends_first_period(self):
        sched, _, _ = _scheduler(jitter=0.0)
        timers = FakeTimers()
        with patch(TIMER_PATH, timers):
            asyncio.run(sched.async_register(TASK, _job(), run_immediately=False))
        assert timers.last[1] == T0 + timedelta(hours=2)

    def test_flex_pulls_tick_into_last_window(self):
        sched, _, _ = _scheduler(jitter=30 * 60.0)
        timers = FakeTimers()
        with patch(TIMER_PATH, timers):
            asyncio.run(sched.async_register(TASK, _job(), run_immediately=False))
        assert timers.last[1] == T0 + timedelta(hours=1, minutes=30)

    def test_replace_cancels_previous(self):
        sched, _, _ = _scheduler()
        timers = FakeTimers()
        with patch(TIMER_PATH, timers):
            asyncio.run(sched.async_register(TASK, _job()))
            first_unsub = timers.last[2]
            asyncio.run(sched.async_register(TASK, _job()))
        first_unsub.assert_called_once()
        assert len(sched._tasks) == 1

    def test_cancel(self):
        sched, _, _ = _scheduler()
        timers = FakeTimers()
        with patch(TIMER_PATH, timers):
            asyncio.run(sched.async_register(TASK, _job()))
            removed = asyncio.run(sched.async_cancel(TASK.name))
        assert removed is True
        timers.last[2].assert_called_once()
        assert not sched.is_scheduled(TASK.name)
        assert asyncio.run(sched.async_cancel(TASK.name)) is False

    def test_info_unknown_task(self):
        sched, _, _ = _scheduler()
        assert sched.info("nope") == {"scheduled": False, "state": TaskState.IDLE}


class TestTicks:
    def test_tick_reschedules_and_starts_run(self):
        sched, clock, hass = _scheduler()
        timers = FakeTimers()
        with patch(TIMER_PATH, timers):
            asyncio.run(sched.async_register(TASK, _job()))
            on_tick = timers.last[0]
            on_tick(T0)
        assert timers.last[1] == T0 + timedelta(hours=2)
        hass.async_create_task.assert_called_once()

    def test_ticks_do_not_drift(self):
        sched, clock, _ = _scheduler()
        timers = FakeTimers()
        with patch(TIMER_PATH, timers):
            asyncio.run(sched.async_register(TASK, _job()))
            timers.last[0](T0)
            # Second tick fires a few seconds late
            clock.now = T0 + timedelta(hours=2, seconds=5)
            timers.last[0](clock.now)
        assert timers.last[1] == T0 + timedelta(hours=4)

    def test_reanchors_after_long_sleep(self):
        sched, clock, _ = _scheduler()
        timers = FakeTimers()
        with patch(TIMER_PATH, timers):
            asyncio.run(sched.async_register(TASK, _job(), run_immediately=False))
            clock.now = T0 + timedelta(hours=5)
            timers.last[0](clock.now)
        assert timers.last[1] == T0 + timedelta(hours=7)

    def test_tick_after_cancel_is_ignored(self):
        sched, _, hass = _scheduler()
        timers = FakeTimers()
        with patch(TIMER_PATH, timers):
            asyncio.run(sched.async_register(TASK, _job()))
            on_tick = timers.last[0]
            asyncio.run(sched.async_cancel(TASK.name))
            on_tick(T0)
        hass.async_create_task.assert_not_called()


class TestRunResults:
    def _run(self, sched, timers, job, run_immediately=False):
        async def run():
            await sched.async_register(TASK, job, run_immediately=run_immediately)
            return await sched.async_run_now(TASK.name)

        with patch(TIMER_PATH, timers):
            return asyncio.run(run())

    def test_success_returns_to_idle(self):
        sched, _, _ = _scheduler()
        state = self._run(sched, FakeTimers(), _job(TaskResult.SUCCESS))
        assert state is TaskState.IDLE
        assert sched.info(TASK.name)["last_result"] is TaskResult.SUCCESS
        assert sched.info(TASK.name)["runs"] == 1

    def test_failure_schedules_nothing(self):
        sched, _, _ = _scheduler()
        timers = FakeTimers()
        state = self._run(sched, timers, _job(TaskResult.FAILURE))
        # FAILED stays visible until the next tick starts a fresh run
        assert state is TaskState.FAILED
        assert sched.state(TASK.name) is TaskState.FAILED
        assert sched.info(TASK.name)["next_retry"] is None
        assert len(timers.calls) == 1

    def test_exception_becomes_failed(self):
        sched, _, _ = _scheduler()

        async def boom():
            raise RuntimeError("broken")

        assert self._run(sched, FakeTimers(), boom) is TaskState.FAILED

    def test_retry_uses_linear_backoff(self):
        sched, clock, _ = _scheduler()
        timers = FakeTimers()
        state = self._run(sched, timers, _job(TaskResult.RETRY))
        assert state is TaskState.RETRY_WAIT
        assert timers.last[1] == T0 + timedelta(hours=1)
        assert sched.info(TASK.name)["attempt"] == 1
        assert sched.is_scheduled(TASK.name)

    def test_retry_past_next_tick_is_dropped(self):
        """Attempt 2 would be due at T0+2h, which is the next periodic tick."""
        sched, clock, _ = _scheduler()
        timers = FakeTimers()
        job = _job(TaskResult.RETRY, TaskResult.RETRY)

        async def run():
            await sched.async_register(TASK, job, run_immediately=False)
            await sched.async_run_now(TASK.name)
            return await sched.async_run_now(TASK.name)

        with patch(TIMER_PATH, timers):
            state = asyncio.run(run())
        assert state is TaskState.RETRY_WAIT
        assert sched.info(TASK.name)["next_retry"] is None
        # register tick + first retry only
        assert len(timers.calls) == 2
        timers.calls[1][2].assert_called_once()

    def test_new_period_restarts_backoff(self):
        """After a period whose retries ran out, the next tick retries at tick+1h again."""
        sched, clock, _ = _scheduler()
        timers = FakeTimers()
        job = _job(TaskResult.RETRY, TaskResult.RETRY, TaskResult.RETRY)

        async def run():
            await sched.async_register(TASK, job, run_immediately=False)
            await sched.async_run_now(TASK.name)
            await sched.async_run_now(TASK.name)
            assert sched.info(TASK.name)["next_retry"] is None

            tick_at = T0 + timedelta(hours=2)
            clock.now = tick_at
            on_tick = timers.calls[0][0]
            on_tick(tick_at)
            assert sched.info(TASK.name)["attempt"] == 0
            return await sched.async_run_now(TASK.name)

        with patch(TIMER_PATH, timers):
            state = asyncio.run(run())
        assert state is TaskState.RETRY_WAIT
        info = sched.info(TASK.name)
        assert info["attempt"] == 1
        assert info["next_retry"] == T0 + timedelta(hours=3)
        assert info["next_tick"] == T0 + timedelta(hours=4)

    def test_success_resets_attempts(self):
        sched, _, _ = _scheduler()
        job = _job(TaskResult.RETRY, TaskResult.SUCCESS)

        async def run():
            await sched.async_register(TASK, job, run_immediately=False)
            await sched.async_run_now(TASK.name)
            return await sched.async_run_now(TASK.name)

        with patch(TIMER_PATH, FakeTimers()):
            state = asyncio.run(run())
        assert state is TaskState.IDLE
        assert sched.info(TASK.name)["attempt"] == 0

    def test_overlapping_run_skipped(self):
        sched, _, _ = _scheduler()
        job = _job()

        async def run():
            await sched.async_register(TASK, job, run_immediately=False)
            sched._tasks[TASK.name].state = TaskState.RUNNING
            return await sched.async_run_now(TASK.name)

        with patch(TIMER_PATH, FakeTimers()):
            state = asyncio.run(run())
        assert state is TaskState.RUNNING
        assert job.calls == []

    def test_unknown_task_raises(self):
        sched, _, _ = _scheduler()
        with pytest.raises(KeyError):
            asyncio.run(sched.async_run_now("missing"))


class TestCancellation:
    def test_cancelled_job_propagates(self):
        sched, _, _ = _scheduler()

        async def cancelled():
            raise asyncio.CancelledError()

        async def run():
            await sched.async_register(TASK, cancelled, run_immediately=False)
            with pytest.raises(asyncio.CancelledError):
                await sched.async_run_now(TASK.name)
            return sched.state(TASK.name)

        with patch(TIMER_PATH, FakeTimers()):
            assert asyncio.run(run()) is TaskState.IDLE

    def test_cancel_stops_inflight_run(self):
        sched, _, _ = _scheduler()

        async def run():
            started = asyncio.Event()

            async def slow():
                started.set()
                await asyncio.Event().wait()
                return TaskResult.SUCCESS

            await sched.async_register(TASK, slow, run_immediately=False)
            inflight = asyncio.ensure_future(sched.async_run_now(TASK.name))
            await started.wait()
            await sched.async_cancel(TASK.name)
            with pytest.raises(asyncio.CancelledError):
                await inflight
            return inflight.cancelled()

        with patch(TIMER_PATH, FakeTimers()):
            assert asyncio.run(run()) is True
