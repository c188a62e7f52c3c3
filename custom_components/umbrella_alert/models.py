"""Domain types for Umbrella Alert.

Readings and forecast points are produced fresh every check and never
mutated. NotificationState is the only persisted record; it is replaced
wholesale (dataclasses.replace) rather than edited in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum

from .const import (
    DEFAULT_BACKOFF_HOURS,
    DEFAULT_ENABLED,
    DEFAULT_FLEX_MINUTES,
    DEFAULT_HIGH_THRESHOLD_PCT,
    DEFAULT_INTERVAL_HOURS,
    DEFAULT_RAIN_THRESHOLD_PCT,
    DEFAULT_WINDOW_END_HOUR,
    DEFAULT_WINDOW_START_HOUR,
    TASK_NAME_PREFIX,
)


class WeatherCategory(StrEnum):
    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    STORMY = "stormy"
    SNOWY = "snowy"


class UmbrellaVerdict(StrEnum):
    NEEDED = "needed"
    MAYBE = "maybe"
    NOT_NEEDED = "not_needed"


class MessageTier(StrEnum):
    """Copy tier used to pick notification wording."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    CLEAR = "clear"
    FAIR = "fair"
    OPTIONAL = "optional"


class TaskState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    RETRY_WAIT = "retry_wait"
    FAILED = "failed"


class TaskResult(StrEnum):
    """What a single job run asks the scheduler to do next."""

    SUCCESS = "success"
    RETRY = "retry"
    FAILURE = "failure"


class BackoffType(StrEnum):
    LINEAR = "linear"


# ---------------------------------------------------------------------------
# Weather
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WeatherReading:
    """Normalized observation in metric units (Celsius, m/s, %)."""

    latitude: float
    longitude: float
    temperature_c: float
    humidity_pct: float
    wind_speed_mps: float
    condition_code: int
    has_precipitation: bool
    captured_at_ms: int
    description: str = ""
    pop: float | None = None


@dataclass(frozen=True)
class ForecastPoint(WeatherReading):
    """One 3-hour forecast slot; pop is always provided by the API."""

    forecast_date: str = ""
    temp_min_c: float | None = None
    temp_max_c: float | None = None


@dataclass(frozen=True)
class Thresholds:
    low_pct: int = DEFAULT_RAIN_THRESHOLD_PCT
    high_pct: int = DEFAULT_HIGH_THRESHOLD_PCT


# ---------------------------------------------------------------------------
# Persisted notification state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NotificationState:
    last_sent_at_ms: int = 0
    enabled: bool = DEFAULT_ENABLED
    window_start_hour: int = DEFAULT_WINDOW_START_HOUR
    window_end_hour: int = DEFAULT_WINDOW_END_HOUR
    rain_threshold_pct: int = DEFAULT_RAIN_THRESHOLD_PCT

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(low_pct=self.rain_threshold_pct)


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackoffPolicy:
    type: BackoffType = BackoffType.LINEAR
    base_delay: timedelta = timedelta(hours=DEFAULT_BACKOFF_HOURS)

    def delay_for(self, attempt: int) -> timedelta:
        """Delay before retry number ``attempt`` (1-based)."""
        return self.base_delay * max(1, attempt)


@dataclass(frozen=True)
class ScheduleTask:
    name: str = TASK_NAME_PREFIX
    interval_hours: float = DEFAULT_INTERVAL_HOURS
    flex_minutes: float = DEFAULT_FLEX_MINUTES
    requires_network: bool = True
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)

    @property
    def interval(self) -> timedelta:
        return timedelta(hours=self.interval_hours)

    @property
    def flex(self) -> timedelta:
        # Flex can never exceed the period itself
        return min(timedelta(minutes=self.flex_minutes), self.interval)


# ---------------------------------------------------------------------------
# Pipeline audit record
# ---------------------------------------------------------------------------


@dataclass
class CheckOutcome:
    """What happened during one pipeline cycle."""

    state: TaskState = TaskState.IDLE
    result: TaskResult | None = None
    verdict: UmbrellaVerdict | None = None
    category: WeatherCategory | None = None
    probability: int | None = None
    title: str | None = None
    body: str | None = None
    notified: bool = False
    reason: str | None = None
    error: str | None = None
    description: str | None = None
    temperature_c: float | None = None
    forecast_points_today: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None
