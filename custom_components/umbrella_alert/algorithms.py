"""Weather classification and umbrella decision logic for Umbrella Alert.

Everything here is a pure function over explicit inputs so it can be
tested without a Home Assistant runtime.

Condition codes follow the OpenWeatherMap grouping:
  2xx thunderstorm, 3xx drizzle, 5xx rain, 6xx snow, 7xx atmosphere,
  800 clear, 80x clouds.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import date, timedelta

from .const import (
    HUMIDITY_HIGH_PCT,
    HUMIDITY_MEDIUM_PCT,
    PROB_DRIZZLE,
    PROB_DRY,
    PROB_HUMID_HIGH,
    PROB_HUMID_MEDIUM,
    PROB_PRECIPITATION_PRESENT,
    PROB_RAIN,
    PROB_THUNDERSTORM,
    TIER_CLEAR_BELOW_PCT,
    TIER_FAIR_BELOW_PCT,
    TIER_HIGH_ABOVE_PCT,
    TIER_MEDIUM_FROM_PCT,
)
from .models import (
    ForecastPoint,
    MessageTier,
    Thresholds,
    UmbrellaVerdict,
    WeatherCategory,
    WeatherReading,
)

# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

_CATEGORY_RANGES: tuple[tuple[int, int, WeatherCategory], ...] = (
    (200, 299, WeatherCategory.STORMY),
    (300, 399, WeatherCategory.RAINY),
    (500, 599, WeatherCategory.RAINY),
    (600, 699, WeatherCategory.SNOWY),
    (800, 800, WeatherCategory.SUNNY),
    (801, 899, WeatherCategory.CLOUDY),
)

_WET_CATEGORIES = frozenset({WeatherCategory.RAINY, WeatherCategory.STORMY})


def classify(condition_code: int) -> WeatherCategory:
    """Map a provider condition code to a weather category.

    Ranges are inclusive; anything unmatched (7xx haze/fog, unknown codes)
    is treated as cloudy.
    """
    for low, high, category in _CATEGORY_RANGES:
        if low <= condition_code <= high:
            return category
    return WeatherCategory.CLOUDY


def pop_to_percent(pop: float) -> int:
    """Convert a 0..1 probability of precipitation to a rounded percentage.

    Rounds half up (0.625 -> 63) and clamps to 0..100.
    """
    pct = math.floor(float(pop) * 100.0 + 0.5)
    return max(0, min(100, int(pct)))


def estimate_probability(reading: WeatherReading) -> int:
    """Rain probability in percent for a reading.

    Forecast points carry an explicit pop which wins. Current-weather
    readings fall back to a fixed calibration table keyed on precipitation
    presence, condition group and humidity.
    """
    if reading.pop is not None:
        return pop_to_percent(reading.pop)

    code = reading.condition_code
    if reading.has_precipitation:
        return PROB_PRECIPITATION_PRESENT
    if 200 <= code <= 299:
        return PROB_THUNDERSTORM
    if 300 <= code <= 399:
        return PROB_DRIZZLE
    if 500 <= code <= 599:
        return PROB_RAIN
    # 400-499 has no table entry and falls through to humidity like 7xx/8xx
    if reading.humidity_pct > HUMIDITY_HIGH_PCT:
        return PROB_HUMID_HIGH
    if reading.humidity_pct > HUMIDITY_MEDIUM_PCT:
        return PROB_HUMID_MEDIUM
    return PROB_DRY


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------


def decide(
    category: WeatherCategory,
    probability: int,
    thresholds: Thresholds | None = None,
) -> UmbrellaVerdict:
    """Umbrella verdict for a category and rain probability.

    Rain or thunderstorm is always NEEDED. Otherwise the probability is
    compared against the high (NEEDED) and low (MAYBE) thresholds.
    """
    t = thresholds or Thresholds()
    if category in _WET_CATEGORIES:
        return UmbrellaVerdict.NEEDED
    if probability >= t.high_pct:
        return UmbrellaVerdict.NEEDED
    if probability >= t.low_pct:
        return UmbrellaVerdict.MAYBE
    return UmbrellaVerdict.NOT_NEEDED


def evaluate(
    reading: WeatherReading, thresholds: Thresholds | None = None
) -> tuple[WeatherCategory, int, UmbrellaVerdict]:
    """Classify a reading and decide on it in one go.

    Returns (category, probability, verdict).
    """
    category = classify(reading.condition_code)
    probability = estimate_probability(reading)
    return category, probability, decide(category, probability, thresholds)


def decide_batch(points: Iterable[WeatherReading], thresholds: Thresholds | None = None) -> bool:
    """True when any point in the set calls for at least a MAYBE."""
    return any(evaluate(p, thresholds)[2] is not UmbrellaVerdict.NOT_NEEDED for p in points)


_VERDICT_RANK = {
    UmbrellaVerdict.NOT_NEEDED: 0,
    UmbrellaVerdict.MAYBE: 1,
    UmbrellaVerdict.NEEDED: 2,
}


def strongest(
    readings: Iterable[WeatherReading], thresholds: Thresholds | None = None
) -> tuple[WeatherCategory, int, UmbrellaVerdict] | None:
    """Most severe (category, probability, verdict) among the readings.

    Severity orders by verdict first, then probability. Returns None for
    an empty input.
    """
    best = None
    best_key = None
    for reading in readings:
        result = evaluate(reading, thresholds)
        key = (_VERDICT_RANK[result[2]], result[1])
        if best_key is None or key > best_key:
            best, best_key = result, key
    return best


# ---------------------------------------------------------------------------
# Forecast day bucketing
# ---------------------------------------------------------------------------


def points_for_date(points: Iterable[ForecastPoint], day: date) -> list[ForecastPoint]:
    wanted = day.isoformat()
    return [p for p in points if p.forecast_date == wanted]


def today_points(points: Iterable[ForecastPoint], today: date) -> list[ForecastPoint]:
    return points_for_date(points, today)


def tomorrow_points(points: Iterable[ForecastPoint], today: date) -> list[ForecastPoint]:
    return points_for_date(points, today + timedelta(days=1))


# ---------------------------------------------------------------------------
# Message copy
# ---------------------------------------------------------------------------

MESSAGE_COPY: dict[MessageTier, tuple[str, str]] = {
    MessageTier.HIGH: (
        "☔ Take your umbrella!",
        "Rain is very likely today. Don't leave without an umbrella.",
    ),
    MessageTier.MEDIUM: (
        "\U0001f327️ Rain expected",
        "It may well rain today. Keeping an umbrella handy is a good idea.",
    ),
    MessageTier.LOW: (
        "☁️ Clouds building up",
        "There is some chance of rain. Pack an umbrella just in case.",
    ),
    MessageTier.CLEAR: (
        "☀️ Clear skies",
        "Clear weather ahead. No umbrella needed today.",
    ),
    MessageTier.FAIR: (
        "\U0001f60a Fair weather",
        "Pleasant weather today. You can leave the umbrella at home.",
    ),
    MessageTier.OPTIONAL: (
        "\U0001f324️ Mostly fine",
        "Weather looks okay. An umbrella is optional today.",
    ),
}


def message_tier(verdict: UmbrellaVerdict, probability: int) -> MessageTier:
    """Pick the copy tier for a verdict.

    NEEDED: above 80 is HIGH; 60 to 80 inclusive is MEDIUM; below 60
    (only possible when the category forced NEEDED) falls to LOW.
    MAYBE is always LOW. NOT_NEEDED splits at 10 and 30.
    """
    if verdict is UmbrellaVerdict.NEEDED:
        if probability > TIER_HIGH_ABOVE_PCT:
            return MessageTier.HIGH
        if probability >= TIER_MEDIUM_FROM_PCT:
            return MessageTier.MEDIUM
        return MessageTier.LOW
    if verdict is UmbrellaVerdict.MAYBE:
        return MessageTier.LOW
    if probability < TIER_CLEAR_BELOW_PCT:
        return MessageTier.CLEAR
    if probability < TIER_FAIR_BELOW_PCT:
        return MessageTier.FAIR
    return MessageTier.OPTIONAL


def describe_verdict(verdict: UmbrellaVerdict, probability: int) -> tuple[str, str]:
    """(title, body) for a verdict; wording varies by tier."""
    return MESSAGE_COPY[message_tier(verdict, probability)]


def commute_hint(hour: int) -> str:
    """Time-of-day suffix for notification bodies."""
    if 6 <= hour <= 8:
        return "Grab it before your morning commute."
    if 9 <= hour <= 11:
        return "Have it ready if you head out later this morning."
    if 12 <= hour <= 17:
        return "Rain may arrive this afternoon."
    if 18 <= hour <= 20:
        return "Your trip home may be wet."
    return "Rain is on the way."
