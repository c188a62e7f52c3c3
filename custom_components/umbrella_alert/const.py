"""Constants for Umbrella Alert."""

DOMAIN = "umbrella_alert"

PLATFORMS = ["sensor", "binary_sensor", "switch", "number"]

CONFIG_VERSION = 1

# ---------------------------------------------------------------------------
# Configuration keys
# ---------------------------------------------------------------------------
CONF_NAME = "name"
CONF_API_KEY = "api_key"
CONF_LANGUAGE = "language"
CONF_PROFILE = "profile"  # umbrella | briefing
CONF_LOCATION_ENTITY = "location_entity"
CONF_NOTIFY_SERVICE = "notify_service"
CONF_INTERVAL_HOURS = "interval_hours"
CONF_FLEX_MINUTES = "flex_minutes"

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_NAME = "Umbrella Alert"
DEFAULT_LANGUAGE = "en"
DEFAULT_INTERVAL_HOURS = 2
DEFAULT_FLEX_MINUTES = 30
DEFAULT_BACKOFF_HOURS = 1

PROFILE_UMBRELLA = "umbrella"
PROFILE_BRIEFING = "briefing"
PROFILE_OPTIONS = [PROFILE_UMBRELLA, PROFILE_BRIEFING]
DEFAULT_PROFILE = PROFILE_UMBRELLA

# (window_start_hour, window_end_hour) per profile
PROFILE_WINDOWS: dict[str, tuple[int, int]] = {
    PROFILE_UMBRELLA: (6, 19),
    PROFILE_BRIEFING: (7, 18),
}

LANGUAGE_OPTIONS = ["en", "de", "es", "fr", "it", "ja", "kr", "nl", "pt", "zh_cn"]

DEFAULT_ENABLED = True
DEFAULT_WINDOW_START_HOUR = 6
DEFAULT_WINDOW_END_HOUR = 19
DEFAULT_RAIN_THRESHOLD_PCT = 30
DEFAULT_HIGH_THRESHOLD_PCT = 60

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------
MIN_NOTIFICATION_SPACING_MS = 3_600_000  # 1 hour
LOCATION_TIMEOUT_S = 10.0
FETCH_TIMEOUT_S = 15.0
NOTIFY_TIMEOUT_S = 30.0

TASK_NAME_PREFIX = "umbrella_check_work"

# ---------------------------------------------------------------------------
# Weather provider (OpenWeatherMap 2.5)
# ---------------------------------------------------------------------------
OWM_BASE_URL = "https://api.openweathermap.org/data/2.5"
OWM_UNITS = "metric"
DEFAULT_CONDITION_CODE = 800

# ---------------------------------------------------------------------------
# Rain-probability calibration table (no forecast pop available)
# ---------------------------------------------------------------------------
PROB_PRECIPITATION_PRESENT = 90
PROB_THUNDERSTORM = 85
PROB_DRIZZLE = 70
PROB_RAIN = 80
PROB_HUMID_HIGH = 40
PROB_HUMID_MEDIUM = 20
PROB_DRY = 5
HUMIDITY_HIGH_PCT = 80
HUMIDITY_MEDIUM_PCT = 60

# ---------------------------------------------------------------------------
# Message copy tiers
# ---------------------------------------------------------------------------
TIER_HIGH_ABOVE_PCT = 80
TIER_MEDIUM_FROM_PCT = 60
TIER_CLEAR_BELOW_PCT = 10
TIER_FAIR_BELOW_PCT = 30

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
STORAGE_VERSION = 1
STORAGE_KEY_PREFIX = DOMAIN

KEY_LAST_SENT_AT_MS = "last_sent_at_ms"
KEY_ENABLED = "enabled"
KEY_WINDOW_START_HOUR = "window_start_hour"
KEY_WINDOW_END_HOUR = "window_end_hour"
KEY_RAIN_THRESHOLD_PCT = "rain_threshold_pct"

# ---------------------------------------------------------------------------
# Coordinator data keys
# ---------------------------------------------------------------------------
KEY_TASK_STATE = "task_state"
KEY_RESULT = "result"
KEY_VERDICT = "verdict"
KEY_CATEGORY = "category"
KEY_PROBABILITY = "probability"
KEY_TITLE = "title"
KEY_BODY = "body"
KEY_NOTIFIED = "notified"
KEY_REASON = "reason"
KEY_ERROR = "error"
KEY_LAST_CHECK = "last_check"
KEY_DESCRIPTION = "description"
KEY_TEMPERATURE_C = "temperature_c"
KEY_FORECAST_POINTS_TODAY = "forecast_points_today"

# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------
SERVICE_CHECK_NOW = "check_now"
SERVICE_RESET_LAST_SENT = "reset_last_sent"
ATTR_ENTRY_ID = "entry_id"

NOTIFICATION_ID_PREFIX = "umbrella_alert"

# Entity object ids fall back to this when the entry title slugifies to nothing
DEFAULT_PREFIX = "umbrella_alert"
