"""Config flow for Umbrella Alert.

Setup wizard:
  Step 1 (user)     – name, OpenWeatherMap API key, language, profile
  Step 2 (location) – location entity and notify service (both optional)

The API key is checked with one current-weather request at the Home
Assistant home location before the entry is created. The Options flow
covers the check schedule and everything from step 2.
"""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.helpers import selector
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .const import (
    CONF_API_KEY,
    CONF_FLEX_MINUTES,
    CONF_INTERVAL_HOURS,
    CONF_LANGUAGE,
    CONF_LOCATION_ENTITY,
    CONF_NAME,
    CONF_NOTIFY_SERVICE,
    CONF_PROFILE,
    CONFIG_VERSION,
    DEFAULT_FLEX_MINUTES,
    DEFAULT_INTERVAL_HOURS,
    DEFAULT_LANGUAGE,
    DEFAULT_NAME,
    DEFAULT_PROFILE,
    DOMAIN,
    LANGUAGE_OPTIONS,
    PROFILE_OPTIONS,
)
from .exceptions import FetchFailed
from .weather_client import OpenWeatherClient

_LOGGER = logging.getLogger(__name__)

LOCATION_DOMAINS = ["person", "device_tracker", "zone"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _clean_optional(value: Any) -> str | None:
    text = str(value or "").strip()
    return text or None


def _location_schema(defaults: dict[str, Any]) -> dict:
    entity_default = defaults.get(CONF_LOCATION_ENTITY)
    notify_default = defaults.get(CONF_NOTIFY_SERVICE) or ""
    entity_key = (
        vol.Optional(CONF_LOCATION_ENTITY, default=entity_default)
        if entity_default
        else vol.Optional(CONF_LOCATION_ENTITY)
    )
    return {
        entity_key: selector.EntitySelector(selector.EntitySelectorConfig(domain=LOCATION_DOMAINS)),
        vol.Optional(CONF_NOTIFY_SERVICE, default=notify_default): selector.TextSelector(),
    }


# ---------------------------------------------------------------------------
# Config Flow
# ---------------------------------------------------------------------------


class UmbrellaAlertConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    VERSION = CONFIG_VERSION

    @staticmethod
    def async_get_options_flow(config_entry: config_entries.ConfigEntry):
        return UmbrellaAlertOptionsFlowHandler()

    def __init__(self):
        self._data: dict[str, Any] = {}

    async def _async_validate_api_key(self, api_key: str, language: str) -> str | None:
        """Return an error key, or None when the key works."""
        client = OpenWeatherClient(async_get_clientsession(self.hass), api_key, language=language)
        try:
            await client.async_fetch_current(float(self.hass.config.latitude), float(self.hass.config.longitude))
        except FetchFailed as err:
            if err.status == 401:
                return "invalid_auth"
            _LOGGER.warning("API key check failed: %s", err)
            return "cannot_connect"
        return None

    # ------------------------------------------------------------------
    # Step 1: Name, API key, language, profile
    # ------------------------------------------------------------------
    async def async_step_user(self, user_input: dict[str, Any] | None = None):
        errors: dict[str, str] = {}
        if user_input is not None:
            api_key = str(user_input[CONF_API_KEY]).strip()
            language = str(user_input.get(CONF_LANGUAGE) or DEFAULT_LANGUAGE)
            error = await self._async_validate_api_key(api_key, language)
            if error is None:
                self._data[CONF_NAME] = str(user_input.get(CONF_NAME) or DEFAULT_NAME)
                self._data[CONF_API_KEY] = api_key
                self._data[CONF_LANGUAGE] = language
                self._data[CONF_PROFILE] = str(user_input.get(CONF_PROFILE) or DEFAULT_PROFILE)
                return await self.async_step_location()
            errors["base"] = error

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_NAME, default=DEFAULT_NAME): str,
                    vol.Required(CONF_API_KEY): str,
                    vol.Optional(CONF_LANGUAGE, default=DEFAULT_LANGUAGE): selector.SelectSelector(
                        selector.SelectSelectorConfig(options=LANGUAGE_OPTIONS, mode="dropdown")
                    ),
                    vol.Optional(CONF_PROFILE, default=DEFAULT_PROFILE): selector.SelectSelector(
                        selector.SelectSelectorConfig(
                            options=PROFILE_OPTIONS, mode="list", translation_key=CONF_PROFILE
                        )
                    ),
                }
            ),
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Step 2: Location entity & notify service
    # ------------------------------------------------------------------
    async def async_step_location(self, user_input: dict[str, Any] | None = None):
        if user_input is not None:
            self._data[CONF_LOCATION_ENTITY] = _clean_optional(user_input.get(CONF_LOCATION_ENTITY))
            self._data[CONF_NOTIFY_SERVICE] = _clean_optional(user_input.get(CONF_NOTIFY_SERVICE))
            title = self._data.get(CONF_NAME, DEFAULT_NAME)
            return self.async_create_entry(title=title, data=self._data)

        return self.async_show_form(
            step_id="location",
            data_schema=vol.Schema(_location_schema({})),
        )


# ---------------------------------------------------------------------------
# Options Flow (Configure button post-install)
# ---------------------------------------------------------------------------


class UmbrellaAlertOptionsFlowHandler(config_entries.OptionsFlow):
    """Options flow handler. self.config_entry is provided by parent class."""

    def _get(self, key: str, default: Any) -> Any:
        return self.config_entry.options.get(key, self.config_entry.data.get(key, default))

    async def async_step_init(self, user_input: dict[str, Any] | None = None):
        if user_input is not None:
            out = dict(user_input)
            out[CONF_INTERVAL_HOURS] = int(out.get(CONF_INTERVAL_HOURS, DEFAULT_INTERVAL_HOURS))
            out[CONF_FLEX_MINUTES] = int(out.get(CONF_FLEX_MINUTES, DEFAULT_FLEX_MINUTES))
            out[CONF_LOCATION_ENTITY] = _clean_optional(out.get(CONF_LOCATION_ENTITY))
            out[CONF_NOTIFY_SERVICE] = _clean_optional(out.get(CONF_NOTIFY_SERVICE))
            return self.async_create_entry(title="", data=out)

        return self.async_show_form(step_id="init", data_schema=self._build_options_schema())

    def _build_options_schema(self) -> vol.Schema:
        schema = {
            vol.Optional(
                CONF_INTERVAL_HOURS, default=int(self._get(CONF_INTERVAL_HOURS, DEFAULT_INTERVAL_HOURS))
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(min=1, max=24, step=1, mode="box", unit_of_measurement="h")
            ),
            vol.Optional(
                CONF_FLEX_MINUTES, default=int(self._get(CONF_FLEX_MINUTES, DEFAULT_FLEX_MINUTES))
            ): selector.NumberSelector(
                selector.NumberSelectorConfig(min=0, max=120, step=5, mode="box", unit_of_measurement="min")
            ),
            vol.Optional(
                CONF_LANGUAGE, default=str(self._get(CONF_LANGUAGE, DEFAULT_LANGUAGE))
            ): selector.SelectSelector(selector.SelectSelectorConfig(options=LANGUAGE_OPTIONS, mode="dropdown")),
        }
        schema.update(
            _location_schema(
                {
                    CONF_LOCATION_ENTITY: self._get(CONF_LOCATION_ENTITY, None),
                    CONF_NOTIFY_SERVICE: self._get(CONF_NOTIFY_SERVICE, None),
                }
            )
        )
        return vol.Schema(schema)
