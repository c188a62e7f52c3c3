"""Errors raised inside the umbrella check pipeline."""

from __future__ import annotations

from homeassistant.exceptions import HomeAssistantError


class UmbrellaAlertError(HomeAssistantError):
    """Base error for Umbrella Alert."""


class LocationUnavailable(UmbrellaAlertError):
    """No coordinates could be resolved (entity missing, timeout, no fix)."""


class FetchFailed(UmbrellaAlertError):
    """Weather provider call failed: network, HTTP status or payload."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class NotifyFailed(UmbrellaAlertError):
    """The notification service is missing or rejected the call."""


class InternalError(UmbrellaAlertError):
    """Unexpected failure in classification or decision logic."""
