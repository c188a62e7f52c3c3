"""Notification delivery for Umbrella Alert."""

from __future__ import annotations

import asyncio
import logging

import voluptuous as vol
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError

from .const import NOTIFY_TIMEOUT_S
from .exceptions import NotifyFailed

_LOGGER = logging.getLogger(__name__)

PERSISTENT_DOMAIN = "persistent_notification"
NOTIFY_DOMAIN = "notify"


class Notifier:
    """Send a title/body pair through a notify service.

    ``notify_service`` is a service name in the ``notify`` domain
    (``mobile_app_pixel`` or ``notify.mobile_app_pixel``). Without one, a
    persistent notification with a fixed id is created, so a newer alert
    replaces the previous one. Rate limiting happens upstream.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        notification_id: str,
        notify_service: str | None = None,
        *,
        timeout: float = NOTIFY_TIMEOUT_S,
    ) -> None:
        self.hass = hass
        self.notification_id = notification_id
        self.timeout = timeout
        self.notify_service = _strip_domain(notify_service) if notify_service else None

    async def async_send(self, title: str, body: str) -> None:
        if self.notify_service:
            domain, service = NOTIFY_DOMAIN, self.notify_service
            data = {"title": title, "message": body, "data": {"tag": self.notification_id}}
        else:
            domain, service = PERSISTENT_DOMAIN, "create"
            data = {"title": title, "message": body, "notification_id": self.notification_id}

        if not self.hass.services.has_service(domain, service):
            _LOGGER.warning("Notification service %s.%s is not available", domain, service)
            raise NotifyFailed(f"service {domain}.{service} not found")

        try:
            async with asyncio.timeout(self.timeout):
                await self.hass.services.async_call(domain, service, data, blocking=True)
        except TimeoutError as exc:
            _LOGGER.error("Notification via %s.%s timed out after %ss", domain, service, self.timeout)
            raise NotifyFailed(f"{domain}.{service} timed out") from exc
        except (HomeAssistantError, vol.Invalid) as exc:
            _LOGGER.error("Notification via %s.%s rejected: %s", domain, service, exc)
            raise NotifyFailed(str(exc)) from exc
        _LOGGER.info("Umbrella notification sent via %s.%s: %s", domain, service, title)


def _strip_domain(service: str) -> str:
    service = service.strip()
    prefix = f"{NOTIFY_DOMAIN}."
    return service[len(prefix):] if service.startswith(prefix) else service
