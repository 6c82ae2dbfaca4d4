"""Notification gateways: deliver one-time codes to a phone number.

Delivery is a best-effort side effect of the auth flow: a failed SMS never
rolls back the account or the stored code, because the client can always
ask for a resend.  :func:`deliver_best_effort` is the only place that
swallows :class:`DeliveryUnavailable`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from merchant_auth.config import Settings
from merchant_auth.errors import DeliveryUnavailable

logger = logging.getLogger(__name__)


class NotificationGateway(ABC):
    """Abstract base class for every code delivery channel."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel name used in logs."""

    @abstractmethod
    async def deliver(self, phone_number: str, code: str) -> None:
        """Send *code* to *phone_number*.

        Raises
        ------
        DeliveryUnavailable
            When the channel failed or did not answer in time.
        """


class LoggingNotificationGateway(NotificationGateway):
    """Development channel: writes the code to the log instead of sending it."""

    @property
    def name(self) -> str:
        return "log"

    async def deliver(self, phone_number: str, code: str) -> None:
        logger.info("📱 OTP for %s: %s", phone_number, code)


class HttpSmsGateway(NotificationGateway):
    """Async HTTP client for a JSON SMS provider.

    Posts ``{"to", "from", "message"}`` to *url* with a bearer token.  Any
    transport error, timeout or non-2xx answer is reported as
    :class:`DeliveryUnavailable`.
    """

    def __init__(
        self,
        url: str,
        api_token: str,
        sender_id: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._api_token = api_token
        self._sender_id = sender_id
        self._timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "sms"

    async def deliver(self, phone_number: str, code: str) -> None:
        payload = {
            "to": phone_number,
            "from": self._sender_id,
            "message": f"Your verification code is {code}. It expires shortly.",
        }
        headers = {"Authorization": f"Bearer {self._api_token}"}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(self._url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("SMS request to %s failed: %s", phone_number, exc)
            raise DeliveryUnavailable() from exc

        if resp.is_success:
            logger.info("SMS code sent to %s", phone_number)
            return
        logger.error("SMS provider rejected %s: %s %s", phone_number, resp.status_code, resp.text)
        raise DeliveryUnavailable(f"SMS provider answered {resp.status_code}")


def build_gateway(settings: Settings) -> NotificationGateway:
    """Pick the HTTP gateway when a provider URL is configured."""
    if settings.sms_gateway_url:
        return HttpSmsGateway(
            url=settings.sms_gateway_url,
            api_token=settings.sms_api_token,
            sender_id=settings.sms_sender_id,
            timeout=settings.delivery_timeout_seconds,
        )
    logger.warning("SMS_GATEWAY_URL not set; OTP codes will be logged only")
    return LoggingNotificationGateway()


@dataclass(frozen=True)
class DeliveryReport:
    """Outcome of a best-effort delivery."""

    channel: str
    delivered: bool
    error: str | None = None


async def deliver_best_effort(
    gateway: NotificationGateway, phone_number: str, code: str
) -> DeliveryReport:
    """Await delivery; log and absorb :class:`DeliveryUnavailable`."""
    try:
        await gateway.deliver(phone_number, code)
    except DeliveryUnavailable as exc:
        logger.warning(
            "⚠️ Failed to deliver OTP to %s via %s: %s", phone_number, gateway.name, exc
        )
        return DeliveryReport(channel=gateway.name, delivered=False, error=str(exc))
    return DeliveryReport(channel=gateway.name, delivered=True)
