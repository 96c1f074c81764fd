"""SMS gateway implementations.

A gateway only delivers a ready-made message to a phone number and reports
success. Message wording lives in notification_service. One gateway is
built at startup from settings and injected where needed.
"""

import logging
import re
from typing import Optional, Protocol

import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)


class SmsGateway(Protocol):
    """Anything that can send a text message."""

    async def send_sms(self, phone_number: str, message: str) -> bool:
        ...


def digits_only(phone_number: str) -> str:
    return re.sub(r"\D", "", phone_number or "")


def to_local_format(phone_number: str) -> str:
    """Normalize a PH mobile number to 09XXXXXXXXX where possible."""
    number = digits_only(phone_number)
    if number.startswith("63") and len(number) == 12:
        return "0" + number[2:]
    if len(number) == 10 and number.startswith("9"):
        return "0" + number
    return number


def to_international_format(phone_number: str) -> str:
    """Normalize a PH mobile number to +639XXXXXXXXX."""
    number = to_local_format(phone_number)
    if number.startswith("0"):
        return "+63" + number[1:]
    return "+63" + number


def is_valid_mobile_number(phone_number: str) -> bool:
    return re.fullmatch(r"09\d{9}", to_local_format(phone_number)) is not None


class MockSmsGateway:
    """Logs messages instead of sending them (development)."""

    async def send_sms(self, phone_number: str, message: str) -> bool:
        logger.info(f"[MOCK SMS] To: {phone_number}, Message: {message}")
        return True


class DisabledSmsGateway:
    """Used when SMS is switched off; never sends."""

    async def send_sms(self, phone_number: str, message: str) -> bool:
        logger.debug(f"SMS disabled - not sending message to {phone_number}")
        return False


class _HttpSmsGateway:
    """Shared plumbing for carrier gateways reached over HTTP."""

    name = "http"

    def __init__(self, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, **kwargs)

    async def send_sms(self, phone_number: str, message: str) -> bool:
        try:
            return await self._send(phone_number, message)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"{self.name} SMS error: {e}")
            return False

    async def _send(self, phone_number: str, message: str) -> bool:
        raise NotImplementedError


class SemaphoreSmsGateway(_HttpSmsGateway):
    """Semaphore (semaphore.co) gateway."""

    name = "Semaphore"

    def __init__(self, api_key: str, base_url: str, sender_name: str, **kwargs):
        super().__init__(**kwargs)
        if not api_key:
            raise ValueError("Semaphore API key not configured")
        self.api_key = api_key
        self.base_url = base_url
        self.sender_name = sender_name

    async def _send(self, phone_number: str, message: str) -> bool:
        response = await self._post(
            self.base_url,
            data={
                "apikey": self.api_key,
                "number": to_international_format(phone_number),
                "message": message,
                "sendername": self.sender_name,
            },
        )
        payload = response.json() if response.content else None
        if isinstance(payload, list) and payload and payload[0].get("status") in ("Success", "Queued", "Pending"):
            logger.info(f"SMS sent via Semaphore: {payload[0].get('message_id')}")
            return True
        logger.error(f"Semaphore SMS failed ({response.status_code}): {payload}")
        return False


class IprogSmsGateway(_HttpSmsGateway):
    """IPROG SMS (sms.iprogtech.com) gateway."""

    name = "IPROG"

    def __init__(self, api_token: str, base_url: str, **kwargs):
        super().__init__(**kwargs)
        if not api_token:
            raise ValueError("IPROG SMS API token not configured")
        self.api_token = api_token
        self.base_url = base_url

    async def _send(self, phone_number: str, message: str) -> bool:
        response = await self._post(
            self.base_url,
            json={
                "api_token": self.api_token,
                "phone_number": to_local_format(phone_number),
                "message": message,
                "sms_provider": 0,
            },
        )
        payload = response.json() if response.content else None
        if isinstance(payload, dict) and payload.get("status") == 200:
            logger.info(f"SMS sent via IPROG SMS: {payload.get('message_id')}")
            return True
        logger.error(f"IPROG SMS failed ({response.status_code}): {payload}")
        return False


class TwilioSmsGateway(_HttpSmsGateway):
    """Twilio Messages API gateway."""

    name = "Twilio"

    def __init__(self, account_sid: str, auth_token: str, from_number: str, **kwargs):
        super().__init__(**kwargs)
        if not (account_sid and auth_token and from_number):
            raise ValueError("Twilio account SID, auth token and phone number must be configured")
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number

    async def _send(self, phone_number: str, message: str) -> bool:
        response = await self._post(
            f"https://api.twilio.com/2010-04-01/Accounts/{self.account_sid}/Messages.json",
            data={"To": to_international_format(phone_number), "From": self.from_number, "Body": message},
            auth=(self.account_sid, self.auth_token),
        )
        if response.status_code in (200, 201):
            logger.info(f"SMS sent via Twilio: {response.json().get('sid')}")
            return True
        logger.error(f"Twilio SMS failed ({response.status_code}): {response.text}")
        return False


def build_sms_gateway(settings: Settings) -> SmsGateway:
    """Select the gateway once, from configuration.

    Args:
        settings: Application settings

    Returns:
        Gateway instance for SMS_PROVIDER, or DisabledSmsGateway when
        SMS_ENABLED is false
    """
    if not settings.SMS_ENABLED:
        logger.warning("SMS service is disabled")
        return DisabledSmsGateway()

    provider = settings.SMS_PROVIDER.lower()
    timeout = settings.SMS_TIMEOUT_SECONDS
    if provider == "semaphore":
        logger.info("Using Semaphore SMS provider")
        return SemaphoreSmsGateway(
            api_key=settings.SEMAPHORE_API_KEY,
            base_url=settings.SEMAPHORE_BASE_URL,
            sender_name=settings.SEMAPHORE_SENDER_NAME,
            timeout=timeout,
        )
    if provider == "iprogsms":
        logger.info("Using IPROG SMS provider")
        return IprogSmsGateway(
            api_token=settings.IPROG_SMS_API_TOKEN,
            base_url=settings.IPROG_SMS_BASE_URL,
            timeout=timeout,
        )
    if provider == "twilio":
        logger.info("Using Twilio SMS provider")
        return TwilioSmsGateway(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_PHONE_NUMBER,
            timeout=timeout,
        )
    if provider != "mock":
        logger.warning(f"Unknown SMS provider '{settings.SMS_PROVIDER}', falling back to mock")
    logger.info("Using Mock SMS provider for development")
    return MockSmsGateway()
