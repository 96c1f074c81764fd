"""Test SMS message formatting, dispatch and gateways."""

import asyncio
import json
from datetime import datetime

import httpx
import pytest

from app.core.config import Settings
from app.models import Citizen, DocumentRequest, DocumentType, RequestStatus
from app.services.notification_service import (
    NotificationDispatcher,
    format_request_approved_message,
    format_request_denied_message,
    format_request_submitted_message,
)
from app.services.sms_gateway import (
    DisabledSmsGateway,
    IprogSmsGateway,
    MockSmsGateway,
    SemaphoreSmsGateway,
    build_sms_gateway,
    is_valid_mobile_number,
    to_international_format,
    to_local_format,
)


class FailingGateway:
    async def send_sms(self, phone_number, message):
        raise RuntimeError("provider down")


class SlowGateway:
    async def send_sms(self, phone_number, message):
        await asyncio.sleep(5)
        return True


class RejectingGateway:
    async def send_sms(self, phone_number, message):
        return False


def _citizen():
    return Citizen(first_name="Ana", last_name="Lopez", phone_number="09181112222")


def _request(**fields):
    values = {"id": 7, "document_type": DocumentType.CERTIFICATE_OF_RESIDENCY, "status": RequestStatus.PENDING}
    values.update(fields)
    return DocumentRequest(**values)


def test_message_formats():
    citizen = _citizen()

    submitted = format_request_submitted_message(_request(), citizen, "Bagong Barrio")
    approved = format_request_approved_message(
        _request(status=RequestStatus.APPROVED, processed_at=datetime(2026, 2, 3, 9, 30)), citizen, "Bagong Barrio"
    )
    denied = format_request_denied_message(_request(denial_reason="missing ID"), citizen, "Bagong Barrio")

    assert "Ana Lopez" in submitted and "Certificate of Residency" in submitted
    assert "APPROVED on 2/3/2026" in approved
    assert "Reason: missing ID" in denied
    assert all(m.startswith("BRGY BAGONG BARRIO: ") for m in (submitted, approved, denied))


def test_denied_message_without_reason():
    message = format_request_denied_message(_request(denial_reason="  "), _citizen(), "Bagong Barrio")
    assert "visit the barangay hall" in message


@pytest.mark.asyncio
async def test_dispatch_skips_missing_phone():
    dispatcher = NotificationDispatcher(MockSmsGateway())
    assert dispatcher.dispatch(None, "hello") is False
    assert dispatcher.dispatch("   ", "hello") is False
    await dispatcher.close()


@pytest.mark.asyncio
async def test_dispatch_failures_are_counted_not_raised():
    dispatcher = NotificationDispatcher(FailingGateway())
    assert dispatcher.dispatch("09170000000", "hello", context="test") is True
    await dispatcher.join()

    assert dispatcher.failed == 1
    assert dispatcher.sent == 0
    await dispatcher.close()


@pytest.mark.asyncio
async def test_dispatch_timeout():
    dispatcher = NotificationDispatcher(SlowGateway(), timeout=0.05)
    dispatcher.dispatch("09170000000", "hello")
    await dispatcher.join()

    assert dispatcher.failed == 1
    await dispatcher.close()


@pytest.mark.asyncio
async def test_dispatch_rejected_and_successful_sends():
    rejecting = NotificationDispatcher(RejectingGateway())
    rejecting.dispatch("09170000000", "hello")
    await rejecting.close()
    assert rejecting.failed == 1

    accepting = NotificationDispatcher(MockSmsGateway())
    accepting.dispatch("09170000000", "one")
    accepting.dispatch("09170000000", "two")
    await accepting.close()
    assert accepting.sent == 2


def test_phone_number_formats():
    assert to_local_format("+63 917 123 4567") == "09171234567"
    assert to_local_format("9171234567") == "09171234567"
    assert to_international_format("09171234567") == "+639171234567"
    assert is_valid_mobile_number("0917-123-4567") is True
    assert is_valid_mobile_number("12345") is False


def test_build_sms_gateway_selection():
    assert isinstance(build_sms_gateway(Settings(_env_file=None, SMS_ENABLED=False)), DisabledSmsGateway)
    assert isinstance(build_sms_gateway(Settings(_env_file=None, SMS_PROVIDER="mock")), MockSmsGateway)
    assert isinstance(build_sms_gateway(Settings(_env_file=None, SMS_PROVIDER="carrier-pigeon")), MockSmsGateway)
    gateway = build_sms_gateway(Settings(_env_file=None, SMS_PROVIDER="semaphore", SEMAPHORE_API_KEY="key"))
    assert isinstance(gateway, SemaphoreSmsGateway)

    with pytest.raises(ValueError):
        build_sms_gateway(Settings(_env_file=None, SMS_PROVIDER="iprogsms", IPROG_SMS_API_TOKEN=None))


@pytest.mark.asyncio
async def test_iprog_gateway_posts_local_number():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": 200, "message_id": "abc"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        gateway = IprogSmsGateway(api_token="token", base_url="https://sms.test/api", client=client)
        assert await gateway.send_sms("+639171234567", "hi") is True

    assert captured["body"]["phone_number"] == "09171234567"
    assert captured["body"]["api_token"] == "token"


@pytest.mark.asyncio
async def test_semaphore_gateway_failure_returns_false():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        gateway = SemaphoreSmsGateway(
            api_key="key", base_url="https://sms.test/api", sender_name="BRGY", client=client
        )
        assert await gateway.send_sms("09171234567", "hi") is False
