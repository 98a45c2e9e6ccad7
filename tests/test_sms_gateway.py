"""Tests for the Africa's Talking SMS sender."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from sms_otp.config import Settings
from sms_otp.services.sms_gateway import AfricasTalkingSender, SmsDeliveryError

PHONE = "+254711000111"


def make_config(**overrides) -> Settings:
    values = {
        "at_api_key": "test-key",
        "at_username": "sandbox",
        "at_base_url": "https://api.sandbox.africastalking.com/",
    }
    values.update(overrides)
    return Settings(**values)


def accepted(status_code: int = 101) -> dict:
    return {
        "SMSMessageData": {
            "Message": "Sent to 1/1 Total Cost: KES 0.8000",
            "Recipients": [
                {
                    "statusCode": status_code,
                    "number": PHONE,
                    "status": "Success",
                    "cost": "KES 0.8000",
                    "messageId": "ATXid_1",
                }
            ],
        }
    }


@pytest.mark.asyncio
async def test_send_posts_form_to_messaging_endpoint():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["headers"] = request.headers
        captured["form"] = parse_qs(request.content.decode())
        return httpx.Response(201, json=accepted())

    sender = AfricasTalkingSender(
        make_config(at_sender_id="MOTOFIX"), transport=httpx.MockTransport(handler)
    )
    await sender.send(PHONE, "Your verification code is: 123456")

    assert captured["url"] == "https://api.sandbox.africastalking.com/version1/messaging"
    assert captured["headers"]["apiKey"] == "test-key"
    assert captured["form"] == {
        "username": ["sandbox"],
        "to": [PHONE],
        "message": ["Your verification code is: 123456"],
        "from": ["MOTOFIX"],
    }


@pytest.mark.asyncio
async def test_send_without_sender_id_omits_from():
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["form"] = parse_qs(request.content.decode())
        return httpx.Response(201, json=accepted(status_code=100))

    sender = AfricasTalkingSender(make_config(), transport=httpx.MockTransport(handler))
    await sender.send(PHONE, "hello")

    assert "from" not in captured["form"]


@pytest.mark.asyncio
async def test_missing_credentials_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    sender = AfricasTalkingSender(
        make_config(at_api_key=""), transport=httpx.MockTransport(handler)
    )
    with pytest.raises(SmsDeliveryError, match="credentials"):
        await sender.send(PHONE, "hello")


@pytest.mark.asyncio
async def test_http_error_status_raises():
    sender = AfricasTalkingSender(
        make_config(),
        transport=httpx.MockTransport(lambda request: httpx.Response(401, text="The supplied authentication is invalid")),
    )
    with pytest.raises(SmsDeliveryError, match="401"):
        await sender.send(PHONE, "hello")


@pytest.mark.asyncio
async def test_rejected_recipient_raises():
    body = accepted(status_code=405)
    body["SMSMessageData"]["Recipients"][0]["status"] = "InsufficientBalance"
    sender = AfricasTalkingSender(
        make_config(), transport=httpx.MockTransport(lambda request: httpx.Response(201, json=body))
    )
    with pytest.raises(SmsDeliveryError, match="InsufficientBalance"):
        await sender.send(PHONE, "hello")


@pytest.mark.asyncio
async def test_empty_recipients_raise():
    body = {"SMSMessageData": {"Message": "InvalidPhoneNumber", "Recipients": []}}
    sender = AfricasTalkingSender(
        make_config(), transport=httpx.MockTransport(lambda request: httpx.Response(201, json=body))
    )
    with pytest.raises(SmsDeliveryError):
        await sender.send(PHONE, "hello")


@pytest.mark.asyncio
async def test_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    sender = AfricasTalkingSender(make_config(), transport=httpx.MockTransport(handler))
    with pytest.raises(SmsDeliveryError, match="timed out"):
        await sender.send(PHONE, "hello")


@pytest.mark.asyncio
async def test_message_body_is_not_logged(caplog):
    sender = AfricasTalkingSender(
        make_config(), transport=httpx.MockTransport(lambda request: httpx.Response(201, json=accepted()))
    )
    with caplog.at_level("DEBUG"):
        await sender.send(PHONE, "Your verification code is: 654321")

    assert "654321" not in caplog.text


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "recipients",
    [None, "InvalidPhoneNumber", [None], [{"statusCode": 101}, "Success"]],
)
async def test_malformed_recipients_raise(recipients):
    body = {"SMSMessageData": {"Message": "Sent to 1/1", "Recipients": recipients}}
    sender = AfricasTalkingSender(
        make_config(), transport=httpx.MockTransport(lambda request: httpx.Response(201, json=body))
    )
    with pytest.raises(SmsDeliveryError, match="Unexpected SMS gateway response"):
        await sender.send(PHONE, "hello")
