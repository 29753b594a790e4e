import base64
import json
from urllib.parse import parse_qs

import httpx
import pytest

from app.config import Settings
from app.core.exceptions import GatewayError
from app.domain.gateways import WhatsAppOptions
from app.infrastructure.twilio_api import TwilioAPIClient, bridge_twiml, render_options_text


def _settings(**overrides):
    values = {
        "_env_file": None,
        "TWILIO_API_URL": "https://api.twilio.test/2010-04-01",
        "TWILIO_ACCOUNT_SID": "AC123",
        "TWILIO_AUTH_TOKEN": "secret",
        "SMS_FROM": "+15550001111",
        "WHATSAPP_FROM": "+15550003333",
        "TWILIO_MESSAGING_SERVICE_SID": "",
        "WHATSAPP_CONTENT_SID": "",
        "TWILIO_CALLER_ID": "",
        "BUSINESS_TARGET_E164": "+15550002222",
    }
    values.update(overrides)
    return Settings(**values)


class Recorder:
    """MockTransport handler that replays canned responses and keeps the requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, payload = self.responses.pop(0)
        return httpx.Response(status, json=payload)

    def form(self, index=-1):
        return {k: v[0] for k, v in parse_qs(self.requests[index].content.decode()).items()}


def _client(recorder, **overrides):
    return TwilioAPIClient(
        _settings(**overrides),
        transport=httpx.MockTransport(recorder),
        retry_delay=0,
    )


@pytest.mark.asyncio
async def test_send_sms_posts_message_form():
    recorder = Recorder((201, {"sid": "SM1", "body": "hello", "status": "queued"}))

    receipt = await _client(recorder).send_sms("+15551234567", "hello")

    request = recorder.requests[0]
    assert str(request.url) == "https://api.twilio.test/2010-04-01/Accounts/AC123/Messages.json"
    expected_auth = "Basic " + base64.b64encode(b"AC123:secret").decode()
    assert request.headers["Authorization"] == expected_auth
    assert recorder.form() == {"To": "+15551234567", "From": "+15550001111", "Body": "hello"}
    assert (receipt.sid, receipt.body, receipt.to, receipt.status) == ("SM1", "hello", "+15551234567", "queued")


@pytest.mark.asyncio
async def test_messaging_service_sid_is_attached():
    recorder = Recorder((201, {"sid": "SM2"}))

    receipt = await _client(recorder, TWILIO_MESSAGING_SERVICE_SID="MG9", SMS_FROM="").send_sms("+15551234567", "hi")

    assert recorder.form() == {"To": "+15551234567", "MessagingServiceSid": "MG9", "Body": "hi"}
    assert receipt.body == "hi"


@pytest.mark.asyncio
async def test_whatsapp_options_render_as_text_without_template():
    recorder = Recorder((201, {"sid": "SM3"}))
    options = WhatsAppOptions(body="How can we help?", buttons=["Call now", "Book time"])

    receipt = await _client(recorder).send_whatsapp("+15551234567", options)

    form = recorder.form()
    assert form["To"] == "whatsapp:+15551234567"
    assert form["From"] == "whatsapp:+15550003333"
    assert form["Body"] == "How can we help?\n\n• Call now: Reply 1\n• Book time: Reply 2"
    assert receipt.body == form["Body"]


@pytest.mark.asyncio
async def test_whatsapp_options_use_content_template_when_configured():
    recorder = Recorder((201, {"sid": "SM4"}))
    options = WhatsAppOptions(body="How can we help?", buttons=["Call now", "Book time", "Leave note"])

    await _client(recorder, WHATSAPP_CONTENT_SID="HX42").send_whatsapp("+15551234567", options)

    form = recorder.form()
    assert form["ContentSid"] == "HX42"
    assert json.loads(form["ContentVariables"]) == {
        "1": "How can we help?", "2": "Call now", "3": "Book time", "4": "Leave note",
    }
    assert "Body" not in form


@pytest.mark.asyncio
async def test_rate_limited_send_is_retried():
    recorder = Recorder((429, {"message": "Too Many Requests"}), (201, {"sid": "SM5"}))

    receipt = await _client(recorder).send_sms("+15551234567", "hi")

    assert receipt.sid == "SM5"
    assert len(recorder.requests) == 2


@pytest.mark.asyncio
async def test_server_errors_are_not_retried():
    recorder = Recorder((503, {"message": "busy"}), (201, {"sid": "SM5"}))

    with pytest.raises(GatewayError):
        await _client(recorder).send_sms("+15551234567", "hi")
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    recorder = Recorder((400, {"code": 21211, "message": "Invalid 'To' Phone Number"}))

    with pytest.raises(GatewayError):
        await _client(recorder).send_sms("+1555", "hi")
    assert len(recorder.requests) == 1


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    recorder = Recorder(*[(429, {})] * 3)

    with pytest.raises(GatewayError) as exc_info:
        await _client(recorder).send_sms("+15551234567", "hi")
    assert exc_info.value.status_code == 502
    assert len(recorder.requests) == 3


def _flaky_transport(calls, error, sid):
    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise error("upstream trouble", request=request)
        return httpx.Response(201, json={"sid": sid})

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_connection_errors_are_retried():
    calls = []
    transport = _flaky_transport(calls, httpx.ConnectError, "SM6")
    client = TwilioAPIClient(_settings(), transport=transport, retry_delay=0)

    assert (await client.send_sms("+15551234567", "hi")).sid == "SM6"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_read_timeout_on_call_places_no_second_call():
    calls = []
    transport = _flaky_transport(calls, httpx.ReadTimeout, "CA9")
    client = TwilioAPIClient(_settings(), transport=transport, retry_delay=0)

    with pytest.raises(GatewayError):
        await client.start_outbound("+15551234567", bridge_twiml("+15550002222"))
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_start_outbound_posts_inline_twiml():
    recorder = Recorder((201, {"sid": "CA7", "status": "queued"}))
    twiml = bridge_twiml("+15550002222")

    handle = await _client(recorder).start_outbound("+15551234567", twiml)

    assert str(recorder.requests[0].url).endswith("/Accounts/AC123/Calls.json")
    form = recorder.form()
    assert form == {"To": "+15551234567", "From": "+15550002222", "Twiml": twiml}
    assert (handle.sid, handle.to, handle.status) == ("CA7", "+15551234567", "queued")


def test_bridge_twiml_dials_target():
    twiml = bridge_twiml("+15550002222")

    assert twiml.startswith("<?xml")
    assert "<Dial" in twiml
    assert "answerOnBridge" in twiml
    assert "<Number>+15550002222</Number>" in twiml


def test_render_options_text_without_buttons():
    assert render_options_text(WhatsAppOptions(body="Hello")) == "Hello"
