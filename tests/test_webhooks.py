from twilio.request_validator import RequestValidator

from app.domain.models.consent_record import ConsentRecord
from app.domain.models.outreach_message import OutreachMessage
from app.domain.models.outreach_session import OutreachSession
from app.domain.models.reply_event import ReplyEvent

CALLER = "+15551234567"


def _call_status(**overrides):
    form = {
        "CallSid": "CA9001",
        "From": CALLER,
        "To": "+15550001111",
        "CallStatus": "no-answer",
        "CallDuration": "0",
        "Direction": "inbound",
    }
    form.update(overrides)
    return form


def test_missed_call_then_booking_reply(client, gateway, db):
    response = client.post("/webhooks/voice/status", data=_call_status())
    assert response.status_code == 200
    assert response.text == "ok"

    session = db.query(OutreachSession).filter(OutreachSession.call_sid == "CA9001").one()
    assert session.state == "sent"
    assert session.channel == "sms"
    assert session.meta["call_status"] == "no-answer"
    assert len(gateway.sms) == 1

    response = client.post("/webhooks/messaging/twilio", data={"From": CALLER, "Body": "2"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert "<Response" in response.text

    db.expire_all()
    session = db.query(OutreachSession).filter(OutreachSession.call_sid == "CA9001").one()
    assert session.state == "responded"
    assert "book?src=missed_call&n=%2B15551234567" in gateway.sms[-1][1]
    assert [e.signal for e in db.query(ReplyEvent).all()] == ["booking_request"]


def test_answered_call_opens_no_session(client, gateway, db):
    response = client.post(
        "/webhooks/voice/status",
        data=_call_status(CallStatus="completed", CallDuration="180"),
    )

    assert response.status_code == 200
    assert db.query(OutreachSession).count() == 0
    assert gateway.sms == []


def test_gateway_failure_still_acknowledges(client, gateway, db):
    gateway.fail_for.add(CALLER)

    response = client.post("/webhooks/voice/status", data=_call_status())

    assert response.status_code == 200
    assert db.query(OutreachSession).one().state == "pending"


def test_stop_from_whatsapp_records_opt_out_without_touching_sessions(client, gateway, db):
    client.post("/webhooks/voice/status", data=_call_status(From="+15559876543"))
    messages_before = db.query(OutreachMessage).count()

    response = client.post(
        "/webhooks/messaging/twilio",
        data={"From": "whatsapp:+15559876543", "Body": "STOP"},
    )

    assert response.status_code == 200
    record = db.query(ConsentRecord).one()
    assert (record.e164, record.channel, record.status, record.source) == (
        "+15559876543", "whatsapp", "opt_out", "sms_reply",
    )

    db.expire_all()
    assert db.query(OutreachSession).one().state == "sent"
    assert db.query(OutreachMessage).count() == messages_before
    assert db.query(ReplyEvent).count() == 0


def test_start_keyword_records_opt_in(client, db):
    client.post("/webhooks/messaging/twilio", data={"From": CALLER, "Body": "start"})

    record = db.query(ConsentRecord).one()
    assert (record.channel, record.status) == ("sms", "opt_in")


def test_reply_without_recent_session_is_ignored(client, gateway, db):
    response = client.post("/webhooks/messaging/twilio", data={"From": CALLER, "Body": "1"})

    assert response.status_code == 200
    assert gateway.calls == []
    assert db.query(ReplyEvent).count() == 0


def test_invalid_signature_is_rejected(client, settings, db):
    settings.TWILIO_VALIDATE_SIGNATURE = True

    response = client.post(
        "/webhooks/voice/status",
        data=_call_status(),
        headers={"X-Twilio-Signature": "bogus"},
    )

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UnauthorizedException"
    assert db.query(OutreachSession).count() == 0


def test_valid_signature_is_accepted(client, settings, db):
    settings.TWILIO_VALIDATE_SIGNATURE = True
    settings.PUBLIC_BASE_URL = "https://outreach.example.com"
    form = _call_status()
    signature = RequestValidator(settings.TWILIO_AUTH_TOKEN).compute_signature(
        "https://outreach.example.com/webhooks/voice/status", form
    )

    response = client.post(
        "/webhooks/voice/status",
        data=form,
        headers={"X-Twilio-Signature": signature},
    )

    assert response.status_code == 200
    assert db.query(OutreachSession).count() == 1
