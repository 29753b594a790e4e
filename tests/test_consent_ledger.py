import pytest
from sqlalchemy import event

from app.core.exceptions import InvalidRequestException
from app.domain.models.consent_record import ConsentRecord
from app.infrastructure.repositories.consent_repository import SQLAlchemyConsentRepository

CALLER = "+15551234567"


def test_no_records_means_no_consent_state(engine):
    assert engine.ledger.current_consent(CALLER) == {"sms": None, "whatsapp": None}
    assert engine.ledger.consent_detail(CALLER) == {}


def test_latest_record_wins_per_channel(engine, clock):
    ledger = engine.ledger
    ledger.record_consent(CALLER, "whatsapp", "opt_out", source="sms_reply")
    clock.advance(minutes=5)
    ledger.record_consent(CALLER, "whatsapp", "opt_in", source="sms_reply")
    clock.advance(minutes=5)
    ledger.record_consent(CALLER, "sms", "opt_out", source="admin")

    assert ledger.current_consent(CALLER) == {"sms": "opt_out", "whatsapp": "opt_in"}


def test_records_in_the_same_instant_resolve_by_insert_order(engine):
    ledger = engine.ledger
    ledger.record_consent(CALLER, "sms", "opt_in")
    ledger.record_consent(CALLER, "sms", "opt_out")

    assert ledger.current_consent(CALLER)["sms"] == "opt_out"


def test_ledger_is_append_only(engine, db):
    engine.ledger.record_consent(CALLER, "sms", "opt_out")
    engine.ledger.record_consent(CALLER, "sms", "opt_in")
    engine.ledger.record_consent(CALLER, "sms", "opt_out")

    records = db.query(ConsentRecord).filter(ConsentRecord.e164 == CALLER).all()
    assert [r.status for r in sorted(records, key=lambda r: r.id)] == ["opt_out", "opt_in", "opt_out"]


def test_consent_is_scoped_to_the_number(engine):
    engine.ledger.record_consent(CALLER, "sms", "opt_out")
    assert engine.ledger.current_consent("+15550000000") == {"sms": None, "whatsapp": None}


def test_consent_detail_reports_last_change_time(engine, clock):
    engine.ledger.record_consent(CALLER, "whatsapp", "opt_out", source="admin")
    changed_at = clock()
    clock.advance(hours=1)

    detail = engine.ledger.consent_detail(CALLER)
    assert detail == {"whatsapp": {"status": "opt_out", "last_change_at": changed_at}}


@pytest.mark.parametrize(
    "channel,status",
    [("email", "opt_out"), ("sms", "maybe"), ("SMS", "opt_in")],
)
def test_invalid_channel_or_status_is_rejected(engine, db, channel, status):
    with pytest.raises(InvalidRequestException):
        engine.ledger.record_consent(CALLER, channel, status)
    assert db.query(ConsentRecord).count() == 0


def test_long_history_loads_only_the_latest_row_per_channel(engine, clock, session_factory):
    for index in range(20):
        engine.ledger.record_consent(CALLER, "sms", "opt_out" if index % 2 else "opt_in")
        engine.ledger.record_consent(CALLER, "whatsapp", "opt_in" if index % 2 else "opt_out")
        clock.advance(minutes=1)

    loaded = []

    def on_load(target, context):
        loaded.append(target.id)

    fresh = session_factory()
    event.listen(ConsentRecord, "load", on_load)
    try:
        latest = SQLAlchemyConsentRepository(fresh, ConsentRecord).latest_by_channel(CALLER)
    finally:
        event.remove(ConsentRecord, "load", on_load)
        fresh.close()

    assert {channel: record.status for channel, record in latest.items()} == {
        "sms": "opt_out",
        "whatsapp": "opt_in",
    }
    assert len(loaded) == 2
