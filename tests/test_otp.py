"""
Email OTP step: sending, countdown expiry, resend and dismissal
"""
from datetime import timedelta

import pytest

from app.models.audit_log import AuditLog
from app.services import identity, otp


@pytest.fixture
def draft(make_draft):
    return make_draft({
        "user_type": "StartUp",
        "company_name": "Acme Labs",
        "project_name": "Widget Cloud",
        "project_category": "Software",
        "total_sale_of_project": "5000000",
        "full_name": "Sam Startup",
        "personal_email": "sam@example.com",
    })


def test_send_opens_challenge_and_schedules_countdown(db_session, draft, outbox, scheduled, clock):
    challenge = otp.send_code(db_session, draft)

    assert challenge.email == "sam@example.com"
    assert challenge.ttl_seconds == 180
    assert draft.otp_open is True
    assert draft.otp_sending is False
    assert scheduled[draft.id] == clock.now + timedelta(seconds=180)
    assert [m["to"] for m in outbox if m["kind"] == "verification"] == ["sam@example.com"]

    state = otp.otp_state(draft)
    assert state.open and not state.expired
    assert state.seconds_remaining == 180


def test_countdown_runs_down(db_session, draft, clock):
    otp.send_code(db_session, draft)
    clock.advance(61)

    assert otp.otp_state(draft).seconds_remaining == 119


def test_expired_challenge_rejects_even_the_right_code(db_session, draft, clock, code_for):
    otp.send_code(db_session, draft)
    correct = code_for("sam@example.com")
    clock.advance(181)

    with pytest.raises(otp.OtpError) as exc:
        otp.check_code(db_session, draft, correct)

    assert "expired" in exc.value.message
    assert draft.otp_expired is True
    assert otp.otp_state(draft).seconds_remaining == 0


def test_code_must_be_six_digits(db_session, draft):
    otp.send_code(db_session, draft)

    for bad in ("", "12345", "1234567", "12a456"):
        with pytest.raises(otp.OtpError):
            otp.check_code(db_session, draft, bad)
    assert otp.check_code(db_session, draft, " 123456 ") == "123456"


def test_check_without_challenge(db_session, draft):
    with pytest.raises(otp.OtpError) as exc:
        otp.check_code(db_session, draft, "123456")
    assert exc.value.message == "Please request a verification code first."


def test_second_send_refused_while_one_is_in_flight(db_session, draft, outbox):
    draft.otp_sending = True
    db_session.commit()

    with pytest.raises(otp.OtpError):
        otp.send_code(db_session, draft)
    assert outbox == []


def test_provider_failure_surfaces_one_message(db_session, draft, monkeypatch):
    monkeypatch.setattr("app.services.identity.send_verification_email", lambda *a, **kw: False)

    with pytest.raises(otp.OtpError) as exc:
        otp.send_code(db_session, draft)

    assert "could not send the verification email" in exc.value.message
    assert draft.error == exc.value.message
    assert draft.otp_sending is False


def test_resend_invalidates_previous_code_and_restarts_countdown(db_session, draft, clock, code_for, scheduled):
    otp.send_code(db_session, draft)
    first = code_for("sam@example.com")
    clock.advance(150)
    otp.resend_code(db_session, draft)
    second = code_for("sam@example.com")

    assert otp.otp_state(draft).seconds_remaining == 180
    assert scheduled[draft.id] == clock.now + timedelta(seconds=180)
    if first != second:
        with pytest.raises(identity.IdentityError):
            identity.verify_otp(db_session, "sam@example.com", first)
    session = identity.verify_otp(db_session, "sam@example.com", second)
    assert session.account.email == "sam@example.com"


def test_resend_requires_open_challenge(db_session, draft):
    with pytest.raises(otp.OtpError):
        otp.resend_code(db_session, draft)


def test_rejected_code_is_counted_and_logged(db_session, draft, code_for):
    otp.send_code(db_session, draft)
    wrong = "000000" if code_for("sam@example.com") != "000000" else "111111"

    with pytest.raises(otp.OtpError):
        otp.verify_code(db_session, draft, wrong)

    assert draft.otp_attempts == 1
    log = db_session.query(AuditLog).filter(AuditLog.draft_id == draft.id).one()
    assert log.category == "failed_attempt"


def test_dismiss_clears_challenge_but_keeps_form(db_session, draft, scheduled):
    otp.send_code(db_session, draft)
    otp.dismiss(db_session, draft)

    assert draft.otp_open is False
    assert draft.otp_issued_at is None
    assert draft.id not in scheduled
    assert draft.form_data["personal_email"] == "sam@example.com"
    assert otp.otp_state(draft).open is False


def test_countdown_job_marks_draft_expired(db_session, draft, clock):
    otp.send_code(db_session, draft)
    clock.advance(180)

    otp.expire_challenge_job(draft.id)

    db_session.refresh(draft)
    assert draft.otp_expired is True


def test_countdown_job_ignores_running_challenge(db_session, draft, clock):
    otp.send_code(db_session, draft)
    clock.advance(30)

    otp.expire_challenge_job(draft.id)

    db_session.refresh(draft)
    assert draft.otp_expired is False


def test_failed_resend_expires_the_running_countdown(db_session, draft, clock, monkeypatch):
    otp.send_code(db_session, draft)
    clock.advance(30)
    monkeypatch.setattr("app.services.identity.send_verification_email", lambda *a, **kw: False)

    with pytest.raises(otp.OtpError):
        otp.resend_code(db_session, draft)

    state = otp.otp_state(draft)
    assert state.open is True
    assert state.expired is True
    assert state.seconds_remaining == 0
    with pytest.raises(otp.OtpError) as exc:
        otp.check_code(db_session, draft, "123456")
    assert "expired" in exc.value.message
