"""Email OTP step of the registration wizard.

The code is requested as soon as the modal opens on the final step. The wizard then
runs a countdown (default 180 s) during which the code may be submitted; once it
reaches zero the user must ask for a new code. The countdown is a scheduled job that
flags the draft as expired, but every check also compares against the clock, so a
late or missing job never lets an expired challenge through. Actual code validity is
decided by the identity provider.
"""
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app import scheduler
from app.config import get_settings
from app.database import SessionLocal
from app.models.registration_draft import RegistrationDraft
from app.schemas.registration import OtpState
from app.services import clock, identity
from app.services.audit_log import create_log, CATEGORY_FAILED_ATTEMPT

logger = logging.getLogger(__name__)

CODE_RE = re.compile(r"^\d{6}$")


class OtpError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass
class OtpChallenge:
    email: str
    issued_at: datetime
    ttl_seconds: int
    attempts: int = 0

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.ttl_seconds)

    def seconds_remaining(self, now: datetime) -> int:
        return max(0, math.ceil((self.expires_at - now).total_seconds()))

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    @classmethod
    def from_draft(cls, draft: RegistrationDraft) -> "OtpChallenge | None":
        if not draft.otp_open or draft.otp_issued_at is None:
            return None
        return cls(
            email=((draft.form_data or {}).get("personal_email") or "").strip(),
            issued_at=clock.as_utc(draft.otp_issued_at),
            ttl_seconds=draft.otp_ttl_seconds or get_settings().otp_countdown_seconds,
            attempts=draft.otp_attempts or 0,
        )


def otp_state(draft: RegistrationDraft) -> OtpState:
    challenge = OtpChallenge.from_draft(draft)
    if not draft.otp_open:
        return OtpState()
    if challenge is None:
        return OtpState(open=True, sending=bool(draft.otp_sending))
    now = clock.utcnow()
    expired = bool(draft.otp_expired) or challenge.is_expired(now)
    return OtpState(
        open=True,
        email=challenge.email,
        seconds_remaining=0 if expired else challenge.seconds_remaining(now),
        expired=expired,
        sending=bool(draft.otp_sending),
    )


def send_code(db: Session, draft: RegistrationDraft) -> OtpChallenge:
    """Open (or keep open) the modal and send a new code. Restarts the countdown."""
    if draft.otp_sending:
        raise OtpError("A verification code is already being sent. Please wait a moment.")
    email = ((draft.form_data or {}).get("personal_email") or "").strip()
    settings = get_settings()

    draft.otp_open = True
    draft.otp_sending = True
    db.commit()
    try:
        identity.sign_in_with_otp(
            db,
            email,
            should_create_user=True,
            email_redirect_to=settings.otp_email_redirect_to,
        )
    except identity.IdentityError as e:
        logger.warning("[OTP] Sending code failed for draft=%s: %s", draft.id, e.message)
        draft.error = e.message
        # Any earlier code may already be superseded at the provider
        draft.otp_expired = True
        raise OtpError(e.message) from e
    finally:
        draft.otp_sending = False
        db.commit()

    now = clock.utcnow()
    draft.otp_issued_at = now
    draft.otp_ttl_seconds = settings.otp_countdown_seconds
    draft.otp_expired = False
    draft.otp_attempts = 0
    draft.error = None
    db.commit()
    scheduler.schedule_otp_expiry(draft.id, now + timedelta(seconds=settings.otp_countdown_seconds))
    logger.info("[OTP] Code sent for draft=%s (countdown %ss)", draft.id, settings.otp_countdown_seconds)
    return OtpChallenge.from_draft(draft)


def resend_code(db: Session, draft: RegistrationDraft) -> OtpChallenge:
    if not draft.otp_open:
        raise OtpError("There is no verification in progress. Please submit the form again.")
    return send_code(db, draft)


def check_code(db: Session, draft: RegistrationDraft, code: str | None) -> str:
    """Local checks before the provider sees the code: open challenge, countdown running, 6 digits."""
    challenge = OtpChallenge.from_draft(draft)
    if challenge is None:
        raise OtpError("Please request a verification code first.")
    if draft.otp_expired or challenge.is_expired(clock.utcnow()):
        if not draft.otp_expired:
            draft.otp_expired = True
            db.commit()
        raise OtpError("The verification code has expired. Please request a new code.")
    code = (code or "").strip()
    if not CODE_RE.match(code):
        raise OtpError("Please enter the 6-digit code sent to your email.")
    return code


def verify_code(db: Session, draft: RegistrationDraft, code: str) -> identity.SessionInfo:
    """Provider-side verification. A rejected code counts as a failed attempt."""
    email = ((draft.form_data or {}).get("personal_email") or "").strip()
    try:
        return identity.verify_otp(db, email, code, type="email")
    except identity.IdentityError as e:
        draft.otp_attempts = (draft.otp_attempts or 0) + 1
        create_log(
            db,
            CATEGORY_FAILED_ATTEMPT,
            "Email verification failed",
            f"Verification code rejected for registration draft {draft.id}.",
            draft_id=draft.id,
            actor_email=email,
            meta={"reason": e.message, "attempts": draft.otp_attempts},
        )
        db.commit()
        raise OtpError(e.message) from e


def clear_state(draft: RegistrationDraft) -> None:
    """Drop the challenge and stop its countdown. Form data is untouched."""
    draft.otp_open = False
    draft.otp_sending = False
    draft.otp_issued_at = None
    draft.otp_ttl_seconds = None
    draft.otp_expired = False
    draft.otp_attempts = 0
    scheduler.cancel_otp_expiry(draft.id)


def dismiss(db: Session, draft: RegistrationDraft) -> None:
    clear_state(draft)
    draft.error = None
    db.commit()
    logger.info("[OTP] Verification dismissed for draft=%s", draft.id)


def expire_challenge_job(draft_id: str) -> None:
    """Countdown reached zero: mark the challenge expired so the wizard shows 'request a new code'."""
    db = SessionLocal()
    try:
        draft = db.query(RegistrationDraft).filter(RegistrationDraft.id == draft_id).first()
        if not draft:
            return
        challenge = OtpChallenge.from_draft(draft)
        if challenge and challenge.is_expired(clock.utcnow()):
            draft.otp_expired = True
            db.commit()
            logger.info("[OTP] Countdown expired for draft=%s", draft_id)
    finally:
        db.close()
