"""Identity and session provider: email one-time codes, OAuth sign-in, sessions, sign-out.

Every public table is keyed by the account id returned from here (the session user id).
"""
import logging
import secrets
import string
from dataclasses import dataclass
from datetime import timedelta

import httpx
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.auth_account import AuthAccount, AuthSession, EmailOtp, PROVIDER_EMAIL, PROVIDER_GOOGLE
from app.services import clock
from app.services.auth import create_access_token, decode_token_with_error, get_password_hash
from app.services.notifications import send_verification_email

logger = logging.getLogger(__name__)

OTP_LENGTH = 6
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"


class IdentityError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass
class SessionInfo:
    account: AuthAccount
    session_id: str
    access_token: str

    @property
    def user_id(self) -> str:
        return self.account.id

    @property
    def is_oauth(self) -> bool:
        return self.account.is_oauth


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _generate_code() -> str:
    return "".join(secrets.choice(string.digits) for _ in range(OTP_LENGTH))


def create_session(db: Session, account: AuthAccount) -> SessionInfo:
    row = AuthSession(account_id=account.id)
    db.add(row)
    account.last_sign_in_at = clock.utcnow()
    db.flush()
    token = create_access_token(account.id, account.email, row.id, account.provider or PROVIDER_EMAIL)
    return SessionInfo(account=account, session_id=row.id, access_token=token)


def sign_in_with_otp(
    db: Session,
    email: str,
    *,
    should_create_user: bool = True,
    email_redirect_to: str | None = None,
) -> None:
    """Send a fresh 6-digit code to email. Any earlier outstanding code stops being valid."""
    email = _normalize_email(email)
    if not email:
        raise IdentityError("An email address is required to send a verification code.")
    account = db.query(AuthAccount).filter(AuthAccount.email == email).first()
    if not account:
        if not should_create_user:
            raise IdentityError("No account exists for this email.")
        account = AuthAccount(email=email, provider=PROVIDER_EMAIL, user_metadata={})
        db.add(account)

    now = clock.utcnow()
    for prior in db.query(EmailOtp).filter(
        EmailOtp.email == email,
        EmailOtp.consumed_at.is_(None),
        EmailOtp.superseded_at.is_(None),
    ):
        prior.superseded_at = now

    settings = get_settings()
    code = _generate_code()
    db.add(EmailOtp(
        email=email,
        code=code,
        expires_at=now + timedelta(minutes=settings.otp_code_expire_minutes),
    ))
    db.commit()

    logger.info("[Auth] Sending sign-in code to %s", email)
    sent = send_verification_email(
        email,
        code,
        expire_minutes=settings.otp_code_expire_minutes,
        redirect_to=email_redirect_to,
    )
    if not sent:
        raise IdentityError(
            "We could not send the verification email. Please check your email address and try again later."
        )


def verify_otp(db: Session, email: str, token: str, type: str = "email") -> SessionInfo:
    """Exchange a code for an authenticated session bound to email."""
    if type != "email":
        raise IdentityError(f"Unsupported verification type: {type}")
    email = _normalize_email(email)
    token = (token or "").strip()
    otp = (
        db.query(EmailOtp)
        .filter(
            EmailOtp.email == email,
            EmailOtp.consumed_at.is_(None),
            EmailOtp.superseded_at.is_(None),
        )
        .order_by(EmailOtp.id.desc())
        .first()
    )
    if not otp or not secrets.compare_digest(otp.code, token):
        raise IdentityError("Invalid or expired verification code.")
    now = clock.utcnow()
    if clock.as_utc(otp.expires_at) < now:
        raise IdentityError("Verification code has expired. Please request a new one.")

    account = db.query(AuthAccount).filter(AuthAccount.email == email).first()
    if not account:
        raise IdentityError("Invalid or expired verification code.")
    otp.consumed_at = now
    if not account.email_confirmed_at:
        account.email_confirmed_at = now
    session = create_session(db, account)
    db.commit()
    return session


def update_user(db: Session, account_id: str, *, data: dict | None = None, password: str | None = None) -> AuthAccount:
    account = db.query(AuthAccount).filter(AuthAccount.id == account_id).first()
    if not account:
        raise IdentityError("User not found")
    if data:
        # New dict so the JSON column change is detected
        account.user_metadata = {**(account.user_metadata or {}), **data}
    if password:
        account.hashed_password = get_password_hash(password)
    db.commit()
    db.refresh(account)
    return account


def get_session(db: Session, token: str | None) -> SessionInfo | None:
    """Current session for a bearer token, or None when absent, expired or signed out."""
    if not token:
        return None
    payload, _ = decode_token_with_error(token)
    if not payload:
        return None
    session_row = db.query(AuthSession).filter(AuthSession.id == payload.get("sid")).first()
    if not session_row or session_row.revoked_at is not None:
        return None
    account = db.query(AuthAccount).filter(AuthAccount.id == payload.get("sub")).first()
    if not account or account.id != session_row.account_id:
        return None
    return SessionInfo(account=account, session_id=session_row.id, access_token=token.strip())


def sign_in_with_oauth(db: Session, provider: str, profile: dict, provider_token: str | None = None) -> SessionInfo:
    """Find or create the account for an OAuth profile and open a session for it."""
    email = _normalize_email(profile.get("email"))
    if not email:
        raise IdentityError("The identity provider did not return an email address.")
    account = db.query(AuthAccount).filter(AuthAccount.email == email).first()
    metadata = {
        "full_name": profile.get("full_name") or "",
        "avatar_url": profile.get("avatar_url") or "",
    }
    if not account:
        account = AuthAccount(email=email, provider=provider, user_metadata=metadata)
        db.add(account)
    else:
        account.provider = provider
        account.user_metadata = {**metadata, **(account.user_metadata or {})}
    if profile.get("email_verified") and not account.email_confirmed_at:
        account.email_confirmed_at = clock.utcnow()
    account.oauth_access_token = provider_token
    db.flush()
    session = create_session(db, account)
    db.commit()
    return session


def sign_out(db: Session, session: SessionInfo) -> str | None:
    """Revoke the session locally, right away. Returns the provider token still to be revoked remotely."""
    row = db.query(AuthSession).filter(AuthSession.id == session.session_id).first()
    if row and row.revoked_at is None:
        row.revoked_at = clock.utcnow()
    provider_token = None
    if session.account.provider == PROVIDER_GOOGLE:
        provider_token = session.account.oauth_access_token
        session.account.oauth_access_token = None
    db.commit()
    return provider_token


def revoke_remote_token(provider_token: str) -> None:
    """Best-effort remote revocation. Runs detached; the outcome is only logged."""
    timeout = get_settings().sign_out_remote_timeout_seconds
    try:
        r = httpx.post(GOOGLE_REVOKE_URL, params={"token": provider_token}, timeout=timeout)
        if r.status_code >= 400:
            logger.warning("[Auth] Remote sign-out rejected (non-critical): status=%s", r.status_code)
    except httpx.TimeoutException:
        logger.warning("[Auth] Remote sign-out timed out (non-critical)")
    except httpx.HTTPError as e:
        logger.warning("[Auth] Remote sign-out error (non-critical): %s", e)
