"""Identity provider: accounts, sessions and one-time email codes."""
import uuid

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.database import Base, JSONType

PROVIDER_EMAIL = "email"
PROVIDER_GOOGLE = "google"


def new_uuid() -> str:
    return str(uuid.uuid4())


class AuthAccount(Base):
    """Authentication identity. Its id is the session user id every public table is keyed by."""
    __tablename__ = "auth_accounts"

    id = Column(String(36), primary_key=True, default=new_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=True)
    provider = Column(String(32), nullable=False, default=PROVIDER_EMAIL)

    # full_name / display_name / avatar_url pushed by update_user or taken from the OAuth profile
    user_metadata = Column(JSONType, nullable=True)
    # Provider token kept only so sign-out can revoke it remotely
    oauth_access_token = Column(String(2048), nullable=True)

    email_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @property
    def is_oauth(self) -> bool:
        return (self.provider or PROVIDER_EMAIL) != PROVIDER_EMAIL


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    id = Column(String(36), primary_key=True, default=new_uuid)
    account_id = Column(String(36), ForeignKey("auth_accounts.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)


class EmailOtp(Base):
    """6-digit code sent by sign_in_with_otp. Only the newest unconsumed row per email is valid."""
    __tablename__ = "email_otps"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    code = Column(String(10), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    consumed_at = Column(DateTime(timezone=True), nullable=True)
    superseded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
