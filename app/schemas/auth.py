"""Auth schemas: sessions, current account and membership state."""
from datetime import datetime

from pydantic import BaseModel


class AccountResponse(BaseModel):
    id: str
    email: str
    provider: str
    full_name: str | None = None
    avatar_url: str | None = None
    email_confirmed_at: datetime | None = None
    is_oauth: bool = False
    is_admin: bool = False


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    account: AccountResponse


class OAuthUrlResponse(BaseModel):
    url: str
    state: str


class OAuthCallbackRequest(BaseModel):
    code: str
    state: str | None = None


class MembershipResponse(BaseModel):
    has_active_subscription: bool
    is_approved: bool
    profile_status: str | None = None
    can_access: bool
    is_admin: bool = False
    title: str | None = None
    description: str | None = None
    action_path: str | None = None


class SignOutResponse(BaseModel):
    signed_out: bool = True
    remote_revocation: str = "none"
