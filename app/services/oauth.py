"""Google sign-in: authorization URL, code exchange and profile lookup."""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import httpx
import jwt

from app.config import get_settings

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"

STATE_PURPOSE = "google_oauth"
STATE_TTL_MINUTES = 10


class OAuthError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def google_configured() -> bool:
    s = get_settings()
    return bool(s.google_client_id and s.google_client_secret and s.google_redirect_uri)


def new_state() -> str:
    """Signed, short-lived state; the callback only accepts states issued here."""
    s = get_settings()
    payload = {
        "purpose": STATE_PURPOSE,
        "nonce": secrets.token_urlsafe(16),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=STATE_TTL_MINUTES),
    }
    raw = jwt.encode(payload, s.jwt_secret_key, algorithm=s.jwt_algorithm)
    return raw if isinstance(raw, str) else raw.decode("utf-8")


def verify_state(state: str | None) -> None:
    if not state:
        raise OAuthError("Missing sign-in state. Please start Google sign-in again.")
    s = get_settings()
    try:
        payload = jwt.decode(state, s.jwt_secret_key, algorithms=[s.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.warning("[Auth] Rejected Google sign-in state: %s", e)
        raise OAuthError("Invalid or expired sign-in state. Please start Google sign-in again.") from e
    if payload.get("purpose") != STATE_PURPOSE:
        raise OAuthError("Invalid or expired sign-in state. Please start Google sign-in again.")


def get_authorization_url(state: str | None = None) -> str:
    s = get_settings()
    params = {
        "client_id": s.google_client_id,
        "redirect_uri": s.google_redirect_uri,
        "response_type": "code",
        "scope": "openid email profile",
        "access_type": "online",
        "prompt": "select_account",
    }
    if state:
        params["state"] = state
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def authenticate(code: str) -> tuple[dict, str]:
    """Exchange an authorization code. Returns (profile, provider access token)."""
    s = get_settings()
    try:
        with httpx.Client(timeout=10.0) as client:
            r = client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": s.google_client_id,
                    "client_secret": s.google_client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": s.google_redirect_uri,
                },
            )
            r.raise_for_status()
            access_token = r.json().get("access_token")
            if not access_token:
                raise OAuthError("Google did not return an access token.")
            r = client.get(GOOGLE_USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
            r.raise_for_status()
            info = r.json()
    except httpx.HTTPStatusError as e:
        logger.error("[Auth] Google HTTP error: %s - %s", e.response.status_code, e.response.text[:300])
        raise OAuthError("Google sign-in failed. Please try again.") from e
    except httpx.RequestError as e:
        logger.error("[Auth] Google request error: %s", e)
        raise OAuthError("Could not reach Google. Please try again.") from e

    profile = {
        "google_id": info.get("sub"),
        "email": info.get("email"),
        "email_verified": info.get("email_verified", False),
        "full_name": info.get("name", ""),
        "avatar_url": info.get("picture", ""),
    }
    return profile, access_token
