"""Auth: Google sign-in, current account, membership state and sign-out."""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_session
from app.models.auth_account import PROVIDER_GOOGLE
from app.schemas.auth import (
    AccountResponse,
    MembershipResponse,
    OAuthCallbackRequest,
    OAuthUrlResponse,
    SignOutResponse,
    Token,
)
from app.services import oauth
from app.services.audit_log import create_log, CATEGORY_FAILED_ATTEMPT
from app.services.identity import IdentityError, SessionInfo, revoke_remote_token, sign_in_with_oauth, sign_out
from app.services.membership import access_status, is_admin_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _account_to_response(session: SessionInfo) -> AccountResponse:
    account = session.account
    metadata = account.user_metadata or {}
    return AccountResponse(
        id=account.id,
        email=account.email,
        provider=account.provider,
        full_name=metadata.get("full_name") or None,
        avatar_url=metadata.get("avatar_url") or None,
        email_confirmed_at=account.email_confirmed_at,
        is_oauth=account.is_oauth,
        is_admin=is_admin_email(account.email),
    )


@router.get("/google/url", response_model=OAuthUrlResponse)
def google_authorization_url():
    if not oauth.google_configured():
        raise HTTPException(status_code=503, detail="Google sign-in is not configured.")
    state = oauth.new_state()
    return OAuthUrlResponse(url=oauth.get_authorization_url(state), state=state)


@router.post("/google/callback", response_model=Token)
def google_callback(req: Request, data: OAuthCallbackRequest, db: Session = Depends(get_db)):
    """Exchange the Google code for a session. Start a registration draft with this token to skip the personal step."""
    if not oauth.google_configured():
        raise HTTPException(status_code=503, detail="Google sign-in is not configured.")
    try:
        oauth.verify_state(data.state)
        profile, provider_token = oauth.authenticate(data.code)
        session = sign_in_with_oauth(db, PROVIDER_GOOGLE, profile, provider_token=provider_token)
    except (oauth.OAuthError, IdentityError) as e:
        create_log(
            db,
            CATEGORY_FAILED_ATTEMPT,
            "Google sign-in failed",
            e.message,
            ip_address=req.client.host if req.client else None,
            user_agent=(req.headers.get("user-agent") or "").strip() or None,
        )
        db.commit()
        raise HTTPException(status_code=400, detail=e.message)
    logger.info("[Auth] Google sign-in for %s", session.account.email)
    return Token(access_token=session.access_token, account=_account_to_response(session))


@router.get("/me", response_model=AccountResponse)
def me(session: SessionInfo = Depends(get_current_session)):
    return _account_to_response(session)


@router.get("/membership", response_model=MembershipResponse)
def membership(db: Session = Depends(get_db), session: SessionInfo = Depends(get_current_session)):
    status = access_status(db, session)
    message = status.message()
    title, description, action_path = message if message else (None, None, None)
    return MembershipResponse(
        has_active_subscription=status.has_active_subscription,
        is_approved=status.is_approved,
        profile_status=status.profile_status,
        can_access=status.can_access,
        is_admin=status.is_admin,
        title=title,
        description=description,
        action_path=action_path,
    )


@router.post("/sign-out", response_model=SignOutResponse)
def sign_out_session(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session: SessionInfo = Depends(get_current_session),
):
    """The session is revoked here and now; revoking the Google token runs after the response."""
    provider_token = sign_out(db, session)
    if provider_token:
        background_tasks.add_task(revoke_remote_token, provider_token)
        return SignOutResponse(remote_revocation="scheduled")
    return SignOutResponse()
