"""Shared dependencies: DB session, current session, admin and member guards."""
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.database import get_db
from app.services.identity import SessionInfo, get_session
from app.services.membership import access_status, is_admin_email
from app.services.storage import BlobStorage, get_storage

security = HTTPBearer(auto_error=False)


def get_optional_session(
    db: Session = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> SessionInfo | None:
    """The caller's session, or None for anonymous (or signed-out) callers."""
    if not credentials:
        return None
    return get_session(db, credentials.credentials)


def get_current_session(
    db: Session = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> SessionInfo:
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    session = get_session(db, credentials.credentials)
    if not session:
        raise HTTPException(status_code=401, detail="Invalid or expired session")
    return session


def require_admin(session: SessionInfo = Depends(get_current_session)) -> SessionInfo:
    if not is_admin_email(session.account.email):
        raise HTTPException(status_code=403, detail="Admin access required")
    return session


def require_member(
    db: Session = Depends(get_db),
    session: SessionInfo = Depends(get_current_session),
) -> SessionInfo:
    """Active subscription and approved profile (admins always pass)."""
    status = access_status(db, session)
    if not status.can_access:
        title, description, _ = status.message()
        raise HTTPException(status_code=403, detail=f"{title}: {description}")
    return session


def get_blob_storage() -> BlobStorage:
    return get_storage()
