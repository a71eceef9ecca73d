"""Admin: review registrations and move profiles between pending, approved and rejected."""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import require_admin
from app.models.user import ProfileStatus
from app.schemas.profile import ProfileData, UserOut
from app.services.identity import SessionInfo
from app.services.membership import set_profile_status
from app.services.profiles import fetch_user_profile, list_profiles

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/profiles", response_model=list[UserOut])
def admin_list_profiles(
    status: ProfileStatus | None = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
    admin: SessionInfo = Depends(require_admin),
):
    return list_profiles(db, status=status, limit=min(max(limit, 1), 500), offset=max(offset, 0))


@router.get("/profiles/{user_id}", response_model=ProfileData)
def admin_get_profile(user_id: str, db: Session = Depends(get_db), admin: SessionInfo = Depends(require_admin)):
    data = fetch_user_profile(db, user_id)
    if data.user is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return data


def _transition(req: Request, db: Session, user_id: str, status: ProfileStatus, admin: SessionInfo) -> UserOut:
    user = set_profile_status(
        db,
        user_id,
        status,
        actor=admin,
        ip_address=req.client.host if req.client else None,
        user_agent=(req.headers.get("user-agent") or "").strip() or None,
    )
    if not user:
        raise HTTPException(status_code=404, detail="Profile not found")
    return UserOut.model_validate(user)


@router.post("/profiles/{user_id}/approve", response_model=UserOut)
def approve_profile(req: Request, user_id: str, db: Session = Depends(get_db), admin: SessionInfo = Depends(require_admin)):
    return _transition(req, db, user_id, ProfileStatus.approved, admin)


@router.post("/profiles/{user_id}/reject", response_model=UserOut)
def reject_profile(req: Request, user_id: str, db: Session = Depends(get_db), admin: SessionInfo = Depends(require_admin)):
    return _transition(req, db, user_id, ProfileStatus.rejected, admin)


@router.post("/profiles/{user_id}/reset", response_model=UserOut)
def reset_profile(req: Request, user_id: str, db: Session = Depends(get_db), admin: SessionInfo = Depends(require_admin)):
    return _transition(req, db, user_id, ProfileStatus.pending, admin)
