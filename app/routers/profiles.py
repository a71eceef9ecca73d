"""Profile read model for registered users."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_session
from app.schemas.profile import ProfileData
from app.services.identity import SessionInfo
from app.services.membership import access_status
from app.services.profiles import fetch_user_profile

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/{user_id}", response_model=ProfileData)
def get_profile(user_id: str, db: Session = Depends(get_db), session: SessionInfo = Depends(get_current_session)):
    """Own profile always; anyone else's only with platform access."""
    if user_id != session.user_id and not access_status(db, session).can_access:
        raise HTTPException(status_code=403, detail="An active, approved membership is required to view profiles")
    data = fetch_user_profile(db, user_id)
    if data.user is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return data
