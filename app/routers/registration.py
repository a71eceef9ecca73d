"""Registration wizard: drafts, step navigation, uploads, OTP and submission."""
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_blob_storage, get_optional_session
from app.models.registration_draft import RegistrationDraft
from app.schemas.registration import (
    DraftCreate,
    DraftUpdate,
    LocationResult,
    OtpVerifyRequest,
    RegistrationResult,
    StepResult,
    WizardState,
)
from app.services import registration_wizard as wizard
from app.services.identity import SessionInfo
from app.services.otp import OtpError
from app.services.registration_pipeline import DraftBusy, RegistrationFailed
from app.services.registration_validation import ValidationFailed
from app.services.storage import BlobStorage

router = APIRouter(prefix="/register", tags=["registration"])


def _load_draft(db: Session, draft_id: str) -> RegistrationDraft:
    try:
        return wizard.get_draft(db, draft_id)
    except wizard.DraftNotFound:
        raise HTTPException(status_code=404, detail="Registration not found")


def _client_ip(req: Request) -> str | None:
    forwarded = (req.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return req.client.host if req.client else None


def _raise_http(e: Exception):
    """Map wizard exceptions to HTTP errors with the user-facing message as detail."""
    if isinstance(e, ValidationFailed):
        raise HTTPException(status_code=422, detail=e.message)
    if isinstance(e, OtpError):
        raise HTTPException(status_code=400, detail=e.message)
    if isinstance(e, RegistrationFailed):
        raise HTTPException(status_code=400, detail=e.message)
    if isinstance(e, (DraftBusy, wizard.DraftClosed)):
        raise HTTPException(status_code=409, detail=e.message)
    raise e


@router.post("/drafts", response_model=WizardState, status_code=201)
def create_draft(
    data: DraftCreate | None = None,
    db: Session = Depends(get_db),
    session: SessionInfo | None = Depends(get_optional_session),
):
    """Start a registration. With a bearer session (e.g. after Google sign-in) the personal step is skipped."""
    draft = wizard.create_draft(db, session, user_type=data.user_type if data else None)
    return wizard.wizard_state(draft)


@router.get("/drafts/{draft_id}", response_model=WizardState)
def get_draft(draft_id: str, db: Session = Depends(get_db)):
    return wizard.wizard_state(_load_draft(db, draft_id))


@router.patch("/drafts/{draft_id}", response_model=WizardState)
def update_draft(draft_id: str, data: DraftUpdate, db: Session = Depends(get_db)):
    draft = _load_draft(db, draft_id)
    try:
        wizard.update_fields(db, draft, data)
    except (DraftBusy, wizard.DraftClosed) as e:
        _raise_http(e)
    return wizard.wizard_state(draft)


@router.put("/drafts/{draft_id}/files/{slot}", response_model=WizardState)
def attach_files(
    draft_id: str,
    slot: str,
    files: list[UploadFile] = File(...),
    db: Session = Depends(get_db),
):
    """cover_image, photo and pitch_video take one file; photos (up to 9) and pitch_videos (up to 2) append."""
    draft = _load_draft(db, draft_id)
    uploads = [(f.filename or slot, f.content_type, f.file.read()) for f in files]
    try:
        wizard.attach_files(db, draft, slot, uploads)
    except (ValidationFailed, DraftBusy, wizard.DraftClosed) as e:
        _raise_http(e)
    return wizard.wizard_state(draft)


@router.delete("/drafts/{draft_id}/files/{slot}", response_model=WizardState)
def detach_files(draft_id: str, slot: str, index: int | None = None, db: Session = Depends(get_db)):
    draft = _load_draft(db, draft_id)
    try:
        wizard.detach_files(db, draft, slot, index=index)
    except (ValidationFailed, DraftBusy, wizard.DraftClosed) as e:
        _raise_http(e)
    return wizard.wizard_state(draft)


@router.post("/drafts/{draft_id}/detect-location", response_model=LocationResult)
def detect_location(draft_id: str, req: Request, db: Session = Depends(get_db)):
    """Pre-fill country, city and dial code from the caller's IP. Typed values are never overwritten."""
    draft = _load_draft(db, draft_id)
    try:
        geo = wizard.detect_location(db, draft, _client_ip(req))
    except (DraftBusy, wizard.DraftClosed) as e:
        _raise_http(e)
    return LocationResult(
        detected=geo is not None,
        country=geo.country if geo else None,
        country_code=geo.country_code if geo else None,
        city=geo.city if geo else None,
        state=wizard.wizard_state(draft),
    )


@router.post("/drafts/{draft_id}/next", response_model=StepResult)
def next_step(
    draft_id: str,
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
    session: SessionInfo | None = Depends(get_optional_session),
):
    draft = _load_draft(db, draft_id)
    try:
        result = wizard.go_next(db, draft, storage, session=session)
    except (ValidationFailed, OtpError, RegistrationFailed, DraftBusy, wizard.DraftClosed) as e:
        _raise_http(e)
    return StepResult(state=wizard.wizard_state(draft), registration=result)


@router.post("/drafts/{draft_id}/back", response_model=WizardState)
def previous_step(draft_id: str, db: Session = Depends(get_db)):
    draft = _load_draft(db, draft_id)
    try:
        wizard.go_back(db, draft)
    except (DraftBusy, wizard.DraftClosed) as e:
        _raise_http(e)
    return wizard.wizard_state(draft)


@router.post("/drafts/{draft_id}/otp/resend", response_model=WizardState)
def resend_otp(draft_id: str, db: Session = Depends(get_db)):
    draft = _load_draft(db, draft_id)
    try:
        wizard.resend_otp(db, draft)
    except (OtpError, DraftBusy, wizard.DraftClosed) as e:
        _raise_http(e)
    return wizard.wizard_state(draft)


@router.post("/drafts/{draft_id}/otp/verify", response_model=RegistrationResult)
def verify_otp(
    draft_id: str,
    data: OtpVerifyRequest,
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
):
    """Verify the emailed code and run the registration pipeline."""
    draft = _load_draft(db, draft_id)
    try:
        return wizard.verify_otp(db, draft, data.code, storage)
    except (OtpError, RegistrationFailed, DraftBusy, wizard.DraftClosed) as e:
        _raise_http(e)


@router.delete("/drafts/{draft_id}/otp", response_model=WizardState)
def dismiss_otp(draft_id: str, db: Session = Depends(get_db)):
    draft = _load_draft(db, draft_id)
    try:
        wizard.dismiss_otp(db, draft)
    except (DraftBusy, wizard.DraftClosed) as e:
        _raise_http(e)
    return wizard.wizard_state(draft)
