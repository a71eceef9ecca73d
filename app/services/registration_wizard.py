"""Server-held registration wizard: drafts, navigation, file slots and the hand-off to OTP / submission."""
import logging

from sqlalchemy.orm import Session

from app.models.registration_draft import RegistrationDraft, DraftFile
from app.schemas.registration import (
    DraftForm,
    DraftUpdate,
    FileInfo,
    MAX_EXTRA_PITCH_VIDEOS,
    MAX_PHOTOS,
    RegistrationResult,
    StepStatusEntry,
    WizardState,
)
from app.services import otp, registration_steps as steps
from app.services.geolocation import GeolocationData, get_cached_geolocation
from app.services.identity import SessionInfo
from app.services.phone import dial_code_for_country
from app.services.registration_pipeline import DraftBusy, RegistrationFailed, submit_registration
from app.services.registration_validation import ValidationFailed, validate_otp_recipient, validate_step
from app.services.storage import BlobStorage

logger = logging.getLogger(__name__)

SINGLE_SLOTS = ("cover_image", "photo", "pitch_video")
MULTI_SLOTS = {"photos": MAX_PHOTOS, "pitch_videos": MAX_EXTRA_PITCH_VIDEOS}
FILE_SLOTS = SINGLE_SLOTS + tuple(MULTI_SLOTS)

_SLOT_MEDIA = {
    "cover_image": "image/",
    "photo": "image/",
    "photos": "image/",
    "pitch_video": "video/",
    "pitch_videos": "video/",
}


class DraftNotFound(Exception):
    pass


class DraftClosed(Exception):
    def __init__(self, message: str = "This registration has already been completed."):
        super().__init__(message)
        self.message = message


def get_draft(db: Session, draft_id: str) -> RegistrationDraft:
    draft = db.query(RegistrationDraft).filter(RegistrationDraft.id == draft_id).first()
    if not draft:
        raise DraftNotFound(draft_id)
    return draft


def _ensure_editable(draft: RegistrationDraft) -> None:
    if draft.completed_at is not None:
        raise DraftClosed()
    if draft.loading:
        raise DraftBusy()


def _form(draft: RegistrationDraft) -> dict:
    return DraftForm.model_validate(draft.form_data or {}).model_dump()


def _save_form(draft: RegistrationDraft, form: dict) -> None:
    # New dict so the JSON column change is detected
    draft.form_data = dict(form)


def create_draft(db: Session, session: SessionInfo | None = None, user_type: str | None = None) -> RegistrationDraft:
    form = DraftForm().model_dump()
    if user_type:
        form["user_type"] = user_type
    draft = RegistrationDraft(form_data=form, current_step=steps.STEP_USERTYPE)
    if session is not None:
        draft.account_id = session.user_id
        draft.is_oauth_user = session.is_oauth
        metadata = session.account.user_metadata or {}
        form["personal_email"] = session.account.email or ""
        form["full_name"] = metadata.get("full_name") or ""
        _save_form(draft, form)
    db.add(draft)
    db.commit()
    db.refresh(draft)
    logger.info("[Registration] Draft %s created (oauth=%s)", draft.id, draft.is_oauth_user)
    return draft


def update_fields(db: Session, draft: RegistrationDraft, data: DraftUpdate) -> RegistrationDraft:
    """Merge the supplied fields. Switching role keeps every entered value; payloads only use the role's own."""
    _ensure_editable(draft)
    form = _form(draft)
    form.update(data.model_dump(exclude_unset=True, exclude_none=True))
    _save_form(draft, form)
    draft.error = None
    db.commit()
    return draft


def attach_files(
    db: Session,
    draft: RegistrationDraft,
    slot: str,
    uploads: list[tuple[str, str | None, bytes]],
) -> RegistrationDraft:
    """uploads: [(filename, content_type, content)]. Single slots are replaced, list slots appended to."""
    _ensure_editable(draft)
    if slot not in FILE_SLOTS:
        raise ValidationFailed(f"Unknown upload field: {slot}")
    if not uploads:
        raise ValidationFailed("Please choose a file to upload")
    prefix = _SLOT_MEDIA[slot]
    for filename, content_type, _ in uploads:
        if content_type and not content_type.startswith(prefix):
            kind = "an image" if prefix == "image/" else "a video"
            raise ValidationFailed(f"{filename} is not {kind} file")

    form = _form(draft)
    existing = [f for f in draft.files if f.slot == slot]
    if slot in MULTI_SLOTS:
        limit = MULTI_SLOTS[slot]
        if len(existing) + len(uploads) > limit:
            label = "photos" if slot == "photos" else "additional pitch videos"
            raise ValidationFailed(f"You can upload up to {limit} {label}")
        start = max((f.position for f in existing), default=-1) + 1
        for i, (filename, content_type, content) in enumerate(uploads):
            draft.files.append(DraftFile(
                slot=slot, position=start + i, filename=filename, content_type=content_type, content=content,
            ))
        form[slot] = [f.filename for f in existing] + [u[0] for u in uploads]
    else:
        if len(uploads) > 1:
            raise ValidationFailed("Only one file can be uploaded here")
        for f in existing:
            draft.files.remove(f)
        filename, content_type, content = uploads[0]
        draft.files.append(DraftFile(
            slot=slot, position=0, filename=filename, content_type=content_type, content=content,
        ))
        form[slot] = filename
    _save_form(draft, form)
    draft.error = None
    db.commit()
    return draft


def detach_files(db: Session, draft: RegistrationDraft, slot: str, index: int | None = None) -> RegistrationDraft:
    """Remove a slot's binary, or one entry of a list slot when index is given."""
    _ensure_editable(draft)
    if slot not in FILE_SLOTS:
        raise ValidationFailed(f"Unknown upload field: {slot}")
    existing = [f for f in draft.files if f.slot == slot]
    if index is not None:
        if index < 0 or index >= len(existing):
            raise ValidationFailed("No file at that position")
        existing = [existing[index]]
    for f in existing:
        draft.files.remove(f)

    form = _form(draft)
    remaining = [f for f in draft.files if f.slot == slot]
    if slot in MULTI_SLOTS:
        form[slot] = [f.filename for f in remaining]
    else:
        form[slot] = ""
        if f"{slot}_preview" in form:
            form[f"{slot}_preview"] = ""
    _save_form(draft, form)
    db.commit()
    return draft


def apply_location(draft: RegistrationDraft, geo: GeolocationData) -> bool:
    """Fill country, city and dial codes from geolocation where the user has not typed anything."""
    form = _form(draft)
    changed = False
    dial_code = dial_code_for_country(geo.country_code)
    for field, value in (
        ("country", geo.country),
        ("city", geo.city),
        ("phone_country_code", dial_code),
        ("company_phone_country_code", dial_code),
    ):
        if value and not (form.get(field) or "").strip():
            form[field] = value
            changed = True
    if changed:
        _save_form(draft, form)
    return changed


def detect_location(db: Session, draft: RegistrationDraft, ip: str | None) -> GeolocationData | None:
    _ensure_editable(draft)
    geo = get_cached_geolocation(ip)
    if geo and apply_location(draft, geo):
        db.commit()
    return geo


def go_next(
    db: Session,
    draft: RegistrationDraft,
    storage: BlobStorage,
    session: SessionInfo | None = None,
) -> RegistrationResult | None:
    """Validate the current step and advance. On the last step: open OTP, or submit straight away for OAuth."""
    _ensure_editable(draft)
    form = _form(draft)
    step_list = steps.build_steps(form.get("user_type"), draft.is_oauth_user)
    current = steps.resolve_current(step_list, draft.current_step)
    draft.current_step = current

    message = validate_step(current, form)
    if message:
        draft.error = message
        db.commit()
        raise ValidationFailed(message)
    draft.error = None

    if not steps.is_final(step_list, current):
        draft.current_step = steps.next_step(step_list, current)
        db.commit()
        return None

    if draft.is_oauth_user:
        if session is None or session.user_id != draft.account_id:
            draft.error = "Your session has expired. Please sign in again."
            db.commit()
            raise RegistrationFailed(draft.error)
        return submit_registration(db, draft, storage, session=session)

    message = validate_otp_recipient(form)
    if message:
        draft.error = message
        db.commit()
        raise ValidationFailed(message)
    db.commit()
    otp.send_code(db, draft)
    return None


def go_back(db: Session, draft: RegistrationDraft) -> RegistrationDraft:
    """Previous step. Clears the error and any OTP attempt; field values stay."""
    _ensure_editable(draft)
    step_list = steps.build_steps((draft.form_data or {}).get("user_type"), draft.is_oauth_user)
    draft.current_step = steps.previous_step(step_list, draft.current_step)
    draft.error = None
    otp.clear_state(draft)
    db.commit()
    return draft


def resend_otp(db: Session, draft: RegistrationDraft) -> None:
    _ensure_editable(draft)
    otp.resend_code(db, draft)


def dismiss_otp(db: Session, draft: RegistrationDraft) -> None:
    _ensure_editable(draft)
    otp.dismiss(db, draft)


def verify_otp(db: Session, draft: RegistrationDraft, code: str, storage: BlobStorage) -> RegistrationResult:
    """Check the code locally, then hand over to the pipeline (which asks the provider)."""
    _ensure_editable(draft)
    try:
        code = otp.check_code(db, draft, code)
    except otp.OtpError as e:
        draft.error = e.message
        db.commit()
        raise
    return submit_registration(db, draft, storage, code=code)


def wizard_state(draft: RegistrationDraft) -> WizardState:
    form = _form(draft)
    step_list = steps.build_steps(form.get("user_type"), draft.is_oauth_user)
    current = steps.resolve_current(step_list, draft.current_step)
    # Password never leaves the server
    form["password"] = ""
    return WizardState(
        draft_id=draft.id,
        steps=step_list,
        current_step=current,
        progress=steps.progress(step_list, current),
        is_oauth_user=bool(draft.is_oauth_user),
        error=draft.error,
        loading=bool(draft.loading),
        form=form,
        files=[
            FileInfo(slot=f.slot, filename=f.filename, content_type=f.content_type, size=len(f.content or b""))
            for f in draft.files
        ],
        otp=otp.otp_state(draft),
        step_status=[StepStatusEntry(**entry) for entry in (draft.step_status or [])],
    )
