"""Registration submission pipeline.

Phases run strictly in order, each committed on its own so a failure late in the
pipeline leaves the earlier rows in place. Rows are upserted by user id (the project
listing is guarded by a (user_id, title) check), so a retry after a failure does not
duplicate anything.

Fatal: identity confirmation, the user record, the role profile, pitch materials.
Non-fatal: individual uploads, the commercial proposal, the project listing.
"""
import logging
import re
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.profile import Profile, CommercialProposal, PitchMaterial
from app.models.project import Project
from app.models.registration_draft import RegistrationDraft
from app.models.user import User, UserType, ProfileStatus
from app.schemas.registration import (
    InvestorDraft,
    InventorDraft,
    MAX_EXTRA_PITCH_VIDEOS,
    MAX_PHOTOS,
    RegistrationResult,
    StepStatusEntry,
    parse_role_draft,
)
from app.services import clock, identity, otp
from app.services.audit_log import create_log, CATEGORY_REGISTRATION
from app.services.notifications import send_registration_received_email
from app.services.registration_validation import MIN_PASSWORD_LENGTH
from app.services.storage import (
    BUCKET_COVER_IMAGES,
    BUCKET_PITCH_PHOTOS,
    BUCKET_PITCH_VIDEOS,
    BUCKET_USER_PHOTOS,
    BlobStorage,
    StorageError,
    decode_data_url,
)

logger = logging.getLogger(__name__)

TRACK_VERIFY = "Verifying email"
TRACK_UPLOAD = "Uploading files"
TRACK_PERSIST = "Creating account"

SUCCESS_MESSAGE = "Registration complete! Please complete your subscription to continue."
UNEXPECTED_FAILURE_MESSAGE = "Something went wrong while creating your account. Please try again."

_LEADING_NUMBER_RE = re.compile(r"\d+(?:[.,]\d+)?")


class RegistrationFailed(Exception):
    """A fatal phase failed. The draft keeps its data so the user can resubmit."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DraftBusy(Exception):
    def __init__(self, message: str = "Your registration is already being submitted. Please wait."):
        super().__init__(message)
        self.message = message


@dataclass
class UploadedMedia:
    cover_image_url: str | None = None
    photo_url: str | None = None
    pitch_video_url: str | None = None
    photos_urls: list[str] = field(default_factory=list)
    pitch_videos_urls: list[str] = field(default_factory=list)

    @property
    def image_urls(self) -> list[str]:
        return [u for u in [self.cover_image_url, *self.photos_urls] if u]

    @property
    def video_urls(self) -> list[str]:
        return [u for u in [self.pitch_video_url, *self.pitch_videos_urls] if u]


def _none_if_empty(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_investment_percent(capital_percentage: str | None) -> float | None:
    """Leading number of a free-text percentage: '15%' -> 15.0, '12,5 %' -> 12.5."""
    m = _LEADING_NUMBER_RE.search(capital_percentage or "")
    if not m:
        return None
    return float(m.group(0).replace(",", "."))


def format_location(city: str | None, country: str | None) -> str | None:
    return ", ".join(p for p in [(city or "").strip(), (country or "").strip()] if p) or None


# --- progress tracker --------------------------------------------------------------


def _tracker_labels(is_oauth_user: bool) -> list[str]:
    if is_oauth_user:
        return [TRACK_UPLOAD, TRACK_PERSIST]
    return [TRACK_VERIFY, TRACK_UPLOAD, TRACK_PERSIST]


def _set_tracker(db: Session, draft: RegistrationDraft, label: str, status: str) -> None:
    # New list so the JSON column change is detected
    draft.step_status = [
        {**entry, "status": status} if entry["label"] == label else dict(entry)
        for entry in (draft.step_status or [])
    ]
    db.commit()


def _fail(db: Session, draft: RegistrationDraft, message: str) -> RegistrationFailed:
    db.rollback()
    draft.step_status = []
    draft.loading = False
    draft.error = message
    db.commit()
    return RegistrationFailed(message)


# --- phases ------------------------------------------------------------------------


def _confirm_identity(db: Session, draft: RegistrationDraft, role, code: str) -> identity.SessionInfo:
    session = otp.verify_code(db, draft, code)
    full_name = role.full_name.strip()
    password = role.password if len(role.password or "") >= MIN_PASSWORD_LENGTH else None
    identity.update_user(
        db,
        session.user_id,
        data={"full_name": full_name, "display_name": full_name},
        password=password,
    )
    return session


def _put(
    storage: BlobStorage,
    bucket: str,
    data: bytes,
    filename: str,
    user_id: str,
    content_type: str | None,
    label: str,
) -> str | None:
    """One upload; any failure, raised or returned, only drops this URL."""
    try:
        result = storage.upload(bucket, data, filename, user_id, content_type=content_type)
    except Exception as e:
        logger.warning("[Registration] %s upload raised: %s", label, e, exc_info=True)
        return None
    if result.error:
        logger.warning("[Registration] %s upload failed: %s", label, result.error)
    return result.url


def _upload_single(
    storage: BlobStorage,
    bucket: str,
    user_id: str,
    files_by_slot: dict,
    slot: str,
    preview: str = "",
) -> str | None:
    files = files_by_slot.get(slot) or []
    if files:
        f = files[0]
        data, filename, content_type = f.content, f.filename, f.content_type
    elif preview.startswith("data:"):
        try:
            data, content_type = decode_data_url(preview)
        except StorageError as e:
            logger.warning("[Registration] Could not decode %s preview: %s", slot, e)
            return None
        filename = f"{slot}.{content_type.split('/')[-1]}"
    else:
        return None
    return _put(storage, bucket, data, filename, user_id, content_type, slot)


def upload_media(storage: BlobStorage, draft: RegistrationDraft, role, user_id: str) -> UploadedMedia:
    """Send every attached binary (or decoded preview) to its bucket. Failures only drop that URL."""
    files_by_slot: dict = {}
    for f in draft.files:
        if f.slot in role.media_slots:
            files_by_slot.setdefault(f.slot, []).append(f)

    media = UploadedMedia()
    media.cover_image_url = _upload_single(
        storage, BUCKET_COVER_IMAGES, user_id, files_by_slot, "cover_image", role.cover_image_preview
    )
    media.photo_url = _upload_single(
        storage, BUCKET_USER_PHOTOS, user_id, files_by_slot, "photo", role.photo_preview
    )
    media.pitch_video_url = _upload_single(storage, BUCKET_PITCH_VIDEOS, user_id, files_by_slot, "pitch_video")

    # Sequential; a failed entry is left out of the list
    for f in files_by_slot.get("photos", [])[:MAX_PHOTOS]:
        url = _put(storage, BUCKET_PITCH_PHOTOS, f.content, f.filename, user_id, f.content_type, "photo")
        if url:
            media.photos_urls.append(url)
    for f in files_by_slot.get("pitch_videos", [])[:MAX_EXTRA_PITCH_VIDEOS]:
        url = _put(storage, BUCKET_PITCH_VIDEOS, f.content, f.filename, user_id, f.content_type, "pitch video")
        if url:
            media.pitch_videos_urls.append(url)
    return media


def upsert_user(db: Session, session: identity.SessionInfo, role, media: UploadedMedia) -> User:
    metadata = session.account.user_metadata or {}
    full_name = role.full_name.strip() or (metadata.get("full_name") or "").strip()
    email = role.personal_email.strip() or (session.account.email or "").strip()
    if not full_name or not email:
        raise RegistrationFailed("Your name and email are required to create your account.")

    user = db.query(User).filter(User.id == session.user_id).first()
    if not user:
        user = User(id=session.user_id)
        db.add(user)
    user.user_type = UserType(role.user_type)
    user.full_name = full_name
    user.personal_email = email
    user.telephone = _none_if_empty(role.telephone)
    user.country = _none_if_empty(role.country)
    user.city = _none_if_empty(role.city)
    user.cover_image_url = media.cover_image_url
    user.photo_url = media.photo_url
    user.profile_status = ProfileStatus.pending
    db.commit()
    return user


def upsert_profile(db: Session, user_id: str, role) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if not profile:
        profile = Profile(user_id=user_id)
        db.add(profile)
    # Fields the role variant does not carry are stored as null
    for name in (
        "project_name",
        "project_category",
        "company_name",
        "company_nif",
        "company_telephone",
        "smart_money",
        "total_sale_of_project",
        "investment_preferences",
        "inventor_name",
        "license_number",
        "release_date",
        "initial_license_value",
        "exploitation_license_royalty",
        "patent_sale",
        "investors_count",
    ):
        setattr(profile, name, _none_if_empty(getattr(role, name, None)))
    db.commit()
    return profile


def upsert_commercial_proposal(db: Session, user_id: str, role) -> CommercialProposal | None:
    if isinstance(role, InvestorDraft) or not role.has_proposal_fields():
        return None
    proposal = db.query(CommercialProposal).filter(CommercialProposal.user_id == user_id).first()
    if not proposal:
        proposal = CommercialProposal(user_id=user_id)
        db.add(proposal)
    proposal.equity_capital_percentage = _none_if_empty(role.capital_percentage)
    proposal.equity_total_value = _none_if_empty(role.capital_total_value)
    proposal.license_fee = _none_if_empty(role.license_fee)
    proposal.licensing_royalties_percentage = _none_if_empty(role.licensing_royalties_percentage)
    proposal.franchisee_investment = _none_if_empty(role.franchisee_investment)
    proposal.monthly_royalties = _none_if_empty(role.monthly_royalties)
    if isinstance(role, InventorDraft):
        proposal.patent_upfront_fee = _none_if_empty(role.initial_license_value)
        proposal.patent_royalties = _none_if_empty(role.exploitation_license_royalty)
    else:
        proposal.patent_upfront_fee = None
        proposal.patent_royalties = None
    db.commit()
    return proposal


def upsert_pitch_materials(db: Session, user_id: str, role, media: UploadedMedia) -> PitchMaterial:
    materials = db.query(PitchMaterial).filter(PitchMaterial.user_id == user_id).first()
    if not materials:
        materials = PitchMaterial(user_id=user_id)
        db.add(materials)
    materials.pitch_video_url = media.pitch_video_url
    materials.description = _none_if_empty(role.description)
    if isinstance(role, InvestorDraft):
        materials.photos_urls = []
        materials.pitch_videos_urls = []
        materials.fact_sheet = None
        materials.technical_sheet = None
    else:
        materials.photos_urls = list(media.photos_urls)
        materials.pitch_videos_urls = list(media.pitch_videos_urls)
        materials.fact_sheet = _none_if_empty(role.fact_sheet)
        materials.technical_sheet = _none_if_empty(role.technical_sheet)
    db.commit()
    return materials


def create_project_listing(db: Session, user_id: str, role, media: UploadedMedia) -> Project | None:
    """Insert the gallery listing once per (user_id, title). Returns the existing row on retry."""
    if isinstance(role, InvestorDraft):
        return None
    title = role.project_name.strip()
    if not title:
        return None
    existing = db.query(Project).filter(Project.user_id == user_id, Project.title == title).first()
    if existing:
        logger.info("[Registration] Project '%s' already exists for user=%s, skipping", title, user_id)
        return existing
    project = Project(
        user_id=user_id,
        title=title,
        subtitle=_none_if_empty(role.company_name),
        description=_none_if_empty(role.description),
        category=_none_if_empty(role.project_category),
        location=format_location(role.city, role.country),
        investment_percent=parse_investment_percent(role.capital_percentage),
        investment_amount=_none_if_empty(role.capital_total_value) or _none_if_empty(role.total_sale_of_project),
        cover_image_url=media.cover_image_url,
        image_urls=media.image_urls,
        video_url=media.pitch_video_url,
        video_urls=media.video_urls,
    )
    db.add(project)
    db.commit()
    return project


# --- orchestration -----------------------------------------------------------------


def submit_registration(
    db: Session,
    draft: RegistrationDraft,
    storage: BlobStorage,
    *,
    session: identity.SessionInfo | None = None,
    code: str | None = None,
) -> RegistrationResult:
    """Run the pipeline for a draft. Non-OAuth drafts pass the verified OTP code; OAuth drafts their session."""
    if draft.loading:
        raise DraftBusy()
    role = parse_role_draft(draft.form_data or {})

    draft.loading = True
    draft.error = None
    draft.step_status = [
        {"label": label, "status": "pending"} for label in _tracker_labels(draft.is_oauth_user)
    ]
    db.commit()
    logger.info("[Registration] Submitting draft=%s role=%s oauth=%s", draft.id, role.user_type, draft.is_oauth_user)

    try:
        return _run_phases(db, draft, storage, role, session=session, code=code)
    except RegistrationFailed:
        raise
    except Exception as e:
        # Never leave the draft behind the loading gate
        logger.error("[Registration] Unexpected failure for draft=%s", draft.id, exc_info=True)
        raise _fail(db, draft, UNEXPECTED_FAILURE_MESSAGE) from e


def _run_phases(
    db: Session,
    draft: RegistrationDraft,
    storage: BlobStorage,
    role,
    *,
    session: identity.SessionInfo | None,
    code: str | None,
) -> RegistrationResult:
    warnings: list[str] = []

    # 1. identity confirmation
    if not draft.is_oauth_user:
        _set_tracker(db, draft, TRACK_VERIFY, "loading")
        try:
            session = _confirm_identity(db, draft, role, code or "")
        except otp.OtpError as e:
            raise _fail(db, draft, e.message) from e
        except identity.IdentityError as e:
            raise _fail(db, draft, e.message) from e
        draft.account_id = session.user_id
        _set_tracker(db, draft, TRACK_VERIFY, "completed")
    elif session is None:
        raise _fail(db, draft, "Your session has expired. Please sign in again.")
    user_id = session.user_id

    # 2. uploads
    _set_tracker(db, draft, TRACK_UPLOAD, "loading")
    media = upload_media(storage, draft, role, user_id)
    _set_tracker(db, draft, TRACK_UPLOAD, "completed")

    _set_tracker(db, draft, TRACK_PERSIST, "loading")

    # 3. user record
    try:
        upsert_user(db, session, role, media)
    except RegistrationFailed as e:
        raise _fail(db, draft, e.message) from e
    except Exception as e:
        logger.error("[Registration] User upsert failed for user=%s", user_id, exc_info=True)
        raise _fail(db, draft, "We could not create your account. Please try again.") from e

    # 4. role profile
    try:
        upsert_profile(db, user_id, role)
    except Exception as e:
        logger.error("[Registration] Profile upsert failed for user=%s", user_id, exc_info=True)
        raise _fail(db, draft, "We could not save your profile. Please try again.") from e

    # 5. commercial proposal
    try:
        upsert_commercial_proposal(db, user_id, role)
    except Exception:
        db.rollback()
        logger.warning("[Registration] Commercial proposal upsert failed for user=%s (non-fatal)", user_id, exc_info=True)
        warnings.append("Your commercial proposal could not be saved. You can add it later from your settings.")

    # 6. pitch materials
    try:
        upsert_pitch_materials(db, user_id, role, media)
    except Exception as e:
        logger.error("[Registration] Pitch materials upsert failed for user=%s", user_id, exc_info=True)
        raise _fail(db, draft, "We could not save your pitch materials. Please try again.") from e

    # 7. project listing
    try:
        create_project_listing(db, user_id, role, media)
    except Exception:
        db.rollback()
        logger.warning("[Registration] Project creation failed for user=%s (non-fatal)", user_id, exc_info=True)
        warnings.append("Your project listing could not be created. You can add it later from your dashboard.")

    # 8. completion
    otp.clear_state(draft)
    draft.step_status = [{**entry, "status": "completed"} for entry in (draft.step_status or [])]
    draft.loading = False
    draft.error = None
    draft.completed_at = clock.utcnow()
    create_log(
        db,
        CATEGORY_REGISTRATION,
        "Registration submitted",
        f"{role.user_type} registration completed; profile awaiting approval.",
        user_id=user_id,
        draft_id=draft.id,
        actor_user_id=user_id,
        actor_email=session.account.email,
        meta={"user_type": role.user_type, "oauth": draft.is_oauth_user, "warnings": warnings},
    )
    db.commit()
    logger.info("[Registration] Completed draft=%s user=%s warnings=%s", draft.id, user_id, len(warnings))

    user = db.query(User).filter(User.id == user_id).first()
    if not send_registration_received_email(user.personal_email, user.full_name):
        logger.warning("[Registration] Confirmation email not sent to %s", user.personal_email)

    return RegistrationResult(
        user_id=user_id,
        profile_status=user.profile_status.value,
        redirect_to=get_settings().subscription_path,
        access_token=session.access_token,
        message=SUCCESS_MESSAGE,
        warnings=warnings,
        step_status=[StepStatusEntry(**entry) for entry in draft.step_status],
    )
