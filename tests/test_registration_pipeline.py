"""
Submission pipeline: phase outcomes, idempotency and role-specific payloads
"""
import pytest

from app.models.audit_log import AuditLog
from app.models.profile import CommercialProposal, PitchMaterial, Profile
from app.models.project import Project
from app.models.user import User
from app.schemas.registration import parse_role_draft
from app.services import registration_pipeline as pipeline
from app.services.storage import BUCKET_COVER_IMAGES, BUCKET_PITCH_PHOTOS

STARTUP_FORM = {
    "user_type": "StartUp",
    "company_name": "Acme Labs",
    "project_name": "Widget Cloud",
    "project_category": "Software",
    "capital_percentage": "15% equity",
    "capital_total_value": "200000",
    "description": "Widgets, in the cloud.",
    "fact_sheet": "Founded 2024",
    "technical_sheet": "Python",
    "city": "Lisbon",
    "country": "Portugal",
}

INVESTOR_FORM = {
    "user_type": "Investor",
    "full_name": "Ivy Investor",
    "project_category": "Technology",
    "investment_preferences": "Seed rounds",
    "investors_count": "3",
    "photos": ["one.png", "two.png"],
    "fact_sheet": "should be dropped",
    "technical_sheet": "should be dropped",
}


def test_parse_investment_percent():
    assert pipeline.parse_investment_percent("15%") == 15.0
    assert pipeline.parse_investment_percent("about 12,5 %") == 12.5
    assert pipeline.parse_investment_percent("n/a") is None
    assert pipeline.parse_investment_percent("") is None


def test_format_location():
    assert pipeline.format_location("Lisbon", "Portugal") == "Lisbon, Portugal"
    assert pipeline.format_location("", "Portugal") == "Portugal"
    assert pipeline.format_location("", "") is None


def test_oauth_startup_registration(db_session, make_draft, oauth_session, fake_storage, outbox):
    session = oauth_session("sam@example.com", "Sam Startup")
    draft = make_draft(
        STARTUP_FORM,
        session=session,
        files=[
            ("cover_image", "cover.png", "image/png"),
            ("photo", "me.jpg", "image/jpeg"),
            ("pitch_video", "pitch.mp4", "video/mp4"),
            ("photos", "p1.png", "image/png"),
            ("photos", "p2.png", "image/png"),
            ("pitch_videos", "extra.mp4", "video/mp4"),
        ],
    )

    result = pipeline.submit_registration(db_session, draft, fake_storage, session=session)

    assert result.profile_status == "pending"
    assert result.redirect_to == "/subscription?mandatory=true"
    assert result.warnings == []
    assert [s.status for s in result.step_status] == ["completed", "completed"]

    user = db_session.query(User).filter(User.id == session.user_id).one()
    assert user.full_name == "Sam Startup"  # from the Google profile
    assert user.personal_email == "sam@example.com"
    assert user.cover_image_url.startswith("https://storage.test/cover-images/")
    assert user.photo_url.startswith("https://storage.test/user-photos/")

    profile = db_session.query(Profile).filter(Profile.user_id == user.id).one()
    assert profile.company_name == "Acme Labs"
    assert profile.investment_preferences is None
    assert profile.exploitation_license_royalty is None

    proposal = db_session.query(CommercialProposal).filter(CommercialProposal.user_id == user.id).one()
    assert proposal.equity_capital_percentage == "15% equity"
    assert proposal.patent_upfront_fee is None

    materials = db_session.query(PitchMaterial).filter(PitchMaterial.user_id == user.id).one()
    assert len(materials.photos_urls) == 2
    assert len(materials.pitch_videos_urls) == 1
    assert materials.fact_sheet == "Founded 2024"

    project = db_session.query(Project).filter(Project.user_id == user.id).one()
    assert project.title == "Widget Cloud"
    assert project.location == "Lisbon, Portugal"
    assert project.investment_percent == 15.0
    assert project.image_urls[0] == user.cover_image_url
    assert len(project.image_urls) == 3
    assert len(project.video_urls) == 2

    assert draft.completed_at is not None
    assert draft.loading is False
    assert any(m["kind"] == "received" for m in outbox)
    assert db_session.query(AuditLog).filter(AuditLog.category == "registration").count() == 1


def test_investor_pitch_materials_never_carry_gallery_media(db_session, make_draft, oauth_session, fake_storage):
    session = oauth_session("ivy@example.com", "Ivy Investor")
    draft = make_draft(
        INVESTOR_FORM,
        session=session,
        files=[
            ("photo", "ivy.jpg", "image/jpeg"),
            ("photos", "one.png", "image/png"),
            ("photos", "two.png", "image/png"),
            ("pitch_videos", "extra.mp4", "video/mp4"),
        ],
    )

    pipeline.submit_registration(db_session, draft, fake_storage, session=session)

    materials = db_session.query(PitchMaterial).filter(PitchMaterial.user_id == session.user_id).one()
    assert materials.photos_urls == []
    assert materials.pitch_videos_urls == []
    assert materials.fact_sheet is None
    assert materials.technical_sheet is None
    assert BUCKET_PITCH_PHOTOS not in {bucket for bucket, _, _ in fake_storage.uploads}
    # No proposal and no project for investors
    assert db_session.query(CommercialProposal).count() == 0
    assert db_session.query(Project).count() == 0
    profile = db_session.query(Profile).filter(Profile.user_id == session.user_id).one()
    assert profile.investors_count == "3"
    assert profile.project_name is None


def test_failed_cover_upload_is_not_fatal(db_session, make_draft, oauth_session, fake_storage):
    session = oauth_session()
    fake_storage.fail_buckets.add(BUCKET_COVER_IMAGES)
    draft = make_draft(
        STARTUP_FORM,
        session=session,
        files=[("cover_image", "cover.png", "image/png"), ("photo", "me.jpg", "image/jpeg")],
    )

    result = pipeline.submit_registration(db_session, draft, fake_storage, session=session)

    user = db_session.query(User).filter(User.id == session.user_id).one()
    assert user.cover_image_url is None
    assert user.photo_url is not None
    assert all(s.status == "completed" for s in result.step_status)
    assert draft.completed_at is not None


def test_base64_preview_is_uploaded_when_no_file(db_session, make_draft, oauth_session, fake_storage):
    session = oauth_session()
    draft = make_draft(
        {**STARTUP_FORM, "cover_image_preview": "data:image/png;base64,iVBORw0KGgo="},
        session=session,
    )

    pipeline.submit_registration(db_session, draft, fake_storage, session=session)

    assert fake_storage.uploads[0][0] == BUCKET_COVER_IMAGES
    assert fake_storage.uploads[0][1] == "cover_image.png"


def test_project_listing_is_created_once_per_title(db_session, oauth_session):
    session = oauth_session()
    role = parse_role_draft(STARTUP_FORM)
    media = pipeline.UploadedMedia()

    first = pipeline.create_project_listing(db_session, session.user_id, role, media)
    second = pipeline.create_project_listing(db_session, session.user_id, role, media)

    assert first.id == second.id
    assert db_session.query(Project).filter(
        Project.user_id == session.user_id, Project.title == "Widget Cloud"
    ).count() == 1


def test_resubmission_updates_rows_in_place(db_session, make_draft, oauth_session, fake_storage):
    session = oauth_session()
    pipeline.submit_registration(db_session, make_draft(STARTUP_FORM, session=session), fake_storage, session=session)
    pipeline.submit_registration(
        db_session,
        make_draft({**STARTUP_FORM, "company_name": "Acme Labs II"}, session=session),
        fake_storage,
        session=session,
    )

    assert db_session.query(Profile).count() == 1
    assert db_session.query(Profile).one().company_name == "Acme Labs II"
    assert db_session.query(CommercialProposal).count() == 1
    assert db_session.query(PitchMaterial).count() == 1
    assert db_session.query(Project).count() == 1


def test_proposal_failure_only_warns(db_session, make_draft, oauth_session, fake_storage, monkeypatch):
    session = oauth_session()
    draft = make_draft(STARTUP_FORM, session=session)

    def broken(*args, **kwargs):
        raise RuntimeError("relation commercial_proposals does not exist")

    monkeypatch.setattr(pipeline, "upsert_commercial_proposal", broken)

    result = pipeline.submit_registration(db_session, draft, fake_storage, session=session)

    assert len(result.warnings) == 1
    assert db_session.query(PitchMaterial).count() == 1
    assert db_session.query(Project).count() == 1


def test_project_failure_only_warns(db_session, make_draft, oauth_session, fake_storage, monkeypatch):
    session = oauth_session()
    draft = make_draft(STARTUP_FORM, session=session)

    def broken(*args, **kwargs):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(pipeline, "create_project_listing", broken)

    result = pipeline.submit_registration(db_session, draft, fake_storage, session=session)

    assert result.profile_status == "pending"
    assert "project listing" in result.warnings[0]


def test_pitch_materials_failure_aborts_and_resets_tracker(db_session, make_draft, oauth_session, fake_storage, monkeypatch):
    session = oauth_session()
    draft = make_draft(STARTUP_FORM, session=session)

    def broken(*args, **kwargs):
        raise RuntimeError("storage quota")

    monkeypatch.setattr(pipeline, "upsert_pitch_materials", broken)

    with pytest.raises(pipeline.RegistrationFailed) as exc:
        pipeline.submit_registration(db_session, draft, fake_storage, session=session)

    assert "pitch materials" in exc.value.message
    assert draft.step_status == []
    assert draft.loading is False
    assert draft.error == exc.value.message
    assert draft.completed_at is None
    # Earlier phases stay committed
    assert db_session.query(User).count() == 1
    assert db_session.query(Profile).count() == 1
    assert db_session.query(Project).count() == 0


def test_missing_name_is_fatal(db_session, make_draft, oauth_session, fake_storage):
    session = oauth_session(full_name="")
    draft = make_draft({**STARTUP_FORM, "full_name": ""}, session=session)

    with pytest.raises(pipeline.RegistrationFailed):
        pipeline.submit_registration(db_session, draft, fake_storage, session=session)

    assert db_session.query(User).count() == 0
    assert draft.step_status == []


def test_loading_gate_rejects_second_submission(db_session, make_draft, oauth_session, fake_storage):
    session = oauth_session()
    draft = make_draft(STARTUP_FORM, session=session)
    draft.loading = True
    db_session.commit()

    with pytest.raises(pipeline.DraftBusy):
        pipeline.submit_registration(db_session, draft, fake_storage, session=session)


def test_raising_storage_does_not_abort_registration(db_session, make_draft, oauth_session, fake_storage, monkeypatch):
    session = oauth_session()
    draft = make_draft(
        STARTUP_FORM,
        session=session,
        files=[
            ("cover_image", "cover.png", "image/png"),
            ("photos", "p1.png", "image/png"),
            ("pitch_videos", "extra.mp4", "video/mp4"),
        ],
    )

    def network_down(*args, **kwargs):
        raise ConnectionError("network down")

    monkeypatch.setattr(fake_storage, "upload", network_down)

    result = pipeline.submit_registration(db_session, draft, fake_storage, session=session)

    assert all(s.status == "completed" for s in result.step_status)
    user = db_session.query(User).filter(User.id == session.user_id).one()
    assert user.cover_image_url is None
    materials = db_session.query(PitchMaterial).filter(PitchMaterial.user_id == session.user_id).one()
    assert materials.photos_urls == []
    assert materials.pitch_videos_urls == []
    assert draft.loading is False


def test_unexpected_error_releases_the_draft_for_retry(db_session, make_draft, oauth_session, fake_storage, monkeypatch):
    session = oauth_session()
    draft = make_draft(STARTUP_FORM, session=session)
    upload_media = pipeline.upload_media

    def broken(*args, **kwargs):
        raise RuntimeError("bucket policy missing")

    monkeypatch.setattr(pipeline, "upload_media", broken)

    with pytest.raises(pipeline.RegistrationFailed) as exc:
        pipeline.submit_registration(db_session, draft, fake_storage, session=session)

    assert exc.value.message == pipeline.UNEXPECTED_FAILURE_MESSAGE
    assert draft.loading is False
    assert draft.step_status == []
    assert draft.error == exc.value.message

    monkeypatch.setattr(pipeline, "upload_media", upload_media)
    result = pipeline.submit_registration(db_session, draft, fake_storage, session=session)
    assert result.profile_status == "pending"
    assert draft.completed_at is not None


def test_total_sale_alone_writes_no_proposal_row(db_session, make_draft, oauth_session, fake_storage):
    session = oauth_session()
    form = {
        **STARTUP_FORM,
        "capital_percentage": "",
        "capital_total_value": "",
        "total_sale_of_project": "5000000",
    }

    pipeline.submit_registration(db_session, make_draft(form, session=session), fake_storage, session=session)

    assert db_session.query(CommercialProposal).count() == 0
    profile = db_session.query(Profile).filter(Profile.user_id == session.user_id).one()
    assert profile.total_sale_of_project == "5000000"
