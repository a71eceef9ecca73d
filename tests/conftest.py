"""
Pitch Invest - test configuration and fixtures
"""
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Set testing environment before the app reads its settings
TEST_DB_PATH = Path(__file__).resolve().parent / "test_pitch_invest.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-testing"
os.environ["ADMIN_EMAIL"] = "admin@pitchinvest.test"
os.environ["MAILGUN_API_KEY"] = ""
os.environ["MAILGUN_DOMAIN"] = ""
os.environ["GOOGLE_CLIENT_ID"] = ""

from fastapi.testclient import TestClient

from app.database import Base, SessionLocal, engine, get_db
from app.dependencies import get_blob_storage
from app.main import app
from app.models.registration_draft import RegistrationDraft, DraftFile
from app.schemas.registration import DraftForm
from app.services import identity
from app.services.storage import BlobStorage, UploadResult

T0 = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeStorage(BlobStorage):
    """Records uploads; buckets listed in fail_buckets answer with an error like a network failure would."""

    def __init__(self):
        super().__init__()
        self.uploads: list[tuple[str, str, str]] = []
        self.fail_buckets: set[str] = set()

    def upload(self, bucket, data, filename, user_id, content_type=None, folder=""):
        if bucket in self.fail_buckets:
            return UploadResult(error="Network request failed")
        self.uploads.append((bucket, filename, user_id))
        path = f"{user_id}/{len(self.uploads)}-{filename}"
        return UploadResult(url=f"https://storage.test/{bucket}/{path}", path=path)


@pytest.fixture(scope="function")
def db_session():
    """Fresh tables for every test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clock(monkeypatch) -> FrozenClock:
    frozen = FrozenClock(T0)
    monkeypatch.setattr("app.services.clock.utcnow", frozen)
    return frozen


@pytest.fixture(autouse=True)
def scheduled(monkeypatch) -> dict:
    """OTP countdown jobs by draft id, instead of the background scheduler."""
    jobs: dict = {}
    monkeypatch.setattr("app.scheduler.schedule_otp_expiry", lambda draft_id, run_at: jobs.__setitem__(draft_id, run_at))
    monkeypatch.setattr("app.scheduler.cancel_otp_expiry", lambda draft_id: jobs.pop(draft_id, None))
    return jobs


@pytest.fixture(autouse=True)
def outbox(monkeypatch) -> list[dict]:
    """Captured emails: verification codes, registration receipts and status changes."""
    sent: list[dict] = []

    def fake_verification(to_email, code, expire_minutes, redirect_to=None):
        sent.append({"kind": "verification", "to": to_email, "code": code})
        return True

    def fake_received(to_email, full_name=None):
        sent.append({"kind": "received", "to": to_email})
        return True

    def fake_status(to_email, full_name, status):
        sent.append({"kind": "status", "to": to_email, "status": status})
        return True

    monkeypatch.setattr("app.services.identity.send_verification_email", fake_verification)
    monkeypatch.setattr("app.services.registration_pipeline.send_registration_received_email", fake_received)
    monkeypatch.setattr("app.services.membership.send_profile_status_email", fake_status)
    return sent


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def api_client(db_session, fake_storage):
    """Test client bound to the test session and fake storage"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_storage] = lambda: fake_storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def code_for(outbox):
    """Latest verification code emailed to an address."""
    def _code_for(email: str) -> str:
        codes = [m["code"] for m in outbox if m["kind"] == "verification" and m["to"] == email]
        assert codes, f"no verification code sent to {email}"
        return codes[-1]
    return _code_for


@pytest.fixture
def oauth_session(db_session):
    """Google-signed-in session factory."""
    def _oauth_session(email: str = "oauth.user@example.com", full_name: str = "Olivia Auth") -> identity.SessionInfo:
        return identity.sign_in_with_oauth(
            db_session,
            "google",
            {"email": email, "full_name": full_name, "email_verified": True},
            provider_token="google-access-token",
        )
    return _oauth_session


@pytest.fixture
def make_draft(db_session):
    """Draft as the wizard leaves it on the last step. files: [(slot, filename, content_type)]"""
    def _make_draft(form: dict, *, session=None, files=(), current_step="pitch") -> RegistrationDraft:
        draft = RegistrationDraft(form_data=DraftForm(**form).model_dump(), current_step=current_step)
        if session is not None:
            draft.is_oauth_user = True
            draft.account_id = session.user_id
        for i, (slot, filename, content_type) in enumerate(files):
            draft.files.append(DraftFile(
                slot=slot,
                position=i,
                filename=filename,
                content_type=content_type,
                content=b"binary-" + filename.encode(),
            ))
        db_session.add(draft)
        db_session.commit()
        db_session.refresh(draft)
        return draft
    return _make_draft
