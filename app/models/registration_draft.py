"""In-progress registration wizard. Discarded (completed_at set) once the pipeline succeeds."""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, LargeBinary, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base, JSONType
from app.models.auth_account import new_uuid


class RegistrationDraft(Base):
    __tablename__ = "registration_drafts"

    id = Column(String(36), primary_key=True, default=new_uuid)

    # Flat form snapshot (text fields, filenames and base64 previews). Binaries live in draft_files.
    form_data = Column(JSONType, nullable=False, default=dict)
    current_step = Column(String(32), nullable=False, default="usertype")
    error = Column(Text, nullable=True)

    # Set when the draft was opened with an OAuth session: the personal step is skipped
    is_oauth_user = Column(Boolean, nullable=False, default=False)
    account_id = Column(String(36), ForeignKey("auth_accounts.id"), nullable=True)

    # Submission gate; a second submit while this is set is rejected
    loading = Column(Boolean, nullable=False, default=False)
    # [{"label": ..., "status": "pending" | "loading" | "completed"}]
    step_status = Column(JSONType, nullable=False, default=list)

    otp_open = Column(Boolean, nullable=False, default=False)
    otp_sending = Column(Boolean, nullable=False, default=False)
    otp_issued_at = Column(DateTime(timezone=True), nullable=True)
    otp_ttl_seconds = Column(Integer, nullable=True)
    otp_attempts = Column(Integer, nullable=False, default=0)
    otp_expired = Column(Boolean, nullable=False, default=False)

    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    files = relationship(
        "DraftFile",
        back_populates="draft",
        cascade="all, delete-orphan",
        order_by="DraftFile.position",
    )


class DraftFile(Base):
    """Binary handle for one upload slot. photos / pitch_videos slots hold several ordered rows."""
    __tablename__ = "draft_files"

    id = Column(Integer, primary_key=True, index=True)
    draft_id = Column(String(36), ForeignKey("registration_drafts.id", ondelete="CASCADE"), nullable=False, index=True)
    slot = Column(String(32), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    filename = Column(String(255), nullable=False)
    content_type = Column(String(128), nullable=True)
    content = Column(LargeBinary, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    draft = relationship("RegistrationDraft", back_populates="files")
