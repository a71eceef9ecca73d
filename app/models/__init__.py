"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Base.metadata.create_all() creates every table; no migration scripts needed for fresh installs.
"""
from app.models.auth_account import AuthAccount, AuthSession, EmailOtp
from app.models.user import User
from app.models.profile import Profile, CommercialProposal, PitchMaterial
from app.models.project import Project
from app.models.registration_draft import RegistrationDraft, DraftFile
from app.models.subscription import Subscription
from app.models.audit_log import AuditLog

__all__ = [
    "AuthAccount",
    "AuthSession",
    "EmailOtp",
    "User",
    "Profile",
    "CommercialProposal",
    "PitchMaterial",
    "Project",
    "RegistrationDraft",
    "DraftFile",
    "Subscription",
    "AuditLog",
]
