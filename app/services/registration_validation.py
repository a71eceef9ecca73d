"""Per-step validators for the registration wizard.

Each validator takes the current form snapshot and returns an error message, or None
when the user may move forward. They never mutate the draft.
"""
import re

from pydantic import ValidationError

from app.models.user import UserType
from app.schemas.registration import (
    InventorDraft,
    InvestorDraft,
    parse_role_draft,
)
from app.services.phone import validate_phone
from app.services.registration_steps import STEP_USERTYPE, STEP_COMPANY, STEP_PERSONAL, STEP_PITCH

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6

_PROPOSAL_MESSAGES = {
    UserType.inventor.value: (
        "Please fill in at least one commercial proposal: investment offer, brand licensing, "
        "franchise, total sale, patent license fee or full patent assignment"
    ),
    UserType.startup.value: (
        "Please fill in at least one commercial proposal for your startup: investment offer, "
        "brand licensing, franchise or total sale"
    ),
    UserType.company.value: (
        "Please fill in at least one commercial proposal for your company: investment offer, "
        "brand licensing, franchise or total sale"
    ),
}


class ValidationFailed(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def is_valid_email(value: str | None) -> bool:
    return bool(EMAIL_RE.match((value or "").strip()))


def _role(form: dict):
    try:
        return parse_role_draft(form)
    except ValidationError:
        return None


def validate_usertype(form: dict) -> str | None:
    if form.get("user_type") not in {t.value for t in UserType}:
        return "Please select your role"
    return None


def validate_company(form: dict) -> str | None:
    draft = _role(form)
    if draft is None:
        return "Please select your role"

    if isinstance(draft, InvestorDraft):
        if not draft.full_name.strip():
            return "Please enter your full name"
        if not draft.project_category.strip():
            return "Please select your investment category"
        return None

    if not isinstance(draft, InventorDraft) and not draft.company_name.strip():
        return "Please enter your company name"
    if not draft.project_name.strip():
        return "Please enter your project name"
    if not draft.project_category.strip():
        return "Please select your project category"
    if draft.company_telephone.strip():
        phone_error = validate_phone(draft.company_telephone, draft.company_phone_country_code)
        if phone_error:
            return f"Company telephone: {phone_error}"
    if not any(draft.proposal_groups().values()):
        return _PROPOSAL_MESSAGES[draft.user_type]
    return None


def validate_personal(form: dict) -> str | None:
    draft = _role(form)
    if draft is None:
        return "Please select your role"
    if not draft.full_name.strip():
        return "Please enter your full name"
    if not isinstance(draft, InvestorDraft):
        return None

    if not draft.personal_email.strip():
        return "Please enter your email"
    if not is_valid_email(draft.personal_email):
        return "Please enter a valid email"
    if draft.password and len(draft.password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if not draft.telephone.strip():
        return "Please enter your telephone"
    phone_error = validate_phone(draft.telephone, draft.phone_country_code)
    if phone_error:
        return phone_error
    if not draft.country.strip():
        return "Please select your country"
    if not draft.city.strip():
        return "Please enter your city"
    return None


def validate_pitch(form: dict) -> str | None:
    # All pitch uploads are optional for every role
    return None


VALIDATORS = {
    STEP_USERTYPE: validate_usertype,
    STEP_COMPANY: validate_company,
    STEP_PERSONAL: validate_personal,
    STEP_PITCH: validate_pitch,
}


def validate_step(step: str, form: dict) -> str | None:
    return VALIDATORS[step](form)


def validate_otp_recipient(form: dict) -> str | None:
    """The verification code must go somewhere before the OTP modal can open."""
    email = (form.get("personal_email") or "").strip()
    if not email:
        return "Please enter your email so we can send you a verification code"
    if not is_valid_email(email):
        return "Please enter a valid email"
    password = form.get("password") or ""
    if password and len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    return None
