from app.schemas.auth import AccountResponse, MembershipResponse, Token
from app.schemas.registration import DraftForm, DraftUpdate, RegistrationResult, WizardState, parse_role_draft
from app.schemas.profile import ProfileData
