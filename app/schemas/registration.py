"""Registration wizard schemas: the flat form snapshot, its per-role variants and API payloads."""
from typing import Annotated, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

MAX_PHOTOS = 9
MAX_EXTRA_PITCH_VIDEOS = 2

# Form fields stored on commercial_proposals. Total sale and patent sale live on profiles.
PROPOSAL_FIELDS = (
    "capital_percentage",
    "capital_total_value",
    "license_fee",
    "licensing_royalties_percentage",
    "franchisee_investment",
    "monthly_royalties",
    "initial_license_value",
    "exploitation_license_royalty",
)


class DraftForm(BaseModel):
    """Everything the wizard can collect. Stored as-is in registration_drafts.form_data."""
    model_config = ConfigDict(extra="ignore")

    user_type: str = ""

    company_name: str = ""
    project_name: str = ""
    project_category: str = ""
    company_nif: str = ""
    company_telephone: str = ""
    company_phone_country_code: str = ""
    smart_money: str = ""
    investment_preferences: str = ""
    investors_count: str = ""
    inventor_name: str = ""
    license_number: str = ""
    release_date: str = ""

    capital_percentage: str = ""
    capital_total_value: str = ""
    license_fee: str = ""
    licensing_royalties_percentage: str = ""
    franchisee_investment: str = ""
    monthly_royalties: str = ""
    total_sale_of_project: str = ""
    initial_license_value: str = ""
    exploitation_license_royalty: str = ""
    patent_sale: str = ""

    full_name: str = ""
    personal_email: str = ""
    password: str = ""
    telephone: str = ""
    phone_country_code: str = ""
    country: str = ""
    city: str = ""

    cover_image: str = ""
    cover_image_preview: str = ""
    photo: str = ""
    photo_preview: str = ""
    pitch_video: str = ""
    photos: list[str] = Field(default_factory=list)
    pitch_videos: list[str] = Field(default_factory=list)
    description: str = ""
    fact_sheet: str = ""
    technical_sheet: str = ""


class DraftUpdate(BaseModel):
    """PATCH body: any subset of form fields. Filenames of uploaded media are set by the file endpoints."""
    model_config = ConfigDict(extra="forbid")

    user_type: Literal["Inventor", "StartUp", "Company", "Investor"] | None = None
    company_name: str | None = None
    project_name: str | None = None
    project_category: str | None = None
    company_nif: str | None = None
    company_telephone: str | None = None
    company_phone_country_code: str | None = None
    smart_money: str | None = None
    investment_preferences: str | None = None
    investors_count: str | None = None
    inventor_name: str | None = None
    license_number: str | None = None
    release_date: str | None = None
    capital_percentage: str | None = None
    capital_total_value: str | None = None
    license_fee: str | None = None
    licensing_royalties_percentage: str | None = None
    franchisee_investment: str | None = None
    monthly_royalties: str | None = None
    total_sale_of_project: str | None = None
    initial_license_value: str | None = None
    exploitation_license_royalty: str | None = None
    patent_sale: str | None = None
    full_name: str | None = None
    personal_email: str | None = None
    password: str | None = None
    telephone: str | None = None
    phone_country_code: str | None = None
    country: str | None = None
    city: str | None = None
    # data:image/...;base64,... previews for cover image / photo
    cover_image_preview: str | None = None
    photo_preview: str | None = None
    description: str | None = None
    fact_sheet: str | None = None
    technical_sheet: str | None = None


# --- Role variants -------------------------------------------------------------


class _RoleDraft(BaseModel):
    model_config = ConfigDict(extra="ignore")

    full_name: str = ""
    personal_email: str = ""
    password: str = ""
    telephone: str = ""
    phone_country_code: str = ""
    country: str = ""
    city: str = ""
    project_category: str = ""
    company_name: str = ""
    smart_money: str = ""

    cover_image: str = ""
    cover_image_preview: str = ""
    photo: str = ""
    photo_preview: str = ""
    pitch_video: str = ""
    description: str = ""

    # Upload slots this role may send to storage
    media_slots: ClassVar[tuple[str, ...]] = ("cover_image", "photo", "pitch_video")


class _ProjectOwnerDraft(_RoleDraft):
    project_name: str = ""
    company_nif: str = ""
    company_telephone: str = ""
    company_phone_country_code: str = ""

    capital_percentage: str = ""
    capital_total_value: str = ""
    license_fee: str = ""
    licensing_royalties_percentage: str = ""
    franchisee_investment: str = ""
    monthly_royalties: str = ""
    total_sale_of_project: str = ""

    photos: list[str] = Field(default_factory=list)
    pitch_videos: list[str] = Field(default_factory=list)
    fact_sheet: str = ""
    technical_sheet: str = ""

    media_slots: ClassVar[tuple[str, ...]] = ("cover_image", "photo", "pitch_video", "photos", "pitch_videos")

    def proposal_groups(self) -> dict[str, bool]:
        """Which commercial proposal groups are fully populated."""
        return {
            "equity": bool(self.capital_percentage.strip() and self.capital_total_value.strip()),
            "licensing": bool(self.license_fee.strip() and self.licensing_royalties_percentage.strip()),
            "franchising": bool(self.franchisee_investment.strip() and self.monthly_royalties.strip()),
            "total_sale": bool(self.total_sale_of_project.strip()),
        }

    def has_proposal_fields(self) -> bool:
        return any((getattr(self, name, "") or "").strip() for name in PROPOSAL_FIELDS)


class InventorDraft(_ProjectOwnerDraft):
    user_type: Literal["Inventor"]
    inventor_name: str = ""
    license_number: str = ""
    release_date: str = ""
    initial_license_value: str = ""
    exploitation_license_royalty: str = ""
    patent_sale: str = ""

    def proposal_groups(self) -> dict[str, bool]:
        groups = super().proposal_groups()
        groups["patent"] = bool(self.initial_license_value.strip() or self.patent_sale.strip())
        return groups


class StartupDraft(_ProjectOwnerDraft):
    user_type: Literal["StartUp"]


class CompanyDraft(_ProjectOwnerDraft):
    user_type: Literal["Company"]


class InvestorDraft(_RoleDraft):
    user_type: Literal["Investor"]
    investment_preferences: str = ""
    investors_count: str = ""

    def has_proposal_fields(self) -> bool:
        return False


RoleDraft = Annotated[
    Union[InventorDraft, StartupDraft, CompanyDraft, InvestorDraft],
    Field(discriminator="user_type"),
]
_role_draft_adapter = TypeAdapter(RoleDraft)


def parse_role_draft(form: dict) -> InventorDraft | StartupDraft | CompanyDraft | InvestorDraft:
    """Narrow the flat form to the variant of its user_type. Fields of other roles are dropped."""
    return _role_draft_adapter.validate_python(form)


# --- API payloads -----------------------------------------------------------------


class DraftCreate(BaseModel):
    user_type: Literal["Inventor", "StartUp", "Company", "Investor"] | None = None


class StepInfo(BaseModel):
    id: str
    title: str
    description: str


class StepStatusEntry(BaseModel):
    label: str
    status: Literal["pending", "loading", "completed"]


class OtpState(BaseModel):
    open: bool = False
    email: str | None = None
    seconds_remaining: int = 0
    expired: bool = False
    sending: bool = False


class FileInfo(BaseModel):
    slot: str
    filename: str
    content_type: str | None = None
    size: int


class WizardState(BaseModel):
    draft_id: str
    steps: list[StepInfo]
    current_step: str
    progress: float
    is_oauth_user: bool
    error: str | None = None
    loading: bool = False
    form: dict
    files: list[FileInfo] = []
    otp: OtpState
    step_status: list[StepStatusEntry] = []


class OtpVerifyRequest(BaseModel):
    code: str


class RegistrationResult(BaseModel):
    user_id: str
    profile_status: str
    redirect_to: str
    access_token: str | None = None
    token_type: str = "bearer"
    message: str = "Registration complete! Please complete your subscription to continue."
    warnings: list[str] = []
    step_status: list[StepStatusEntry] = []


class StepResult(BaseModel):
    """Outcome of "Next": the new wizard state, plus the registration result when the OAuth path submitted."""
    state: WizardState
    registration: RegistrationResult | None = None


class LocationResult(BaseModel):
    detected: bool
    country: str | None = None
    country_code: str | None = None
    city: str | None = None
    state: WizardState
