"""Read model for a registered user: every row the registration pipeline writes, joined."""
from sqlalchemy.orm import Session

from app.models.profile import Profile, CommercialProposal, PitchMaterial
from app.models.user import User, ProfileStatus
from app.schemas.profile import ProfileData, UserOut, ProfileOut, ProposalOut, MaterialsOut

OPTION_EQUITY = "Investment Offer (%)"
OPTION_BRAND = "Brand Exploitation Rights"
OPTION_FRANCHISE = "Franchise"
OPTION_PATENT = "Patent Licensing"
OPTION_TOTAL_SALE = "Total Sale"


def available_options(proposals: CommercialProposal | None, profile: Profile | None) -> list[str]:
    """Investment options a profile offers, in display order."""
    options: list[str] = []
    if not proposals:
        return options
    if proposals.equity_capital_percentage or proposals.equity_total_value:
        options.append(OPTION_EQUITY)
    if proposals.license_fee or proposals.licensing_royalties_percentage:
        options.append(OPTION_BRAND)
    if proposals.franchisee_investment or proposals.monthly_royalties:
        options.append(OPTION_FRANCHISE)
    if proposals.patent_upfront_fee or proposals.patent_royalties:
        options.append(OPTION_PATENT)
    # Total sale lives on the profile row
    if profile is not None and profile.total_sale_of_project:
        options.append(OPTION_TOTAL_SALE)
    return options


def fetch_user_profile(db: Session, user_id: str) -> ProfileData:
    """Missing rows come back as None so callers can still render a partial profile."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return ProfileData()
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    proposals = db.query(CommercialProposal).filter(CommercialProposal.user_id == user_id).first()
    materials = db.query(PitchMaterial).filter(PitchMaterial.user_id == user_id).first()
    return ProfileData(
        user=UserOut.model_validate(user),
        profile=ProfileOut.model_validate(profile) if profile else None,
        proposals=ProposalOut.model_validate(proposals) if proposals else None,
        materials=MaterialsOut.model_validate(materials) if materials else None,
        available_options=available_options(proposals, profile),
    )


def list_profiles(db: Session, status: ProfileStatus | None = None, limit: int = 100, offset: int = 0) -> list[User]:
    q = db.query(User)
    if status:
        q = q.filter(User.profile_status == status)
    return q.order_by(User.created_at.desc()).offset(offset).limit(limit).all()
