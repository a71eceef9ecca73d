"""Joined profile view: user, role profile, commercial proposal and pitch materials."""
from datetime import datetime

from pydantic import BaseModel, field_validator

from app.models.user import UserType, ProfileStatus


class UserOut(BaseModel):
    id: str
    user_type: UserType
    full_name: str
    personal_email: str
    telephone: str | None = None
    country: str | None = None
    city: str | None = None
    cover_image_url: str | None = None
    photo_url: str | None = None
    profile_status: ProfileStatus
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ProfileOut(BaseModel):
    id: str
    user_id: str
    project_name: str | None = None
    project_category: str | None = None
    company_name: str | None = None
    company_nif: str | None = None
    company_telephone: str | None = None
    smart_money: str | None = None
    total_sale_of_project: str | None = None
    investment_preferences: str | None = None
    inventor_name: str | None = None
    license_number: str | None = None
    release_date: str | None = None
    initial_license_value: str | None = None
    exploitation_license_royalty: str | None = None
    patent_sale: str | None = None
    investors_count: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ProposalOut(BaseModel):
    id: str
    user_id: str
    equity_capital_percentage: str | None = None
    equity_total_value: str | None = None
    license_fee: str | None = None
    licensing_royalties_percentage: str | None = None
    franchisee_investment: str | None = None
    monthly_royalties: str | None = None
    patent_upfront_fee: str | None = None
    patent_royalties: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class MaterialsOut(BaseModel):
    id: str
    user_id: str
    pitch_video_url: str | None = None
    photos_urls: list[str] = []
    pitch_videos_urls: list[str] = []
    description: str | None = None
    fact_sheet: str | None = None
    technical_sheet: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True

    @field_validator("photos_urls", "pitch_videos_urls", mode="before")
    @classmethod
    def as_list(cls, v):
        return v if isinstance(v, list) else []


class ProfileData(BaseModel):
    user: UserOut | None = None
    profile: ProfileOut | None = None
    proposals: ProposalOut | None = None
    materials: MaterialsOut | None = None
    available_options: list[str] = []
