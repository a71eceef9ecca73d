"""Role profile, commercial proposal and pitch materials. One row each per user (upserted by user_id)."""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.database import Base, JSONType
from app.models.auth_account import new_uuid


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False, index=True)

    project_name = Column(String(255), nullable=True)
    project_category = Column(String(255), nullable=True)
    company_name = Column(String(255), nullable=True)
    company_nif = Column(String(64), nullable=True)
    company_telephone = Column(String(50), nullable=True)
    smart_money = Column(String(255), nullable=True)
    total_sale_of_project = Column(String(255), nullable=True)
    investment_preferences = Column(Text, nullable=True)
    inventor_name = Column(String(255), nullable=True)
    license_number = Column(String(128), nullable=True)
    release_date = Column(String(64), nullable=True)
    initial_license_value = Column(String(255), nullable=True)
    # Inventor only
    exploitation_license_royalty = Column(String(255), nullable=True)
    patent_sale = Column(String(255), nullable=True)
    investors_count = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class CommercialProposal(Base):
    __tablename__ = "commercial_proposals"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False, index=True)

    equity_capital_percentage = Column(String(64), nullable=True)
    equity_total_value = Column(String(255), nullable=True)
    license_fee = Column(String(255), nullable=True)
    licensing_royalties_percentage = Column(String(64), nullable=True)
    franchisee_investment = Column(String(255), nullable=True)
    monthly_royalties = Column(String(255), nullable=True)
    patent_upfront_fee = Column(String(255), nullable=True)
    patent_royalties = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class PitchMaterial(Base):
    __tablename__ = "pitch_materials"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False, index=True)

    pitch_video_url = Column(String(1024), nullable=True)
    photos_urls = Column(JSONType, nullable=False, default=list)
    pitch_videos_urls = Column(JSONType, nullable=False, default=list)
    description = Column(Text, nullable=True)
    fact_sheet = Column(Text, nullable=True)
    technical_sheet = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
