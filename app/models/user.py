"""Public user record (one per auth account) and its approval status."""
from sqlalchemy import Column, String, Enum as SQLEnum, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.database import Base
import enum


class UserType(str, enum.Enum):
    inventor = "Inventor"
    startup = "StartUp"
    company = "Company"
    investor = "Investor"


class ProfileStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class User(Base):
    __tablename__ = "users"

    # Same id as auth_accounts.id (the session user id)
    id = Column(String(36), ForeignKey("auth_accounts.id"), primary_key=True)
    user_type = Column(SQLEnum(UserType, values_callable=lambda e: [m.value for m in e]), nullable=False)

    full_name = Column(String(255), nullable=False)
    personal_email = Column(String(255), index=True, nullable=False)
    telephone = Column(String(50), nullable=True)
    country = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)

    cover_image_url = Column(String(1024), nullable=True)
    photo_url = Column(String(1024), nullable=True)

    # Every new registration waits for admin approval
    profile_status = Column(
        SQLEnum(ProfileStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ProfileStatus.pending,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
