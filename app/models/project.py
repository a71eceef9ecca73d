"""Project listing shown in the gallery once approved."""
from sqlalchemy import Column, Integer, String, Text, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.database import Base, JSONType
from app.models.auth_account import new_uuid


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=new_uuid)
    # (user_id, title) is kept unique by a pre-check in the registration pipeline, not by a constraint
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    subtitle = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String(255), nullable=True)
    status = Column(String(32), nullable=False, default="pending")
    available_status = Column(Boolean, nullable=False, default=True)
    location = Column(String(255), nullable=True)
    investment_percent = Column(Float, nullable=True)
    investment_amount = Column(String(255), nullable=True)

    cover_image_url = Column(String(1024), nullable=True)
    image_urls = Column(JSONType, nullable=False, default=list)
    video_url = Column(String(1024), nullable=True)
    video_urls = Column(JSONType, nullable=False, default=list)

    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    featured = Column(Boolean, nullable=False, default=False)
    verified = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
