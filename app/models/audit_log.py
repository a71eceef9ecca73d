"""Append-only audit log for registration and approval events.
No updates or deletes - every record is permanent."""
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from app.database import Base, JSONType


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # Subject of the event (the registering / reviewed user); nullable for pre-account events
    user_id = Column(String(36), nullable=True, index=True)
    draft_id = Column(String(36), nullable=True, index=True)

    # category: registration | status_change | failed_attempt
    category = Column(String(32), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    # Optional structured data (e.g. old_value, new_value, reason)
    meta = Column(JSONType, nullable=True)

    # Who did it (if applicable)
    actor_user_id = Column(String(36), nullable=True)
    actor_email = Column(String(255), nullable=True)

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    # UTC only - server_default
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
