"""Platform access: admin bypass, otherwise an active subscription AND an approved profile.

Also the admin side of approval: moving a profile between pending, approved and rejected.
"""
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.subscription import Subscription, ACTIVE_SUBSCRIPTION_STATUSES
from app.models.user import User, ProfileStatus
from app.services import clock
from app.services.audit_log import create_log, CATEGORY_STATUS_CHANGE
from app.services.identity import SessionInfo
from app.services.notifications import send_profile_status_email

logger = logging.getLogger(__name__)


@dataclass
class AccessStatus:
    has_active_subscription: bool
    is_approved: bool
    profile_status: str | None
    is_admin: bool

    @property
    def can_access(self) -> bool:
        return self.is_admin or (self.has_active_subscription and self.is_approved)

    def message(self) -> tuple[str, str, str] | None:
        """(title, description, action path) shown when access is denied."""
        if self.can_access:
            return None
        if not self.has_active_subscription:
            return (
                "Subscription Required",
                "You need an active subscription to access this platform. "
                "Please complete your subscription to continue.",
                get_settings().subscription_path,
            )
        if self.profile_status == ProfileStatus.pending.value:
            return (
                "Account Pending Approval",
                "Your account is pending admin approval. Once approved, you will have full access "
                "to the platform. Please check back soon.",
                "/subscription",
            )
        if self.profile_status == ProfileStatus.rejected.value:
            return (
                "Account Not Approved",
                "Your account has been rejected. Please contact support for more information.",
                "/contact",
            )
        return (
            "Access Restricted",
            "You do not have access to this platform. Please ensure you have an active "
            "subscription and your account is approved.",
            "/subscription",
        )


def is_admin_email(email: str | None) -> bool:
    admin = (get_settings().admin_email or "").strip().lower()
    return bool(admin) and (email or "").strip().lower() == admin


def has_active_subscription(db: Session, user_id: str) -> bool:
    now = clock.utcnow()
    for sub in db.query(Subscription).filter(
        Subscription.user_id == user_id,
        Subscription.status.in_(ACTIVE_SUBSCRIPTION_STATUSES),
    ):
        end = clock.as_utc(sub.current_period_end)
        if end is None or end > now:
            return True
    return False


def access_status(db: Session, session: SessionInfo) -> AccessStatus:
    if is_admin_email(session.account.email):
        return AccessStatus(
            has_active_subscription=True,
            is_approved=True,
            profile_status=ProfileStatus.approved.value,
            is_admin=True,
        )
    user = db.query(User).filter(User.id == session.user_id).first()
    # No users row yet counts as pending
    status = user.profile_status.value if user and user.profile_status else ProfileStatus.pending.value
    return AccessStatus(
        has_active_subscription=has_active_subscription(db, session.user_id),
        is_approved=status == ProfileStatus.approved.value,
        profile_status=status,
        is_admin=False,
    )


def set_profile_status(
    db: Session,
    user_id: str,
    status: ProfileStatus,
    *,
    actor: SessionInfo,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> User | None:
    """Admin transition. Returns None if the user does not exist."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        return None
    previous = user.profile_status.value if user.profile_status else None
    if previous == status.value:
        return user
    user.profile_status = status
    create_log(
        db,
        CATEGORY_STATUS_CHANGE,
        "Profile status changed",
        f"Profile of {user.personal_email} changed from {previous} to {status.value}.",
        user_id=user.id,
        actor_user_id=actor.user_id,
        actor_email=actor.account.email,
        ip_address=ip_address,
        user_agent=user_agent,
        meta={"previous": previous, "new": status.value},
    )
    db.commit()
    db.refresh(user)
    logger.info("[Admin] %s set profile_status=%s for user=%s", actor.account.email, status.value, user.id)
    if status != ProfileStatus.pending:
        if not send_profile_status_email(user.personal_email, user.full_name, status.value):
            logger.warning("[Admin] Status email not sent to %s", user.personal_email)
    return user
