"""Transactional email via Mailgun."""
import logging

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)

MAILGUN_US_BASE = "https://api.mailgun.net"
MAILGUN_EU_BASE = "https://api.eu.mailgun.net"


def mailgun_configured() -> bool:
    s = get_settings()
    return bool(s.mailgun_api_key and s.mailgun_domain)


def send_email(to_email: str, subject: str, html_content: str, text_content: str | None = None) -> bool:
    """Send email via Mailgun. Returns True if the API accepted it."""
    settings = get_settings()
    if not mailgun_configured():
        logger.warning(
            "[Email] NOT SENT: to=%s subject=%s. MAILGUN_API_KEY and MAILGUN_DOMAIN must both be set.",
            to_email,
            subject,
        )
        return False
    return _send_email_mailgun(to_email, subject, html_content, text_content=text_content, settings=settings)


def _send_email_mailgun(to_email: str, subject: str, html_content: str, text_content: str | None = None, settings=None) -> bool:
    if settings is None:
        settings = get_settings()
    base = (settings.mailgun_base_url or MAILGUN_US_BASE).strip().rstrip("/")
    domain = (settings.mailgun_domain or "").strip().lower()
    from_addr = (settings.mailgun_from_email or "").strip()
    from_domain = from_addr.split("@")[-1].lower() if "@" in from_addr else ""
    if domain and from_domain != domain:
        # Mailgun drops mail whose sender domain differs from the sending domain
        from_addr = f"noreply@{domain}"
    data = {
        "from": f"{settings.mailgun_from_name} <{from_addr}>",
        "to": to_email,
        "subject": subject,
        "text": text_content or "",
        "html": html_content or "",
    }
    try:
        with httpx.Client(timeout=10.0) as client:
            r = client.post(f"{base}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
            if 200 <= r.status_code < 300:
                logger.info("[Mailgun] API success: to=%s status=%s", to_email, r.status_code)
                return True
            if r.status_code == 401 and base == MAILGUN_US_BASE:
                logger.info("[Mailgun] 401 with US endpoint. Retrying with EU endpoint...")
                r2 = client.post(f"{MAILGUN_EU_BASE}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
                if 200 <= r2.status_code < 300:
                    logger.info("[Mailgun] API success (EU): to=%s", to_email)
                    return True
                logger.warning("[Mailgun] EU request failed: status=%s body=%s", r2.status_code, r2.text[:500])
                return False
            logger.warning("[Mailgun] API failed: status=%s to=%s body=%s", r.status_code, to_email, r.text[:500])
            return False
    except httpx.HTTPError as e:
        logger.warning("[Mailgun] Exception: to=%s error=%s: %s", to_email, type(e).__name__, e)
        return False


def send_verification_email(to_email: str, code: str, expire_minutes: int, redirect_to: str | None = None) -> bool:
    """Send the 6-digit sign-in code for the registration wizard."""
    subject = "[Pitch Invest] Your verification code"
    text_content = f"Your Pitch Invest verification code is: {code}. It expires in {expire_minutes} minutes."
    link = f'<p>You can also continue from <a href="{redirect_to}">{redirect_to}</a>.</p>' if redirect_to else ""
    html_content = f"""
    <p>Hello,</p>
    <p>Your Pitch Invest verification code is: <strong style="font-size:1.2em;letter-spacing:0.2em;">{code}</strong></p>
    <p>This code expires in {expire_minutes} minutes. If you did not request this, you can ignore this email.</p>
    {link}
    <p>- Pitch Invest</p>
    """
    return send_email(to_email, subject, html_content, text_content=text_content)


def send_registration_received_email(to_email: str, full_name: str | None = None) -> bool:
    name = (full_name or "").strip() or "there"
    subject = "[Pitch Invest] Registration received"
    text = (
        f"Hi {name}, thanks for registering with Pitch Invest. Complete your subscription; "
        "your profile will be reviewed by our team before it goes public."
    )
    html = f"""
    <p>Hi {name},</p>
    <p>Thanks for registering with <strong>Pitch Invest</strong>.</p>
    <p>Complete your subscription to continue. Your profile will be reviewed by our team before it goes public.</p>
    <p>- Pitch Invest</p>
    """
    return send_email(to_email, subject, html, text_content=text)


def send_profile_status_email(to_email: str, full_name: str | None, status: str) -> bool:
    name = (full_name or "").strip() or "there"
    if status == "approved":
        subject = "[Pitch Invest] Your profile is approved"
        body = "Your profile has been approved. You now have full access to the platform."
    elif status == "rejected":
        subject = "[Pitch Invest] Your profile was not approved"
        body = "Your profile was not approved. Please contact support for more information."
    else:
        subject = "[Pitch Invest] Your profile is under review"
        body = "Your profile is pending review again. We will let you know once it has been reviewed."
    html = f"<p>Hi {name},</p><p>{body}</p><p>- Pitch Invest</p>"
    return send_email(to_email, subject, html, text_content=f"Hi {name}, {body}")
