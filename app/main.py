"""Pitch Invest – registration API."""
# Load .env before any app code that might read config
from dotenv import load_dotenv
from pathlib import Path
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import scheduler
from app.config import get_settings
from app.database import Base, engine
# Import models so Base.metadata has all tables before create_all (schema source of truth)
from app.models import (  # noqa: F401
    AuthAccount, AuthSession, EmailOtp, User, Profile, CommercialProposal, PitchMaterial,
    Project, RegistrationDraft, DraftFile, Subscription, AuditLog,
)
from app.routers import admin, auth, profiles, registration

log = logging.getLogger("uvicorn.error")

settings = get_settings()
app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(registration.router)
app.include_router(profiles.router)
app.include_router(admin.router)


@app.on_event("startup")
def startup():
    if settings.mailgun_api_key and settings.mailgun_domain:
        from_addr = settings.mailgun_from_email or ""
        from_domain = from_addr.split("@")[-1].lower() if "@" in from_addr else ""
        send_domain = (settings.mailgun_domain or "").strip().lower()
        if from_domain and send_domain and from_domain != send_domain:
            log.warning("[Mailgun] from=%s does not match domain=%s. Emails may not be delivered!", from_addr, settings.mailgun_domain)
        else:
            log.info("[Mailgun] Using domain=%s from=%s", settings.mailgun_domain, from_addr or "(none)")
    else:
        log.warning("[Mailgun] Not configured - verification codes cannot be sent; set MAILGUN_API_KEY and MAILGUN_DOMAIN in .env")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        log.warning("Database startup failed (tables skipped). Check DATABASE_URL and network. Error: %s", e)

    # OTP countdown jobs
    scheduler.start()


@app.on_event("shutdown")
def shutdown():
    scheduler.shutdown()


@app.get("/")
def root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
