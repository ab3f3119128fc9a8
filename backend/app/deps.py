"""Dependency providers and settings management."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.orm import Session

from .database import get_db
from .services.experiment_tracker import ExperimentTracker
from .services.member_registry import MemberRegistry
from .services.notification_service import MailTransport, NotificationDispatcher, ResendMailTransport
from .services.referral_resolver import ReferralResolver
from .services.signature_service import SignatureService
from .services.token_service import IdentityCookieIssuer, TokenService


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"
    # Cookie domain must NOT include protocol (https://)
    # None keeps the member_id cookie same-origin
    COOKIE_DOMAIN: Optional[str] = None
    SESSION_SECRET_KEY: str = "session-secret-change-this-in-production"

    # Key for link/cookie tokens. Changing it invalidates every link already
    # emailed unless the token index is rebuilt (scripts/rebuild_token_index.py).
    TOKEN_HASH_SECRET: str = "token-secret-change-this-in-production"

    # Public site used in confirmation email links
    SITE_URL: str = "http://localhost:8000"
    MEMBER_COOKIE_MAX_AGE: int = 365 * 24 * 3600  # 1 year

    # Mail (Resend)
    RESEND_API_KEY: Optional[str] = None
    RESEND_FROM_EMAIL: str = "Petitions <petitions@example.org>"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def get_token_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> TokenService:
    return TokenService(db, settings.TOKEN_HASH_SECRET)


def get_mail_transport(settings: Settings = Depends(get_settings)) -> MailTransport:
    return ResendMailTransport(api_key=settings.RESEND_API_KEY, from_email=settings.RESEND_FROM_EMAIL)


def get_experiment_tracker(db: Session = Depends(get_db)) -> ExperimentTracker:
    return ExperimentTracker(db)


def get_signature_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
    transport: MailTransport = Depends(get_mail_transport),
    tracker: ExperimentTracker = Depends(get_experiment_tracker),
) -> SignatureService:
    """Wire a SignatureService to the request's session."""
    return SignatureService(
        db=db,
        registry=MemberRegistry(db, tokens.members),
        resolver=ReferralResolver(db, tokens),
        tracker=tracker,
        dispatcher=NotificationDispatcher(transport, settings.SITE_URL, tokens.members),
        cookies=IdentityCookieIssuer(tokens.members),
    )
