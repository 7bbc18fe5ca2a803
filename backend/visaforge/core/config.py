"""
Application configuration using Pydantic Settings
"""
import json
from typing import Dict, List
from urllib.parse import urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """

    # Application
    APP_NAME: str = "VisaForge"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    DASHBOARD_URL: str = "http://localhost:3000/dashboard"

    # Database
    DATABASE_URL: str
    DB_AUTO_CREATE: bool = False

    # Supabase Auth (HS256 access tokens)
    SUPABASE_JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"

    # Object storage (S3 or any S3-compatible endpoint)
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""
    EVIDENCE_BUCKET: str = "evidence"
    PACKETS_BUCKET: str = "packets"
    SIGNED_URL_TTL_SECONDS: int = 60 * 60 * 24 * 7  # 7 days

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300
    STRIPE_PRICE_CASE_STARTER: str = ""
    STRIPE_PRICE_CASE_COMPLETE: str = ""
    STRIPE_PRICE_CASE_PREMIUM: str = ""
    STRIPE_PRICE_MEMBERSHIP_MONTHLY: str = ""
    STRIPE_PRICE_UPSELL_MOCK_PRO: str = ""
    STRIPE_PRICE_UPSELL_ATTORNEY_QA: str = ""
    STRIPE_PRICE_UPSELL_HUMAN_REVIEW: str = ""
    STRIPE_PRICE_UPSELL_EXPEDITE: str = ""
    STRIPE_PRICE_UPSELL_TRANSLATION: str = ""

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TRANSCRIBE_MODEL: str = "whisper-1"
    OPENAI_TEMPERATURE: float = 0.3

    @field_validator("OPENAI_MODEL", "OPENAI_TRANSCRIBE_MODEL", mode="before")
    @classmethod
    def strip_model_id(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v

    # Email delivery
    EMAIL_PROVIDER: str = "dev"  # dev | resend
    RESEND_API_KEY: str = ""
    REMINDER_FROM_EMAIL: str = "VisaForge <no-reply@popimmigration.com>"
    CONTACT_FROM_EMAIL: str = "Pop Immigration <no-reply@popimmigration.com>"
    CONTACT_INBOXES: str = (
        '{"partnerships": "partnerships@popimmigration.com", '
        '"press": "press@popimmigration.com", '
        '"support": "support@popimmigration.com", '
        '"general": "contact@popimmigration.com"}'
    )

    # Translation vendor
    TRANSLATION_API_URL: str = "https://api.jukelingo.com/v1/translate"
    TRANSLATION_API_KEY: str = ""
    TRANSLATION_TIMEOUT_SECONDS: float = 60.0

    # Due-date reminders
    CRON_TOKEN: str = ""
    REMINDER_WINDOW_DAYS: int = 7
    REMINDERS_ENABLE_SCHEDULED_SWEEP: bool = False
    REMINDER_SWEEP_HOUR_UTC: int = 14

    # Web grounding for the advisor chat
    GROUNDING_ALLOWED_DOMAINS: str = "uscis.gov,travel.state.gov,state.gov,dol.gov,flag.dol.gov,cbp.gov"
    GROUNDING_SOURCES: str = (
        "https://www.uscis.gov/forms/filing-fees,"
        "https://egov.uscis.gov/processing-times/,"
        "https://travel.state.gov/content/travel/en/us-visas/visa-information-resources/fees/fees-visa-services.html"
    )
    GROUNDING_TIMEOUT_SECONDS: float = 8.0
    GROUNDING_CACHE_TTL_SECONDS: int = 300
    GROUNDING_DAILY_CAP: int = 200
    GROUNDING_MAX_CHARS: int = 4000

    # CORS
    CORS_ORIGINS: str = '["http://localhost:3000"]'

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from string to list"""
        try:
            if isinstance(self.CORS_ORIGINS, str):
                return json.loads(self.CORS_ORIGINS)
            return self.CORS_ORIGINS
        except json.JSONDecodeError:
            return ["http://localhost:3000"]

    @property
    def contact_inboxes(self) -> Dict[str, str]:
        try:
            return json.loads(self.CONTACT_INBOXES)
        except json.JSONDecodeError:
            return {"general": "contact@popimmigration.com"}

    @property
    def price_ids(self) -> Dict[str, str]:
        """Checkout price keys -> Stripe price ids (unset prices are dropped)."""
        table = {
            "starter": self.STRIPE_PRICE_CASE_STARTER,
            "complete": self.STRIPE_PRICE_CASE_COMPLETE,
            "premium": self.STRIPE_PRICE_CASE_PREMIUM,
            "membership_monthly": self.STRIPE_PRICE_MEMBERSHIP_MONTHLY,
            "mock_pro": self.STRIPE_PRICE_UPSELL_MOCK_PRO,
            "attorney_qa": self.STRIPE_PRICE_UPSELL_ATTORNEY_QA,
            "human_review": self.STRIPE_PRICE_UPSELL_HUMAN_REVIEW,
            "expedite": self.STRIPE_PRICE_UPSELL_EXPEDITE,
            "translation": self.STRIPE_PRICE_UPSELL_TRANSLATION,
        }
        return {k: v.strip() for k, v in table.items() if v and v.strip()}

    @property
    def grounding_sources_list(self) -> List[str]:
        return [u.strip() for u in (self.GROUNDING_SOURCES or "").split(",") if u.strip()]

    @property
    def grounding_allowed_domains_list(self) -> List[str]:
        """
        Parse comma-separated allowed domains or URLs into normalized hostnames.
        Example env:
          GROUNDING_ALLOWED_DOMAINS=uscis.gov,https://travel.state.gov/path
        """
        raw = (self.GROUNDING_ALLOWED_DOMAINS or "").strip()
        if not raw:
            return []

        out: List[str] = []
        for item in [part.strip() for part in raw.split(",") if part.strip()]:
            candidate = item if "://" in item else f"https://{item}"
            parsed = urlparse(candidate)
            host = (parsed.netloc or parsed.path or "").strip().lower()
            if "@" in host:
                host = host.split("@", 1)[1]
            if ":" in host:
                host = host.split(":", 1)[0]
            host = host.lstrip(".")
            if host.startswith("www."):
                host = host[4:]
            if host and host not in out:
                out.append(host)
        return out


# Create settings instance
settings = Settings()
