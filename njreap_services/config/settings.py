import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Ensure .env is read from repo root (if present)
load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Supabase
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None

    # Property records lookup
    NJPR_API_KEY: Optional[str] = None
    NJPR_BASE_URL: str = "https://njpropertyrecords.com"

    # Google
    GOOGLE_CLIENT_ID: Optional[str] = None
    GOOGLE_CLIENT_SECRET: Optional[str] = None
    GOOGLE_REFRESH_TOKEN: Optional[str] = None
    GOOGLE_CALENDAR_ID: str = "primary"
    GOOGLE_PLACES_API_KEY: Optional[str] = None
    GOOGLE_PLACES_QUERIES: List[str] = []

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    INVOICE_DAYS_UNTIL_DUE: int = 30

    # Email
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM: str = "NJREAP <noreply@njreap.com>"
    STAFF_EMAIL: str = "info@njreap.com"
    BUSINESS_PHONE: str = "(908) 437-8505"

    BUSINESS_TIMEZONE: str = "America/New_York"
    AVAILABILITY_START_HOUR: int = 9
    AVAILABILITY_END_HOUR: int = 18

    # Rate limits (requests per window)
    CONTACT_RATE_LIMIT: int = 10
    CALENDAR_RATE_LIMIT: int = 20
    BOOKING_RATE_LIMIT: int = 10
    RATE_LIMIT_WINDOW_MINUTES: int = 60

    ENFORCE_STATUS_TRANSITIONS: bool = False

    FRONTEND_ORIGINS: List[str] = ["https://njreap.com", "http://localhost:8080"]
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
