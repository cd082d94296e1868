"""
Configuration management.
Loads from config_local.py (gitignored) for secrets, with defaults.
"""
import os
from typing import Optional

# Try to import local config (gitignored)
try:
    from barsuite.config_local import (
        DATABASE_URL,
        JWT_SECRET,
        JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
        JWT_REFRESH_TOKEN_EXPIRE_DAYS,
        GOOGLE_CLIENT_ID,
        GOOGLE_CLIENT_SECRET,
        GOOGLE_REDIRECT_URI,
        STRIPE_SECRET_KEY,
        STRIPE_WEBHOOK_SECRET,
        STRIPE_BASIC_MONTHLY_PRICE_ID,
        STRIPE_BASIC_YEARLY_PRICE_ID,
        STRIPE_PREMIUM_MONTHLY_PRICE_ID,
        STRIPE_PREMIUM_YEARLY_PRICE_ID,
        TRIAL_PERIOD_DAYS,
        SMTP_HOST,
        SMTP_PORT,
        SMTP_USERNAME,
        SMTP_PASSWORD,
        SMTP_FROM_EMAIL,
        SMTP_FROM_NAME,
        EMAIL_VERIFICATION_TOKEN_EXPIRY_HOURS,
        PASSWORD_RESET_TOKEN_EXPIRY_HOURS,
        INVITATION_EXPIRY_DAYS,
        FRONTEND_BASE_URL,
        CORS_ORIGINS,
        LOG_LEVEL,
    )
except ImportError:
    # Fallback defaults, overridable from the environment
    DATABASE_URL: str = os.getenv("BARSUITE_DATABASE_URL", "sqlite:///./barsuite.db")
    JWT_SECRET: Optional[str] = os.getenv("BARSUITE_JWT_SECRET")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    GOOGLE_CLIENT_ID: Optional[str] = os.getenv("GOOGLE_CLIENT_ID")
    GOOGLE_CLIENT_SECRET: Optional[str] = os.getenv("GOOGLE_CLIENT_SECRET")
    GOOGLE_REDIRECT_URI: str = "http://localhost:3000/auth/google/callback"
    STRIPE_SECRET_KEY: Optional[str] = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET: Optional[str] = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_BASIC_MONTHLY_PRICE_ID: Optional[str] = os.getenv("STRIPE_BASIC_MONTHLY_PRICE_ID")
    STRIPE_BASIC_YEARLY_PRICE_ID: Optional[str] = os.getenv("STRIPE_BASIC_YEARLY_PRICE_ID")
    STRIPE_PREMIUM_MONTHLY_PRICE_ID: Optional[str] = os.getenv("STRIPE_PREMIUM_MONTHLY_PRICE_ID")
    STRIPE_PREMIUM_YEARLY_PRICE_ID: Optional[str] = os.getenv("STRIPE_PREMIUM_YEARLY_PRICE_ID")
    TRIAL_PERIOD_DAYS: int = 90
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 465
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: Optional[str] = None
    SMTP_FROM_NAME: str = "BarSuite"
    EMAIL_VERIFICATION_TOKEN_EXPIRY_HOURS: int = 24
    PASSWORD_RESET_TOKEN_EXPIRY_HOURS: int = 1
    INVITATION_EXPIRY_DAYS: int = 7
    FRONTEND_BASE_URL: str = "http://localhost:3000"
    CORS_ORIGINS: list = ["http://localhost:3000", "http://127.0.0.1:3000"]
    LOG_LEVEL: str = os.getenv("BARSUITE_LOG_LEVEL", "INFO")


def get_settings():
    """Return settings object (for FastAPI dependency injection if needed)."""
    return type("Settings", (), {
        "database_url": DATABASE_URL,
        "jwt_secret": JWT_SECRET,
        "jwt_access_token_expire_minutes": JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
        "jwt_refresh_token_expire_days": JWT_REFRESH_TOKEN_EXPIRE_DAYS,
        "google_client_id": GOOGLE_CLIENT_ID,
        "google_client_secret": GOOGLE_CLIENT_SECRET,
        "google_redirect_uri": GOOGLE_REDIRECT_URI,
        "stripe_secret_key": STRIPE_SECRET_KEY,
        "stripe_webhook_secret": STRIPE_WEBHOOK_SECRET,
        "trial_period_days": TRIAL_PERIOD_DAYS,
        "smtp_host": SMTP_HOST,
        "smtp_port": SMTP_PORT,
        "smtp_username": SMTP_USERNAME,
        "smtp_password": SMTP_PASSWORD,
        "smtp_from_email": SMTP_FROM_EMAIL,
        "smtp_from_name": SMTP_FROM_NAME,
        "email_verification_token_expiry_hours": EMAIL_VERIFICATION_TOKEN_EXPIRY_HOURS,
        "password_reset_token_expiry_hours": PASSWORD_RESET_TOKEN_EXPIRY_HOURS,
        "invitation_expiry_days": INVITATION_EXPIRY_DAYS,
        "frontend_base_url": FRONTEND_BASE_URL,
        "cors_origins": CORS_ORIGINS,
        "log_level": LOG_LEVEL,
    })()
