"""Environment-backed configuration for the Glamlink API."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _bool_env(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _list_env(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///glamlink.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    CORS_ORIGINS = _list_env("CORS_ORIGINS", "*")

    # Emails always treated as admins, regardless of stored role
    ADMIN_EMAILS = [email.lower() for email in _list_env("ADMIN_EMAILS")]
    AUTH_TOKEN_MAX_AGE = _int_env("AUTH_TOKEN_MAX_AGE", 86400)

    SECTION_LOCK_MINUTES = _int_env("SECTION_LOCK_MINUTES", 5)
    DIGITAL_CARD_MAX_SUBMISSIONS = _int_env("DIGITAL_CARD_MAX_SUBMISSIONS", 100)
    SUPPORT_MESSAGES_PER_MINUTE = _int_env("SUPPORT_MESSAGES_PER_MINUTE", 10)

    # Mailchimp; newsletter runs in development mode when unset
    MAILCHIMP_API_KEY = os.getenv("MAILCHIMP_API_KEY")
    MAILCHIMP_LIST_ID = os.getenv("MAILCHIMP_LIST_ID")
    MAILCHIMP_SERVER_PREFIX = os.getenv("MAILCHIMP_SERVER_PREFIX")
    MAILCHIMP_TIMEOUT = _int_env("MAILCHIMP_TIMEOUT", 10)
    MAILCHIMP_FROM_EMAIL = os.getenv("MAILCHIMP_FROM_EMAIL", "noreply@glamlink.com")
    MAILCHIMP_FROM_NAME = os.getenv("MAILCHIMP_FROM_NAME", "Glamlink")
    # Campaign id copied for new campaigns when template mode is on
    MAILCHIMP_TEMPLATE_CAMPAIGN_ID = os.getenv("MAILCHIMP_TEMPLATE_CAMPAIGN_ID")
    MAILCHIMP_USE_TEMPLATE_MODE = _bool_env("MAILCHIMP_USE_TEMPLATE_MODE")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    ADMIN_EMAILS: list[str] = []
    MAILCHIMP_API_KEY = None
    MAILCHIMP_LIST_ID = None
    MAILCHIMP_TEMPLATE_CAMPAIGN_ID = None
    MAILCHIMP_USE_TEMPLATE_MODE = False
