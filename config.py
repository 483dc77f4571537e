"""Application configuration module."""

import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_minutes(name: str, default: int) -> timedelta:
    return timedelta(minutes=int(os.getenv(name, default)))


class Config:
    """Base configuration for the Flask application."""

    # Core
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///medequip.db")
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Tokens
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    JWT_VERIFY_SECRET_KEY = os.getenv("JWT_VERIFY_SECRET_KEY", JWT_SECRET_KEY + "-verify")
    JWT_RESET_SECRET_KEY = os.getenv("JWT_RESET_SECRET_KEY", JWT_SECRET_KEY + "-reset")
    JWT_ACCESS_TOKEN_EXPIRES = _env_minutes("JWT_ACCESS_TOKEN_MINUTES", 60)
    JWT_REFRESH_TOKEN_EXPIRES = _env_minutes("JWT_REFRESH_TOKEN_MINUTES", 7 * 24 * 60)
    VERIFY_EMAIL_TOKEN_EXPIRES = _env_minutes("VERIFY_EMAIL_TOKEN_MINUTES", 30)
    RESET_PASSWORD_TOKEN_EXPIRES = _env_minutes("RESET_PASSWORD_TOKEN_MINUTES", 15)

    # Links embedded in outgoing mail
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # SMTP
    SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
    SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME") or os.getenv("EMAIL_USER")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD") or os.getenv("EMAIL_PASS")
    SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)
    SMTP_USE_SSL = _env_bool("SMTP_USE_SSL", False)
    SMTP_TIMEOUT = int(os.getenv("SMTP_TIMEOUT", 10))
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER") or SMTP_USERNAME
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", False)

    # Image storage
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "gcs")
    GCS_BUCKET = os.getenv("GCS_BUCKET") or os.getenv("FIREBASE_STORAGE_BUCKET")
    GCS_PROJECT_ID = os.getenv("GCS_PROJECT_ID") or os.getenv("FIREBASE_PROJECT_ID")
    GCS_CREDENTIALS_FILE = os.getenv("GCS_CREDENTIALS_FILE")
    GCS_MAKE_PUBLIC = _env_bool("GCS_MAKE_PUBLIC", True)
    UPLOAD_DIR = os.getenv("UPLOAD_DIR", str(Path("workspace") / "uploads"))
    UPLOAD_BASE_URL = os.getenv("UPLOAD_BASE_URL", "/uploads")
    MAX_IMAGE_SIZE = int(os.getenv("MAX_IMAGE_SIZE", 5 * 1024 * 1024))
    ALLOWED_IMAGE_EXTENSIONS = os.getenv("ALLOWED_IMAGE_EXTENSIONS", "jpeg,jpg,png")
    ALLOWED_IMAGE_MIMETYPES = os.getenv("ALLOWED_IMAGE_MIMETYPES", "image/jpeg,image/png")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", 50 * 1024 * 1024))

    # CORS
    _raw_origins = os.getenv("ORIGINS", "*")
    if _raw_origins.strip() == "*":
        CORS_ORIGINS = "*"
    else:
        CORS_ORIGINS = [o.strip() for o in _raw_origins.split(",") if o.strip()]

    # Rate limiting
    RATE_LIMIT = os.getenv("RATE_LIMIT", "60 per minute")
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_KEY_PREFIX = os.getenv("RATELIMIT_KEY_PREFIX", "")
