"""
Configuration for the roof inspection service.

Store settings come from the environment (.env is loaded first).
STORAGE_BACKEND selects the Blob Store / Record Store implementation:
    supabase - Supabase Storage + PostgREST (production)
    local    - files under LOCAL_STORAGE_PATH (development, tests)
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    SESSION_COOKIE_NAME = "roof_inspection_session"
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # Whole request (all photos of one upload call)
    MAX_CONTENT_LENGTH = 64 * 1024 * 1024  # 64 MB
    # Single photo
    MAX_IMAGE_BYTES = int(os.environ.get("MAX_IMAGE_BYTES", str(15 * 1024 * 1024)))

    # ==========================================================================
    # Stores
    # ==========================================================================
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "supabase")

    SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
    SUPABASE_KEY = os.environ.get("SUPABASE_KEY", "")
    STORAGE_BUCKET = os.environ.get("STORAGE_BUCKET", "roof-inspection-images")
    REPORTS_TABLE = os.environ.get("REPORTS_TABLE", "roof_inspections")

    LOCAL_STORAGE_PATH = os.environ.get("LOCAL_STORAGE_PATH", str(BASE_DIR / "instance" / "storage"))
    LOCAL_PUBLIC_URL = os.environ.get("LOCAL_PUBLIC_URL", "/media")

    # Per-operation timeout for every store call
    STORE_TIMEOUT_SECONDS = float(os.environ.get("STORE_TIMEOUT_SECONDS", "30"))

    # ==========================================================================
    # Submission pipeline
    # ==========================================================================
    UPLOAD_MAX_WORKERS = int(os.environ.get("UPLOAD_MAX_WORKERS", "4"))
    CACHE_CONTROL = os.environ.get("CACHE_CONTROL", "3600")

    # Fail at startup if the record store lacks a declared report column
    VERIFY_SCHEMA_ON_STARTUP = _env_bool("VERIFY_SCHEMA_ON_STARTUP", "true")

    # Clear the form after a successful submission
    AUTO_RESET_AFTER_SUBMIT = _env_bool("AUTO_RESET_AFTER_SUBMIT", "true")

    # Form sessions untouched this long are dropped (0 disables expiry)
    SESSION_IDLE_SECONDS = float(os.environ.get("SESSION_IDLE_SECONDS", str(4 * 60 * 60)))


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "local")


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    STORAGE_BACKEND = "local"
    VERIFY_SCHEMA_ON_STARTUP = True
    AUTO_RESET_AFTER_SUBMIT = True
