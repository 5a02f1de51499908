"""
Configuration management for the photo gallery API.
Uses Pydantic Settings for environment variable management.
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_TITLE: str = "Photo Gallery API"
    API_VERSION: str = "0.1.0"
    API_DESCRIPTION: str = "Backend API for the public photo gallery and its admin back-office"

    # Public site, used for links in emails and the RSS feed
    SITE_URL: str = "https://example.com"
    SITE_TITLE: str = "Photos"
    SITE_DESCRIPTION: str = "Latest albums"

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Relational store
    DATABASE_URL: str = "sqlite+aiosqlite:///./photos.db"

    # Key-value store for counters and rate limiting.
    # redis://... for Redis, memory:// for in-process, empty to fall back to the database.
    KV_URL: str = ""

    # Per-endpoint HTTP rate limits (slowapi)
    RATE_LIMIT_ENABLED: bool = True

    # Admin credentials. ADMIN_PASS_HASH is either pbkdf2:<iter>:<salt_hex>:<hash_hex> or bcrypt.
    # ADMIN_PASS (plaintext) is accepted only when no hash is set.
    ADMIN_USER: str = ""
    ADMIN_PASS: str = ""
    ADMIN_PASS_HASH: str = ""

    # Session signing secret (generate with: openssl rand -hex 32)
    SESSION_SECRET: str = ""
    SESSION_MAX_AGE: int = 60 * 60 * 12

    # Media storage
    MEDIA_DEFAULT_PROVIDER: str = ""
    MEDIA_LOCAL_DIR: str = "uploads"
    MEDIA_LOCAL_PUBLIC_URL: str = "/uploads"
    MEDIA_DOMAIN: str = ""
    MEDIA_THUMB_STYLE: str = ""
    MEDIA_MEDIUM_STYLE: str = ""
    MEDIA_LARGE_STYLE: str = ""

    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""

    # Reverse geocoding of photo GPS coordinates
    GEOCODE_ENABLED: bool = True
    GEOCODE_URL: str = "https://nominatim.openstreetmap.org/reverse"

    # Newsletter delivery via Resend
    RESEND_API_KEY: str = ""
    RESEND_FROM_EMAIL: str = "updates@example.com"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings


# Global settings instance
settings = Settings()
