"""
Centralized configuration for Sports Finder.

All configurable values are loaded from environment variables with sensible defaults.
"""

import os


def _require_env(name: str, test_default: str) -> str:
    """
    Get a required environment variable.

    In testing mode, returns a test default. In production, raises an error if not set.
    """
    value = os.getenv(name)
    if value:
        return value

    # Allow test defaults only in testing mode
    if os.getenv("TESTING"):
        return test_default

    raise ValueError(
        f"Required environment variable {name} is not set. "
        f"Set {name} in your environment or deployment secrets."
    )


class Config:
    """Application configuration loaded from environment variables."""

    SITE_NAME: str = os.getenv("SITE_NAME", "Sports Finder")

    # Database
    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "sports_finder.db")

    # Security - these are required in production
    # Admin back-office endpoints (X-Admin-Key header)
    ADMIN_KEY: str = _require_env("ADMIN_KEY", "test-admin-key")
    # Scraper ingestion endpoints (?key= query parameter)
    INGEST_API_KEY: str = _require_env("INGEST_API_KEY", "test-ingest-key")

    # Geocoding (Nominatim requires an identifying User-Agent)
    GEOCODER_URL: str = os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org/search")
    GEOCODER_USER_AGENT: str = os.getenv("GEOCODER_USER_AGENT", "SportsFinder/1.0")
    GEOCODE_TIMEOUT_SECONDS: float = float(os.getenv("GEOCODE_TIMEOUT_SECONDS", "10"))
    GEOCODE_CACHE_DAYS: int = int(os.getenv("GEOCODE_CACHE_DAYS", "30"))

    # Listing defaults
    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
    MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "200"))
    DEFAULT_DISTANCE_UNIT: str = os.getenv("DEFAULT_DISTANCE_UNIT", "mi")  # km, m, or mi

    # Rate limiting
    RATE_LIMIT_PUBLIC: str = os.getenv("RATE_LIMIT_PUBLIC", "60/minute")

    # Testing mode
    TESTING: bool = bool(os.getenv("TESTING", ""))


# Global config instance
config = Config()
