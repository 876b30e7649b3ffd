"""
Centralized application configuration

All runtime settings for the Trendify backend, loaded from the environment
and an optional .env file.
"""
import json
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    API_TITLE: str = "Trendify API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Storefront and back-office API for Trendify"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./trendify.db"

    # CORS - Can be string (comma-separated) or JSON array
    # Example: "http://localhost:3000,https://yourdomain.com" or '["http://localhost:3000"]'
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000"

    # Auth (tokens are issued by the identity provider, we only verify them)
    AUTH_SECRET: str = ""

    # Paystack
    PAYSTACK_SECRET_KEY: str = ""
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_CURRENCY: str = "GHS"
    PAYSTACK_TIMEOUT_SECONDS: float = 10.0
    APP_URL: str = "http://localhost:3000"

    # Checkout rules
    DEFAULT_DOOR_FEE: float = 35.0
    ORDER_IDEMPOTENCY_WINDOW_MINUTES: int = 10
    RESERVATION_TTL_MINUTES: int = 30
    ESTIMATED_DELIVERY_DAYS: int = 3
    RETURN_WINDOW_DAYS: int = 30

    # Rate limits (requests per minute, per caller)
    RATE_LIMIT_AUTHENTICATED: int = 600
    RATE_LIMIT_ANONYMOUS: int = 120

    # Scheduled jobs
    CRON_SECRET: str = ""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        # Try JSON parse first (for array format)
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def paystack_currency(self) -> str:
        return (self.PAYSTACK_CURRENCY or "GHS").upper()


@lru_cache()
def get_settings() -> Settings:
    """Cached settings accessor (tests clear it with get_settings.cache_clear())"""
    return Settings()
