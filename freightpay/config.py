"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Execution environment: "dev" | "test" | "staging" | "prod"
ENV = os.getenv("FREIGHTPAY_ENV", "dev").lower()

PAYFAST_SANDBOX_PROCESS_URL = "https://sandbox.payfast.co.za/eng/process"
PAYFAST_SANDBOX_VALIDATE_URL = "https://sandbox.payfast.co.za/eng/query/validate"
PAYFAST_LIVE_PROCESS_URL = "https://www.payfast.co.za/eng/process"
PAYFAST_LIVE_VALIDATE_URL = "https://www.payfast.co.za/eng/query/validate"


class Settings(BaseSettings):
    """Environment configuration for the freightpay backend."""

    app_env: str = ENV
    database_url: str = "sqlite:///freightpay.db"
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: list[str] = [
        "https://loadhitch.co.za",
        "http://localhost:3000",
    ]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = True
    ALLOW_DB_CREATE_ALL: bool = False
    SEED_RATE_TIERS: bool = False

    # Public URL the gateway redirects back to and posts ITNs against.
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    DASHBOARD_PATH: str = "/dashboard"

    # --- PayFast ---------------------------------------------------------
    PAYFAST_MERCHANT_ID: str = "10000100"
    PAYFAST_MERCHANT_KEY: str = "46f0cd694581a"
    payfast_passphrase: str | None = None
    PAYFAST_SANDBOX: bool = True
    PAYFAST_VERIFY_WITH_GATEWAY: bool = True
    PAYFAST_TIMEOUT_SECONDS: float = 10.0

    # --- Payment collaborator -------------------------------------------
    GATEWAY_MODE: str = "simulated"
    PAYMENT_LOCK_TTL_SECONDS: int = 120

    # --- Pricing ---------------------------------------------------------
    PRICING_TIMEZONE: str = "Africa/Johannesburg"
    PRICING_DEFAULT_CATEGORY: str = "General"
    MAPBOX_ACCESS_TOKEN: str | None = None
    ROUTING_BASE_URL: str = "https://api.mapbox.com"
    ROUTING_TIMEOUT_SECONDS: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8"
    )

    @field_validator("payfast_passphrase", "MAPBOX_ACCESS_TOKEN")
    @classmethod
    def _strip_empty_secret(cls, value: str | None) -> str | None:
        """Normalise empty secrets to ``None`` for easier validation."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @property
    def payfast_process_url(self) -> str:
        return PAYFAST_SANDBOX_PROCESS_URL if self.PAYFAST_SANDBOX else PAYFAST_LIVE_PROCESS_URL

    @property
    def payfast_validate_url(self) -> str:
        return PAYFAST_SANDBOX_VALIDATE_URL if self.PAYFAST_SANDBOX else PAYFAST_LIVE_VALIDATE_URL


class AppInfo(BaseModel):
    name: str = "freightpay"
    version: str = "0.1.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = [
    "ENV",
    "PAYFAST_SANDBOX_PROCESS_URL",
    "PAYFAST_SANDBOX_VALIDATE_URL",
    "PAYFAST_LIVE_PROCESS_URL",
    "PAYFAST_LIVE_VALIDATE_URL",
    "Settings",
    "AppInfo",
    "settings",
    "get_settings",
]
