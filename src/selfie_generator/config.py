"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    storage_bucket: str = "selfies"
    stripe_secret_key: str
    stripe_webhook_secret: str
    price_cents: int = 500
    currency: str = "eur"
    public_base_url: str = "http://localhost:8000"
    checkout_expiry_minutes: int = 30
    fal_key: str
    fal_model: str = "fal-ai/fast-sdxl/image-to-image"
    fal_base_url: str = "https://queue.fal.run"
    cron_secret: str
    retention_hours: int = 24
    max_upload_bytes: int = 10 * 1024 * 1024
    http_timeout_seconds: float = 20.0
    retry_max_attempts: int = 3
    retry_backoff_seconds: list[float] = [0.5, 1.0, 2.0]
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def secure_cookies(self) -> bool:
        """Only send the session cookie over HTTPS outside local development."""
        return self.environment != "local"


def success_url(base_url: str, session_id: str) -> str:
    """Build the checkout success redirect for an app session."""
    base = base_url.rstrip("/")
    return (
        f"{base}/payment/success?session_id={{CHECKOUT_SESSION_ID}}"
        f"&app_session={session_id}"
    )


def cancel_url(base_url: str, session_id: str) -> str:
    """Build the checkout cancel redirect for an app session."""
    return f"{base_url.rstrip('/')}/payment/cancel?app_session={session_id}"
