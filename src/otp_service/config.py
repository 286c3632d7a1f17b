"""OTP Service — configuration loaded from environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite://"

    # ── OTP lifecycle ─────────────────────────────────────
    otp_ttl_seconds: int = 300
    otp_purge_interval_seconds: float = 60.0

    # ── Server ────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 3001

    # ── App ───────────────────────────────────────────────
    app_name: str = "OTP Service"
    debug: bool = False
    # Exposes the non-consuming OTP lookup; never enable in production
    testing: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
