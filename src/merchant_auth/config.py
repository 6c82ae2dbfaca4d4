"""Merchant Auth: configuration loaded from environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./merchant_auth.db"
    storage_timeout_seconds: float = 5.0

    # ── OTP ───────────────────────────────────────────────
    otp_ttl_seconds: int = 90

    # ── Credentials ───────────────────────────────────────
    password_hash_rounds: int = 200_000

    # ── Sessions (JWT) ────────────────────────────────────
    jwt_secret: str = "dev-secret-change-me"
    jwt_issuer: str = "merchant-auth"
    session_ttl_days: int = 7

    # ── SMS delivery ──────────────────────────────────────
    # Empty URL → codes are written to the log instead of sent.
    sms_gateway_url: str = ""
    sms_api_token: str = ""
    sms_sender_id: str = "MERCHANT"
    delivery_timeout_seconds: float = 5.0

    # ── App ───────────────────────────────────────────────
    app_name: str = "Merchant Auth"
    debug: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
