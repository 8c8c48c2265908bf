"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


def _split_csv(value: str) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items."""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    run_migrations_on_startup: bool = False

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    api_title: str = "MZone API"
    api_version: str = "0.1.0"
    api_description: str = "Accounts and subscriptions for MZone Premium"

    # CORS - comma-separated origins
    cors_origins: str = "https://tgzoro12.github.io,http://localhost:3000,http://127.0.0.1:5500"

    # Session tokens
    jwt_secret: str = ""  # generate with: openssl rand -hex 32
    jwt_expire_days: int = 7

    # Registration / email verification
    otp_enabled: bool = True  # False = accounts are verified at registration
    otp_ttl_minutes: int = 10
    password_min_length: int = 10

    # Email delivery - Resend
    resend_api_key: str = ""  # Empty = log emails instead of sending
    resend_base_url: str = "https://api.resend.com"
    email_from: str = "MZone <onboarding@resend.dev>"

    # Payment Provider - Paystack
    paystack_secret_key: str = ""  # sk_test_... or sk_live_...
    paystack_base_url: str = "https://api.paystack.co"
    frontend_url: str = "https://tgzoro12.github.io/mzone"
    payment_callback_path: str = "/dashboard.html?payment=success"

    # Outbound HTTP calls (payment provider, email)
    http_timeout_seconds: float = 10.0

    # Plans and discounts
    default_plan_id: str = "monthly"
    discount_codes: str = ""  # e.g. "WELCOME10:10,LAUNCH50:50"
    inactive_discount_codes: str = ""  # e.g. "EXPIRED2024"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability
    metrics_enabled: bool = True
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "mzone-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start if critical config is missing.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if not self.jwt_secret:
            errors.append("JWT_SECRET is required but empty or missing")
        elif len(self.jwt_secret) < 32:
            errors.append("JWT_SECRET must be at least 32 characters")

        if self.otp_ttl_minutes <= 0:
            errors.append(f"OTP_TTL_MINUTES must be positive, got: {self.otp_ttl_minutes}")

        for pair in _split_csv(self.discount_codes):
            code, _, percent = pair.partition(":")
            if not code or not percent.isdigit() or not 0 <= int(percent) <= 100:
                errors.append(f"DISCOUNT_CODES entry must be CODE:PERCENT (0-100), got: {pair}")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def allowed_origins(self) -> list[str]:
        """Get list of CORS origins."""
        return _split_csv(self.cors_origins)

    @property
    def payment_callback_url(self) -> str:
        """Absolute URL the payment provider redirects to after checkout."""
        return f"{self.frontend_url.rstrip('/')}{self.payment_callback_path}"

    @property
    def active_discount_codes(self) -> list[tuple[str, int]]:
        """Get (code, percent_off) pairs for discount codes that are not disabled."""
        inactive = {code.upper() for code in _split_csv(self.inactive_discount_codes)}
        codes = []
        for pair in _split_csv(self.discount_codes):
            code, _, percent = pair.partition(":")
            if code.upper() not in inactive:
                codes.append((code.upper(), int(percent)))
        return codes


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
