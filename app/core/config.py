"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.03.00"

    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 12

    # CORS
    CORS_ORIGINS: str = "http://localhost:3002"

    # Public portal URL (links in notification emails)
    PUBLIC_BASE_URL: str = "http://localhost:3002"

    # Email delivery (Resend). Empty key = dry run (log only)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = "noreply@example.com"
    EMAIL_FROM_NAME: str = "Order Desk"

    # Notification dispatcher
    NOTIFY_MAX_WORKERS: int = 4
    NOTIFY_MAX_PENDING: int = 100  # Outstanding tasks before new notices are dropped
    NOTIFY_SEND_TIMEOUT_SECONDS: float = 10.0
    NOTIFY_PREVIEW_CHARS: int = 240

    # Order thread rules
    COMMENT_MAX_LENGTH: int = 5000
    CANCEL_WINDOW_HOURS: int = 72

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute, per actor/IP)
    RATE_LIMIT_API: int = 120
    REDIS_URL: str = ""  # Shared limiter storage; empty = in-memory per process

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def email_from_address(self) -> str:
        """Formatted From header."""
        if self.EMAIL_FROM_NAME:
            return f"{self.EMAIL_FROM_NAME} <{self.EMAIL_FROM}>"
        return self.EMAIL_FROM

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()
