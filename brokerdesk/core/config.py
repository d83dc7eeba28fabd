"""Application configuration with environment variables."""

from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.03.00"

    # Database
    DATABASE_URL: str = "sqlite:///./brokerdesk.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 8

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Scheduling
    BUSINESS_TIMEZONE: str = "America/Sao_Paulo"
    UPCOMING_HORIZON_DAYS: int = 7
    READ_RETRY_ATTEMPTS: int = 2  # Pure reads only, writes are never retried

    # Pending intake notifications
    PENDING_RECOUNT_INTERVAL_SECONDS: int = 30

    # Logging
    LOG_LEVEL: str = "INFO"

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
    def business_tz(self) -> ZoneInfo:
        """Timezone used to decide which calendar day 'today' is."""
        return ZoneInfo(self.BUSINESS_TIMEZONE)


settings = Settings()
