from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
import os


def _get_database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL environment variable is required")
    return url


class Settings(BaseSettings):
    APP_NAME: str = "Slotpoll API"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    DATABASE_URL: str = Field(
        default_factory=_get_database_url, description="Database connection URL"
    )

    CORS_ORIGINS: str = Field(
        default="http://localhost:4200,http://localhost:3000,http://127.0.0.1:4200",
        description="Comma-separated list of allowed origins",
    )

    RATE_LIMIT_PER_MINUTE: int = 60

    BREVO_API_KEY: str = ""
    MAIL_FROM_EMAIL: str = "noreply@slotpoll.local"
    MAIL_FROM_NAME: str = "Slotpoll"
    FRONTEND_URL: str = "http://localhost:4200"

    POLL_MAX_EVENTS: int = 200

    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str | None = None

    DB_ECHO: bool = False
    DOCS_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS")
    @classmethod
    def validate_cors_origins(cls, v: str) -> str:
        if not v:
            raise ValueError("CORS_ORIGINS cannot be empty")

        origins = [origin.strip() for origin in v.split(",")]
        for origin in origins:
            if not origin.startswith(("http://", "https://")):
                raise ValueError(
                    f"Invalid CORS origin format: {origin}. Must start with http:// or https://"
                )

        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def mail_enabled(self) -> bool:
        return bool(self.BREVO_API_KEY)

    @property
    def cors_origins_list(self) -> list[str]:
        return [
            origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()
        ]


settings = Settings()  # type: ignore[call-arg]


def _validate_settings() -> None:
    if not os.getenv("SKIP_CONFIG_VALIDATION"):
        from .core.config_validator import EnvironmentValidator

        EnvironmentValidator.validate_or_exit()


_validate_settings()
