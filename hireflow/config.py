from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False

    # Postgres (Neon) connection string. Unset means "dev mode": the
    # serverless handlers log instead of inserting and the user repository
    # degrades to pass-through.
    DATABASE_URL: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "NEON_DATABASE_URL"),
    )

    # Key-value store backing the "local" campaign blob, analytics backup,
    # feedback backup, drafts and account settings
    REDIS_URL: str = "redis://localhost:6379/0"

    # Google identity
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_JWKS_URL: str = "https://www.googleapis.com/oauth2/v3/certs"

    # Pipeline behaviour
    STORAGE_BACKEND: Literal["kv", "database"] = "kv"
    STAGE_FALLBACK_POLICY: Literal["fallback", "reject"] = "fallback"
    AI_ENHANCE_DELAY_S: float = 2.0

    # HTTP
    ALLOWED_ORIGINS: list[str] = ["*"]
    TRUST_X_FORWARDED_FOR: bool = True
    TRUSTED_PROXY_IPS: list[str] = []

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 5
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 300.0  # serverless endpoints suspend idle computes
    DB_POOL_MAX_LIFETIME: float = 3600.0

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def database_configured(self) -> bool:
        return bool(self.DATABASE_URL)

    def database_url_preview(self) -> str | None:
        """First 20 characters of the connection string, for diagnostics."""
        if not self.DATABASE_URL:
            return None
        return self.DATABASE_URL[:20] + "..."

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": 1,
                    "max_size": 3,
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
