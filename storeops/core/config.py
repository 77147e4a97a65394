# storeops/core/config.py
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_BREAKER_OVERRIDE_KEYS = {
    "timeout_ms",
    "error_threshold_percentage",
    "reset_timeout_ms",
    "volume_threshold",
    "rolling_window_ms",
}


class Settings(BaseSettings):
    """
    Application settings, loaded from environment variables and/or .env file.
    """

    # Environment settings
    APP_NAME: str = "StoreOps Resilience Layer"
    APP_ENV: str = "development"

    CORS_ALLOW_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Comma-delimited list of allowed origins",
    )

    # Database settings
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "storeops"
    POSTGRES_SERVER: str = "db"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None

    # Observability settings
    SENTRY_DSN: Optional[str] = None

    # Circuit breaker settings
    CIRCUIT_BREAKER_OVERRIDES: Dict[str, Dict[str, float]] = Field(
        default_factory=dict,
        description="JSON mapping of dependency name to partial breaker config",
    )
    CIRCUIT_BREAKER_ROLLING_WINDOW_MS: int = 10_000

    # Retry settings
    RETRY_MAX_RETRIES: int = 3
    RETRY_INITIAL_DELAY_MS: int = 1000
    RETRY_MAX_DELAY_MS: int = 30_000
    RETRY_BACKOFF_FACTOR: float = 2.0
    RETRY_JITTER_RATIO: float = 0.25

    # Outbound HTTP
    HTTP_DEFAULT_TIMEOUT_MS: int = 30_000

    # Dead letter queue
    DLQ_ENABLED: bool = True
    DLQ_DEFAULT_LIMIT: int = 50
    DLQ_BACKLOG_DEGRADED_THRESHOLD: int = 100

    @property
    def database_url(self) -> str:
        """Construct the database URL from individual components."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @field_validator("CORS_ALLOW_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        """Allow comma-separated strings for origins env var."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("CIRCUIT_BREAKER_OVERRIDES")
    @classmethod
    def _check_breaker_overrides(
        cls, value: Dict[str, Dict[str, float]]
    ) -> Dict[str, Dict[str, float]]:
        """Reject unknown keys and out-of-range values early."""
        for name, override in value.items():
            unknown = set(override) - _BREAKER_OVERRIDE_KEYS
            if unknown:
                raise ValueError(
                    f"Unknown circuit breaker option(s) for '{name}': {sorted(unknown)}"
                )
            for key, number in override.items():
                if number < 0:
                    raise ValueError(f"'{name}.{key}' must be non-negative")
            pct = override.get("error_threshold_percentage")
            if pct is not None and pct > 100:
                raise ValueError(
                    f"'{name}.error_threshold_percentage' must be within 0..100"
                )
        return value

    @field_validator("RETRY_JITTER_RATIO")
    @classmethod
    def _check_jitter(cls, value: float) -> float:
        if not 0.0 <= value < 1.0:
            raise ValueError("RETRY_JITTER_RATIO must be within [0, 1)")
        return value

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )


settings = Settings()
