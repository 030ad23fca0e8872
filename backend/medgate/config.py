"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All settings come from environment variables or .env (never hardcoded per deploy)
    - get_settings() is cached (lru_cache) — single instance per process
    - expose_internal_errors is False in production, whatever else is set

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - cors_origins accepts a comma-separated list (ALLOWED_ORIGINS style) or JSON
    - Defaults work out-of-the-box for local development
"""

import json
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEV_ORIGINS = ["http://localhost:3000", "http://localhost:5000"]


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = "MedGate API"
    environment: Literal["development", "test", "production"] = "development"

    # CORS
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEV_ORIGINS),
        validation_alias=AliasChoices("cors_origins", "allowed_origins"),
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, v):
        """ALLOWED_ORIGINS=https://a.example,https://b.example → list."""
        if isinstance(v, str):
            v = v.strip()
            if v.startswith("["):
                return json.loads(v)
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_max_requests: int = Field(100, ge=1)
    rate_limit_window_ms: int = Field(15 * 60 * 1000, ge=1)
    rate_limit_sweep_interval_seconds: float = Field(60.0, gt=0)

    # Sanitization
    sanitize_max_depth: int = Field(32, ge=1)

    # Identity (demo auth collaborator)
    trust_identity_headers: bool = True

    # Observability
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def expose_internal_errors(self) -> bool:
        return not self.is_production


@lru_cache
def get_settings() -> Settings:
    return Settings()
