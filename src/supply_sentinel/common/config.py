"""Supply Sentinel configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "api_key": "insecure-admin-key-change-me",
    "audit_key": "insecure-audit-key-change-me",
}


class SentinelSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SENTINEL_")

    environment: str = "development"
    log_level: str = "INFO"

    # Signs resolution history entries
    audit_key: str = "insecure-audit-key-change-me"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/sentinel.db"

    # API
    api_title: str = "Supply Sentinel"
    api_version: str = "0.1.0"
    api_key: str = "insecure-admin-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Detector
    sync_failure_window_days: int = 7
    scan_row_limit: int = 100
    serialization_statuses: list[str] = ["approved"]

    # Root-cause enrichment (OpenAI-compatible chat completions endpoint).
    # Enrichment is disabled while llm_api_key is empty.
    llm_base_url: str = "https://api.openai.com/v1"
    llm_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    enrichment_timeout: float = 5.0  # seconds
    enrichment_workers: int = 1

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    @property
    def enrichment_enabled(self) -> bool:
        return bool(self.llm_api_key)

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"SENTINEL_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default keys; set SENTINEL_API_KEY and "
                "SENTINEL_AUDIT_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> SentinelSettings:
    settings = SentinelSettings()
    settings.validate_for_production()
    return settings
