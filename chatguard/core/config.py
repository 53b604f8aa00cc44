from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LEDGER_BACKENDS = {"memory", "redis", "supabase"}
REPORT_BACKENDS = {"memory", "supabase"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment (development, staging, production)
    environment: str = "development"

    # App
    app_name: str = "ChatGuard Moderation API"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Admin routes (rule catalog, config, appeals)
    admin_api_key: str = ""

    # Persistence backends
    ledger_backend: str = "memory"
    report_backend: str = "memory"
    store_max_retries: int = 10

    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Redis
    redis_url: str = "redis://localhost:6379"

    # Custom rule regex guard
    custom_rule_timeout_ms: int = 50

    # Moderation toggle defaults (seed ModerationConfig at startup)
    moderation_enable_profanity_filter: bool = True
    moderation_enable_spam_detection: bool = True
    moderation_enable_harassment_detection: bool = True
    moderation_auto_moderation_enabled: bool = True
    moderation_strict_mode: bool = False
    moderation_custom_rules_enabled: bool = True
    moderation_reporting_enabled: bool = True
    moderation_appeal_process_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @model_validator(mode="after")
    def validate_backends(self) -> "Settings":
        """Reject unknown backends and require Supabase credentials when used."""
        if self.ledger_backend not in LEDGER_BACKENDS:
            raise ValueError(
                f"Unknown LEDGER_BACKEND '{self.ledger_backend}'. "
                f"Expected one of: {', '.join(sorted(LEDGER_BACKENDS))}."
            )
        if self.report_backend not in REPORT_BACKENDS:
            raise ValueError(
                f"Unknown REPORT_BACKEND '{self.report_backend}'. "
                f"Expected one of: {', '.join(sorted(REPORT_BACKENDS))}."
            )

        if "supabase" in (self.ledger_backend, self.report_backend):
            missing = []
            for secret_name in ("supabase_url", "supabase_service_role_key"):
                value = getattr(self, secret_name, "")
                if not value or not value.strip():
                    missing.append(secret_name.upper())
            if missing:
                raise ValueError(
                    f"Missing required secrets: {', '.join(missing)}. "
                    "Set these environment variables when using the Supabase backend."
                )

        return self

    @model_validator(mode="after")
    def validate_admin_key_in_production(self) -> "Settings":
        """Admin routes must be protected outside development."""
        if self.environment == "production" and not self.admin_api_key.strip():
            raise ValueError("ADMIN_API_KEY must be set in production.")
        return self

    def moderation_defaults(self) -> dict[str, bool]:
        """Toggle defaults keyed by ModerationConfig field name."""
        prefix = "moderation_"
        return {
            name[len(prefix) :]: getattr(self, name)
            for name in type(self).model_fields
            if name.startswith(prefix)
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
