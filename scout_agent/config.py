from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from scout_agent.errors import ConfigurationError

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=PROJECT_ROOT / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Firecrawl (shared fallback key used when a user has no active personal key)
    firecrawl_api_key: str = ""
    firecrawl_api_url: str = "https://api.firecrawl.dev/v1"

    # Anthropic (default agent)
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"

    # Resend
    resend_api_key: str = ""
    resend_from_email: str = "Open Scouts <onboarding@resend.dev>"

    # PostHog
    posthog_api_key: str = ""
    posthog_host: str = "https://us.i.posthog.com"

    # Database
    database_url: str = f"sqlite:///{PROJECT_ROOT / 'data' / 'scouts.db'}"

    # Server
    dashboard_host: str = "127.0.0.1"
    dashboard_port: int = 8000
    app_url: str = "https://openscout.dev"
    admin_email_domain: str = "@sideguide.dev"

    # Execution limits
    manual_run_cooldown_minutes: int = 20
    max_daily_executions_per_user: int = 10
    daily_cap_timezone: str = ""  # empty = server local time
    stuck_step_minutes: int = 5
    stale_execution_minutes: int = 60
    duplicate_similarity_threshold: float = 0.85
    test_email_cooldown_seconds: int = 120

    # Scheduler
    scheduler_tick_minutes: int = 15
    scheduler_enabled: bool = True

    @property
    def missing_required(self) -> list[str]:
        """Names of required settings that are empty."""
        required = {
            "FIRECRAWL_API_KEY": self.firecrawl_api_key,
            "ANTHROPIC_API_KEY": self.anthropic_api_key,
            "DATABASE_URL": self.database_url,
        }
        return [name for name, value in required.items() if not value]

    def validate_required(self) -> "Settings":
        """Fail fast when a required value is absent. Call once at startup."""
        missing = self.missing_required
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )
        return self


settings = Settings()
