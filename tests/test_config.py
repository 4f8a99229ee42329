"""Tests for settings validation and the error taxonomy."""

import pytest

from scout_agent.config import Settings
from scout_agent.errors import (
    ConfigurationError,
    ExecutionAlreadyRunning,
    NotRunnable,
    RateLimited,
    ScoutNotFound,
)


class TestSettings:
    def test_complete_settings_validate(self, config):
        assert config.missing_required == []
        assert config.validate_required() is config

    def test_missing_keys_are_named(self):
        config = Settings(_env_file=None, firecrawl_api_key="", anthropic_api_key="")

        assert config.missing_required == ["FIRECRAWL_API_KEY", "ANTHROPIC_API_KEY"]
        with pytest.raises(ConfigurationError, match="FIRECRAWL_API_KEY, ANTHROPIC_API_KEY"):
            config.validate_required()

    def test_values_come_from_environment(self, monkeypatch):
        monkeypatch.setenv("MANUAL_RUN_COOLDOWN_MINUTES", "5")
        monkeypatch.setenv("SCHEDULER_ENABLED", "false")

        config = Settings(_env_file=None)

        assert config.manual_run_cooldown_minutes == 5
        assert config.scheduler_enabled is False

    def test_defaults(self):
        config = Settings(_env_file=None)
        assert config.manual_run_cooldown_minutes == 20
        assert config.max_daily_executions_per_user == 10
        assert config.stuck_step_minutes == 5


class TestErrors:
    def test_cooldown_body(self):
        err = RateLimited("Please wait 15 minutes", cooldown_remaining=900)
        assert err.status_code == 429
        assert err.to_dict() == {"error": "Please wait 15 minutes", "cooldownRemaining": 900}

    def test_daily_cap_body(self):
        err = RateLimited("Daily execution limit reached", daily_limit=10, current_count=10)
        assert err.to_dict() == {
            "error": "Daily execution limit reached",
            "dailyLimit": 10,
            "currentCount": 10,
        }

    def test_messages(self):
        assert str(ScoutNotFound("s1")) == "Scout s1 not found in database"
        assert NotRunnable("s1", "is not active").to_dict() == {"error": "Scout s1 is not active"}
        assert ExecutionAlreadyRunning("s1").status_code == 409
