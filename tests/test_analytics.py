"""Tests for usage logging and PostHog events."""

from unittest.mock import MagicMock, patch

import pytest
from sqlmodel import select

from scout_agent.execution.credentials import FirecrawlKeyResult
from scout_agent.models import FirecrawlUsageLog, TriggerSource
from scout_agent.notifications.analytics import UsageLogger


@pytest.fixture
def usage_logger(config, session_factory, no_sleep):
    config.posthog_api_key = "phc_test"
    return UsageLogger(config, session_factory, sleep=no_sleep)


class TestFirecrawlUsage:
    def test_logs_credential_path(self, usage_logger, db_session, scout):
        credential = FirecrawlKeyResult("fc-fallback", True, "key_pending")

        result = usage_logger.log_firecrawl_usage(scout, "exec-1", credential, api_calls_count=3)

        assert result.ok
        [row] = db_session.exec(select(FirecrawlUsageLog)).all()
        assert row.user_id == scout.user_id
        assert row.scout_id == scout.id
        assert row.execution_id == "exec-1"
        assert row.used_fallback is True
        assert row.fallback_reason == "key_pending"
        assert row.api_calls_count == 3

    def test_zero_calls_recorded_as_one(self, usage_logger, db_session, scout):
        usage_logger.log_firecrawl_usage(scout, "exec-1", FirecrawlKeyResult("fc-user", False), 0)

        [row] = db_session.exec(select(FirecrawlUsageLog)).all()
        assert row.api_calls_count == 1
        assert row.fallback_reason is None

    def test_store_failure_is_swallowed(self, config, scout, no_sleep):
        broken = UsageLogger(config, MagicMock(side_effect=RuntimeError("db down")), sleep=no_sleep)

        result = broken.log_firecrawl_usage(scout, "exec-1", FirecrawlKeyResult("k", False))

        assert not result.ok


class TestCapture:
    @patch("scout_agent.notifications.analytics.httpx.post")
    def test_event_body(self, mock_post, usage_logger, scout):
        mock_post.return_value = MagicMock(status_code=200)

        result = usage_logger.track_execution_started(scout, "exec-1", TriggerSource.manual)

        assert result.ok
        url = mock_post.call_args.args[0]
        body = mock_post.call_args.kwargs["json"]
        assert url == "https://us.i.posthog.com/capture/"
        assert set(body) == {"api_key", "event", "distinct_id", "properties", "timestamp"}
        assert body["event"] == "scout_execution_started"
        assert body["distinct_id"] == scout.user_id
        assert body["properties"]["trigger_source"] == "manual"
        assert body["properties"]["scout_id"] == scout.id

    @patch("scout_agent.notifications.analytics.httpx.post")
    def test_completed_event_properties(self, mock_post, usage_logger, scout):
        mock_post.return_value = MagicMock(status_code=200)

        usage_logger.track_execution_completed(
            scout, "exec-1",
            duration_ms=1200, steps_count=4, results_found=True, is_duplicate=False, api_calls_count=2,
        )

        properties = mock_post.call_args.kwargs["json"]["properties"]
        assert properties["duration_ms"] == 1200
        assert properties["steps_count"] == 4
        assert properties["api_calls_count"] == 2

    @patch("scout_agent.notifications.analytics.httpx.post")
    def test_skipped_without_api_key(self, mock_post, usage_logger, scout):
        usage_logger.config.posthog_api_key = ""

        result = usage_logger.track_execution_failed(scout, "exec-1", "boom", 10)

        assert result.error == "posthog_not_configured"
        mock_post.assert_not_called()

    @patch("scout_agent.notifications.analytics.httpx.post")
    def test_failures_are_invisible(self, mock_post, usage_logger, scout):
        mock_post.side_effect = RuntimeError("network down")
        assert not usage_logger.track_duplicate_detected(scout, "exec-1", 0.91).ok

        mock_post.side_effect = None
        mock_post.return_value = MagicMock(status_code=500)
        assert not usage_logger.track_email_notification(scout, "exec-1", False, "x").ok
