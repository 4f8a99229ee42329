"""Tests for Resend e-mail notifications."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from scout_agent.models import User
from scout_agent.notifications.notifier import (
    RESEND_URL,
    EmailNotifier,
    format_scout_email,
    format_test_email,
    markdown_to_html,
)


def _response(status_code, payload=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    if payload is None:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def notifier(config, session_factory):
    return EmailNotifier(config, session_factory)


class TestMarkdownToHtml:
    def test_headings_emphasis_and_links(self):
        html = markdown_to_html("## Found\n**Bold** and *soft* [listing](https://example.pt/1)")

        assert "<h2" in html and "Found</h2>" in html
        assert "<strong>Bold</strong>" in html
        assert "<em>soft</em>" in html
        assert 'href="https://example.pt/1"' in html

    def test_bullets_and_line_breaks(self):
        html = markdown_to_html("Intro\n- one\n- two\n\nEnd")
        assert "<br>&bull; one<br>&bull; two<br><br>End" in html

    def test_raw_html_is_escaped(self):
        assert "<script>" not in markdown_to_html("<script>alert(1)</script>")


class TestFormatting:
    def test_scout_email_contains_scout_context(self, scout):
        html = format_scout_email(scout, "## Two new flats", "https://scouts.example.com")

        assert scout.title in html
        assert scout.goal in html
        assert "Lisbon" in html
        assert "Two new flats" in html
        assert 'href="https://scouts.example.com"' in html

    def test_scout_email_without_city(self, scout):
        scout.location = None
        html = format_scout_email(scout, "x", "https://scouts.example.com")
        assert "Location:" not in html

    def test_test_email(self):
        assert "configured correctly" in format_test_email("https://scouts.example.com")


class TestSendScoutSuccess:
    @patch("scout_agent.notifications.notifier.httpx.post")
    def test_posts_to_resend(self, mock_post, notifier, scout, user):
        mock_post.return_value = _response(200, {"id": "em_123"})

        result = notifier.send_scout_success(scout, "## Found it")

        assert result.ok
        assert result.value == "em_123"
        url = mock_post.call_args.args[0]
        body = mock_post.call_args.kwargs["json"]
        assert url == RESEND_URL
        assert body["to"] == user.email
        assert body["subject"] == f"Scout Alert: {scout.title}"
        assert set(body) == {"from", "to", "subject", "html"}
        assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer re_test"

    @patch("scout_agent.notifications.notifier.httpx.post")
    def test_skipped_without_api_key(self, mock_post, notifier, scout):
        notifier.config.resend_api_key = ""

        result = notifier.send_scout_success(scout, "x")

        assert result.error == "resend_not_configured"
        mock_post.assert_not_called()

    @patch("scout_agent.notifications.notifier.httpx.post")
    def test_skipped_for_user_without_email(self, mock_post, notifier, db_session, scout, user):
        user.email = None
        db_session.add(user)
        db_session.commit()

        result = notifier.send_scout_success(scout, "x")

        assert result.error == "no_email"
        mock_post.assert_not_called()

    @patch("scout_agent.notifications.notifier.httpx.post")
    def test_provider_error_is_reported_not_raised(self, mock_post, notifier, scout, user):
        mock_post.return_value = _response(422, {"message": "Invalid `from` field"})

        result = notifier.send_scout_success(scout, "x")

        assert not result.ok
        assert result.error == "Invalid `from` field"

    @patch("scout_agent.notifications.notifier.httpx.post")
    def test_transport_error_is_reported_not_raised(self, mock_post, notifier, scout, user):
        mock_post.side_effect = httpx.ConnectError("connection refused")

        result = notifier.send_scout_success(scout, "x")

        assert not result.ok
        assert "connection refused" in result.error

    @patch("scout_agent.notifications.notifier.httpx.post")
    def test_non_object_success_body(self, mock_post, notifier, scout, user):
        mock_post.return_value = _response(200, ["queued"])

        result = notifier.send_scout_success(scout, "x")

        assert result.ok
        assert result.value == ""

    @patch("scout_agent.notifications.notifier.httpx.post")
    def test_invalid_url_is_reported_not_raised(self, mock_post, notifier, scout, user):
        mock_post.side_effect = httpx.InvalidURL("bad url")

        result = notifier.send_scout_success(scout, "x")

        assert not result.ok
        assert result.error == "bad url"

    @patch("scout_agent.notifications.notifier.httpx.post")
    def test_unverified_domain_error_is_explained(self, mock_post, notifier, scout, user):
        mock_post.return_value = _response(403, {
            "message": "You can only send testing emails to your own email address (owner@example.com).",
        })

        result = notifier.send_scout_success(scout, "x")

        assert "verified domain" in result.error
        assert "owner@example.com" in result.error


class TestSendTestEmail:
    @patch("scout_agent.notifications.notifier.httpx.post")
    def test_sends_to_user(self, mock_post, notifier):
        mock_post.return_value = _response(200, {"id": "em_9"})

        result = notifier.send_test_email(User(email="ada@example.com"))

        assert result.value == "em_9"
        assert mock_post.call_args.kwargs["json"]["subject"] == "Test Email - Open Scouts Notifications"

    def test_user_without_email(self, notifier):
        result = notifier.send_test_email(User(email=None))
        assert not result.ok
