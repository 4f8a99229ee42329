"""E-mail notifications via the Resend API.

Sending never raises: provider errors are logged and returned as a failed
``SoftResult`` so a notification can never change an execution's outcome.
"""

import html
import logging
import re
from typing import Callable, Optional

import httpx
from sqlmodel import Session

from scout_agent.config import Settings, settings as default_settings
from scout_agent.database import get_session
from scout_agent.execution.results import SoftResult
from scout_agent.models import Scout, User

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
_ACCENT = "#FF4C00"

_MARKDOWN_RULES = [
    (re.compile(r"## (.*?)(\n|$)"),
     r'<h2 style="color: #262626; font-size: 20px; margin: 20px 0 10px 0;">\1</h2>'),
    (re.compile(r"\*\*(.*?)\*\*"), r"<strong>\1</strong>"),
    (re.compile(r"\*(.*?)\*"), r"<em>\1</em>"),
    (re.compile(r"\[([^\]]+)\]\(([^)]+)\)"),
     rf'<a href="\2" style="color: {_ACCENT}; text-decoration: none;">\1</a>'),
    (re.compile(r"\n- "), "<br>&bull; "),
    (re.compile(r"\n\n"), "<br><br>"),
    (re.compile(r"\n"), "<br>"),
]


def markdown_to_html(text: str) -> str:
    """Minimal markdown conversion for e-mail bodies (headings, emphasis, links, bullets)."""
    converted = html.escape(text, quote=False)
    for pattern, replacement in _MARKDOWN_RULES:
        converted = pattern.sub(replacement, converted)
    return converted


def _layout(heading: str, content: str, footer: str, app_url: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="margin: 0; padding: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; background-color: #f9f9f9;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background-color: #f9f9f9; padding: 40px 20px;">
    <tr><td align="center">
      <table width="600" cellpadding="0" cellspacing="0" style="background-color: #ffffff; border-radius: 8px; overflow: hidden;">
        <tr><td style="background-color: {_ACCENT}; padding: 30px 40px; text-align: center;">
          <h1 style="margin: 0; color: #ffffff; font-size: 24px; font-weight: 600;">{heading}</h1>
        </td></tr>
        <tr><td style="padding: 40px;">
          {content}
          <div style="margin-top: 30px; padding-top: 30px; border-top: 1px solid #e5e5e5;">
            <a href="{app_url}" style="display: inline-block; background-color: {_ACCENT}; color: #ffffff; text-decoration: none; padding: 12px 30px; border-radius: 6px; font-weight: 600; font-size: 14px;">View in Open Scouts</a>
          </div>
        </td></tr>
        <tr><td style="background-color: #f9f9f9; padding: 30px 40px; text-align: center; border-top: 1px solid #e5e5e5;">
          <p style="margin: 0; color: #999; font-size: 13px;">{footer}</p>
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def format_scout_email(scout: Scout, response: str, app_url: str) -> str:
    """Render the scout alert e-mail for a successful execution."""
    city = (scout.location or {}).get("city")
    location_line = (
        f'<p style="margin: 0; color: #262626; font-size: 14px;"><strong>Location:</strong> {html.escape(city)}</p>'
        if city else ""
    )
    content = f"""
          <p style="margin: 0 0 20px 0; color: #262626; font-size: 16px; line-height: 1.5;">
            Your scout <strong>{html.escape(scout.title)}</strong> found something interesting!
          </p>
          <div style="background-color: #f9f9f9; border-left: 4px solid {_ACCENT}; padding: 20px; margin: 20px 0; border-radius: 4px;">
            <p style="margin: 0 0 8px 0; color: #262626; font-size: 14px;"><strong>Goal:</strong> {html.escape(scout.goal)}</p>
            {location_line}
          </div>
          <div style="margin: 30px 0; color: #262626; font-size: 15px; line-height: 1.6;">
            {markdown_to_html(response)}
          </div>"""
    return _layout(
        "Scout Alert",
        content,
        "You're receiving this because you have active scouts in Open Scouts.",
        app_url,
    )


def format_test_email(app_url: str) -> str:
    content = """
          <p style="margin: 0 0 20px 0; color: #262626; font-size: 16px; line-height: 1.5;">
            Great news! Your email notifications are configured correctly.
          </p>
          <div style="margin: 30px 0; color: #262626; font-size: 15px; line-height: 1.6;">
            &bull; Your scouts run automatically based on their frequency settings<br>
            &bull; When a scout finds something interesting, the AI agent analyzes it<br>
            &bull; If results are found, you'll get an email notification<br>
            &bull; All results are also available in your Open Scouts dashboard
          </div>"""
    return _layout(
        "Test Email",
        content,
        "This is a test email sent from Open Scouts. Notifications are sent to your account email.",
        app_url,
    )


def _resend_error_message(resp: httpx.Response) -> str:
    """Best human-readable error from a Resend error response."""
    try:
        body = resp.json()
    except ValueError:
        return f"{resp.status_code} - {resp.text[:200]}"
    message = body.get("message") if isinstance(body, dict) else None
    if not message:
        return f"{resp.status_code} - {resp.text[:200]}"
    if resp.status_code == 403 and "only send testing emails to your own email" in message:
        # Unverified sending domain; Resend names the one allowed recipient in parentheses
        match = re.search(r"\(([^)]+)\)", message)
        allowed = match.group(1) if match else "your Resend account email"
        return (
            "Resend requires a verified domain to send emails. Without one, emails can only "
            f"be sent to {allowed}. Please verify a custom domain at resend.com/domains."
        )
    return message


class EmailNotifier:
    def __init__(
        self,
        config: Settings = default_settings,
        session_factory: Callable[[], Session] = get_session,
    ):
        self.config = config
        self._session_factory = session_factory

    def _send(self, to: str, subject: str, html_body: str) -> SoftResult[str]:
        """POST one e-mail to Resend. Returns the message id on success."""
        payload = {
            "from": self.config.resend_from_email,
            "to": to,
            "subject": subject,
            "html": html_body,
        }
        try:
            resp = httpx.post(
                RESEND_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.config.resend_api_key}"},
                timeout=30.0,
            )
        except Exception as e:
            logger.error("Error sending email notification: %s", e)
            return SoftResult.skipped(str(e))

        if resp.status_code >= 300:
            error = _resend_error_message(resp)
            logger.error("Failed to send email: %d - %s", resp.status_code, error)
            return SoftResult.skipped(error)

        try:
            body = resp.json()
        except ValueError:
            body = None
        message_id = str(body.get("id") or "") if isinstance(body, dict) else ""
        logger.info("Email sent to %s (id=%s)", to, message_id)
        return SoftResult.success(message_id)

    def _user_email(self, user_id: str) -> Optional[str]:
        with self._session_factory() as session:
            user = session.get(User, user_id)
        return user.email if user else None

    def send_scout_success(self, scout: Scout, response: str) -> SoftResult[str]:
        """Send the scout alert to the scout owner's account e-mail."""
        if not self.config.resend_api_key:
            logger.info("RESEND_API_KEY not configured, skipping email notification")
            return SoftResult.skipped("resend_not_configured")

        try:
            to = self._user_email(scout.user_id)
        except Exception as e:
            logger.error("Error fetching user %s for notification: %s", scout.user_id, e)
            return SoftResult.skipped(str(e))
        if not to:
            logger.info("User %s has no email address, skipping email notification", scout.user_id)
            return SoftResult.skipped("no_email")

        return self._send(
            to,
            f"Scout Alert: {scout.title}",
            format_scout_email(scout, response, self.config.app_url),
        )

    def send_test_email(self, user: User) -> SoftResult[str]:
        if not self.config.resend_api_key:
            return SoftResult.skipped("RESEND_API_KEY not configured")
        if not user.email:
            return SoftResult.skipped("Your account doesn't have an email address configured.")
        return self._send(
            user.email,
            "Test Email - Open Scouts Notifications",
            format_test_email(self.config.app_url),
        )
