"""Firecrawl search/scrape API client."""

import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from scout_agent.errors import CredentialRejected

logger = logging.getLogger(__name__)

# Domains Firecrawl cannot scrape; filtered out of search results
UNSUPPORTED_DOMAINS = [
    "facebook.com",
    "twitter.com",
    "x.com",
    "instagram.com",
    "linkedin.com",
    "tiktok.com",
    "youtube.com",
    "reddit.com",
    "pinterest.com",
    "snapchat.com",
    "whatsapp.com",
    "telegram.org",
    "discord.com",
    "twitch.tv",
]


def is_blacklisted_domain(url: str) -> bool:
    hostname = (urlparse(url).hostname or "").lower()
    if not hostname:
        return False
    return any(hostname == d or hostname.endswith(f".{d}") for d in UNSUPPORTED_DOMAINS)


class FirecrawlClient:
    def __init__(self, api_key: str, base_url: str = "https://api.firecrawl.dev/v1", timeout: float = 60.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> dict:
        resp = httpx.request(
            method,
            f"{self.base_url}{path}",
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
            **kwargs,
        )
        if resp.status_code in (401, 403):
            raise CredentialRejected(f"Firecrawl rejected API key ({resp.status_code})")
        resp.raise_for_status()
        return resp.json()

    def search(
        self,
        query: str,
        limit: int = 5,
        location: Optional[str] = None,
        max_age_ms: Optional[int] = None,
    ) -> list[dict]:
        """Search the web and scrape result pages to markdown.

        Returns result dicts ({url, title, description, markdown}) minus
        unsupported domains.
        """
        payload: dict = {
            "query": query,
            "limit": limit,
            "scrapeOptions": {"formats": ["markdown"], "onlyMainContent": True},
        }
        if location:
            payload["location"] = location
        if max_age_ms:
            payload["scrapeOptions"]["maxAge"] = max_age_ms

        data = self._request("POST", "/search", json=payload)
        results = data.get("data", []) if isinstance(data, dict) else []
        kept = [r for r in results if r.get("url") and not is_blacklisted_domain(r["url"])]
        if len(kept) < len(results):
            logger.debug("Filtered %d unsupported results for %r", len(results) - len(kept), query)
        return kept

    def credit_usage(self) -> dict:
        """Remaining and plan credits for the key's team."""
        data = self._request("GET", "/team/credit-usage")
        return data.get("data", {}) if isinstance(data, dict) else {}
