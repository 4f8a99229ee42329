"""Default scout agent: Firecrawl search per query, then Claude analysis.

Steps reported to the recorder:
  search (one per query) → analyze → summarize
"""

import logging
from functools import partial
from typing import Callable, Optional

import httpx

from scout_agent.agent.base import AgentResult, parse_scout_response, summarize_response
from scout_agent.agent.client import generate
from scout_agent.agent.firecrawl import FirecrawlClient
from scout_agent.agent.prompts import ANALYZE_PROMPT, SOURCE_TEMPLATE, SYSTEM_PROMPT
from scout_agent.config import Settings, settings as default_settings
from scout_agent.errors import CredentialRejected
from scout_agent.execution.eligibility import MAX_SEARCH_QUERIES, is_any_location, max_age_ms
from scout_agent.execution.steps import StepRecorder
from scout_agent.models import Scout, StepType

logger = logging.getLogger(__name__)

_RESULTS_PER_QUERY = 5
_SOURCE_CHARS = 3000
_MAX_SOURCES = 12


class FirecrawlClaudeAgent:
    def __init__(
        self,
        config: Settings = default_settings,
        generate_fn: Optional[Callable[..., str]] = None,
        client_factory: Callable[[str], FirecrawlClient] | None = None,
    ):
        self.config = config
        self._generate = generate_fn or partial(generate, config=config)
        self._client_factory = client_factory or (
            lambda api_key: FirecrawlClient(api_key, base_url=config.firecrawl_api_url)
        )

    def _search(self, scout: Scout, client: FirecrawlClient, recorder: StepRecorder) -> list[dict]:
        location = None if is_any_location(scout.location) else (scout.location or {}).get("city")
        cache_age = max_age_ms(scout.frequency)
        sources: dict[str, dict] = {}
        failures = 0

        queries = scout.search_queries[:MAX_SEARCH_QUERIES]
        for query in queries:
            step = recorder.start(
                StepType.search,
                f'Searching "{query}"',
                {"query": query, "location": location, "limit": _RESULTS_PER_QUERY},
            )
            try:
                results = client.search(
                    query, limit=_RESULTS_PER_QUERY, location=location, max_age_ms=cache_age
                )
            except CredentialRejected as e:
                recorder.fail(step, str(e))
                raise
            except httpx.HTTPError as e:
                logger.warning("Search failed for %r: %s", query, e)
                recorder.fail(step, str(e))
                failures += 1
                continue

            for result in results:
                sources.setdefault(result["url"], result)
            recorder.complete(step, {
                "results_count": len(results),
                "urls": [r["url"] for r in results],
            })

        if queries and failures == len(queries):
            raise RuntimeError("All searches failed")
        return list(sources.values())[:_MAX_SOURCES]

    def run(self, scout: Scout, api_key: str, recorder: StepRecorder) -> AgentResult:
        client = self._client_factory(api_key)
        sources = self._search(scout, client, recorder)

        step = recorder.start(
            StepType.analyze,
            "Analyzing results against the goal",
            {"goal": scout.goal, "sources_count": len(sources)},
        )
        prompt = ANALYZE_PROMPT.format(
            title=scout.title,
            goal=scout.goal,
            description=scout.description,
            location="Any" if is_any_location(scout.location) else (scout.location or {}).get("city", "Any"),
            sources="\n".join(
                SOURCE_TEMPLATE.format(
                    index=i,
                    title=s.get("title", ""),
                    url=s["url"],
                    content=(s.get("markdown") or s.get("description") or "")[:_SOURCE_CHARS],
                )
                for i, s in enumerate(sources, start=1)
            ) or "(no sources found)",
        )
        try:
            response = parse_scout_response(self._generate(SYSTEM_PROMPT, prompt))
        except Exception as e:
            recorder.fail(step, str(e))
            raise
        recorder.complete(step, {
            "task_completed": response.task_completed,
            "task_status": response.task_status.value,
        })

        step = recorder.start(
            StepType.summarize, "Summarizing findings", {"response_length": len(response.response)}
        )
        summary = summarize_response(response)
        recorder.complete(step, {"summary": summary})
        return AgentResult(response=response, summary_text=summary, api_calls=recorder.api_calls)
