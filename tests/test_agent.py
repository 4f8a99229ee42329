"""Tests for the default agent: response parsing, Firecrawl client, search/analyze flow."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from scout_agent.agent.base import ScoutResponse, parse_scout_response, summarize_response
from scout_agent.agent.client import generate
from scout_agent.agent.firecrawl import FirecrawlClient, is_blacklisted_domain
from scout_agent.agent.runner import FirecrawlClaudeAgent
from scout_agent.errors import ConfigurationError, CredentialRejected
from scout_agent.execution.steps import StepRecorder, StepTracker
from scout_agent.models import StepStatus, StepType, TaskStatus

VALID = {"taskCompleted": True, "taskStatus": "completed", "response": "## Found\n- [Flat](https://a.pt)"}


class TestParseScoutResponse:
    def test_plain_json(self):
        response = parse_scout_response(json.dumps(VALID))
        assert response.task_completed is True
        assert response.task_status == TaskStatus.completed

    def test_summary_prefix_code_fence_and_trailing_text(self):
        text = "Summary: here you go\n```json\n" + json.dumps(VALID) + "\n```\nLet me know if you need more."
        assert parse_scout_response(text).response == VALID["response"]

    def test_braces_inside_strings(self):
        payload = dict(VALID, response="Use {city} placeholders")
        assert parse_scout_response(json.dumps(payload)).response == "Use {city} placeholders"

    def test_no_json(self):
        with pytest.raises(ValueError, match="No JSON object"):
            parse_scout_response("I could not find anything.")

    def test_malformed_json(self):
        with pytest.raises(ValueError, match="Malformed JSON"):
            parse_scout_response('{"taskCompleted": true, ')

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValueError):
            parse_scout_response(json.dumps(dict(VALID, taskStatus="maybe")))


class TestSummarizeResponse:
    def test_first_plain_line(self):
        response = ScoutResponse.model_validate(VALID)
        assert summarize_response(response) == "Found"

    def test_not_completed(self):
        response = ScoutResponse(taskCompleted=False, taskStatus=TaskStatus.not_found, response="x")
        assert summarize_response(response) == "No new results found"

    def test_long_line_is_truncated(self):
        response = ScoutResponse(taskCompleted=True, taskStatus=TaskStatus.completed, response="a" * 400)
        summary = summarize_response(response)
        assert len(summary) == 150
        assert summary.endswith("...")


class TestFirecrawlClient:
    def test_blacklisted_domains(self):
        assert is_blacklisted_domain("https://www.linkedin.com/in/someone")
        assert is_blacklisted_domain("https://x.com/post/1")
        assert not is_blacklisted_domain("https://www.idealista.pt/arrendar")
        assert not is_blacklisted_domain("not a url")

    @patch("scout_agent.agent.firecrawl.httpx.request")
    def test_search_filters_results_and_sends_options(self, mock_request):
        mock_request.return_value = httpx.Response(
            200,
            json={"data": [
                {"url": "https://www.idealista.pt/1", "title": "T2", "markdown": "..."},
                {"url": "https://facebook.com/groups/1", "title": "FB"},
            ]},
            request=httpx.Request("POST", "https://api.firecrawl.dev/v1/search"),
        )

        results = FirecrawlClient("fc-key").search("lisbon t2", location="Lisbon", max_age_ms=1000)

        assert [r["url"] for r in results] == ["https://www.idealista.pt/1"]
        payload = mock_request.call_args.kwargs["json"]
        assert payload["location"] == "Lisbon"
        assert payload["scrapeOptions"]["maxAge"] == 1000
        assert mock_request.call_args.kwargs["headers"]["Authorization"] == "Bearer fc-key"

    @pytest.mark.parametrize("status", [401, 403])
    @patch("scout_agent.agent.firecrawl.httpx.request")
    def test_rejected_key(self, mock_request, status):
        mock_request.return_value = httpx.Response(
            status, request=httpx.Request("POST", "https://api.firecrawl.dev/v1/search")
        )

        with pytest.raises(CredentialRejected):
            FirecrawlClient("fc-bad").search("q")

    @patch("scout_agent.agent.firecrawl.httpx.request")
    def test_credit_usage(self, mock_request):
        mock_request.return_value = httpx.Response(
            200,
            json={"data": {"remaining_credits": 420, "plan_credits": 500}},
            request=httpx.Request("GET", "https://api.firecrawl.dev/v1/team/credit-usage"),
        )

        assert FirecrawlClient("fc-key").credit_usage()["remaining_credits"] == 420


@pytest.fixture
def recorder(session_factory, no_sleep):
    return StepRecorder(StepTracker(session_factory, sleep=no_sleep), "exec-1")


def _agent(client, output=json.dumps(VALID)):
    generate_fn = MagicMock(return_value=output)
    return FirecrawlClaudeAgent(generate_fn=generate_fn, client_factory=lambda api_key: client), generate_fn


class TestFirecrawlClaudeAgent:
    def test_searches_each_query_then_analyzes(self, scout, recorder):
        client = MagicMock()
        client.search.return_value = [{"url": "https://www.idealista.pt/1", "title": "T2", "markdown": "1400 EUR"}]
        agent, generate_fn = _agent(client)

        result = agent.run(scout, "fc-key", recorder)

        assert client.search.call_count == len(scout.search_queries)
        assert client.search.call_args.kwargs["location"] == "Lisbon"
        assert result.response.task_completed
        assert result.summary_text == "Found"
        assert result.api_calls == 2
        prompt = generate_fn.call_args.args[1]
        assert "https://www.idealista.pt/1" in prompt
        assert scout.goal in prompt
        steps = recorder.tracker.list_steps("exec-1")
        assert [s.step_type for s in steps] == [
            StepType.search, StepType.search, StepType.analyze, StepType.summarize,
        ]
        assert all(s.status == StepStatus.completed for s in steps)

    def test_any_location_is_not_sent(self, scout, recorder):
        scout.location = {"city": "Any", "latitude": 0, "longitude": 0}
        client = MagicMock()
        client.search.return_value = []
        agent, _ = _agent(client)

        agent.run(scout, "fc-key", recorder)

        assert client.search.call_args.kwargs["location"] is None

    def test_one_failed_search_is_tolerated(self, scout, recorder):
        client = MagicMock()
        client.search.side_effect = [httpx.ConnectError("timeout"), [{"url": "https://a.pt", "title": "A"}]]
        agent, _ = _agent(client)

        result = agent.run(scout, "fc-key", recorder)

        assert result.response.task_completed
        first = recorder.tracker.list_steps("exec-1")[0]
        assert first.status == StepStatus.failed
        assert first.error_message == "timeout"

    def test_all_searches_failing_raises(self, scout, recorder):
        client = MagicMock()
        client.search.side_effect = httpx.ConnectError("timeout")
        agent, generate_fn = _agent(client)

        with pytest.raises(RuntimeError, match="All searches failed"):
            agent.run(scout, "fc-key", recorder)
        generate_fn.assert_not_called()

    def test_rejected_key_is_raised_immediately(self, scout, recorder):
        client = MagicMock()
        client.search.side_effect = CredentialRejected("Firecrawl rejected API key (401)")
        agent, _ = _agent(client)

        with pytest.raises(CredentialRejected):
            agent.run(scout, "fc-key", recorder)
        assert client.search.call_count == 1
        assert recorder.tracker.list_steps("exec-1")[0].status == StepStatus.failed

    def test_unparseable_model_output_fails_analyze_step(self, scout, recorder):
        client = MagicMock()
        client.search.return_value = []
        agent, _ = _agent(client, output="Sorry, nothing to report.")

        with pytest.raises(ValueError):
            agent.run(scout, "fc-key", recorder)
        analyze = recorder.tracker.list_steps("exec-1")[-1]
        assert analyze.step_type == StepType.analyze
        assert analyze.status == StepStatus.failed


class TestGenerate:
    @patch("scout_agent.agent.client.anthropic.Anthropic")
    def test_joins_text_blocks(self, mock_anthropic, config):
        message = MagicMock()
        message.content = [
            MagicMock(type="text", text='{"taskCompleted": '),
            MagicMock(type="tool_use"),
            MagicMock(type="text", text="true}"),
        ]
        message.usage.input_tokens = 10
        message.usage.output_tokens = 5
        mock_anthropic.return_value.messages.create.return_value = message
        config.anthropic_api_key = "sk-ant-unique-for-test"

        assert generate("system", "prompt", config=config) == '{"taskCompleted": true}'
        kwargs = mock_anthropic.return_value.messages.create.call_args.kwargs
        assert kwargs["model"] == config.anthropic_model
        assert kwargs["system"] == "system"

    def test_missing_key(self, config):
        config.anthropic_api_key = ""
        with pytest.raises(ConfigurationError):
            generate("system", "prompt", config=config)
