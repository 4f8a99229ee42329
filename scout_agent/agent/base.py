"""Agent contract used by the execution orchestrator.

The agent's reasoning loop is a replaceable collaborator: anything with a
``run(scout, api_key, recorder)`` method returning an ``AgentResult`` works.
"""

import json
import re
from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from scout_agent.execution.steps import StepRecorder
from scout_agent.models import Scout, TaskStatus

SUMMARY_MAX_CHARS = 150

_SUMMARY_PREFIX = re.compile(r"^\s*Summary:\s*", re.IGNORECASE)
_CODE_FENCE = re.compile(r"```(?:json)?\s*")
_MARKDOWN_NOISE = re.compile(r"[#*`>\[\]]|\(https?://[^)]*\)")


class ScoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_completed: bool = Field(alias="taskCompleted")
    task_status: TaskStatus = Field(alias="taskStatus")
    response: str = ""

    def to_summary(self) -> dict:
        """The ``results_summary`` payload persisted on the execution."""
        return self.model_dump(by_alias=True, mode="json")

    @property
    def has_results(self) -> bool:
        return self.task_completed and bool(self.response.strip())


@dataclass
class AgentResult:
    response: ScoutResponse
    summary_text: str
    api_calls: int = 0


class Agent(Protocol):
    def run(self, scout: Scout, api_key: str, recorder: StepRecorder) -> AgentResult:
        ...


def parse_scout_response(text: str) -> ScoutResponse:
    """Extract the first JSON object from model output.

    Tolerates a ``Summary:`` prefix, markdown code fences and trailing prose.
    Raises ``ValueError`` if no valid response object is found.
    """
    cleaned = _CODE_FENCE.sub("", _SUMMARY_PREFIX.sub("", text.strip()))
    start = cleaned.find("{")
    if start == -1:
        raise ValueError("No JSON object found in agent output")
    try:
        payload, _ = json.JSONDecoder().raw_decode(cleaned, start)
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed JSON in agent output: {e}") from e
    return ScoutResponse.model_validate(payload)


def summarize_response(response: ScoutResponse) -> str:
    """One-line human summary of a response for list views."""
    if not response.task_completed:
        return "No new results found"
    for line in response.response.splitlines():
        plain = _MARKDOWN_NOISE.sub("", line).strip(" -\t")
        if plain:
            if len(plain) > SUMMARY_MAX_CHARS:
                return plain[: SUMMARY_MAX_CHARS - 3].rstrip() + "..."
            return plain
    return "Results found"
