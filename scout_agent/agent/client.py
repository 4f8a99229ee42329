"""Claude calls for the analysis step."""

import logging

import anthropic

from scout_agent.config import Settings, settings as default_settings
from scout_agent.errors import ConfigurationError

logger = logging.getLogger(__name__)

_clients: dict[str, anthropic.Anthropic] = {}


def get_client(api_key: str) -> anthropic.Anthropic:
    if not api_key:
        raise ConfigurationError("ANTHROPIC_API_KEY not set")
    if api_key not in _clients:
        _clients[api_key] = anthropic.Anthropic(api_key=api_key)
    return _clients[api_key]


def generate(
    system: str,
    prompt: str,
    max_tokens: int = 4096,
    temperature: float = 0.2,
    config: Settings = default_settings,
) -> str:
    """Send one analysis prompt and return the concatenated text blocks."""
    message = get_client(config.anthropic_api_key).messages.create(
        model=config.anthropic_model,
        max_tokens=max_tokens,
        temperature=temperature,
        system=system,
        messages=[{"role": "user", "content": prompt}],
    )
    logger.debug(
        "Claude usage: %d in / %d out tokens (stop=%s)",
        message.usage.input_tokens,
        message.usage.output_tokens,
        message.stop_reason,
    )
    return "".join(block.text for block in message.content if block.type == "text")
