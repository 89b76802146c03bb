"""
Reasoning service clients.

Provider is selected via AI_PROVIDER: 'openai' (default) or 'anthropic'.
Both return a plain ``complete(system, user) -> str`` callable so the
analyzer never holds an SDK client.
"""
import logging
from typing import Optional

from config import AnalyzerConfig

from .analysis import CompletionFn

logger = logging.getLogger(__name__)


def _openai_completion(config: AnalyzerConfig) -> CompletionFn:
    from openai import OpenAI
    client = OpenAI(api_key=config.openai_api_key)
    model = config.model_name

    def complete(system: str, user: str) -> str:
        resp = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            response_format={"type": "json_object"},
        )
        return resp.choices[0].message.content or ""

    return complete


def _anthropic_completion(config: AnalyzerConfig) -> CompletionFn:
    from anthropic import Anthropic
    client = Anthropic(api_key=config.anthropic_api_key)
    model = config.model_name

    def complete(system: str, user: str) -> str:
        resp = client.messages.create(
            model=model,
            max_tokens=config.max_tokens,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        return "".join(
            block.text for block in resp.content if getattr(block, "type", None) == "text"
        )

    return complete


def build_completion(config: AnalyzerConfig) -> Optional[CompletionFn]:
    """Completion callable for the configured provider, or None without an API key."""
    if not config.api_key:
        key_name = "ANTHROPIC_API_KEY" if config.provider == "anthropic" else "OPENAI_API_KEY"
        logger.warning(f"{key_name} is not set; reports will get the fallback analysis")
        return None

    logger.info(f"Reasoning service: {config.provider}/{config.model_name}")
    if config.provider == "anthropic":
        return _anthropic_completion(config)
    return _openai_completion(config)
