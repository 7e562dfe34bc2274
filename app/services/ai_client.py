"""Centralized AI client for the generative planner, supporting OpenAI and Anthropic.

Usage:
    from app.services.ai_client import ai_chat

    result = await ai_chat(
        messages=[
            {"role": "system", "content": "You plan daily language practice."},
            {"role": "user", "content": "Due words: 12. Resources: ..."},
        ],
        use_case="plan",         # "plan", "cheap", or None for default
        temperature=0.4,
        json_mode=True,
    )
    # result is the text content of the assistant response

The provider is picked from the resolved model name: "claude-" models go to
Anthropic, everything else follows AI_PROVIDER (default OpenAI). PLAN_MODEL
and CHEAP_MODEL can therefore point at different providers.
"""

import logging
from enum import Enum

from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from app.config import settings

logger = logging.getLogger(__name__)


class AIProvider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


_ANTHROPIC_PREFIXES = ("claude-",)


def _resolve_model(use_case: str | None) -> str:
    if use_case == "plan" and settings.plan_model:
        return settings.plan_model
    if use_case == "cheap" and settings.cheap_model:
        return settings.cheap_model
    return settings.model_name


def _detect_provider(model: str) -> AIProvider:
    model_lower = model.lower()
    if model_lower.startswith(_ANTHROPIC_PREFIXES):
        return AIProvider.ANTHROPIC
    try:
        return AIProvider(settings.ai_provider.lower())
    except ValueError:
        return AIProvider.OPENAI


def _log_retry(provider: str):
    def before_sleep(retry_state):
        logger.warning(
            "%s call failed (attempt %d), retrying: %s",
            provider,
            retry_state.attempt_number,
            retry_state.outcome.exception(),
        )
    return before_sleep


async def ai_chat(
    messages: list[dict],
    *,
    use_case: str | None = None,
    temperature: float = 0.7,
    json_mode: bool = False,
    max_tokens: int = 2048,
) -> str:
    """Send a chat completion and return the assistant text.

    Raises whatever the provider SDK raises once the retries are spent; the
    caller decides what a failed completion means.
    """
    model = _resolve_model(use_case)
    provider = _detect_provider(model)
    logger.debug("ai_chat use_case=%s model=%s provider=%s", use_case, model, provider.value)

    if provider == AIProvider.ANTHROPIC:
        return await _anthropic_chat(messages, model, temperature, json_mode, max_tokens)
    return await _openai_chat(messages, model, temperature, json_mode, max_tokens)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(Exception),
    before_sleep=_log_retry("OpenAI"),
    reraise=True,
)
async def _openai_chat(
    messages: list[dict],
    model: str,
    temperature: float,
    json_mode: bool,
    max_tokens: int,
) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=settings.api_key)
    kwargs: dict = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}

    response = await client.chat.completions.create(**kwargs)
    return response.choices[0].message.content or ""


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(Exception),
    before_sleep=_log_retry("Anthropic"),
    reraise=True,
)
async def _anthropic_chat(
    messages: list[dict],
    model: str,
    temperature: float,
    json_mode: bool,
    max_tokens: int,
) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)

    # Anthropic takes the system prompt as a parameter, not a message
    system_parts = [m["content"] for m in messages if m["role"] == "system"]
    chat_messages = [
        {"role": m["role"], "content": m["content"]}
        for m in messages
        if m["role"] != "system"
    ]
    if json_mode:
        system_parts.append("You MUST respond with valid JSON only. No other text.")

    kwargs: dict = {
        "model": model,
        "messages": chat_messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    system_text = "\n".join(system_parts).strip()
    if system_text:
        kwargs["system"] = system_text

    response = await client.messages.create(**kwargs)
    return response.content[0].text
