"""Async LLM client with provider auto-detection, retry and token-budget growth.

Supports both OpenAI and Anthropic SDKs. The organize pipeline only consumes
the text this returns; every provider failure surfaces as ModelCallError.

Usage::

    llm = LLMClient()  # reads API keys from env

    text = await llm.call("Group these tabs...", model="claude-3-5-haiku-20241022")
"""

from __future__ import annotations

import logging
import os
from typing import Any

import anthropic
import openai
from anthropic import AsyncAnthropic
from dotenv import load_dotenv
from openai import AsyncOpenAI
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tidytabs.errors import ModelCallError

load_dotenv()
logger = logging.getLogger(__name__)

MAX_TOKEN_BUDGET = 8192

# Connection drops and 5xx responses are worth another attempt; everything
# else (auth, quota, bad request) fails straight away.
_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.InternalServerError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)

_STATUS_MESSAGES = {
    400: "Invalid API key or request",
    401: "API key is invalid or missing",
    403: "API key does not have permission",
    404: "Model not found. Check the configured model name.",
    429: "Rate limit exceeded. Please wait a moment.",
}


def provider_for_model(model: str) -> str:
    """Detect provider from model name."""
    return "anthropic" if model.startswith("claude") else "openai"


def _status_error(e: Exception) -> ModelCallError:
    status = getattr(e, "status_code", None)
    message = _STATUS_MESSAGES.get(status) or getattr(e, "message", None) or f"API error: {status}"
    return ModelCallError(message, status_code=status)


class LLMClient:
    """Async LLM client supporting OpenAI and Anthropic.

    Provider is auto-detected from model name (claude* → Anthropic, else OpenAI).
    """

    def __init__(
        self,
        openai_api_key: str | None = None,
        anthropic_api_key: str | None = None,
    ) -> None:
        self._openai: AsyncOpenAI | None = None
        self._anthropic: AsyncAnthropic | None = None
        self._openai_key = openai_api_key or os.getenv("OPENAI_API_KEY")
        self._anthropic_key = anthropic_api_key or os.getenv("ANTHROPIC_API_KEY")

    def has_api_key(self, model: str | None = None) -> bool:
        """Whether a key is configured for ``model`` (or for any provider)."""
        if model is None:
            return bool(self._openai_key or self._anthropic_key)
        if provider_for_model(model) == "anthropic":
            return bool(self._anthropic_key)
        return bool(self._openai_key)

    def _get_openai(self) -> AsyncOpenAI:
        if self._openai is None:
            self._openai = AsyncOpenAI(api_key=self._openai_key)
        return self._openai

    def _get_anthropic(self) -> AsyncAnthropic:
        if self._anthropic is None:
            self._anthropic = AsyncAnthropic(api_key=self._anthropic_key)
        return self._anthropic

    # ----- Single request (retried on transient errors) -----

    @retry(
        wait=wait_exponential(multiplier=1, min=3, max=30),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        before_sleep=before_sleep_log(logger, logging.INFO),
        reraise=True,
    )
    async def _complete(
        self,
        user_prompt: str,
        *,
        model: str,
        system_prompt: str,
        max_tokens: int,
    ) -> tuple[str, bool]:
        """Return (text, truncated) for one request."""
        if provider_for_model(model) == "anthropic":
            client = self._get_anthropic()
            kwargs: dict[str, Any] = {
                "model": model,
                "max_tokens": max_tokens,
                "messages": [{"role": "user", "content": user_prompt.strip()}],
            }
            if system_prompt:
                kwargs["system"] = system_prompt
            response = await client.messages.create(**kwargs)
            text = "".join(
                block.text for block in response.content if getattr(block, "type", "") == "text"
            )
            return text.strip(), response.stop_reason == "max_tokens"

        client = self._get_openai()
        messages: list[dict] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt.strip()})
        response = await client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
        )
        if not response.choices:
            return "", False
        choice = response.choices[0]
        return (choice.message.content or "").strip(), choice.finish_reason == "length"

    # ----- Public call -----

    async def call(
        self,
        user_prompt: str,
        *,
        model: str,
        system_prompt: str = "",
        max_tokens: int = 4096,
    ) -> str:
        """Make a non-streaming LLM call and return the text response.

        A response cut off by the token limit is re-requested with a doubled
        budget, up to MAX_TOKEN_BUDGET.

        Raises:
            ModelCallError: missing key, provider error, or empty response.
        """
        if not self.has_api_key(model):
            raise ModelCallError(
                f"API key not configured. Set the {provider_for_model(model).upper()}_API_KEY "
                "environment variable."
            )

        budget = max_tokens
        while True:
            try:
                text, truncated = await self._complete(
                    user_prompt,
                    model=model,
                    system_prompt=system_prompt,
                    max_tokens=budget,
                )
            except (openai.APIStatusError, anthropic.APIStatusError) as e:
                raise _status_error(e) from e
            except (openai.APIConnectionError, anthropic.APIConnectionError) as e:
                raise ModelCallError("Network error. Check your internet connection.") from e

            if truncated and budget < MAX_TOKEN_BUDGET:
                budget = min(budget * 2, MAX_TOKEN_BUDGET)
                logger.warning("Response hit the token limit, retrying with max_tokens=%d", budget)
                continue
            if not text:
                raise ModelCallError("Empty response from model")
            return text
