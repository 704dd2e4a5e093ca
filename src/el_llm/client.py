"""Language-model client: the one long-latency external call.

Orchestrators depend on the ``LanguageModelClient`` protocol and receive an
implementation by injection, so tests pass a fake. ``OpenAIChatClient`` is the
production implementation over the async OpenAI SDK:

  - no transparent retries (``max_retries=0``); a failure reaches the caller
  - every SDK/transport failure maps to UpstreamUnavailableError
  - a response without choices maps to UpstreamInvalidResponseError
  - missing usage counts are reported as 0 tokens
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
import openai
from openai import AsyncOpenAI
from starlette.requests import Request

from config.settings import settings
from src.el_common.errors import (
    ConfigurationError,
    UpstreamInvalidResponseError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "system" | "user" | "assistant"
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0


@dataclass(frozen=True)
class Completion:
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)


class LanguageModelClient(Protocol):
    async def complete(
        self,
        messages: list[ChatMessage],
        model: str,
        max_tokens: int,
        temperature: float,
        response_format: dict[str, Any] | None = None,
    ) -> Completion: ...


class OpenAIChatClient:
    """LanguageModelClient over ``AsyncOpenAI.chat.completions``.

    ``model`` is the provider model name (e.g. "gpt-4o-mini"), not the billing id.
    """

    def __init__(self, client: AsyncOpenAI) -> None:
        self._client = client

    async def complete(
        self,
        messages: list[ChatMessage],
        model: str,
        max_tokens: int,
        temperature: float,
        response_format: dict[str, Any] | None = None,
    ) -> Completion:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [m.to_dict() for m in messages],
            "max_completion_tokens": max_tokens,
            "temperature": temperature,
        }
        if response_format is not None:
            kwargs["response_format"] = response_format

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as exc:
            logger.warning("LLM call timed out: model=%s", model)
            raise UpstreamUnavailableError("Language model timed out") from exc
        except openai.APIError as exc:
            logger.warning("LLM call failed: model=%s error=%s", model, exc)
            raise UpstreamUnavailableError(f"Language model error: {type(exc).__name__}") from exc
        except httpx.HTTPError as exc:
            logger.warning("LLM transport failed: model=%s error=%s", model, exc)
            raise UpstreamUnavailableError("Language model is unreachable") from exc

        if not response.choices:
            raise UpstreamInvalidResponseError("Language model returned no choices")

        content = response.choices[0].message.content or ""
        usage = response.usage
        return Completion(
            content=content,
            usage=TokenUsage(
                prompt_tokens=(usage.prompt_tokens or 0) if usage else 0,
                completion_tokens=(usage.completion_tokens or 0) if usage else 0,
            ),
        )


def build_openai_client() -> AsyncOpenAI:
    """Shared HTTP transport, created once in the app lifespan."""
    if not settings.OPENAI_API_KEY:
        raise ConfigurationError("OPENAI_API_KEY is not set")
    return AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
        timeout=httpx.Timeout(settings.LLM_TIMEOUT_SECONDS, connect=10.0),
        max_retries=0,
    )


def get_llm_client(request: Request) -> LanguageModelClient:
    """FastAPI dependency: wrap the app's shared AsyncOpenAI transport."""
    return OpenAIChatClient(request.app.state.openai_client)
