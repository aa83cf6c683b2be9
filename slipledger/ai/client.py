"""OpenAI-compatible chat-completion client."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import openai
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

ChatMessage = dict[str, Any]


class ProviderError(RuntimeError):
    """One provider call failed (network, non-2xx, empty or rejected content)."""

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider
        self.message = message

    def __str__(self) -> str:
        return f"{self.provider}: {self.message}"


@dataclass(frozen=True)
class ProviderConfig:
    """A chat-completion endpoint with its credentials and model."""
    name: str
    base_url: str
    api_key: str
    model: str
    extra_headers: dict[str, str] = field(default_factory=dict)

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"


def content_to_string(content: Any) -> str:
    """Flatten message content that may be a list of text parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)
    return ""


def make_openai_client(
    base_url: str,
    api_key: str,
    http_client: httpx.AsyncClient,
    headers: Optional[dict[str, str]] = None,
    timeout: float = 60.0,
) -> AsyncOpenAI:
    """SDK client for one OpenAI-compatible base URL.

    Retries are off; the caller moves on to the next provider instead.
    The shared httpx client is owned (and closed) by the caller.
    """
    return AsyncOpenAI(
        base_url=base_url,
        api_key=api_key,
        max_retries=0,
        timeout=timeout,
        default_headers=headers or None,
        http_client=http_client,
    )


async def chat_completion(
    client: AsyncOpenAI,
    provider: ProviderConfig,
    messages: list[ChatMessage],
    temperature: float = 0.2,
    max_tokens: int = 900,
    extra_body: Optional[dict[str, Any]] = None,
    timeout: Optional[float] = None,
) -> str:
    """Run one chat completion and return the message text.

    Raises:
        ProviderError: on transport failure, non-2xx status or empty content.
    """
    options: dict[str, Any] = {}
    if extra_body:
        options["extra_body"] = extra_body
    if timeout is not None:
        options["timeout"] = timeout

    try:
        response = await client.chat.completions.create(
            model=provider.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            **options,
        )
    except openai.APIStatusError as e:
        raise ProviderError(
            provider.name,
            f"AI provider error ({e.status_code}): {e.response.text[:300]}",
        ) from e
    except openai.APIConnectionError as e:
        raise ProviderError(provider.name, f"request failed: {e!r}") from e
    except openai.APIError as e:
        raise ProviderError(provider.name, f"AI provider returned an unreadable body: {e}") from e

    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        content = None

    text = content_to_string(content)
    if not text.strip():
        raise ProviderError(provider.name, "AI provider returned empty content")

    logger.debug("%s (%s) answered from %s with %d chars",
                 provider.name, provider.model, provider.completions_url, len(text))
    return text
