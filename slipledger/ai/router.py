"""Ordered fallback over OpenAI-compatible text providers."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Sequence

import httpx
from openai import AsyncOpenAI

from config import Settings
from slipledger.models.schemas import Strategy

from .client import ChatMessage, ProviderConfig, ProviderError, chat_completion, make_openai_client

logger = logging.getLogger(__name__)

GROQ_URL = "https://api.groq.com/openai/v1"
MISTRAL_URL = "https://api.mistral.ai/v1"
CEREBRAS_URL = "https://api.cerebras.ai/v1"
HF_URL = "https://router.huggingface.co/v1"

FAST_ORDER = ("openrouter_fast", "groq", "openrouter_balanced", "mistral", "cerebras", "hf")
BALANCED_ORDER = ("openrouter_balanced", "groq", "mistral", "cerebras", "openrouter_fast", "hf")
VERIFIER_ORDER = ("openrouter_verify", "mistral", "groq", "cerebras", "openrouter_balanced", "hf")
CONSENSUS_FALLBACK_ORDER = ("groq", "mistral", "cerebras", "openrouter_fast", "hf")

# Parses a response; raising ValueError/TypeError rejects it
Accept = Callable[[str], Any]


class RouterError(RuntimeError):
    """Every provider tried for a call failed."""

    def __init__(self, failures: Sequence[ProviderError]):
        self.failures = list(failures)
        if self.failures:
            message = "All AI providers failed: " + " | ".join(str(f) for f in self.failures)
        else:
            message = "No text providers configured"
        super().__init__(message)


@dataclass
class SlotResult:
    """Outcome of one consensus slot."""
    status: str  # ok | failed | absent
    provider: Optional[str] = None
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass
class ConsensusResult:
    """Two drafts (b may be None) plus how each slot fared."""
    a: str
    b: Optional[str] = None
    slots: list[SlotResult] = field(default_factory=list)
    fallback: bool = False


def _provider(name: str, base_url: str, api_key: str, model: str, **headers: str) -> Optional[ProviderConfig]:
    if not api_key or not model:
        return None
    return ProviderConfig(name=name, base_url=base_url, api_key=api_key, model=model, extra_headers=headers)


def build_providers(settings: Settings) -> dict[str, ProviderConfig]:
    """Build the named provider mapping; unconfigured providers are left out."""
    or_headers = {"HTTP-Referer": settings.app_url, "X-Title": "Slip Ledger"}
    candidates = [
        _provider("openrouter_fast", settings.openrouter_base_url, settings.openrouter_api_key,
                  settings.openrouter_text_model_fast, **or_headers),
        _provider("openrouter_balanced", settings.openrouter_base_url, settings.openrouter_api_key,
                  settings.openrouter_text_model_balanced, **or_headers),
        _provider("openrouter_verify", settings.openrouter_base_url, settings.openrouter_api_key,
                  settings.openrouter_text_model_verify, **or_headers),
        _provider("openrouter_consensus_b", settings.openrouter_base_url, settings.openrouter_api_key,
                  settings.openrouter_text_model_consensus_b, **or_headers),
        _provider("groq", GROQ_URL, settings.groq_api_key, settings.groq_model),
        _provider("mistral", MISTRAL_URL, settings.mistral_api_key, settings.mistral_model),
        _provider("cerebras", CEREBRAS_URL, settings.cerebras_api_key, settings.cerebras_model),
        _provider("hf", HF_URL, settings.hf_token, settings.hf_model),
    ]
    return {p.name: p for p in candidates if p is not None}


class ProviderRouter:
    """Calls providers in priority order and returns the first usable text.

    One attempt per provider, no backoff. A provider that fails is simply
    skipped for this call.
    """

    def __init__(
        self,
        providers: Mapping[str, ProviderConfig],
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.providers = dict(providers)
        self.timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._sdk_clients: dict[str, AsyncOpenAI] = {}

    async def close(self):
        """Close the HTTP client."""
        if self._owns_client:
            await self._client.aclose()

    def _sdk_client(self, provider: ProviderConfig) -> AsyncOpenAI:
        client = self._sdk_clients.get(provider.name)
        if client is None:
            client = make_openai_client(
                provider.base_url, provider.api_key, self._client,
                headers=provider.extra_headers, timeout=self.timeout,
            )
            self._sdk_clients[provider.name] = client
        return client

    def resolve(self, order: Sequence[str]) -> list[ProviderConfig]:
        """Configured providers for an order, absent names skipped."""
        return [self.providers[name] for name in order if name in self.providers]

    async def _call(
        self,
        provider: ProviderConfig,
        messages: list[ChatMessage],
        temperature: float,
        max_tokens: int,
        accept: Optional[Accept],
        extra_body: Optional[dict[str, Any]],
    ) -> str:
        text = await chat_completion(
            self._sdk_client(provider), provider, messages,
            temperature=temperature, max_tokens=max_tokens,
            extra_body=extra_body, timeout=self.timeout,
        )
        if accept is not None:
            try:
                accept(text)
            except (ValueError, TypeError) as e:
                raise ProviderError(provider.name, f"rejected response: {e}") from e
        return text

    async def try_in_order(
        self,
        order: Sequence[str],
        messages: list[ChatMessage],
        temperature: float = 0.2,
        max_tokens: int = 900,
        accept: Optional[Accept] = None,
        extra_body: Optional[dict[str, Any]] = None,
    ) -> str:
        """Return the first provider's text that succeeds (and is accepted).

        Raises:
            RouterError: listing every provider's failure.
        """
        failures: list[ProviderError] = []
        for provider in self.resolve(order):
            try:
                return await self._call(provider, messages, temperature, max_tokens, accept, extra_body)
            except ProviderError as e:
                logger.warning("Provider failed: %s", e)
                failures.append(e)
        raise RouterError(failures)

    async def primary(
        self,
        strategy: Strategy | str,
        messages: list[ChatMessage],
        accept: Optional[Accept] = None,
        extra_body: Optional[dict[str, Any]] = None,
    ) -> str:
        """Single completion; ``fast`` uses the short budget, anything else ``balanced``."""
        if Strategy(strategy) == Strategy.FAST:
            return await self.try_in_order(FAST_ORDER, messages, 0.2, 900, accept, extra_body)
        return await self.try_in_order(BALANCED_ORDER, messages, 0.2, 1000, accept, extra_body)

    async def verifier(
        self,
        messages: list[ChatMessage],
        accept: Optional[Accept] = None,
        extra_body: Optional[dict[str, Any]] = None,
    ) -> str:
        """Deterministic checking pass (temperature 0)."""
        return await self.try_in_order(VERIFIER_ORDER, messages, 0.0, 700, accept, extra_body)

    async def _slot(
        self,
        provider: Optional[ProviderConfig],
        messages: list[ChatMessage],
        accept: Optional[Accept],
    ) -> SlotResult:
        if provider is None:
            return SlotResult(status="absent")
        try:
            text = await self._call(provider, messages, 0.2, 900, accept, None)
        except ProviderError as e:
            logger.warning("Consensus slot failed: %s", e)
            return SlotResult(status="failed", provider=provider.name, error=e.message)
        return SlotResult(status="ok", provider=provider.name, text=text)

    async def consensus(
        self,
        messages: list[ChatMessage],
        accept: Optional[Accept] = None,
    ) -> ConsensusResult:
        """Two drafts from two providers in parallel.

        Both ok gives ``a`` and ``b``; one ok gives that text as ``a``; none
        falls back to sequential iteration. The drafts are not reconciled.
        """
        slot_a = self.providers.get("openrouter_balanced")
        slot_b = self.providers.get("openrouter_consensus_b") or self.providers.get("groq")

        results = list(await asyncio.gather(
            self._slot(slot_a, messages, accept),
            self._slot(slot_b, messages, accept),
        ))
        texts = [r.text for r in results if r.ok]

        if len(texts) == 2:
            return ConsensusResult(a=texts[0], b=texts[1], slots=results)
        if len(texts) == 1:
            return ConsensusResult(a=texts[0], b=None, slots=results)

        single = await self.try_in_order(CONSENSUS_FALLBACK_ORDER, messages, 0.2, 900, accept)
        return ConsensusResult(a=single, b=None, slots=results, fallback=True)
