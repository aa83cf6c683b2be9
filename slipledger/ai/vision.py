"""Vision model calls over an ordered OpenRouter model list."""

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import httpx

from .client import ProviderConfig, ProviderError, chat_completion, make_openai_client
from .router import Accept

logger = logging.getLogger(__name__)


class VisionError(RuntimeError):
    """Every vision model failed, or none is configured."""

    def __init__(self, message: str, failures: Sequence[str] = ()):
        super().__init__(message)
        self.failures = list(failures)


class UploadRejected(ValueError):
    """An uploaded slip image failed the upload checks."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


def check_upload(content_type: Optional[str], data: bytes, max_bytes: int) -> None:
    """Validate a slip upload.

    Raises:
        UploadRejected: with 400 for a non-image or empty file, 413 when too large.
    """
    if not (content_type or "").startswith("image/"):
        raise UploadRejected("Only image uploads are supported")
    if not data:
        raise UploadRejected("Uploaded image is empty")
    if len(data) > max_bytes:
        raise UploadRejected(f"Image too large (max ~{max_bytes // (1024 * 1024)}MB)", status_code=413)


def to_data_url(content_type: Optional[str], data: bytes) -> str:
    """Encode image bytes as a ``data:`` URI."""
    mime = content_type or "image/jpeg"
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


@dataclass
class VisionResult:
    """The winning model's output."""
    model: str
    content: str
    failures: list[str] = field(default_factory=list)


class VisionReader:
    """Sends an image prompt to each configured vision model until one answers."""

    def __init__(
        self,
        api_key: str,
        models: Sequence[str],
        base_url: str = "https://openrouter.ai/api/v1",
        app_url: str = "http://localhost:8000",
        title: str = "Slip Ledger",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 90.0,
    ):
        self.api_key = api_key
        self.models = [m.strip() for m in models if m and m.strip()]
        self.base_url = base_url
        self.headers = {"HTTP-Referer": app_url, "X-Title": title}
        self.timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self):
        """Close the HTTP client."""
        if self._owns_client:
            await self._client.aclose()

    async def read(
        self,
        prompt: str,
        data_url: str,
        system: Optional[str] = None,
        temperature: float = 0.1,
        max_tokens: int = 2200,
        accept: Optional[Accept] = None,
        extra_body: Optional[dict[str, Any]] = None,
    ) -> VisionResult:
        """Return the first model response that is non-empty (and accepted).

        Raises:
            VisionError: when no key/model is configured or all models fail.
        """
        if not self.api_key:
            raise VisionError("OPENROUTER_API_KEY is not set")
        if not self.models:
            raise VisionError("No vision models configured. Set OPENROUTER_VISION_MODELS.")

        client = make_openai_client(
            self.base_url, self.api_key, self._client, headers=self.headers, timeout=self.timeout,
        )

        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": data_url}},
            ],
        })

        failures: list[str] = []
        for model in self.models:
            provider = ProviderConfig(
                name=model,
                base_url=self.base_url,
                api_key=self.api_key,
                model=model,
                extra_headers=self.headers,
            )
            try:
                content = await chat_completion(
                    client, provider, messages,
                    temperature=temperature, max_tokens=max_tokens,
                    extra_body=extra_body, timeout=self.timeout,
                )
                if accept is not None:
                    try:
                        accept(content)
                    except (ValueError, TypeError) as e:
                        raise ProviderError(model, f"returned non-JSON / unparsable JSON ({e})") from e
            except ProviderError as e:
                logger.warning("Vision model %s failed: %s", model, e.message)
                failures.append(f"{model} failed: {e.message}")
                continue

            logger.info("Vision model %s answered", model)
            return VisionResult(model=model, content=content, failures=failures)

        raise VisionError("All vision providers failed. " + " | ".join(failures), failures)
