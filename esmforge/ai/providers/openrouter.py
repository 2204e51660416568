"""OpenRouter provider implementation using the openai SDK."""

from __future__ import annotations

import logging
import os
from typing import Final

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, InternalServerError, RateLimitError

from esmforge.ai.providers.base import AIModel, ModelResponse, Provider, SimpleModelResponse
from esmforge.core.errors import ProviderError, TransientError

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL: Final[str] = "https://openrouter.ai/api/v1"
_SYSTEM_PROMPT: Final[str] = "You write standalone JavaScript ES modules. Reply with the module source only."


class OpenRouterModel(AIModel):
  """OpenRouter chat-completions client for one model."""

  def __init__(self, name: str, *, api_key: str | None = None, base_url: str | None = None, timeout: float = 60.0) -> None:
    self.name: str = name

    api_key = api_key or os.getenv("OPENROUTER_API_KEY")
    if not api_key:
      raise ProviderError("OPENROUTER_API_KEY environment variable is required")

    # OpenRouter uses the OpenAI-compatible API; attribution headers are optional.
    default_headers = {}
    referer = os.getenv("OPENROUTER_HTTP_REFERER")
    if referer:
      default_headers["HTTP-Referer"] = referer
    title = os.getenv("OPENROUTER_TITLE")
    if title:
      default_headers["X-Title"] = title

    # Retries are owned by the coordinator's backoff loop.
    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or os.getenv("OPENROUTER_BASE_URL") or _DEFAULT_BASE_URL, default_headers=default_headers or None, timeout=timeout, max_retries=0)

  async def generate(self, prompt: str, *, seed: int | None = None) -> ModelResponse:
    """Generate module text from OpenRouter."""
    try:
      response = await self._client.chat.completions.create(model=self.name, messages=[{"role": "system", "content": _SYSTEM_PROMPT}, {"role": "user", "content": prompt}], seed=seed)
    except (APIConnectionError, RateLimitError, InternalServerError) as exc:
      # APITimeoutError is a subclass of APIConnectionError.
      raise TransientError(f"OpenRouter request failed: {type(exc).__name__}: {exc}") from exc
    except APIStatusError as exc:
      if exc.status_code >= 500:
        raise TransientError(f"OpenRouter returned {exc.status_code}: {exc.message}") from exc
      raise ProviderError(f"OpenRouter rejected the request ({exc.status_code}): {exc.message}") from exc

    if not response.choices:
      raise TransientError("OpenRouter returned no choices")
    content = response.choices[0].message.content or ""
    if not content.strip():
      raise TransientError("OpenRouter returned an empty completion")

    logger.debug("OpenRouter response model=%s chars=%d", self.name, len(content))
    usage = None
    if response.usage:
      usage = {"prompt_tokens": response.usage.prompt_tokens, "completion_tokens": response.usage.completion_tokens, "total_tokens": response.usage.total_tokens}

    return SimpleModelResponse(content=content, usage=usage)


class OpenRouterProvider(Provider):
  """OpenRouter provider."""

  def __init__(self, api_key: str | None = None, base_url: str | None = None, *, timeout: float = 60.0) -> None:
    self.name: str = "openrouter"
    self._api_key = api_key
    self._base_url = base_url
    self._timeout = timeout

  def get_model(self, model: str) -> AIModel:
    """Return an OpenRouter model client."""
    return OpenRouterModel(model, api_key=self._api_key, base_url=self._base_url, timeout=self._timeout)
