"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import asyncio
import logging
import os
import warnings

from pydantic.warnings import ArbitraryTypeWarning

with warnings.catch_warnings():
  warnings.filterwarnings("ignore", message=r"<built-in function any> is not a Python type.*", category=ArbitraryTypeWarning)
  from google import genai
  from google.genai import errors, types

from esmforge.ai.providers.base import AIModel, ModelResponse, Provider, SimpleModelResponse
from esmforge.core.errors import ProviderError, TransientError

logger = logging.getLogger(__name__)

_SYSTEM_INSTRUCTION = "You write standalone JavaScript ES modules. Reply with the module source only."


class GeminiModel(AIModel):
  """Gemini model client."""

  def __init__(self, name: str, *, api_key: str | None = None, timeout: float = 60.0) -> None:
    self.name: str = name
    self._timeout = timeout

    api_key = api_key or os.getenv("GEMINI_API_KEY")
    if not api_key:
      raise ProviderError("GEMINI_API_KEY environment variable is required")

    self._client = genai.Client(api_key=api_key)

  async def generate(self, prompt: str, *, seed: int | None = None) -> ModelResponse:
    """Generate module text from Gemini."""
    config = types.GenerateContentConfig(system_instruction=_SYSTEM_INSTRUCTION, seed=seed)
    try:
      # Use the async client to avoid blocking the asyncio event loop.
      response = await asyncio.wait_for(self._client.aio.models.generate_content(model=self.name, contents=prompt, config=config), timeout=self._timeout)
    except TimeoutError as exc:
      raise TransientError(f"Gemini request timed out after {self._timeout:.0f}s") from exc
    except errors.ServerError as exc:
      raise TransientError(f"Gemini server error ({exc.code}): {exc.message}") from exc
    except errors.ClientError as exc:
      if exc.code == 429:
        raise TransientError(f"Gemini rate limited: {exc.message}") from exc
      raise ProviderError(f"Gemini rejected the request ({exc.code}): {exc.message}") from exc

    text = response.text or ""
    if not text.strip():
      raise TransientError("Gemini returned an empty response")

    logger.debug("Gemini response model=%s chars=%d", self.name, len(text))
    usage = None
    if response.usage_metadata:
      usage = {"prompt_tokens": response.usage_metadata.prompt_token_count, "completion_tokens": response.usage_metadata.candidates_token_count, "total_tokens": response.usage_metadata.total_token_count}
    return SimpleModelResponse(content=text, usage=usage)


class GeminiProvider(Provider):
  """Gemini provider."""

  def __init__(self, api_key: str | None = None, *, timeout: float = 60.0) -> None:
    self.name: str = "gemini"
    self._api_key = api_key
    self._timeout = timeout

  def get_model(self, model: str) -> AIModel:
    """Return a Gemini model client."""
    return GeminiModel(model, api_key=self._api_key, timeout=self._timeout)
