"""Routing utilities for provider/model selection."""

from __future__ import annotations

import logging
from enum import Enum

from esmforge.ai.errors import classify_provider_exception
from esmforge.ai.providers.base import AIModel, Provider, seed_to_int
from esmforge.ai.providers.dummy import DummyProvider
from esmforge.ai.providers.gemini import GeminiProvider
from esmforge.ai.providers.openrouter import OpenRouterProvider
from esmforge.config import Settings

logger = logging.getLogger(__name__)


class ProviderMode(str, Enum):
  """Supported provider modes."""

  GEMINI = "gemini"
  OPENROUTER = "openrouter"
  DUMMY = "dummy"


def get_provider_for_mode(mode: str | ProviderMode, *, timeout: float = 60.0) -> Provider:
  """Return a provider instance for the given mode."""
  key = mode.value if isinstance(mode, ProviderMode) else mode
  if key == ProviderMode.GEMINI.value:
    return GeminiProvider(timeout=timeout)
  if key == ProviderMode.OPENROUTER.value:
    return OpenRouterProvider(timeout=timeout)
  if key == ProviderMode.DUMMY.value:
    return DummyProvider()
  raise ValueError(f"Unsupported provider mode '{mode}'.")


class ProviderBackend:
  """The ``generate(prompt, model, seed) -> text`` seam the coordinator calls.

  Every failure leaves as either ``TransientError`` (retry) or ``ProviderError``
  (give up on this round).
  """

  def __init__(self, provider: Provider) -> None:
    self._provider = provider
    self._models: dict[str, AIModel] = {}

  @property
  def provider_name(self) -> str:
    return self._provider.name

  def _model(self, model: str) -> AIModel:
    client = self._models.get(model)
    if client is None:
      client = self._provider.get_model(model)
      logger.info("Created model client provider=%s model=%s", self.provider_name, model)
      self._models[model] = client
    return client

  async def generate(self, prompt_text: str, model: str, seed: str | None) -> str:
    client = self._model(model)
    try:
      response = await client.generate(prompt_text, seed=seed_to_int(seed))
    except Exception as exc:  # noqa: BLE001
      classified = classify_provider_exception(exc)
      if classified is exc:
        raise
      raise classified from exc

    if response.usage:
      logger.info("Generation usage provider=%s model=%s tokens=%s", self.provider_name, model, response.usage.get("total_tokens"))
    return response.content


def build_backend(settings: Settings) -> ProviderBackend:
  """Build the backend selected by ``ESMFORGE_PROVIDER``."""
  return ProviderBackend(get_provider_for_mode(settings.provider, timeout=settings.request_timeout_seconds))
