"""Offline provider for local runs and tests."""

from __future__ import annotations

import logging
import os
import re

from esmforge.ai.providers.base import AIModel, ModelResponse, Provider, SimpleModelResponse

logger = logging.getLogger(__name__)

_EXPORT_LINE = re.compile(r"^Export name: `([A-Za-z_$][A-Za-z0-9_$]*)`$", re.MULTILINE)


class DummyModel(AIModel):
  """Return a canned body instead of calling a backend."""

  def __init__(self, name: str, response: str | None = None) -> None:
    self.name: str = name
    self._response = response

  async def generate(self, prompt: str, *, seed: int | None = None) -> ModelResponse:
    body = self._response if self._response is not None else os.getenv("ESMFORGE_DUMMY_RESPONSE")
    if body is None:
      match = _EXPORT_LINE.search(prompt)
      export_name = match.group(1) if match else "main"
      declaration = "export default function" if export_name == "default" else f"export function {export_name}"
      body = f"{declaration}(...args) {{\n  throw new Error('{export_name} is not implemented');\n}}\n"
    logger.info("Dummy provider response model=%s chars=%d", self.name, len(body))
    return SimpleModelResponse(content=body, usage=None)


class DummyProvider(Provider):
  def __init__(self, response: str | None = None) -> None:
    self.name: str = "dummy"
    self._response = response

  def get_model(self, model: str) -> AIModel:
    return DummyModel(model, response=self._response)
