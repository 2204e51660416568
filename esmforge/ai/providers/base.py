"""Base interfaces for text-generation providers and models."""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Protocol

# Providers accept a 32-bit signed seed at most.
_SEED_MODULUS = 2**31


class ModelResponse(Protocol):
  """Response contract for model outputs."""

  content: str
  usage: dict[str, int] | None


@dataclass
class SimpleModelResponse:
  """Minimal model response structure."""

  content: str
  usage: dict[str, int] | None = None


def seed_to_int(seed: str | None) -> int | None:
  """Map a caller seed string to the integer seed providers expect.

  Decimal seeds that fit are passed through so callers can reproduce provider-side
  runs; anything else is folded through sha256 so the mapping stays stable.
  """
  if seed is None:
    return None
  if seed.isdigit() and int(seed) < _SEED_MODULUS:
    return int(seed)
  digest = hashlib.sha256(seed.encode("utf-8")).digest()
  return int.from_bytes(digest[:8], "big") % _SEED_MODULUS


class AIModel(ABC):
  """Abstract base class for text-generation models."""

  name: str

  @abstractmethod
  async def generate(self, prompt: str, *, seed: int | None = None) -> ModelResponse:
    """Generate a response for the given prompt."""


class Provider(ABC):
  """Abstract base class for providers."""

  name: str

  @abstractmethod
  def get_model(self, model: str) -> AIModel:
    """Return the model client for the provider."""
