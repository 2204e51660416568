"""Provider implementations."""

from esmforge.ai.providers.base import AIModel, ModelResponse, Provider, SimpleModelResponse, seed_to_int

__all__ = ["AIModel", "ModelResponse", "SimpleModelResponse", "Provider", "seed_to_int"]
