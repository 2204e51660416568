"""Unit tests for provider routing and failure classification."""

from __future__ import annotations

import logging

import pytest

from esmforge.ai.errors import classify_provider_exception, is_provider_error, is_transient_error
from esmforge.ai.providers.base import AIModel, Provider, SimpleModelResponse, seed_to_int
from esmforge.ai.providers.dummy import DummyProvider
from esmforge.ai.router import ProviderBackend, ProviderMode, build_backend, get_provider_for_mode
from esmforge.core.errors import ProviderError, TransientError
from tests.support import build_settings


class _FailingModel(AIModel):
  def __init__(self, exc: Exception) -> None:
    self.name = "failing"
    self._exc = exc

  async def generate(self, prompt: str, *, seed: int | None = None) -> SimpleModelResponse:
    raise self._exc


class _RecordingModel(AIModel):
  def __init__(self) -> None:
    self.name = "recording"
    self.seeds: list[int | None] = []

  async def generate(self, prompt: str, *, seed: int | None = None) -> SimpleModelResponse:
    self.seeds.append(seed)
    return SimpleModelResponse(content="export const x = 1;", usage={"total_tokens": 12})


class _SingleModelProvider(Provider):
  def __init__(self, model: AIModel) -> None:
    self.name = "single"
    self.model = model
    self.requests: list[str] = []

  def get_model(self, model: str) -> AIModel:
    self.requests.append(model)
    return self.model


@pytest.mark.parametrize(
  "exc, expected",
  [
    (TimeoutError(), TransientError),
    (ConnectionResetError("reset"), TransientError),
    (RuntimeError("429 Too Many Requests"), TransientError),
    (RuntimeError("503 Service Unavailable"), TransientError),
    (RuntimeError("Invalid API key"), ProviderError),
    (RuntimeError("connection refused: api key missing"), ProviderError),
    (ValueError("something odd"), ProviderError),
  ],
)
def test_classify_provider_exception(exc: Exception, expected: type[Exception]) -> None:
  classified = classify_provider_exception(exc)
  assert isinstance(classified, expected)
  assert type(exc).__name__ in str(classified)


def test_typed_errors_pass_through_unchanged() -> None:
  transient = TransientError("x")
  provider = ProviderError("y")
  assert classify_provider_exception(transient) is transient
  assert classify_provider_exception(provider) is provider
  assert is_transient_error(transient)
  assert not is_transient_error(provider)
  assert is_provider_error(RuntimeError("model not found"))


def test_seed_to_int() -> None:
  assert seed_to_int(None) is None
  assert seed_to_int("42") == 42
  assert seed_to_int("abc") == seed_to_int("abc")
  assert 0 <= seed_to_int("abc") < 2**31
  assert 0 <= seed_to_int(str(2**40)) < 2**31


def test_get_provider_for_mode() -> None:
  assert get_provider_for_mode(ProviderMode.DUMMY).name == "dummy"
  assert get_provider_for_mode("dummy").name == "dummy"
  with pytest.raises(ValueError):
    get_provider_for_mode("anthropic")


@pytest.mark.anyio
async def test_dummy_backend_stubs_the_requested_export() -> None:
  backend = build_backend(build_settings(provider="dummy"))
  text = await backend.generate("...\nExport name: `formatCurrency`\n...", "any/model", None)
  assert backend.provider_name == "dummy"
  assert text.startswith("export function formatCurrency(")


@pytest.mark.anyio
async def test_dummy_backend_uses_explicit_response() -> None:
  backend = ProviderBackend(DummyProvider(response="export default 1;"))
  assert await backend.generate("prompt", "m", "1") == "export default 1;"


@pytest.mark.anyio
async def test_backend_maps_seed_and_caches_model_clients() -> None:
  model = _RecordingModel()
  provider = _SingleModelProvider(model)
  backend = ProviderBackend(provider)

  await backend.generate("p", "m", "42")
  await backend.generate("p", "m", None)

  assert model.seeds == [42, None]
  assert provider.requests == ["m"]


@pytest.mark.anyio
async def test_backend_classifies_sdk_failures() -> None:
  transient = ProviderBackend(_SingleModelProvider(_FailingModel(RuntimeError("upstream timed out"))))
  with pytest.raises(TransientError) as exc:
    await transient.generate("p", "m", None)
  assert isinstance(exc.value.__cause__, RuntimeError)

  fatal = ProviderBackend(_SingleModelProvider(_FailingModel(ProviderError("unsupported model"))))
  with pytest.raises(ProviderError):
    await fatal.generate("p", "m", None)


def test_provider_hint_wins_over_a_transient_exception_type() -> None:
  classified = classify_provider_exception(ConnectionError("api key rejected by upstream"))
  assert isinstance(classified, ProviderError)
  assert "ConnectionError" in str(classified)


@pytest.mark.anyio
async def test_backend_logs_its_provider_name(caplog) -> None:
  backend = ProviderBackend(_SingleModelProvider(_RecordingModel()))

  with caplog.at_level(logging.INFO, logger="esmforge.ai.router"):
    await backend.generate("p", "m", None)

  assert "provider=single model=m" in caplog.text
