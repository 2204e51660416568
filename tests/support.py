"""Test helpers shared across unit tests."""

from __future__ import annotations

import dataclasses

from esmforge.config import DEFAULT_MODEL, Settings
from esmforge.core.errors import StorageError
from esmforge.schema.modules import ModuleStatus
from esmforge.storage.memory_modules_repo import InMemoryModuleCacheStore
from esmforge.storage.modules_repo import ModuleRecord, ReservationOutcome

VALID_MODULE = "export function greet(name) {\n  return `Hello, ${name}!`;\n}\n"


def build_settings(**overrides) -> Settings:
  """Settings with test-friendly timings; no environment variables are read."""
  base = Settings(
    environment="test",
    debug=False,
    pg_dsn=None,
    pg_connect_timeout=5,
    provider="dummy",
    default_model=DEFAULT_MODEL,
    allowed_models=(),
    max_generation_attempts=3,
    backoff_initial_ms=10,
    backoff_max_ms=40,
    request_timeout_seconds=5.0,
    max_failed_attempts=0,
    pending_lease_seconds=300,
    wait_poll_seconds=0.01,
    wait_timeout_seconds=1.0,
    max_signature_chars=2000,
    log_dir=None,
    log_max_bytes=1024,
    log_backup_count=1,
  )
  return dataclasses.replace(base, **overrides)


class FakeBackend:
  """Scripted ``generate`` seam: each call takes the next response (the last one repeats) and raises it if it is an exception."""

  def __init__(self, *responses: str | BaseException) -> None:
    self.responses = list(responses)
    self.calls: list[tuple[str, str, str | None]] = []

  async def generate(self, prompt_text: str, model: str, seed: str | None) -> str:
    self.calls.append((prompt_text, model, seed))
    response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
    if isinstance(response, BaseException):
      raise response
    return response


class FlakyStore(InMemoryModuleCacheStore):
  """In-memory store whose first ``fail_*`` calls of an operation raise ``StorageError``."""

  def __init__(self, *, fail_reserve: int = 0, fail_finalize: int = 0, fail_release: int = 0, **kwargs) -> None:
    super().__init__(**kwargs)
    self.failures = {"reserve": fail_reserve, "finalize": fail_finalize, "release_lease": fail_release}

  def _maybe_fail(self, operation: str) -> None:
    if self.failures[operation]:
      self.failures[operation] -= 1
      raise StorageError(f"Module store {operation} failed: connection lost")

  async def reserve(self, key: str, **kwargs) -> ReservationOutcome:
    self._maybe_fail("reserve")
    return await super().reserve(key, **kwargs)

  async def finalize(self, key: str, status: ModuleStatus, **kwargs) -> ModuleRecord:
    self._maybe_fail("finalize")
    return await super().finalize(key, status, **kwargs)

  async def release_lease(self, key: str) -> bool:
    self._maybe_fail("release_lease")
    return await super().release_lease(key)
