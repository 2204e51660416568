"""Cache lookup, singleflight generation and persistence for one request."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Protocol

from esmforge.ai.backoff import retry_with_backoff
from esmforge.ai.prompt_assembler import PromptAssembler
from esmforge.config import Settings
from esmforge.core.errors import GenerationFailed, ProviderError, StorageError, TransientError, WaitTimeout
from esmforge.modules.assembler import ModuleAssembler
from esmforge.modules.singleflight import SingleFlight
from esmforge.schema.modules import ModuleStatus
from esmforge.signature.ast import GenerationRequest
from esmforge.signature.canonical import canonicalize
from esmforge.storage.modules_repo import AlreadyPending, AlreadyReady, ModuleCacheStore, Reserved, RetryCeilingReached

logger = logging.getLogger(__name__)


class GenerationBackend(Protocol):
  async def generate(self, prompt_text: str, model: str, seed: str | None) -> str:
    """Return raw module text, or raise TransientError / ProviderError."""


class GenerationCoordinator:
  """Resolve a request to module source, generating it at most once per key.

  In-process callers for the same key share one singleflight task. Across
  processes the store reservation decides the owner; everyone else polls the
  record until the owner finalizes it. The owner renews its reservation before
  every backoff sleep and every retry.
  """

  def __init__(
    self,
    store: ModuleCacheStore,
    backend: GenerationBackend,
    settings: Settings,
    *,
    prompts: PromptAssembler | None = None,
    assembler: ModuleAssembler | None = None,
    flights: SingleFlight[str] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
  ) -> None:
    self._store = store
    self._backend = backend
    self._settings = settings
    self._prompts = prompts or PromptAssembler()
    self._assembler = assembler or ModuleAssembler()
    self._flights: SingleFlight[str] = flights or SingleFlight()
    self._sleep = sleep
    self._clock = clock
    self._unreleased: set[str] = set()

  async def resolve(self, req: GenerationRequest) -> str:
    key = canonicalize(req)
    return await self._flights.do(key, lambda: self._resolve_key(key, req))

  async def _resolve_key(self, key: str, req: GenerationRequest) -> str:
    deadline = self._clock() + self._settings.wait_timeout_seconds
    while True:
      if key in self._unreleased:
        await self._release(key)
      outcome = await self._store.reserve(key, lease_seconds=self._settings.pending_lease_seconds, max_failed_attempts=self._settings.max_failed_attempts)

      if isinstance(outcome, AlreadyReady):
        logger.info("Cache hit key=%s", key[:12])
        return outcome.source_text

      if isinstance(outcome, RetryCeilingReached):
        logger.warning("Retry ceiling reached key=%s attempts=%d", key[:12], outcome.attempts)
        raise GenerationFailed(key, attempts=outcome.attempts, last_error=outcome.error)

      if isinstance(outcome, Reserved):
        logger.info("Cache miss key=%s; generating (prior_failures=%d taken_over=%s)", key[:12], outcome.attempts, outcome.taken_over)
        return await self._generate(key, req)

      if isinstance(outcome, AlreadyPending):
        source = await self._wait_for_owner(key, deadline)
        if source is not None:
          return source
        continue

      raise StorageError(f"Unexpected reservation outcome {type(outcome).__name__}")

  async def _generate(self, key: str, req: GenerationRequest) -> str:
    prompt_text = self._prompts.render(req)
    attempts = 0

    async def _attempt() -> str:
      nonlocal attempts
      attempts += 1
      if attempts > 1:
        await self._renew_lease(key)
      raw = await self._backend.generate(prompt_text, req.model, req.seed)
      return self._assembler.assemble(raw, req)

    async def _sleep(delay: float) -> None:
      await self._renew_lease(key)
      await self._sleep(delay)

    try:
      source = await retry_with_backoff(
        _attempt,
        attempts=self._settings.max_generation_attempts,
        initial_delay_ms=self._settings.backoff_initial_ms,
        max_delay_ms=self._settings.backoff_max_ms,
        sleep=_sleep,
        label=f"generate key={key[:12]}",
      )
    except (TransientError, ProviderError) as exc:
      await self._finalize_failed(key, f"{type(exc).__name__}: {exc}")
      raise GenerationFailed(key, attempts=attempts, last_error=str(exc)) from exc
    except Exception as exc:
      logger.exception("Unexpected generation error key=%s", key[:12])
      error = f"{type(exc).__name__}: {exc}"
      await self._finalize_failed(key, error)
      raise GenerationFailed(key, attempts=attempts, last_error=error) from exc

    try:
      record = await self._store.finalize(key, ModuleStatus.READY, source_text=source)
    except StorageError:
      await self._release(key)
      raise
    if record.status != ModuleStatus.READY or record.source_text is None:
      raise GenerationFailed(key, attempts=record.attempts, last_error=record.error)
    logger.info("Generated module key=%s attempts=%d", key[:12], attempts)
    return record.source_text

  async def _finalize_failed(self, key: str, error: str) -> None:
    try:
      await self._store.finalize(key, ModuleStatus.FAILED, error=error)
    except StorageError:
      logger.error("Failed to record generation failure key=%s", key[:12], exc_info=True)
      await self._release(key)

  async def _renew_lease(self, key: str) -> None:
    try:
      renewed = await self._store.renew_lease(key)
    except StorageError:
      logger.warning("Failed to renew reservation key=%s", key[:12], exc_info=True)
      return
    if not renewed:
      logger.warning("Reservation key=%s is no longer pending while generating", key[:12])

  async def _release(self, key: str) -> None:
    """Expire this process's reservation after a failed finalize so the key is retryable at once.

    When the release itself fails, the key is remembered and the release is
    retried before this process next reserves it.
    """
    try:
      await self._store.release_lease(key)
    except StorageError:
      logger.error("Failed to release reservation key=%s", key[:12], exc_info=True)
      self._unreleased.add(key)
      return
    self._unreleased.discard(key)

  async def _wait_for_owner(self, key: str, deadline: float) -> str | None:
    """Poll a record owned by another process.

    Returns the source once ready, or ``None`` when the caller should try to
    reserve again (the record vanished or its lease expired).
    """
    logger.info("Key %s is being generated elsewhere; polling", key[:12])
    while True:
      if self._clock() >= deadline:
        raise WaitTimeout(f"Timed out waiting for module {key[:12]} to be generated")
      await self._sleep(self._settings.wait_poll_seconds)

      record = await self._store.get(key)
      if record is None:
        return None
      if record.status == ModuleStatus.READY and record.source_text is not None:
        return record.source_text
      if record.status == ModuleStatus.FAILED:
        raise GenerationFailed(key, attempts=record.attempts, last_error=record.error)
      if record.is_stale(self._settings.pending_lease_seconds, datetime.now(UTC)):
        return None
