"""In-process module cache for local development and tests."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from esmforge.core.errors import StorageError
from esmforge.schema.modules import ModuleStatus
from esmforge.storage.modules_repo import EXPIRED_LEASE, AlreadyPending, AlreadyReady, ModuleRecord, ReservationOutcome, Reserved, RetryCeilingReached, validate_finalize

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
  return datetime.now(UTC)


class InMemoryModuleCacheStore:
  """Dict-backed store with the same reservation semantics as the Postgres store.

  State is lost on restart, so it only suits single-process deployments.
  """

  def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
    self._records: dict[str, ModuleRecord] = {}
    self._lock = asyncio.Lock()
    self._clock = clock

  async def reserve(self, key: str, *, lease_seconds: int, max_failed_attempts: int = 0) -> ReservationOutcome:
    async with self._lock:
      now = self._clock()
      record = self._records.get(key)
      if record is None:
        self._records[key] = ModuleRecord(key=key, status=ModuleStatus.PENDING, source_text=None, error=None, attempts=0, created_at=now, updated_at=now)
        return Reserved()

      if record.status == ModuleStatus.READY:
        return AlreadyReady(record.source_text or "")

      if record.status == ModuleStatus.FAILED:
        if max_failed_attempts and record.attempts >= max_failed_attempts:
          return RetryCeilingReached(attempts=record.attempts, error=record.error)
        self._records[key] = dataclasses.replace(record, status=ModuleStatus.PENDING, error=None, updated_at=now)
        return Reserved(attempts=record.attempts)

      if record.is_stale(lease_seconds, now):
        logger.warning("Taking over stale reservation key=%s age=%.1fs", key[:12], (now - record.updated_at).total_seconds())
        self._records[key] = dataclasses.replace(record, updated_at=now)
        return Reserved(attempts=record.attempts, taken_over=True)

      return AlreadyPending()

  async def finalize(self, key: str, status: ModuleStatus, *, source_text: str | None = None, error: str | None = None) -> ModuleRecord:
    validate_finalize(status, source_text, error)
    async with self._lock:
      record = self._records.get(key)
      if record is None:
        raise StorageError(f"Cannot finalize unknown module key {key[:12]}")
      # Only a pending record moves; ready and failed outcomes are never overwritten.
      if record.status != ModuleStatus.PENDING:
        return record
      attempts = record.attempts + 1 if status == ModuleStatus.FAILED else record.attempts
      finalized = dataclasses.replace(record, status=status, source_text=source_text, error=error, attempts=attempts, updated_at=self._clock())
      self._records[key] = finalized
      return finalized

  async def renew_lease(self, key: str) -> bool:
    return await self._touch(key, self._clock())

  async def release_lease(self, key: str) -> bool:
    return await self._touch(key, EXPIRED_LEASE)

  async def _touch(self, key: str, updated_at: datetime) -> bool:
    async with self._lock:
      record = self._records.get(key)
      if record is None or record.status != ModuleStatus.PENDING:
        return False
      self._records[key] = dataclasses.replace(record, updated_at=updated_at)
      return True

  async def get(self, key: str) -> ModuleRecord | None:
    async with self._lock:
      return self._records.get(key)
