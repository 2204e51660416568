"""Storage contract for generated module records."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Protocol

from esmforge.schema.modules import ModuleStatus


@dataclass(frozen=True)
class ModuleRecord:
  """Persisted module state; write-once once it reaches ``ready``."""

  key: str
  status: ModuleStatus
  source_text: str | None
  error: str | None
  attempts: int
  created_at: datetime.datetime
  updated_at: datetime.datetime

  def is_stale(self, lease_seconds: int, now: datetime.datetime) -> bool:
    """Return True for a pending reservation whose owner has stopped renewing it."""
    return self.status == ModuleStatus.PENDING and now - self.updated_at > datetime.timedelta(seconds=lease_seconds)


@dataclass(frozen=True)
class AlreadyReady:
  source_text: str


@dataclass(frozen=True)
class AlreadyPending:
  pass


@dataclass(frozen=True)
class Reserved:
  """The caller now owns generation for the key."""

  attempts: int = 0
  taken_over: bool = False


@dataclass(frozen=True)
class RetryCeilingReached:
  attempts: int
  error: str | None


ReservationOutcome = AlreadyReady | AlreadyPending | Reserved | RetryCeilingReached


class ModuleCacheStore(Protocol):
  """Repository contract for the module cache.

  ``reserve`` and ``finalize`` must be atomic per key across concurrent
  callers and processes.
  """

  async def reserve(self, key: str, *, lease_seconds: int, max_failed_attempts: int = 0) -> ReservationOutcome:
    """Claim generation of ``key`` unless it is ready or already claimed."""

  async def finalize(self, key: str, status: ModuleStatus, *, source_text: str | None = None, error: str | None = None) -> ModuleRecord:
    """Move a pending record to ready or failed and return the stored record."""

  async def renew_lease(self, key: str) -> bool:
    """Refresh a pending reservation so it is not taken over; False when the record is no longer pending."""

  async def release_lease(self, key: str) -> bool:
    """Expire a pending reservation so the next ``reserve`` takes it over at once."""

  async def get(self, key: str) -> ModuleRecord | None:
    """Fetch a record by key."""


# updated_at written by release_lease; older than any lease window.
EXPIRED_LEASE = datetime.datetime(1970, 1, 1, tzinfo=datetime.UTC)


def validate_finalize(status: ModuleStatus, source_text: str | None, error: str | None) -> None:
  if status == ModuleStatus.READY and source_text is None:
    raise ValueError("A ready module requires source_text.")
  if status == ModuleStatus.FAILED and error is None:
    raise ValueError("A failed module requires an error.")
  if status == ModuleStatus.PENDING:
    raise ValueError("finalize() cannot move a record back to pending.")
