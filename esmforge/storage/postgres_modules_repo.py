"""Postgres-backed module cache using SQLAlchemy.

Reservation is an ``INSERT ... ON CONFLICT DO NOTHING`` on the primary key;
every later state change is a conditional ``UPDATE`` guarded by the status the
caller observed, so two processes can never both own a key.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from esmforge.core.database import get_session_factory
from esmforge.core.errors import StorageError
from esmforge.schema.modules import GeneratedModule, ModuleStatus
from esmforge.storage.db_retry import execute_with_retry
from esmforge.storage.modules_repo import EXPIRED_LEASE, AlreadyPending, AlreadyReady, ModuleRecord, ReservationOutcome, Reserved, RetryCeilingReached, validate_finalize

T = TypeVar("T")
logger = logging.getLogger(__name__)


def _model_to_record(row: GeneratedModule) -> ModuleRecord:
  return ModuleRecord(key=row.key, status=ModuleStatus(row.status), source_text=row.source_text, error=row.error, attempts=row.attempts, created_at=row.created_at, updated_at=row.updated_at)


class PostgresModuleCacheStore:
  """Persist generated modules to Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def _run(self, operation_name: str, func_: Callable[[], Awaitable[T]]) -> T:
    try:
      return await execute_with_retry(operation_name=operation_name, func=func_)
    except SQLAlchemyError as exc:
      raise StorageError(f"Module store {operation_name} failed: {type(exc).__name__}") from exc
    except (ConnectionError, OSError) as exc:
      raise StorageError(f"Module store {operation_name} failed: {exc}") from exc

  async def reserve(self, key: str, *, lease_seconds: int, max_failed_attempts: int = 0) -> ReservationOutcome:
    async def _reserve() -> ReservationOutcome:
      async with self._session_factory() as session:
        outcome = await self._reserve_in_session(session, key, lease_seconds=lease_seconds, max_failed_attempts=max_failed_attempts)
        await session.commit()
        return outcome

    return await self._run("reserve", _reserve)

  async def _reserve_in_session(self, session: AsyncSession, key: str, *, lease_seconds: int, max_failed_attempts: int) -> ReservationOutcome:
    insert_stmt = insert(GeneratedModule).values(key=key, status=ModuleStatus.PENDING, attempts=0).on_conflict_do_nothing(index_elements=["key"]).returning(GeneratedModule.key)
    inserted = (await session.execute(insert_stmt)).scalar_one_or_none()
    if inserted is not None:
      return Reserved()

    row = (await session.execute(select(GeneratedModule).where(GeneratedModule.key == key))).scalar_one_or_none()
    if row is None:
      # The conflicting row vanished between statements; another caller owns the retry.
      return AlreadyPending()

    record = _model_to_record(row)
    if record.status == ModuleStatus.READY:
      return AlreadyReady(record.source_text or "")

    if record.status == ModuleStatus.FAILED:
      if max_failed_attempts and record.attempts >= max_failed_attempts:
        return RetryCeilingReached(attempts=record.attempts, error=record.error)
      claim = update(GeneratedModule).where(GeneratedModule.key == key, GeneratedModule.status == ModuleStatus.FAILED).values(status=ModuleStatus.PENDING, error=None, updated_at=func.now()).returning(GeneratedModule.attempts).execution_options(synchronize_session=False)
      attempts = (await session.execute(claim)).scalar_one_or_none()
      return AlreadyPending() if attempts is None else Reserved(attempts=attempts)

    cutoff = datetime.now(UTC) - timedelta(seconds=lease_seconds)
    takeover = update(GeneratedModule).where(GeneratedModule.key == key, GeneratedModule.status == ModuleStatus.PENDING, GeneratedModule.updated_at < cutoff).values(updated_at=func.now()).returning(GeneratedModule.attempts).execution_options(synchronize_session=False)
    attempts = (await session.execute(takeover)).scalar_one_or_none()
    if attempts is not None:
      logger.warning("Took over stale reservation key=%s", key[:12])
      return Reserved(attempts=attempts, taken_over=True)
    return AlreadyPending()

  async def finalize(self, key: str, status: ModuleStatus, *, source_text: str | None = None, error: str | None = None) -> ModuleRecord:
    validate_finalize(status, source_text, error)

    async def _finalize() -> ModuleRecord:
      async with self._session_factory() as session:
        values: dict[str, object] = {"status": status, "source_text": source_text, "error": error, "updated_at": func.now()}
        if status == ModuleStatus.FAILED:
          values["attempts"] = GeneratedModule.attempts + 1
        stmt = update(GeneratedModule).where(GeneratedModule.key == key, GeneratedModule.status == ModuleStatus.PENDING).values(**values).returning(GeneratedModule).execution_options(synchronize_session=False)
        row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
          # Already finalized elsewhere: the stored outcome wins.
          row = (await session.execute(select(GeneratedModule).where(GeneratedModule.key == key))).scalar_one_or_none()
        if row is None:
          raise StorageError(f"Cannot finalize unknown module key {key[:12]}")
        record = _model_to_record(row)
        await session.commit()
        return record

    return await self._run("finalize", _finalize)

  async def renew_lease(self, key: str) -> bool:
    return await self._touch("renew_lease", key, func.now())

  async def release_lease(self, key: str) -> bool:
    return await self._touch("release_lease", key, EXPIRED_LEASE)

  async def _touch(self, operation_name: str, key: str, updated_at: object) -> bool:
    async def _update() -> bool:
      async with self._session_factory() as session:
        stmt = update(GeneratedModule).where(GeneratedModule.key == key, GeneratedModule.status == ModuleStatus.PENDING).values(updated_at=updated_at).returning(GeneratedModule.key).execution_options(synchronize_session=False)
        touched = (await session.execute(stmt)).scalar_one_or_none()
        await session.commit()
        return touched is not None

    return await self._run(operation_name, _update)

  async def get(self, key: str) -> ModuleRecord | None:
    async def _get() -> ModuleRecord | None:
      async with self._session_factory() as session:
        row = await session.get(GeneratedModule, key)
        return None if row is None else _model_to_record(row)

    return await self._run("get", _get)
