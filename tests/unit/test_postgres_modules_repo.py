from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from esmforge.core.errors import StorageError
from esmforge.schema.modules import ModuleStatus
from esmforge.storage.modules_repo import AlreadyPending, AlreadyReady, Reserved, RetryCeilingReached
from esmforge.storage.postgres_modules_repo import PostgresModuleCacheStore


def _result(value):
  result = MagicMock()
  result.scalar_one_or_none.return_value = value
  return result


def _row(status: ModuleStatus, *, source_text: str | None = None, error: str | None = None, attempts: int = 0):
  now = datetime.now(UTC)
  return SimpleNamespace(key="k" * 64, status=status, source_text=source_text, error=error, attempts=attempts, created_at=now, updated_at=now)


@pytest.mark.anyio
async def test_reserve_insert_wins(session_factory, mock_db_session) -> None:
  mock_db_session.execute.side_effect = [_result("k" * 64)]
  store = PostgresModuleCacheStore(session_factory)

  assert await store.reserve("k" * 64, lease_seconds=60) == Reserved()
  mock_db_session.commit.assert_awaited_once()


@pytest.mark.anyio
async def test_reserve_returns_ready_text(session_factory, mock_db_session) -> None:
  mock_db_session.execute.side_effect = [_result(None), _result(_row(ModuleStatus.READY, source_text="export const x = 1;"))]
  store = PostgresModuleCacheStore(session_factory)

  assert await store.reserve("k" * 64, lease_seconds=60) == AlreadyReady("export const x = 1;")


@pytest.mark.anyio
async def test_reserve_reclaims_failed_record(session_factory, mock_db_session) -> None:
  mock_db_session.execute.side_effect = [_result(None), _result(_row(ModuleStatus.FAILED, error="x", attempts=2)), _result(2)]
  store = PostgresModuleCacheStore(session_factory)

  assert await store.reserve("k" * 64, lease_seconds=60) == Reserved(attempts=2)


@pytest.mark.anyio
async def test_reserve_respects_retry_ceiling(session_factory, mock_db_session) -> None:
  mock_db_session.execute.side_effect = [_result(None), _result(_row(ModuleStatus.FAILED, error="x", attempts=3))]
  store = PostgresModuleCacheStore(session_factory)

  assert await store.reserve("k" * 64, lease_seconds=60, max_failed_attempts=3) == RetryCeilingReached(attempts=3, error="x")
  assert mock_db_session.execute.await_count == 2


@pytest.mark.anyio
async def test_reserve_pending_without_takeover(session_factory, mock_db_session) -> None:
  mock_db_session.execute.side_effect = [_result(None), _result(_row(ModuleStatus.PENDING)), _result(None)]
  store = PostgresModuleCacheStore(session_factory)

  assert await store.reserve("k" * 64, lease_seconds=60) == AlreadyPending()


@pytest.mark.anyio
async def test_reserve_takes_over_stale_pending(session_factory, mock_db_session) -> None:
  mock_db_session.execute.side_effect = [_result(None), _result(_row(ModuleStatus.PENDING)), _result(1)]
  store = PostgresModuleCacheStore(session_factory)

  assert await store.reserve("k" * 64, lease_seconds=60) == Reserved(attempts=1, taken_over=True)


@pytest.mark.anyio
async def test_finalize_returns_stored_record_when_already_final(session_factory, mock_db_session) -> None:
  mock_db_session.execute.side_effect = [_result(None), _result(_row(ModuleStatus.READY, source_text="first"))]
  store = PostgresModuleCacheStore(session_factory)

  record = await store.finalize("k" * 64, ModuleStatus.READY, source_text="second")

  assert record.status == ModuleStatus.READY
  assert record.source_text == "first"


@pytest.mark.anyio
async def test_finalize_unknown_key(session_factory, mock_db_session) -> None:
  mock_db_session.execute.side_effect = [_result(None), _result(None)]
  store = PostgresModuleCacheStore(session_factory)

  with pytest.raises(StorageError):
    await store.finalize("k" * 64, ModuleStatus.FAILED, error="boom")


@pytest.mark.anyio
async def test_get_missing_record(session_factory, mock_db_session) -> None:
  mock_db_session.get.return_value = None
  store = PostgresModuleCacheStore(session_factory)

  assert await store.get("k" * 64) is None


@pytest.mark.anyio
async def test_database_errors_become_storage_errors(session_factory, mock_db_session) -> None:
  mock_db_session.execute.side_effect = SQLAlchemyError("relation does not exist")
  store = PostgresModuleCacheStore(session_factory)

  with pytest.raises(StorageError) as exc:
    await store.reserve("k" * 64, lease_seconds=60)
  assert exc.value.status_code == 503


@pytest.mark.anyio
@pytest.mark.parametrize("operation", ["renew_lease", "release_lease"])
async def test_lease_updates_report_whether_a_pending_row_moved(session_factory, mock_db_session, operation: str) -> None:
  store = PostgresModuleCacheStore(session_factory)

  mock_db_session.execute.side_effect = [_result("k" * 64)]
  assert await getattr(store, operation)("k" * 64) is True
  mock_db_session.commit.assert_awaited_once()

  mock_db_session.execute.side_effect = [_result(None)]
  assert await getattr(store, operation)("k" * 64) is False
