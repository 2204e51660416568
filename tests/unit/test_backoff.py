from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from esmforge.ai.backoff import backoff_delay_ms, retry_with_backoff
from esmforge.core.errors import AssemblyError, ProviderError, TransientError


def test_backoff_delay_doubles_and_caps() -> None:
  assert [backoff_delay_ms(attempt, initial_delay_ms=500, max_delay_ms=1500) for attempt in (1, 2, 3, 4)] == [500, 1000, 1500, 1500]


@pytest.mark.anyio
async def test_retries_transient_failures_until_success() -> None:
  func = AsyncMock(side_effect=[TransientError("timeout"), AssemblyError("bad"), "ok"])
  sleep = AsyncMock()

  result = await retry_with_backoff(func, attempts=3, initial_delay_ms=100, max_delay_ms=1000, sleep=sleep)

  assert result == "ok"
  assert func.await_count == 3
  assert [call.args[0] for call in sleep.await_args_list] == [0.1, 0.2]


@pytest.mark.anyio
async def test_last_transient_error_propagates() -> None:
  func = AsyncMock(side_effect=TransientError("still down"))
  sleep = AsyncMock()

  with pytest.raises(TransientError, match="still down"):
    await retry_with_backoff(func, attempts=2, initial_delay_ms=10, max_delay_ms=10, sleep=sleep)
  assert func.await_count == 2
  assert sleep.await_count == 1


@pytest.mark.anyio
async def test_non_transient_error_is_not_retried() -> None:
  func = AsyncMock(side_effect=ProviderError("bad api key"))
  sleep = AsyncMock()

  with pytest.raises(ProviderError):
    await retry_with_backoff(func, attempts=3, initial_delay_ms=10, max_delay_ms=10, sleep=sleep)
  assert func.await_count == 1
  sleep.assert_not_awaited()
