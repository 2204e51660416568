from __future__ import annotations

import asyncio

import pytest

from esmforge.modules.singleflight import SingleFlight


@pytest.mark.anyio
async def test_concurrent_callers_share_one_execution() -> None:
  flights: SingleFlight[str] = SingleFlight()
  release = asyncio.Event()
  calls = 0

  async def work() -> str:
    nonlocal calls
    calls += 1
    await release.wait()
    return "done"

  waiters = [asyncio.create_task(flights.do("k", work)) for _ in range(5)]
  await asyncio.sleep(0)
  assert flights.in_flight("k")
  release.set()
  results = await asyncio.gather(*waiters)

  assert results == ["done"] * 5
  assert calls == 1
  assert not flights.in_flight("k")


@pytest.mark.anyio
async def test_errors_are_shared_and_key_is_released() -> None:
  flights: SingleFlight[str] = SingleFlight()

  async def boom() -> str:
    await asyncio.sleep(0)
    raise RuntimeError("nope")

  results = await asyncio.gather(flights.do("k", boom), flights.do("k", boom), return_exceptions=True)
  assert all(isinstance(result, RuntimeError) for result in results)
  assert len(flights) == 0

  async def ok() -> str:
    return "second"

  assert await flights.do("k", ok) == "second"


@pytest.mark.anyio
async def test_cancelled_caller_does_not_cancel_the_work() -> None:
  flights: SingleFlight[str] = SingleFlight()
  release = asyncio.Event()
  finished = asyncio.Event()

  async def work() -> str:
    await release.wait()
    finished.set()
    return "persisted"

  caller = asyncio.create_task(flights.do("k", work))
  await asyncio.sleep(0)
  caller.cancel()
  with pytest.raises(asyncio.CancelledError):
    await caller

  assert flights.in_flight("k")
  release.set()
  await asyncio.wait_for(finished.wait(), timeout=1)
  for _ in range(10):
    if not flights.in_flight("k"):
      break
    await asyncio.sleep(0)
  assert not flights.in_flight("k")


@pytest.mark.anyio
async def test_distinct_keys_run_independently() -> None:
  flights: SingleFlight[int] = SingleFlight()

  async def value(n: int) -> int:
    await asyncio.sleep(0)
    return n

  assert await asyncio.gather(flights.do("a", lambda: value(1)), flights.do("b", lambda: value(2))) == [1, 2]
