"""In-process singleflight group keyed by canonical key."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


class SingleFlight(Generic[T]):
  """Run at most one task per key; concurrent callers await the same task.

  The work runs in its own task and callers await it through
  ``asyncio.shield``, so a caller that is cancelled (for example because the
  HTTP client disconnected) stops waiting without cancelling the work.
  """

  def __init__(self) -> None:
    self._tasks: dict[str, asyncio.Task[T]] = {}

  def in_flight(self, key: str) -> bool:
    return key in self._tasks

  def __len__(self) -> int:
    return len(self._tasks)

  async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
    task = self._tasks.get(key)
    if task is None:
      task = asyncio.create_task(self._run(fn), name=f"singleflight:{key[:12]}")
      self._tasks[key] = task
      task.add_done_callback(lambda done, key=key: self._forget(key, done))
    else:
      logger.info("Joining in-flight generation key=%s", key[:12])
    return await asyncio.shield(task)

  async def _run(self, fn: Callable[[], Awaitable[T]]) -> T:
    return await fn()

  def _forget(self, key: str, task: asyncio.Task[T]) -> None:
    if self._tasks.get(key) is task:
      del self._tasks[key]
    # Mark the outcome as retrieved when every caller has gone away.
    if not task.cancelled():
      task.exception()
