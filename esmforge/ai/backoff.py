"""Retry logic with exponential backoff for generation attempts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from esmforge.core.errors import TransientError

T = TypeVar("T")
logger = logging.getLogger(__name__)


def backoff_delay_ms(attempt: int, *, initial_delay_ms: int, max_delay_ms: int) -> int:
  """Return the delay after ``attempt`` (1-based): initial, 2x, 4x, ... capped."""
  return min(initial_delay_ms * (2 ** (attempt - 1)), max_delay_ms)


async def retry_with_backoff(
  func: Callable[[], Awaitable[T]],
  *,
  attempts: int,
  initial_delay_ms: int,
  max_delay_ms: int,
  retry_on: tuple[type[BaseException], ...] = (TransientError,),
  sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
  label: str = "operation",
) -> T:
  """
  Call ``func`` up to ``attempts`` times, sleeping between retryable failures.

  Exceptions outside ``retry_on`` propagate immediately; the last retryable
  exception propagates once the attempts are spent.
  """
  for attempt in range(1, attempts + 1):
    try:
      return await func()
    except retry_on as exc:
      if attempt >= attempts:
        logger.warning("%s failed on final attempt %d/%d: %s", label, attempt, attempts, exc)
        raise
      delay_ms = backoff_delay_ms(attempt, initial_delay_ms=initial_delay_ms, max_delay_ms=max_delay_ms)
      logger.warning("%s attempt %d/%d failed: %s. Retrying in %dms", label, attempt, attempts, exc, delay_ms)
      await sleep(delay_ms / 1000.0)

  raise ValueError("attempts must be >= 1")
