"""Shared error classification helpers for provider failures."""

from __future__ import annotations

from collections.abc import Iterable

from esmforge.core.errors import ProviderError, TransientError

_TRANSIENT_HINTS: tuple[str, ...] = (
  "rate limit",
  "too many requests",
  "429",
  "quota",
  "resource exhausted",
  "timeout",
  "timed out",
  "connection",
  "network",
  "temporarily",
  "service unavailable",
  "bad gateway",
  "gateway",
  "overloaded",
)

_PROVIDER_HINTS: tuple[str, ...] = (
  "unsupported model",
  "model not found",
  "no such model",
  "model is not available",
  "api key",
  "unauthorized",
  "forbidden",
  "permission",
)


def _match_hint(message: str, hints: Iterable[str]) -> bool:
  """Return True when any hint appears in the message."""
  return any(hint in message for hint in hints)


def is_transient_error(exc: BaseException) -> bool:
  """Return True when an exception looks like a retryable backend hiccup."""
  if isinstance(exc, TransientError):
    return True
  if isinstance(exc, ProviderError):
    return False
  if isinstance(exc, TimeoutError | ConnectionError):
    return True
  message = str(exc).lower()
  return _match_hint(message, _TRANSIENT_HINTS) and not _match_hint(message, _PROVIDER_HINTS)


def is_provider_error(exc: BaseException) -> bool:
  """Return True when an exception indicates a configuration or model availability failure."""
  if isinstance(exc, ProviderError):
    return True
  return _match_hint(str(exc).lower(), _PROVIDER_HINTS)


def classify_provider_exception(exc: Exception) -> Exception:
  """Normalize an unexpected SDK exception into TransientError or ProviderError."""
  if isinstance(exc, TransientError | ProviderError):
    return exc
  if is_provider_error(exc):
    return ProviderError(f"{type(exc).__name__}: {exc}")
  if is_transient_error(exc):
    return TransientError(f"{type(exc).__name__}: {exc}")
  return ProviderError(f"{type(exc).__name__}: {exc}")
