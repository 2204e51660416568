"""Error taxonomy shared by the parsing, generation and storage layers."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
  """Caller-visible failure categories."""

  PARSE_ERROR = "parse_error"
  SIGNATURE_TOO_LONG = "signature_too_long"
  UNSUPPORTED_MODEL = "unsupported_model"
  GENERATION_FAILED = "generation_failed"
  GENERATION_PENDING = "generation_pending"
  STORAGE_ERROR = "storage_error"


class ModuleServiceError(Exception):
  """Base class for errors that map to one deterministic caller outcome."""

  kind: ErrorKind = ErrorKind.GENERATION_FAILED
  status_code: int = 500

  def __init__(self, message: str) -> None:
    super().__init__(message)
    self.message = message


class ParseError(ModuleServiceError):
  """The encoded signature has unbalanced delimiters."""

  kind = ErrorKind.PARSE_ERROR
  status_code = 400

  def __init__(self, message: str, position: int) -> None:
    super().__init__(f"{message} at position {position}")
    self.reason = message
    self.position = position


class SignatureTooLongError(ModuleServiceError):
  kind = ErrorKind.SIGNATURE_TOO_LONG
  status_code = 414


class UnsupportedModelError(ModuleServiceError):
  kind = ErrorKind.UNSUPPORTED_MODEL
  status_code = 400


class TransientError(Exception):
  """A single generation attempt failed in a way that may succeed on retry."""


class AssemblyError(TransientError):
  """Generated text failed the module well-formedness check."""


class ProviderError(Exception):
  """The backend rejected the request in a way a retry will not fix (bad key, unknown model)."""


class GenerationFailed(ModuleServiceError):
  """Generation for a key was exhausted (or refused by the retry ceiling)."""

  kind = ErrorKind.GENERATION_FAILED
  status_code = 502

  def __init__(self, key: str, *, attempts: int, last_error: str | None) -> None:
    super().__init__(f"Generation failed for {key[:12]} after {attempts} attempt(s): {last_error or 'unknown error'}")
    self.key = key
    self.attempts = attempts
    self.last_error = last_error


class WaitTimeout(ModuleServiceError):
  """Another process still owns the key after the waiter gave up polling."""

  kind = ErrorKind.GENERATION_PENDING
  status_code = 504


class StorageError(ModuleServiceError):
  """The cache store could not complete a reservation, read or finalize."""

  kind = ErrorKind.STORAGE_ERROR
  status_code = 503
