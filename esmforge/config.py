"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from esmforge.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

DEFAULT_MODEL = "openai/gpt-oss-20b:free"
_PROVIDERS = {"openrouter", "gemini", "dummy"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the esmforge service."""

  environment: str
  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  provider: str
  default_model: str
  allowed_models: tuple[str, ...]
  max_generation_attempts: int
  backoff_initial_ms: int
  backoff_max_ms: int
  request_timeout_seconds: float
  max_failed_attempts: int
  pending_lease_seconds: int
  wait_poll_seconds: float
  wait_timeout_seconds: float
  max_signature_chars: int
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int

  def resolve_model(self, requested: str | None) -> str:
    """Return the effective model for a request; absent and blank both mean the default."""
    model = _optional_str(requested)
    return model or self.default_model

  def is_model_allowed(self, model: str) -> bool:
    if not self.allowed_models:
      return True
    return model in self.allowed_models or model == self.default_model

  @property
  def generation_budget_seconds(self) -> float:
    """Longest one owner can spend generating a key: every attempt timing out plus every backoff sleep."""
    backoff_ms = sum(min(self.backoff_initial_ms * 2 ** (attempt - 1), self.backoff_max_ms) for attempt in range(1, self.max_generation_attempts))
    return self.max_generation_attempts * self.request_timeout_seconds + backoff_ms / 1000


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""
  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_int(name: str, default: str, *, minimum: int = 1) -> int:
  raw = os.getenv(name, default)
  try:
    value = int(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be an integer.") from exc
  if value < minimum:
    raise ValueError(f"{name} must be >= {minimum}.")
  return value


def _parse_float(name: str, default: str) -> float:
  raw = os.getenv(name, default)
  try:
    value = float(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be a number.") from exc
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _parse_list(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ()
  return tuple(item.strip() for item in raw.split(",") if item.strip())


def _pg_dsn() -> str | None:
  # Support fallback to DATABASE_URL for platform-provided databases.
  return _optional_str(os.getenv("ESMFORGE_PG_DSN")) or _optional_str(os.getenv("DATABASE_URL"))


def _validate_generation_budget(settings: Settings) -> None:
  budget = settings.generation_budget_seconds
  if settings.pending_lease_seconds < budget:
    raise ValueError(f"ESMFORGE_PENDING_LEASE_SECONDS must be >= {budget:.1f} (attempts x request timeout + backoff).")
  if settings.wait_timeout_seconds < budget:
    raise ValueError(f"ESMFORGE_WAIT_TIMEOUT_SECONDS must be >= {budget:.1f} (attempts x request timeout + backoff).")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""
  environment = os.getenv("ESMFORGE_ENV", "development").strip().lower()
  debug = _parse_bool(os.getenv("ESMFORGE_DEBUG"))

  provider = (os.getenv("ESMFORGE_PROVIDER") or "openrouter").strip().lower()
  if provider not in _PROVIDERS:
    raise ValueError(f"ESMFORGE_PROVIDER must be one of: {', '.join(sorted(_PROVIDERS))}.")

  default_model = _optional_str(os.getenv("ESMFORGE_DEFAULT_MODEL")) or DEFAULT_MODEL

  backoff_initial_ms = _parse_int("ESMFORGE_BACKOFF_INITIAL_MS", "500", minimum=0)
  backoff_max_ms = _parse_int("ESMFORGE_BACKOFF_MAX_MS", "8000", minimum=0)
  if backoff_max_ms < backoff_initial_ms:
    raise ValueError("ESMFORGE_BACKOFF_MAX_MS must be >= ESMFORGE_BACKOFF_INITIAL_MS.")

  settings = Settings(
    environment=environment,
    debug=debug,
    pg_dsn=_pg_dsn(),
    pg_connect_timeout=_parse_int("ESMFORGE_PG_CONNECT_TIMEOUT", "10"),
    provider=provider,
    default_model=default_model,
    allowed_models=_parse_list(os.getenv("ESMFORGE_ALLOWED_MODELS")),
    max_generation_attempts=_parse_int("ESMFORGE_MAX_GENERATION_ATTEMPTS", "3"),
    backoff_initial_ms=backoff_initial_ms,
    backoff_max_ms=backoff_max_ms,
    request_timeout_seconds=_parse_float("ESMFORGE_REQUEST_TIMEOUT_SECONDS", "60"),
    # 0 disables the ceiling: failed keys stay retryable forever.
    max_failed_attempts=_parse_int("ESMFORGE_MAX_FAILED_ATTEMPTS", "0", minimum=0),
    pending_lease_seconds=_parse_int("ESMFORGE_PENDING_LEASE_SECONDS", "300"),
    wait_poll_seconds=_parse_float("ESMFORGE_WAIT_POLL_SECONDS", "0.5"),
    wait_timeout_seconds=_parse_float("ESMFORGE_WAIT_TIMEOUT_SECONDS", "240"),
    max_signature_chars=_parse_int("ESMFORGE_MAX_SIGNATURE_CHARS", "2000"),
    log_dir=_optional_str(os.getenv("ESMFORGE_LOG_DIR")),
    log_max_bytes=_parse_int("ESMFORGE_LOG_MAX_BYTES", "5242880"),
    log_backup_count=_parse_int("ESMFORGE_LOG_BACKUP_COUNT", "10", minimum=0),
  )
  _validate_generation_budget(settings)
  return settings


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without validating unrelated service configuration."""
  return DatabaseSettings(debug=_parse_bool(os.getenv("ESMFORGE_DEBUG")), pg_dsn=_pg_dsn(), pg_connect_timeout=_parse_int("ESMFORGE_PG_CONNECT_TIMEOUT", "10"))
