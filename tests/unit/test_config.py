from __future__ import annotations

import pytest

from esmforge.config import DEFAULT_MODEL, get_settings
from tests.support import build_settings

_ENV_VARS = (
  "ESMFORGE_PROVIDER",
  "ESMFORGE_DEFAULT_MODEL",
  "ESMFORGE_ALLOWED_MODELS",
  "ESMFORGE_PG_DSN",
  "DATABASE_URL",
  "ESMFORGE_MAX_FAILED_ATTEMPTS",
  "ESMFORGE_BACKOFF_INITIAL_MS",
  "ESMFORGE_BACKOFF_MAX_MS",
  "ESMFORGE_WAIT_TIMEOUT_SECONDS",
  "ESMFORGE_MAX_GENERATION_ATTEMPTS",
  "ESMFORGE_REQUEST_TIMEOUT_SECONDS",
  "ESMFORGE_PENDING_LEASE_SECONDS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
  for name in _ENV_VARS:
    monkeypatch.delenv(name, raising=False)
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()


def test_defaults() -> None:
  settings = get_settings()
  assert settings.provider == "openrouter"
  assert settings.default_model == DEFAULT_MODEL
  assert settings.allowed_models == ()
  assert settings.pg_dsn is None
  assert settings.max_failed_attempts == 0
  assert settings.max_signature_chars == 2000


def test_env_overrides(monkeypatch) -> None:
  monkeypatch.setenv("ESMFORGE_PROVIDER", " Gemini ")
  monkeypatch.setenv("ESMFORGE_ALLOWED_MODELS", "a/b, c/d ,")
  monkeypatch.setenv("DATABASE_URL", "postgresql://db/esm")
  monkeypatch.setenv("ESMFORGE_MAX_FAILED_ATTEMPTS", "5")

  settings = get_settings()
  assert settings.provider == "gemini"
  assert settings.allowed_models == ("a/b", "c/d")
  assert settings.pg_dsn == "postgresql://db/esm"
  assert settings.max_failed_attempts == 5


@pytest.mark.parametrize(
  "name, value",
  [
    ("ESMFORGE_PROVIDER", "anthropic"),
    ("ESMFORGE_WAIT_TIMEOUT_SECONDS", "soon"),
    ("ESMFORGE_WAIT_TIMEOUT_SECONDS", "0"),
    ("ESMFORGE_BACKOFF_INITIAL_MS", "9000"),
    ("ESMFORGE_MAX_GENERATION_ATTEMPTS", "10"),
    ("ESMFORGE_PENDING_LEASE_SECONDS", "120"),
    ("ESMFORGE_WAIT_TIMEOUT_SECONDS", "180"),
  ],
)
def test_invalid_values_are_rejected(monkeypatch, name: str, value: str) -> None:
  monkeypatch.setenv(name, value)
  with pytest.raises(ValueError):
    get_settings()


def test_resolve_model_treats_blank_as_default() -> None:
  settings = build_settings(default_model="x/default")
  assert settings.resolve_model(None) == "x/default"
  assert settings.resolve_model("   ") == "x/default"
  assert settings.resolve_model(" y/other ") == "y/other"


def test_allow_list() -> None:
  open_settings = build_settings()
  assert open_settings.is_model_allowed("anything/goes")

  restricted = build_settings(default_model="x/default", allowed_models=("y/other",))
  assert restricted.is_model_allowed("y/other")
  assert restricted.is_model_allowed("x/default")
  assert not restricted.is_model_allowed("z/blocked")


def test_generation_budget_covers_every_attempt_and_backoff() -> None:
  settings = build_settings(max_generation_attempts=3, request_timeout_seconds=5.0, backoff_initial_ms=10, backoff_max_ms=15)
  assert settings.generation_budget_seconds == pytest.approx(15.025)

  defaults = get_settings()
  assert defaults.generation_budget_seconds == pytest.approx(181.5)
  assert defaults.pending_lease_seconds >= defaults.generation_budget_seconds
  assert defaults.wait_timeout_seconds >= defaults.generation_budget_seconds
