"""Request surface used by the HTTP layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from esmforge.ai.router import build_backend
from esmforge.config import Settings
from esmforge.core.errors import ErrorKind, ModuleServiceError, ParseError, SignatureTooLongError, UnsupportedModelError
from esmforge.modules.coordinator import GenerationBackend, GenerationCoordinator
from esmforge.signature.canonical import canonicalize
from esmforge.signature.parser import parse
from esmforge.storage.memory_modules_repo import InMemoryModuleCacheStore
from esmforge.storage.modules_repo import ModuleCacheStore
from esmforge.storage.postgres_modules_repo import PostgresModuleCacheStore

logger = logging.getLogger(__name__)

JAVASCRIPT_CONTENT_TYPE = "application/javascript"


@dataclass(frozen=True)
class ServedModule:
  source: str
  key: str
  content_type: str = JAVASCRIPT_CONTENT_TYPE


@dataclass(frozen=True)
class ModuleFailure:
  kind: ErrorKind
  status_code: int
  detail: str


class ModuleService:
  """Validate, parse and resolve one encoded signature."""

  def __init__(self, settings: Settings, coordinator: GenerationCoordinator) -> None:
    self._settings = settings
    self._coordinator = coordinator

  async def handle(self, encoded_path_segment: str, query_model: str | None = None, query_seed: str | None = None) -> ServedModule | ModuleFailure:
    try:
      return await self._handle(encoded_path_segment, query_model, query_seed)
    except ModuleServiceError as exc:
      log = logger.info if exc.status_code < 500 else logger.warning
      log("Module request failed kind=%s status=%d detail=%s", exc.kind.value, exc.status_code, exc.message)
      return ModuleFailure(kind=exc.kind, status_code=exc.status_code, detail=exc.message)

  async def _handle(self, encoded: str, query_model: str | None, query_seed: str | None) -> ServedModule:
    if not encoded.strip():
      raise ParseError("Empty signature", 0)
    if len(encoded) > self._settings.max_signature_chars:
      raise SignatureTooLongError(f"Encoded signature is {len(encoded)} characters; the limit is {self._settings.max_signature_chars}")

    model = self._settings.resolve_model(query_model)
    if not self._settings.is_model_allowed(model):
      raise UnsupportedModelError(f"Model '{model}' is not allowed")

    # A blank seed is the same as no seed; any other value is kept verbatim.
    seed = query_seed if query_seed is not None and query_seed.strip() else None
    req = parse(encoded, model=model, seed=seed)
    key = canonicalize(req)
    source = await self._coordinator.resolve(req)
    return ServedModule(source=source, key=key)


def build_store(settings: Settings) -> ModuleCacheStore:
  if settings.pg_dsn:
    return PostgresModuleCacheStore()
  logger.warning("ESMFORGE_PG_DSN is not set; using the in-memory module cache (state is lost on restart).")
  return InMemoryModuleCacheStore()


def build_module_service(settings: Settings, *, store: ModuleCacheStore | None = None, backend: GenerationBackend | None = None) -> ModuleService:
  """Wire the store, backend and coordinator selected by settings."""
  coordinator = GenerationCoordinator(store or build_store(settings), backend or build_backend(settings), settings)
  return ModuleService(settings, coordinator)
