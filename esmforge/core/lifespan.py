import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from esmforge.core.database import dispose_engine
from esmforge.core.logging import initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging and the module service, and release the engine on shutdown."""
  from esmforge.config import get_settings
  from esmforge.modules.service import build_module_service

  settings = get_settings()
  logger = logging.getLogger("esmforge.core.lifespan")

  initialize_logging(settings)
  if getattr(app.state, "module_service", None) is None:
    app.state.module_service = build_module_service(settings)
  logger.info("Startup complete env=%s provider=%s default_model=%s store=%s", settings.environment, settings.provider, settings.default_model, _redact_dsn(settings.pg_dsn))

  try:
    yield
  finally:
    await dispose_engine()
    logger.info("Shutdown complete.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<in-memory>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"
