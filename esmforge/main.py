from __future__ import annotations

from fastapi import FastAPI, HTTPException, Response
from fastapi.exceptions import RequestValidationError

from esmforge import __version__
from esmforge.api.routes import modules
from esmforge.core.errors import ModuleServiceError
from esmforge.core.exceptions import global_exception_handler, http_exception_handler, module_service_exception_handler, request_validation_exception_handler
from esmforge.core.lifespan import lifespan
from esmforge.core.middleware import RequestLoggingMiddleware


def create_app() -> FastAPI:
  app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

  app.add_exception_handler(Exception, global_exception_handler)
  app.add_exception_handler(HTTPException, http_exception_handler)
  app.add_exception_handler(ModuleServiceError, module_service_exception_handler)
  app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

  app.add_middleware(RequestLoggingMiddleware)

  @app.get("/health", include_in_schema=False)
  async def health_check() -> dict[str, str]:
    """Return a simple health status."""
    return {"status": "ok", "version": __version__}

  @app.get("/favicon.ico", include_in_schema=False)
  async def favicon() -> Response:
    return Response(status_code=204)

  # The catch-all signature route must be registered last.
  app.include_router(modules.router, tags=["modules"])
  return app


app = create_app()
