import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.responses import Response

from esmforge.api.msgspec_utils import error_response
from esmforge.core.errors import ModuleServiceError

logger = logging.getLogger("uvicorn.error")


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    message = str(value)
    return f"{type(value).__name__}: {message}" if message else type(value).__name__
  return str(value)


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input values."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx
    sanitized.append(_coerce_json_safe(scrubbed))
  return sanitized


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None)


async def global_exception_handler(request: Request, exc: Exception) -> Response:
  """Global exception handler to catch unhandled errors."""
  request_id = _request_id(request)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return error_response("Internal Server Error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, request_id=request_id)


async def module_service_exception_handler(request: Request, exc: ModuleServiceError) -> Response:
  """Render a typed service error raised outside ``ModuleService.handle``."""
  request_id = _request_id(request)
  if exc.status_code >= 500:
    logger.error("Module service error request_id=%s path=%s kind=%s", request_id, request.url.path, exc.kind.value, exc_info=True)
  return error_response(exc.message, status_code=exc.status_code, kind=exc.kind.value, request_id=request_id)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> Response:
  """Log request validation errors without leaking payloads."""
  request_id = _request_id(request)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return error_response(sanitized_errors, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, request_id=request_id)


async def http_exception_handler(request: Request, exc: HTTPException) -> Response:
  """Handle HTTPExceptions while avoiding leaking internal diagnostics."""
  request_id = _request_id(request)
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)
    return error_response("Internal Server Error" if exc.status_code == 500 else str(exc.detail), status_code=exc.status_code, request_id=request_id)
  return error_response(str(exc.detail), status_code=exc.status_code, request_id=request_id)
