"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from esmforge.modules.service import ModuleService


def get_module_service(request: Request) -> ModuleService:
  """Return the service built during application startup."""
  service = getattr(request.app.state, "module_service", None)
  if service is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Module service is not initialized")
  return service
