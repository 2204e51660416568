from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, Response

from esmforge.api.deps import get_module_service
from esmforge.api.msgspec_utils import error_response
from esmforge.modules.service import ModuleFailure, ModuleService

router = APIRouter()

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000, immutable"
# Printable ASCII passes through untouched, so existing escapes are kept as sent.
_PRINTABLE_ASCII = "".join(chr(code) for code in range(0x21, 0x7F))


def raw_signature_segment(request: Request, fallback: str) -> str:
  """Return the still-percent-encoded signature from the request target.

  The routed path parameter is already decoded, which would erase the
  difference between ``%3F`` and a query-string ``?``. Raw non-ASCII bytes are
  percent-encoded so they decode exactly like their escaped spelling.
  """
  raw_path = request.scope.get("raw_path")
  if not raw_path:
    return fallback
  path = quote(raw_path.split(b"?", 1)[0], safe=_PRINTABLE_ASCII)
  root_path = request.scope.get("root_path", "")
  if root_path and path.startswith(root_path):
    path = path[len(root_path) :]
  return path.lstrip("/")


@router.get("/{signature:path}", include_in_schema=False)
async def get_module(request: Request, signature: str, model: str | None = Query(default=None), seed: str | None = Query(default=None), service: ModuleService = Depends(get_module_service)) -> Response:  # noqa: B008
  """Serve the ES module for an encoded signature, generating it on first request."""
  result = await service.handle(raw_signature_segment(request, signature), query_model=model, query_seed=seed)
  if isinstance(result, ModuleFailure):
    request_id = getattr(request.state, "request_id", None)
    return error_response(result.detail, status_code=result.status_code, kind=result.kind.value, request_id=request_id)
  return Response(content=result.source, media_type=result.content_type, headers={"Cache-Control": IMMUTABLE_CACHE_CONTROL, "X-Module-Key": result.key})
