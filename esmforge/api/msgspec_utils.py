"""msgspec response encoding helpers."""

from __future__ import annotations

import msgspec
from starlette.responses import Response


class ErrorBody(msgspec.Struct, omit_defaults=True, rename="camel"):
  """JSON error payload returned for every failed request."""

  detail: str | list[dict]
  kind: str | None = None
  request_id: str | None = None


def encode_msgspec_response(payload: msgspec.Struct, *, status_code: int = 200, headers: dict[str, str] | None = None) -> Response:
  """Encode a msgspec.Struct value as a JSON HTTP response."""
  encoded = msgspec.json.encode(payload)
  return Response(content=encoded, status_code=status_code, media_type="application/json", headers=headers)


def error_response(detail: str | list[dict], *, status_code: int, kind: str | None = None, request_id: str | None = None) -> Response:
  return encode_msgspec_response(ErrorBody(detail=detail, kind=kind, request_id=request_id), status_code=status_code, headers={"Cache-Control": "no-store"})
