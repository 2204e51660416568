"""Render generation requests into backend instruction text."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from esmforge.signature.ast import GenerationRequest, Parameter
from esmforge.signature.render import render_signature, render_type

_TEMPLATE_NAME = "module_builder.md"


def _replace_placeholders(template: str, values: dict[str, str]) -> str:
  """Substitute {{PLACEHOLDER}} markers with request values."""
  rendered = template
  for key, value in values.items():
    rendered = rendered.replace(f"{{{{{key}}}}}", value)

  return rendered


@lru_cache(maxsize=8)
def _load_prompt(name: str) -> str:
  try:
    path = Path(__file__).parent / "prompts" / name
    return path.read_text(encoding="utf-8").strip()
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as exc:
    raise RuntimeError(f"Failed to load prompt '{name}': {exc}") from exc


def _format_parameter(param: Parameter) -> str:
  optionality = "optional" if param.optional else "required"
  return f"- `{param.name}` ({optionality}): `{render_type(param.type)}`"


class PromptAssembler:
  """Pure, deterministic rendering of a request into prompt text.

  Everything comes from the structural tree, so two requests with the same
  canonical key always produce byte-identical prompts.
  """

  def __init__(self, template_name: str = _TEMPLATE_NAME) -> None:
    self._template_name = template_name

  def render(self, req: GenerationRequest) -> str:
    signature = req.signature
    if signature.params is None:
      parameters = "Unknown. Infer a sensible parameter list from the export name and the documentation."
      return_type = "Unknown. Infer it from the export name and the documentation."
    elif not signature.params:
      parameters = "None."
      return_type = f"`{render_type(signature.return_type)}`"
    else:
      parameters = "\n".join(_format_parameter(param) for param in signature.params)
      return_type = f"`{render_type(signature.return_type)}`"

    values = {
      "EXPORT_NAME": signature.export_name,
      "SIGNATURE": render_signature(signature),
      "PARAMETERS": parameters,
      "RETURN_TYPE": return_type,
      "DOCUMENTATION": req.doc_hint if req.doc_hint is not None else "None provided.",
    }
    return _replace_placeholders(_load_prompt(self._template_name), values)
