"""Turn raw backend text into the served module artifact."""

from __future__ import annotations

import logging
import re

from esmforge.core.errors import AssemblyError
from esmforge.modules.syntax import has_export, scan_module
from esmforge.signature.ast import GenerationRequest
from esmforge.signature.render import render_type

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```[ \t]*(?:javascript|js|mjs|jsx|typescript|ts)?[ \t]*\r?\n(.*?)\r?\n?[ \t]*```", re.DOTALL | re.IGNORECASE)


def strip_code_fences(raw: str) -> str:
  """Return the first fenced block's body, or the trimmed text when it has no fences."""
  match = _FENCED_BLOCK.search(raw)
  if match:
    return match.group(1).strip()
  content = raw.strip()
  # A lone opening fence with no closing one.
  if content.startswith("```"):
    content = content.split("\n", 1)[1] if "\n" in content else ""
  return content.strip()


def _comment_safe(text: str) -> str:
  return text.replace("*/", "*\\/")


def build_header(req: GenerationRequest) -> str:
  """Render the JSDoc block describing the requested export."""
  signature = req.signature
  lines = ["/**"]
  if req.doc_hint:
    lines.extend(f" * {_comment_safe(line)}".rstrip() for line in req.doc_hint.splitlines())
  if signature.params is not None:
    for param in signature.params:
      name = f"[{param.name}]" if param.optional else param.name
      lines.append(f" * @param {{{_comment_safe(render_type(param.type))}}} {_comment_safe(name)}")
  lines.append(f" * @returns {{{_comment_safe(render_type(signature.return_type))}}}")
  lines.append(" */")
  return "\n".join(lines)


class ModuleAssembler:
  """Validate generated text and prepend the type annotation header."""

  def assemble(self, raw: str, req: GenerationRequest) -> str:
    body = strip_code_fences(raw)
    if not body:
      raise AssemblyError("Generated module is empty")

    code = scan_module(body)
    export_name = req.signature.export_name
    if not has_export(code, export_name):
      raise AssemblyError(f"Generated module does not export '{export_name}'")

    logger.debug("Assembled module export=%s chars=%d", export_name, len(body))
    return f"{build_header(req)}\n{body}\n"
