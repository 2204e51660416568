"""Recursive-descent parser for URL-embedded pseudo-TypeScript signatures.

The parser is total: bracket imbalance is the only input it rejects. Every
other construct it cannot classify becomes :class:`LiteralOrUnknown`, and a
string with no ``name(...)`` call form becomes a bare expression request.
"""

from __future__ import annotations

import logging
import re

from esmforge.config import DEFAULT_MODEL
from esmforge.core.errors import ParseError
from esmforge.signature.ast import UNKNOWN, ArrayType, FunctionSignature, FunctionType, GenerationRequest, GenericType, LiteralOrUnknown, ObjectProperty, ObjectType, Parameter, Primitive, TypeNode, UnionType, normalize_token
from esmforge.signature.decoding import decode_segment, decoded_offsets, finish_doc, finish_signature

logger = logging.getLogger(__name__)

_OPENERS = {"(": ")", "{": "}", "<": ">", "[": "]"}
_CLOSERS = {closer: opener for opener, closer in _OPENERS.items()}
_TYPE_NAME = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$.]*$")
_CALLABLE_NAME_STOP = set("{}<>[]:|,")


def _is_arrow(text: str, index: int) -> bool:
  """Return True when the ``>`` at ``index`` belongs to an ``=>`` arrow."""
  return text[index] == ">" and index > 0 and text[index - 1] == "="


def split_documentation(text: str) -> tuple[str, str | None]:
  """Split decoded text on the first depth-zero ``|``, validating bracket balance on the way."""
  stack: list[tuple[str, int]] = []
  for index, char in enumerate(text):
    if char in _OPENERS:
      stack.append((char, index))
    elif char in _CLOSERS and not _is_arrow(text, index):
      if not stack:
        raise ParseError(f"Unmatched '{char}'", index)
      opener, opened_at = stack[-1]
      if _OPENERS[opener] != char:
        raise ParseError(f"Unclosed '{opener}'", opened_at)
      stack.pop()
    elif char == "|" and not stack:
      return text[:index], text[index + 1 :]
  if stack:
    opener, opened_at = stack[-1]
    raise ParseError(f"Unclosed '{opener}'", opened_at)
  return text, None


def _split_top(text: str, separators: str) -> list[str]:
  """Split balanced ``text`` on separators that sit at bracket depth zero."""
  parts: list[str] = []
  depth = 0
  start = 0
  for index, char in enumerate(text):
    if char in _OPENERS:
      depth += 1
    elif char in _CLOSERS and not _is_arrow(text, index):
      depth -= 1
    elif char in separators and depth == 0:
      parts.append(text[start:index])
      start = index + 1
  parts.append(text[start:])
  return parts


def _find_top(text: str, target: str) -> int:
  """Return the index of the first depth-zero occurrence of ``target``, or -1."""
  depth = 0
  for index, char in enumerate(text):
    if depth == 0 and text.startswith(target, index):
      return index
    if char in _OPENERS:
      depth += 1
    elif char in _CLOSERS and not _is_arrow(text, index):
      depth -= 1
  return -1


def _matching_close(text: str, open_index: int) -> int:
  depth = 0
  for index in range(open_index, len(text)):
    char = text[index]
    if char in _OPENERS:
      depth += 1
    elif char in _CLOSERS and not _is_arrow(text, index):
      depth -= 1
      if depth == 0:
        return index
  return -1


def _strip_optional(raw_name: str) -> tuple[str, bool]:
  name = raw_name.strip()
  optional = name.endswith("?")
  if optional:
    name = name[:-1]
  return normalize_token(name), optional


def parse_type(text: str) -> TypeNode:
  """Parse one type expression; never raises on balanced input."""
  stripped = text.strip()
  if not stripped:
    return UNKNOWN

  members = [part for part in _split_top(stripped, "|") if part.strip()]
  if len(members) >= 2:
    return UnionType(tuple(_parse_array_or_atom(member.strip()) for member in members))
  if len(members) == 1:
    stripped = members[0].strip()
  return _parse_array_or_atom(stripped)


def _parse_array_or_atom(text: str) -> TypeNode:
  arrow = _find_top(text, "=>")
  if arrow > 0:
    return _parse_function_type(text, arrow)

  dimensions = 0
  while text.endswith("]"):
    head = text[:-1].rstrip()
    if not head.endswith("["):
      break
    text = head[:-1].rstrip()
    dimensions += 1

  node = _parse_atom(text)
  for _ in range(dimensions):
    node = ArrayType(node)
  return node


def _parse_function_type(text: str, arrow: int) -> TypeNode:
  head = text[:arrow].strip()
  if not (head.startswith("(") and _matching_close(head, 0) == len(head) - 1):
    return LiteralOrUnknown(normalize_token(text))
  return FunctionType(parse_params(head[1:-1]), parse_type(text[arrow + 2 :]))


def _parse_atom(text: str) -> TypeNode:
  if not text:
    return UNKNOWN

  first = text[0]
  if first in "({" and _matching_close(text, 0) == len(text) - 1:
    inner = text[1:-1]
    if first == "(":
      return parse_type(inner)
    return ObjectType(_parse_properties(inner))

  angle = text.find("<")
  if angle > 0 and text.endswith(">") and _matching_close(text, angle) == len(text) - 1:
    name = text[:angle].strip()
    if _TYPE_NAME.match(name):
      args = tuple(parse_type(arg) for arg in _split_top(text[angle + 1 : -1], ",") if arg.strip())
      return GenericType(name, args)

  if _TYPE_NAME.match(text):
    return Primitive(text)
  return LiteralOrUnknown(normalize_token(text))


def _parse_properties(text: str) -> tuple[ObjectProperty, ...]:
  properties: list[ObjectProperty] = []
  for part in _split_top(text, ",;"):
    if not part.strip():
      continue
    colon = _find_top(part, ":")
    if colon < 0:
      key, optional = _strip_optional(part)
      properties.append(ObjectProperty(key, optional, UNKNOWN))
      continue
    key, optional = _strip_optional(part[:colon])
    properties.append(ObjectProperty(key, optional, parse_type(part[colon + 1 :])))
  return tuple(properties)


def parse_params(text: str) -> tuple[Parameter, ...]:
  params: list[Parameter] = []
  for part in _split_top(text, ","):
    if not part.strip():
      continue
    colon = _find_top(part, ":")
    if colon < 0:
      # Bare names default to an unknown type.
      name, optional = _strip_optional(part)
      params.append(Parameter(name, optional, UNKNOWN))
      continue
    name, optional = _strip_optional(part[:colon])
    params.append(Parameter(name, optional, parse_type(part[colon + 1 :])))
  return tuple(params)


def _parse_return(rest: str) -> TypeNode:
  rest = rest.strip()
  if not rest:
    return UNKNOWN
  if rest.startswith(":"):
    return parse_type(rest[1:])
  if rest.startswith("=>"):
    return parse_type(rest[2:])
  return LiteralOrUnknown(normalize_token(rest))


def parse_signature(text: str) -> FunctionSignature:
  """Parse a balanced, decoded signature string."""
  open_index = text.find("(")
  head = text[:open_index] if open_index >= 0 else ""
  name = normalize_token(head)
  if open_index < 0 or not name or any(char in _CALLABLE_NAME_STOP for char in head):
    return FunctionSignature(name=normalize_token(text), params=None, return_type=UNKNOWN)

  close_index = _matching_close(text, open_index)
  params = parse_params(text[open_index + 1 : close_index])
  return FunctionSignature(name=name, params=params, return_type=_parse_return(text[close_index + 1 :]))


def parse(encoded: str, *, model: str | None = None, seed: str | None = None) -> GenerationRequest:
  """Turn an encoded path segment into a :class:`GenerationRequest`.

  Raises :class:`ParseError` only for unbalanced ``()``, ``{}``, ``<>`` or ``[]``;
  the reported position is an offset into ``encoded``, pointing at the escape or
  character the caller wrote.
  """
  decoded = decode_segment(encoded)
  try:
    signature_text, doc_text = split_documentation(decoded)
  except ParseError as exc:
    offsets = decoded_offsets(encoded)
    position = offsets[exc.position] if exc.position < len(offsets) else len(encoded)
    raise ParseError(exc.reason, position) from None
  signature = parse_signature(finish_signature(signature_text))

  doc_hint = None
  if doc_text is not None:
    doc_hint = finish_doc(doc_text).strip() or None

  if signature.is_bare:
    logger.debug("No call form in signature; treating %r as a bare expression", signature.name)

  return GenerationRequest(signature=signature, doc_hint=doc_hint, model=model or DEFAULT_MODEL, seed=seed)


__all__ = ["parse", "parse_params", "parse_signature", "parse_type", "split_documentation"]
