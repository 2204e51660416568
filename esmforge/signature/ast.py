"""Immutable structural model of a requested function signature."""

from __future__ import annotations

import re
from dataclasses import dataclass

_PUNCT_SPACING = re.compile(r"\s*([^\w\s$])\s*")
_WORD = re.compile(r"[A-Za-z0-9_$]+")
_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


def normalize_token(raw: str) -> str:
  """Collapse whitespace runs and drop whitespace around punctuation."""
  spaced = _PUNCT_SPACING.sub(r"\1", raw)
  return " ".join(spaced.split())


@dataclass(frozen=True)
class Primitive:
  name: str


@dataclass(frozen=True)
class ObjectProperty:
  key: str
  optional: bool
  type: TypeNode


@dataclass(frozen=True)
class ObjectType:
  properties: tuple[ObjectProperty, ...]


@dataclass(frozen=True)
class ArrayType:
  element: TypeNode


@dataclass(frozen=True)
class UnionType:
  members: tuple[TypeNode, ...]

  def __post_init__(self) -> None:
    if len(self.members) < 2:
      raise ValueError("UnionType requires at least two members")


@dataclass(frozen=True)
class GenericType:
  name: str
  args: tuple[TypeNode, ...]


@dataclass(frozen=True)
class FunctionType:
  params: tuple[Parameter, ...]
  return_type: TypeNode


@dataclass(frozen=True)
class LiteralOrUnknown:
  """Anything the grammar cannot classify; an empty raw string means fully unknown."""

  raw: str


TypeNode = Primitive | ObjectType | ArrayType | UnionType | GenericType | FunctionType | LiteralOrUnknown

UNKNOWN = LiteralOrUnknown("")


@dataclass(frozen=True)
class Parameter:
  name: str
  optional: bool
  type: TypeNode


@dataclass(frozen=True)
class FunctionSignature:
  """One requested export.

  ``params`` is ``None`` for a bare expression request, where neither the
  parameters nor the return type are known.
  """

  name: str
  params: tuple[Parameter, ...] | None
  return_type: TypeNode

  @property
  def is_bare(self) -> bool:
    return self.params is None

  @property
  def export_name(self) -> str:
    """Return the JavaScript identifier the module must export."""
    if _IDENTIFIER.match(self.name):
      return self.name
    words = _WORD.findall(self.name)
    if not words:
      return "default"
    head, *tail = words
    candidate = head[:1].lower() + head[1:] + "".join(word[:1].upper() + word[1:] for word in tail)
    if candidate[0].isdigit():
      candidate = f"_{candidate}"
    return candidate


@dataclass(frozen=True)
class GenerationRequest:
  signature: FunctionSignature
  doc_hint: str | None
  model: str
  seed: str | None = None
