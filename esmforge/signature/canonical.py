"""Canonical cache keys for generation requests.

The key is the SHA-256 of a msgspec JSON encoding of a tagged, positional
tree. Lists keep object properties in written order; nothing is sorted.
"""

from __future__ import annotations

import hashlib
from typing import Any

import msgspec

from esmforge.signature.ast import ArrayType, FunctionSignature, FunctionType, GenerationRequest, GenericType, LiteralOrUnknown, ObjectType, Parameter, Primitive, TypeNode, UnionType

CANONICAL_VERSION = "esmforge/v1"
KEY_LENGTH = 64

_encoder = msgspec.json.Encoder()


def _type_tree(node: TypeNode) -> list[Any]:
  if isinstance(node, Primitive):
    return ["prim", node.name]
  if isinstance(node, LiteralOrUnknown):
    return ["lit", node.raw]
  if isinstance(node, ArrayType):
    return ["array", _type_tree(node.element)]
  if isinstance(node, UnionType):
    return ["union", [_type_tree(member) for member in node.members]]
  if isinstance(node, GenericType):
    return ["generic", node.name, [_type_tree(arg) for arg in node.args]]
  if isinstance(node, ObjectType):
    return ["object", [[prop.key, prop.optional, _type_tree(prop.type)] for prop in node.properties]]
  if isinstance(node, FunctionType):
    return ["fn", _params_tree(node.params), _type_tree(node.return_type)]
  raise TypeError(f"Unsupported type node: {type(node).__name__}")


def _params_tree(params: tuple[Parameter, ...]) -> list[Any]:
  return [[param.name, param.optional, _type_tree(param.type)] for param in params]


def _signature_tree(signature: FunctionSignature) -> list[Any]:
  params = None if signature.params is None else _params_tree(signature.params)
  return ["sig", signature.name, params, _type_tree(signature.return_type)]


def canonical_form(req: GenerationRequest) -> bytes:
  """Return the exact bytes that are hashed into the cache key."""
  tree: list[Any] = [CANONICAL_VERSION, _signature_tree(req.signature), req.doc_hint, req.model]
  # Unseeded requests carry no seed slot at all, so they never collide with any seed value.
  if req.seed is not None:
    tree.append(["seed", req.seed])
  return _encoder.encode(tree)


def canonicalize(req: GenerationRequest) -> str:
  """Return the fixed-width (64 hex chars) key for ``req``."""
  return hashlib.sha256(canonical_form(req)).hexdigest()
