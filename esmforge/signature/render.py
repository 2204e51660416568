"""Render signature nodes back to TypeScript-style text."""

from __future__ import annotations

from esmforge.signature.ast import ArrayType, FunctionSignature, FunctionType, GenericType, LiteralOrUnknown, ObjectType, Parameter, Primitive, TypeNode, UnionType


def render_type(node: TypeNode) -> str:
  """Render a type tree in full; nothing is abbreviated."""
  if isinstance(node, Primitive):
    return node.name
  if isinstance(node, LiteralOrUnknown):
    return node.raw or "unknown"
  if isinstance(node, ArrayType):
    element = render_type(node.element)
    if isinstance(node.element, UnionType | FunctionType):
      element = f"({element})"
    return f"{element}[]"
  if isinstance(node, UnionType):
    return " | ".join(render_type(member) for member in node.members)
  if isinstance(node, GenericType):
    return f"{node.name}<{', '.join(render_type(arg) for arg in node.args)}>"
  if isinstance(node, ObjectType):
    if not node.properties:
      return "{}"
    props = "; ".join(f"{prop.key}{'?' if prop.optional else ''}: {render_type(prop.type)}" for prop in node.properties)
    return f"{{ {props} }}"
  if isinstance(node, FunctionType):
    return f"({render_params(node.params)}) => {render_type(node.return_type)}"
  raise TypeError(f"Unsupported type node: {type(node).__name__}")


def render_param(param: Parameter) -> str:
  return f"{param.name}{'?' if param.optional else ''}: {render_type(param.type)}"


def render_params(params: tuple[Parameter, ...]) -> str:
  return ", ".join(render_param(param) for param in params)


def render_signature(signature: FunctionSignature) -> str:
  if signature.params is None:
    return signature.name
  return f"{signature.export_name}({render_params(signature.params)}): {render_type(signature.return_type)}"
