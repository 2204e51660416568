"""Cache key equivalences and distinctions."""

from __future__ import annotations

import msgspec

from esmforge.config import DEFAULT_MODEL
from esmforge.signature.canonical import CANONICAL_VERSION, KEY_LENGTH, canonical_form, canonicalize
from esmforge.signature.parser import parse


def _key(encoded: str, **kwargs) -> str:
  return canonicalize(parse(encoded, **kwargs))


def test_key_is_fixed_width_hex() -> None:
  key = _key("f():void")
  assert len(key) == KEY_LENGTH
  int(key, 16)


def test_percent_encoding_variants_share_a_key() -> None:
  assert _key("pay(amount:number,currency%3F:string):void") == _key("pay(amount:number,currency?:string):void")
  assert _key("pay(amount:number,currency%3f:string):void") == _key("pay(amount%3Anumber%2Ccurrency%3F%3Astring)%3Avoid")


def test_absent_model_equals_default_model() -> None:
  assert _key("f():void") == _key("f():void", model=DEFAULT_MODEL)
  assert _key("f():void") != _key("f():void", model="google/gemma-3-27b-it:free")


def test_seed_participates_verbatim() -> None:
  unseeded = _key("f():void")
  assert _key("f():void", seed="1") != unseeded
  assert _key("f():void", seed="1") != _key("f():void", seed="2")
  assert _key("f():void", seed="01") != _key("f():void", seed="1")


def test_unseeded_form_has_no_seed_slot() -> None:
  tree = msgspec.json.decode(canonical_form(parse("f():void")))
  assert tree[0] == CANONICAL_VERSION
  assert len(tree) == 4
  seeded = msgspec.json.decode(canonical_form(parse("f():void", seed="7")))
  assert seeded[-1] == ["seed", "7"]


def test_object_property_order_is_significant() -> None:
  assert _key("f(o:{a:string,b:number}):void") != _key("f(o:{b:number,a:string}):void")


def test_documentation_and_optionality_are_significant() -> None:
  assert _key("f():void|Doc+one") != _key("f():void|Doc+two")
  assert _key("f(a:string):void") != _key("f(a%3F:string):void")


def test_bare_expression_differs_from_empty_call() -> None:
  assert _key("now") != _key("now()")
