"""URL decoding rules for encoded signature path segments.

Two characters get context-sensitive treatment. ``%3F`` marks an optional
parameter or property only where an optional marker can appear (right before
``:``, ``,``, ``)`` or ``}``), and a literal ``+`` joins the words of a
multi-word name. Every other percent escape is decoded normally, so ``%2B``
always yields a literal plus.

Decoding happens in two steps because the documentation split has to run on
decoded text: :func:`decode_segment` decodes everything but leaves both
special characters as placeholders, and :func:`finish_signature` /
:func:`finish_doc` resolve them for their part of the string.
"""

from __future__ import annotations

import codecs
import re
from urllib.parse import unquote

QUESTION_MARK = "\ue000"
PLUS = "\ue001"

_ENCODED_QUESTION = re.compile(r"%3f", re.IGNORECASE)
_HEX_ESCAPE = re.compile(r"%[0-9A-Fa-f]{2}")
_NAME_CHAR = re.compile(r"[A-Za-z0-9_$]")
_OPTIONAL_FOLLOWERS = {":", ",", ")", "}"}


def decode_segment(raw: str) -> str:
  """Percent-decode ``raw`` while keeping ``%3F`` and ``+`` as placeholders."""
  marked = _ENCODED_QUESTION.sub(QUESTION_MARK, raw).replace("+", PLUS)
  return unquote(marked, errors="replace")


def decoded_offsets(raw: str) -> list[int]:
  """Map every character of ``decode_segment(raw)`` to the offset in ``raw`` it came from.

  Mirrors ``unquote``: runs of ASCII text and escapes are decoded together as
  UTF-8, so a multi-byte escape maps to the offset of its first ``%``.
  """
  offsets: list[int] = []
  decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
  run_start: int | None = None

  def _flush() -> None:
    nonlocal run_start
    offsets.extend([run_start or 0] * len(decoder.decode(b"", final=True)))
    run_start = None

  index = 0
  while index < len(raw):
    if _ENCODED_QUESTION.match(raw, index):
      _flush()
      offsets.append(index)
      index += 3
      continue
    if raw[index] == "+" or not raw[index].isascii():
      _flush()
      offsets.append(index)
      index += 1
      continue

    if _HEX_ESCAPE.match(raw, index):
      data, width = bytes([int(raw[index + 1 : index + 3], 16)]), 3
    else:
      data, width = raw[index].encode("ascii"), 1
    if run_start is None:
      run_start = index
    offsets.extend([run_start] * len(decoder.decode(data)))
    # An empty buffer means the next byte starts a new character.
    if not decoder.getstate()[0]:
      run_start = None
    index += width

  _flush()
  return offsets


def _next_significant(text: str, start: int) -> str | None:
  for char in text[start:]:
    if not char.isspace():
      return char
  return None


def finish_signature(text: str) -> str:
  """Resolve placeholders inside the signature part."""
  out: list[str] = []
  for index, char in enumerate(text):
    if char == QUESTION_MARK:
      follower = _next_significant(text, index + 1)
      out.append("?" if follower in _OPTIONAL_FOLLOWERS else "%3F")
    elif char == PLUS:
      before = out[-1] if out else ""
      after = text[index + 1] if index + 1 < len(text) else ""
      joins_words = bool(_NAME_CHAR.match(before)) and bool(_NAME_CHAR.match(after))
      out.append(" " if joins_words else "+")
    else:
      out.append(char)
  return "".join(out)


def finish_doc(text: str) -> str:
  """Resolve placeholders inside free-text documentation (form-style decoding)."""
  return text.replace(QUESTION_MARK, "?").replace(PLUS, " ")


__all__ = ["PLUS", "QUESTION_MARK", "decode_segment", "decoded_offsets", "finish_doc", "finish_signature"]
