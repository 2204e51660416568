"""Lightweight JavaScript well-formedness scanning.

This is not a parser. It walks the source once, skipping string, template,
comment and regular-expression bodies, and checks that brackets balance and
every literal is terminated. The returned mask keeps only code characters so
export detection cannot be fooled by text inside strings or comments.
"""

from __future__ import annotations

import re

from esmforge.core.errors import AssemblyError

_PAIRS = {")": "(", "]": "[", "}": "{"}
_WORD = re.compile(r"[A-Za-z0-9_$]+")
# After these, a ``/`` starts a regular expression rather than a division.
_REGEX_AFTER_PUNCT = set("(,=:[!&|?{};+-*%<>~^")
_REGEX_AFTER_WORDS = {"return", "typeof", "instanceof", "in", "of", "new", "delete", "void", "throw", "case", "do", "else", "yield", "await"}


def _line_col(source: str, index: int) -> str:
  line = source.count("\n", 0, index) + 1
  col = index - (source.rfind("\n", 0, index) + 1) + 1
  return f"line {line}, column {col}"


class _Scanner:
  def __init__(self, source: str) -> None:
    self.source = source
    self.mask = list(source)
    self.stack: list[tuple[str, int]] = []

  def fail(self, message: str, index: int) -> AssemblyError:
    return AssemblyError(f"{message} at {_line_col(self.source, index)}")

  def blank(self, start: int, end: int) -> None:
    for index in range(start, min(end, len(self.mask))):
      if self.mask[index] != "\n":
        self.mask[index] = " "

  def skip_string(self, start: int) -> int:
    quote = self.source[start]
    index = start + 1
    while index < len(self.source):
      char = self.source[index]
      if char == "\\":
        index += 2
        continue
      if char == "\n":
        break
      if char == quote:
        self.blank(start + 1, index)
        return index + 1
      index += 1
    raise self.fail("Unterminated string literal", start)

  def skip_template(self, start: int) -> int:
    """Scan template text from ``start``; return the index after the closing backtick or after ``${``."""
    index = start
    while index < len(self.source):
      char = self.source[index]
      if char == "\\":
        index += 2
        continue
      if char == "`":
        self.blank(start, index)
        return index + 1
      if char == "$" and self.source.startswith("{", index + 1):
        self.blank(start, index)
        self.stack.append(("${", index))
        return index + 2
      index += 1
    raise self.fail("Unterminated template literal", start - 1)

  def skip_regex(self, start: int) -> int:
    index = start + 1
    in_class = False
    while index < len(self.source):
      char = self.source[index]
      if char == "\\":
        index += 2
        continue
      if char == "\n":
        break
      if in_class:
        if char == "]":
          in_class = False
      elif char == "[":
        in_class = True
      elif char == "/":
        end = index + 1
        flags = _WORD.match(self.source, end)
        if flags:
          end = flags.end()
        self.blank(start + 1, index)
        return end
      index += 1
    raise self.fail("Unterminated regular expression", start)

  def run(self) -> str:
    source = self.source
    previous: str | None = None
    index = 0
    while index < len(source):
      char = source[index]
      if char.isspace():
        index += 1
        continue

      if source.startswith("//", index):
        end = source.find("\n", index)
        end = len(source) if end == -1 else end
        self.blank(index, end)
        index = end
        continue
      if source.startswith("/*", index):
        end = source.find("*/", index + 2)
        if end == -1:
          raise self.fail("Unterminated block comment", index)
        self.blank(index, end + 2)
        index = end + 2
        continue

      if char in "\"'":
        index = self.skip_string(index)
        previous = "literal"
        continue
      if char == "`":
        index = self.skip_template(index + 1)
        previous = "literal"
        continue
      if char == "/" and (previous is None or previous in _REGEX_AFTER_PUNCT or previous in _REGEX_AFTER_WORDS):
        index = self.skip_regex(index)
        previous = "literal"
        continue

      if char in "([{":
        self.stack.append((char, index))
      elif char in ")]}":
        if not self.stack:
          raise self.fail(f"Unmatched '{char}'", index)
        opener, opened_at = self.stack.pop()
        if opener == "${" and char == "}":
          index = self.skip_template(index + 1)
          previous = "literal"
          continue
        if opener != _PAIRS[char]:
          raise self.fail(f"Mismatched '{char}' for '{opener}' opened at {_line_col(source, opened_at)}", index)

      word = _WORD.match(source, index)
      if word:
        previous = word.group(0)
        index = word.end()
        continue
      previous = char
      index += 1

    if self.stack:
      opener, opened_at = self.stack[-1]
      label = "template expression" if opener == "${" else f"'{opener}'"
      raise self.fail(f"Unclosed {label}", opened_at)
    return "".join(self.mask)


def scan_module(source: str) -> str:
  """Validate ``source`` and return it with literal and comment bodies blanked out.

  Raises:
    AssemblyError: on an unterminated literal/comment or unbalanced brackets.
  """
  return _Scanner(source).run()


def has_export(code: str, export_name: str) -> bool:
  """Return True when masked ``code`` exports ``export_name``."""
  if export_name == "default":
    if re.search(r"\bexport\s+default\b", code):
      return True
  else:
    declaration = re.compile(rf"\bexport\s+(?:(?:async\s+)?function\s*\*?\s*|(?:const|let|var|class)\s+){re.escape(export_name)}(?![A-Za-z0-9_$])")
    if declaration.search(code):
      return True

  for match in re.finditer(r"\bexport\s*\{([^}]*)\}", code):
    for item in match.group(1).split(","):
      parts = item.split()
      if parts and parts[-1] == export_name:
        return True
  return False
