from __future__ import annotations

from esmforge.cli import build_parser, main


def test_key_command_prints_parsed_request(capsys) -> None:
  assert main(["key", "format+currency(amount:number,code%3F:string):string|Format+money", "--seed", "9"]) == 0

  out = capsys.readouterr().out
  assert "export:    formatCurrency" in out
  assert "doc:       Format money" in out
  assert "seed:      9" in out
  key_line = next(line for line in out.splitlines() if line.startswith("key:"))
  assert len(key_line.split()[-1]) == 64


def test_prompt_command_renders_template(capsys) -> None:
  assert main(["prompt", "slugify"]) == 0
  assert "Export name: `slugify`" in capsys.readouterr().out


def test_parse_error_exits_with_status_2(capsys) -> None:
  assert main(["key", "broken(a:string"]) == 2
  assert capsys.readouterr().err.startswith("error: ")


def test_serve_defaults() -> None:
  args = build_parser().parse_args(["serve"])
  assert (args.host, args.port) == ("0.0.0.0", 8000)
