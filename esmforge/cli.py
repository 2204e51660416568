"""Command-line entry point: run the service or inspect how a signature is understood."""

from __future__ import annotations

import argparse
import sys

from esmforge.ai.prompt_assembler import PromptAssembler
from esmforge.core.errors import ParseError
from esmforge.signature.canonical import canonicalize
from esmforge.signature.parser import parse
from esmforge.signature.render import render_signature


def _serve(args: argparse.Namespace) -> int:
  import uvicorn

  uvicorn.run("esmforge.main:app", host=args.host, port=args.port, server_header=False, proxy_headers=True)
  return 0


def _inspect(args: argparse.Namespace) -> int:
  from esmforge.config import get_settings

  settings = get_settings()
  model = settings.resolve_model(args.model)
  try:
    req = parse(args.signature, model=model, seed=args.seed or None)
  except ParseError as exc:
    print(f"error: {exc}", file=sys.stderr)
    return 2

  if args.command == "prompt":
    print(PromptAssembler().render(req))
    return 0

  print(f"key:       {canonicalize(req)}")
  print(f"export:    {req.signature.export_name}")
  print(f"signature: {render_signature(req.signature)}")
  print(f"doc:       {req.doc_hint if req.doc_hint is not None else '-'}")
  print(f"model:     {req.model}")
  print(f"seed:      {req.seed if req.seed is not None else '-'}")
  return 0


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(prog="esmforge", description="Generated ES module service.")
  subcommands = parser.add_subparsers(dest="command", required=True)

  serve = subcommands.add_parser("serve", help="Run the HTTP service with uvicorn.")
  serve.add_argument("--host", default="0.0.0.0")
  serve.add_argument("--port", type=int, default=8000)
  serve.set_defaults(handler=_serve)

  for name, help_text in (("key", "Print the canonical key and parsed signature."), ("prompt", "Print the prompt sent to the backend.")):
    command = subcommands.add_parser(name, help=help_text)
    command.add_argument("signature", help="Encoded signature exactly as it appears in the URL path.")
    command.add_argument("--model", default=None)
    command.add_argument("--seed", default=None)
    command.set_defaults(handler=_inspect)

  return parser


def main(argv: list[str] | None = None) -> int:
  args = build_parser().parse_args(argv)
  return args.handler(args)


if __name__ == "__main__":
  raise SystemExit(main())
