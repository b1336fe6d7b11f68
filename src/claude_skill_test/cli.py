"""CLI entry point for claude-skill-test."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

from . import eval as eval_module


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name, "")
    try:
        return int(value) if value else default
    except ValueError:
        print(f"⚠ Ignoring non-integer {name}={value!r}")
        return default


def _parse_env_override(item: str) -> tuple[str, Optional[str]]:
    """``KEY=VALUE`` sets a variable, a bare ``KEY`` removes it."""
    if "=" in item:
        key, value = item.split("=", 1)
    else:
        key, value = item, None
    if not key:
        raise argparse.ArgumentTypeError(f"Invalid --env value: {item}")
    return key, value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claude-skill-test",
        description="Check which skills and subagents an agent routes prompts to",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug output")

    subparsers = parser.add_subparsers(dest="cmd", required=True, help="Subcommands")

    run_parser = subparsers.add_parser("run", help="Run routing tests")
    run_parser.add_argument(
        "test_file", nargs="?", help="Manifest file or glob (default: $INPUT_TEST_FILE)"
    )
    run_parser.add_argument(
        "--max-turns",
        type=int,
        default=_env_int("INPUT_MAX_TURNS", 3),
        help="Max agent turns per test",
    )
    run_parser.add_argument(
        "--timeout",
        type=int,
        default=_env_int("INPUT_TIMEOUT", 60),
        help="Per-test timeout in seconds",
    )
    run_parser.add_argument(
        "--model",
        default=os.environ.get("INPUT_MODEL", ""),
        help="Model override (default: manifest model)",
    )
    run_parser.add_argument(
        "--config",
        default=os.environ.get("INPUT_CLAUDE_CODE_CONFIG", ""),
        help="Settings JSON to merge into ~/.claude/settings.json",
    )
    run_parser.add_argument(
        "--output",
        default=os.environ.get("INPUT_OUTPUT_FILE") or "skill-test-results.json",
        help="Write JSON results",
    )
    run_parser.add_argument("--binary", default="claude", help="Agent CLI binary")
    run_parser.add_argument(
        "--env",
        action="append",
        type=_parse_env_override,
        default=[],
        metavar="KEY[=VALUE]",
        help="Set (or with a bare KEY, unset) a variable for the agent process",
    )
    run_parser.add_argument(
        "--show-transcript", action="store_true", help="Print each test's transcript"
    )
    run_parser.add_argument(
        "--dry-run", action="store_true", help="Validate manifests without running"
    )
    run_parser.add_argument(
        "--summary-line", action="store_true", help="Print a single summary line"
    )

    parse_parser = subparsers.add_parser(
        "parse", help="Decode a saved stream-json capture"
    )
    parse_parser.add_argument("file", help="Captured stdout ('-' for stdin)")
    parse_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )

    gen_parser = subparsers.add_parser("gen-manifest", help="Generate manifest template")
    gen_parser.add_argument("--output", help="Output file")
    gen_parser.add_argument("--force", action="store_true", help="Overwrite file")

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Run the CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.cmd == "run":
            args.env = dict(args.env)
            eval_module.cmd_run(args)
        elif args.cmd == "parse":
            cmd_parse(args)
        elif args.cmd == "gen-manifest":
            eval_module.cmd_gen_manifest(args)
    except KeyboardInterrupt:
        print("\n\n✗ Interrupted by user")
        sys.exit(130)
    except Exception as exc:  # pragma: no cover - top-level fallback
        if args.verbose:
            import traceback

            traceback.print_exc()
        else:
            print(f"✗ Error: {exc}")
        sys.exit(1)


def cmd_parse(args: argparse.Namespace) -> None:
    """Print invocations and transcript of a captured stream."""
    import json

    from .stream import parse_stream
    from .transcript import build_transcript, render_transcript

    if args.file == "-":
        text = sys.stdin.read()
    else:
        with open(args.file, "r", encoding="utf-8", errors="replace") as f:
            text = f.read()

    events, invocations = parse_stream(text)
    transcript = build_transcript(events)

    if args.format == "json":
        output = {
            "tools_used": invocations.tools_used,
            "skills_invoked": invocations.skills_invoked,
            "agents_invoked": invocations.agents_invoked,
            "transcript": [e.to_dict() for e in transcript],
        }
        print(json.dumps(output, indent=2, ensure_ascii=False))
        return

    print(f"Stream {args.file} ({len(events)} events, {len(transcript)} entries)")
    print("-" * 60)
    print(f"tools:  {', '.join(invocations.tools_used) or '()'}")
    print(f"skills: {', '.join(invocations.skills_invoked) or '()'}")
    print(f"agents: {', '.join(invocations.agents_invoked) or '()'}")
    print("-" * 60)
    for line in render_transcript(transcript):
        print(line)


if __name__ == "__main__":
    main()
