from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from xsscheatsheet.config import discover_config, load_config
from xsscheatsheet.core import XssCheatSheet
from xsscheatsheet.lint import has_errors
from xsscheatsheet.render import RENDERERS
from xsscheatsheet.semgrep import SemgrepError
from xsscheatsheet.sheets import list_frameworks


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xsscheatsheet",
        description="XSS risk patterns for Flask, with Semgrep rule references",
    )
    parser.add_argument("--framework", default="flask", help="Built-in sheet to use")
    parser.add_argument("--config", default=None, help="Path to a .xsscheatsheet.json/.yaml file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser("render", help="Render the cheat sheet")
    render_parser.add_argument("--format", choices=sorted(RENDERERS), default="markdown")
    render_parser.add_argument("--output", default=None, help="Write to this file instead of stdout")

    lint_parser = subparsers.add_parser("lint", help="Check the cheat sheet's content")
    lint_parser.add_argument("--check-links", action="store_true", help="Resolve every link over HTTP")

    subparsers.add_parser("rules", help="List patterns and their Semgrep rules")
    subparsers.add_parser("frameworks", help="List built-in sheets")

    command_parser = subparsers.add_parser("command", help="Print the semgrep command line")
    command_parser.add_argument("targets", nargs="*", default=[])

    scan_parser = subparsers.add_parser("scan", help="Run semgrep and annotate results")
    scan_parser.add_argument("targets", nargs="*", default=[])

    return parser


def _load(args: argparse.Namespace) -> XssCheatSheet:
    config = load_config(args.config) if args.config else discover_config()
    return XssCheatSheet(framework=args.framework, project_config=config)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "frameworks":
        print("\n".join(list_frameworks()))
        return 0

    try:
        cheatsheet = _load(args)
    except (KeyError, ValueError, FileNotFoundError) as exc:
        message = exc.args[0] if isinstance(exc, KeyError) and exc.args else exc
        print(f"error: {message}", file=sys.stderr)
        return 2

    if args.command == "render":
        text = cheatsheet.render(args.format)
        if args.output:
            out = Path(args.output)
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(text, encoding="utf-8")
            print(json.dumps({"status": "written", "path": str(out.resolve())}, indent=2))
        else:
            sys.stdout.write(text)
        return 0

    if args.command == "lint":
        issues = cheatsheet.lint(check_links=args.check_links)
        for issue in issues:
            print(issue)
        failed = has_errors(issues)
        print(f"{len(issues)} issue(s), {'FAILED' if failed else 'OK'}", file=sys.stderr)
        return 1 if failed else 0

    if args.command == "rules":
        for pattern in cheatsheet.list_patterns():
            print(f"{pattern.pattern_id}\t{pattern.external_rule_ref}\t{pattern.title}")
        return 0

    if args.command == "command":
        print(" ".join(cheatsheet.scanner_command(args.targets)))
        return 0

    if args.command == "scan":
        try:
            result = cheatsheet.scan(args.targets)
        except SemgrepError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 2
        print(json.dumps(result.to_dict(), indent=2))
        return 1 if result.matches else 0

    parser.error(f"Unsupported command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
