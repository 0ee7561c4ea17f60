"""Render cheat sheets as markdown or JSON."""

from __future__ import annotations

import json
import re
from typing import Iterable

from xsscheatsheet.findings import CheatSheet, FindingPattern

# Fence language tag per example language.
_FENCE_LANG = {
    "python": "python",
    "jinja2": "html+jinja",
}

_BACKTICK_RUN_RE = re.compile(r"`+")


def _fence_for(code: str) -> str:
    """A backtick fence longer than any backtick run inside *code*."""
    longest = max((len(m) for m in _BACKTICK_RUN_RE.findall(code)), default=0)
    return "`" * max(3, longest + 1)


def render_pattern(pattern: FindingPattern) -> str:
    """Render one pattern as a markdown block starting with an H3 heading."""
    lines = [f"### {pattern.pattern_id}. {pattern.title}", ""]
    if pattern.description:
        lines += [pattern.description, ""]

    lang = _FENCE_LANG.get(pattern.example_language, pattern.example_language)
    fence = _fence_for(pattern.example)
    lines += [f"{fence}{lang}", pattern.example.rstrip("\n"), fence, ""]

    if pattern.references:
        lines.append("**References:**")
        lines.append("")
        lines += [f"- <{url}>" for url in pattern.references]
        lines.append("")

    lines += [f"**Mitigation:** {pattern.mitigation.description}", ""]
    if pattern.mitigation.alternative:
        lines += [f"**Alternative:** {pattern.mitigation.alternative}", ""]

    if pattern.external_rule_ref:
        lines += [
            f"**Semgrep rule:** [{pattern.external_rule_ref}]({pattern.rule_url})",
            "",
        ]
    return "\n".join(lines)


def render_markdown(sheet: CheatSheet, exclude: Iterable[str] = ()) -> str:
    """Render the full cheat sheet document.

    Patterns whose ID is in *exclude* are left out, and so is any section
    that ends up empty.
    """
    excluded = list(exclude)
    if excluded:
        sheet = sheet.without(excluded)

    parts = [f"# {sheet.title}", ""]
    if sheet.intro:
        parts += [sheet.intro, ""]

    if sheet.ruleset:
        parts += [
            "## Check your project with Semgrep",
            "",
            "Run every rule referenced below against your code:",
            "",
            "```sh",
            " ".join(sheet.scanner_command(["."])),
            "```",
            "",
        ]

    for section in sheet.sections:
        parts += [f"## {section.number}. {section.title}", ""]
        for pattern in section.patterns:
            parts.append(render_pattern(pattern))

    return "\n".join(parts).rstrip("\n") + "\n"


def render_table(sheet: CheatSheet) -> str:
    """Render a compact markdown index of the sheet's patterns."""
    rows = [
        "| ID | Pattern | Semgrep rule |",
        "| --- | --- | --- |",
    ]
    for pattern in sheet.patterns():
        rule = (
            f"[{pattern.external_rule_ref}]({pattern.rule_url})"
            if pattern.external_rule_ref
            else ""
        )
        title = pattern.title.replace("|", "\\|")
        rows.append(f"| {pattern.pattern_id} | {title} | {rule} |")
    return "\n".join(rows) + "\n"


def render_json(sheet: CheatSheet, indent: int | None = 2) -> str:
    """Serialize the whole sheet as JSON."""
    return json.dumps(sheet.to_dict(), indent=indent, ensure_ascii=False)


RENDERERS = {
    "markdown": render_markdown,
    "table": render_table,
    "json": render_json,
}
