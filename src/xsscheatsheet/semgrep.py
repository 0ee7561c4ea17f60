"""Bridge to the external Semgrep scanner.

The rules referenced by a cheat sheet live in the Semgrep registry and are
run by the ``semgrep`` CLI.  This module only builds the command line, runs
it, and maps each reported result back to the catalog entry that documents
it.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any, Sequence

from xsscheatsheet.findings import CheatSheet, FindingPattern

logger = logging.getLogger("xsscheatsheet.semgrep")

DEFAULT_BINARY = "semgrep"
DEFAULT_TIMEOUT = 600.0


class SemgrepError(RuntimeError):
    """Raised when the scanner cannot be run or its output is unusable."""


@dataclass
class RuleMatch:
    """One result reported by the scanner.

    Attributes:
        rule_id: The ``check_id`` reported by Semgrep.
        path: File the result was found in.
        line: 1-based start line.
        message: Rule message.
        severity: Semgrep severity (``ERROR``, ``WARNING`` or ``INFO``).
        pattern: The cheat sheet entry documenting the rule, if any.
    """

    rule_id: str
    path: str
    line: int
    message: str = ""
    severity: str = ""
    pattern: FindingPattern | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "rule_id": self.rule_id,
            "path": self.path,
            "line": self.line,
            "message": self.message,
            "severity": self.severity,
        }
        if self.pattern is not None:
            d["pattern_id"] = self.pattern.pattern_id
            d["pattern_title"] = self.pattern.title
            d["mitigation"] = self.pattern.mitigation.to_dict()
        return d


@dataclass
class ScanResult:
    """Outcome of one scanner run."""

    command: list[str]
    matches: list[RuleMatch] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": list(self.command),
            "matches": [m.to_dict() for m in self.matches],
            "errors": list(self.errors),
        }


def build_command(
    ruleset: str,
    targets: Sequence[str] = (),
    json_output: bool = True,
    binary: str = DEFAULT_BINARY,
    extra_args: Sequence[str] = (),
) -> list[str]:
    """Return the argv that runs *ruleset* over *targets*.

    Raises:
        ValueError: If *ruleset* is empty.
    """
    if not ruleset:
        raise ValueError("A ruleset is required to build a scanner command")
    cmd = [binary, "--config", ruleset]
    if json_output:
        cmd.append("--json")
    cmd.extend(extra_args)
    cmd.extend(targets or ["."])
    return cmd


def parse_results(payload: dict[str, Any], sheet: CheatSheet) -> ScanResult:
    """Convert Semgrep's JSON output into a :class:`ScanResult`.

    The returned result has an empty ``command``; callers fill it in.
    """
    result = ScanResult(command=[])
    for raw in payload.get("results", []):
        rule_id = raw.get("check_id", "")
        extra = raw.get("extra", {})
        match = RuleMatch(
            rule_id=rule_id,
            path=raw.get("path", ""),
            line=int(raw.get("start", {}).get("line", 0)),
            message=extra.get("message", ""),
            severity=extra.get("severity", ""),
            pattern=sheet.find_by_rule(rule_id),
        )
        if match.pattern is None:
            logger.debug("No cheat sheet entry for rule %s", rule_id)
        result.matches.append(match)

    for err in payload.get("errors", []):
        if isinstance(err, dict):
            result.errors.append(err.get("message") or err.get("type") or json.dumps(err))
        else:
            result.errors.append(str(err))
    return result


def run_semgrep(
    sheet: CheatSheet,
    targets: Sequence[str] = (),
    binary: str = DEFAULT_BINARY,
    ruleset: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> ScanResult:
    """Run the scanner with the sheet's ruleset and map its results.

    Args:
        sheet: Cheat sheet used to resolve results to entries.
        targets: Files or directories to scan (defaults to ``.``).
        binary: Name or path of the ``semgrep`` executable.
        ruleset: Override for ``sheet.ruleset``.
        timeout: Seconds to wait for the scanner.

    Raises:
        SemgrepError: If the binary is missing, times out, exits with a
            fatal status, or prints output that is not JSON.
    """
    if shutil.which(binary) is None:
        raise SemgrepError(
            f"{binary!r} not found on PATH. Install it with: pip install semgrep"
        )

    cmd = build_command(ruleset or sheet.ruleset, targets, binary=binary)
    logger.info("Running %s", " ".join(cmd))
    try:
        process = subprocess.run(cmd, text=True, capture_output=True, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        raise SemgrepError(f"Scanner timed out after {timeout:g}s") from exc

    # Exit code 1 means "findings reported"; 2 and above are fatal.
    if process.returncode >= 2:
        stderr = (process.stderr or "").strip()
        raise SemgrepError(
            f"Scanner failed with exit code {process.returncode}: {stderr[:500]}"
        )

    try:
        payload = json.loads(process.stdout or "{}")
    except json.JSONDecodeError as exc:
        raise SemgrepError(f"Scanner printed invalid JSON: {exc}") from exc

    result = parse_results(payload, sheet)
    result.command = cmd
    logger.info(
        "Scanner reported %d result(s), %d error(s)",
        len(result.matches), len(result.errors),
    )
    return result
