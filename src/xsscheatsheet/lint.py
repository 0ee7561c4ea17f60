"""Content checks for cheat sheets.

Every check works on a :class:`~xsscheatsheet.findings.CheatSheet` and
reports problems as :class:`~xsscheatsheet.findings.LintIssue` records:

    - required fields are non-empty
    - references and rule IDs are well formed
    - pattern IDs are unique and agree with their section
    - examples are syntactically valid Python or Jinja2
    - prose does not refer to other patterns by ID
    - (optionally) every link resolves over HTTP
"""

from __future__ import annotations

import ast
import logging
import re
import time
import urllib.error
import urllib.request
from urllib.parse import urlparse

import jinja2

from xsscheatsheet.findings import CheatSheet, FindingPattern, LintIssue, Severity

logger = logging.getLogger("xsscheatsheet.lint")

# ``1.A``, ``12.C``
_PATTERN_ID_RE = re.compile(r"^(\d+)\.([A-Z])$")

# A pattern ID mentioned inside prose.
_ID_MENTION_RE = re.compile(r"(?<![\w.])(\d+\.[A-Z])(?![\w])")

# Dotted, lowercase Semgrep registry rule ID.
_RULE_ID_RE = re.compile(r"^[a-z0-9_-]+(?:\.[a-z0-9_-]+)+$")

USER_AGENT = "xsscheatsheet-linkcheck"
MAX_RETRIES = 2

_JINJA_ENV = jinja2.Environment()


# ---------------------------------------------------------------------------
# Per-pattern checks
# ---------------------------------------------------------------------------


def _check_fields(pattern: FindingPattern) -> list[LintIssue]:
    issues = []
    for name, value in (
        ("title", pattern.title),
        ("description", pattern.description),
        ("example", pattern.example),
        ("mitigation", pattern.mitigation.description),
    ):
        if not value or not value.strip():
            issues.append(LintIssue(
                Severity.ERROR, "empty-field", f"'{name}' is empty", pattern.pattern_id,
            ))
    return issues


def _is_absolute_http(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _check_references(pattern: FindingPattern) -> list[LintIssue]:
    if not pattern.references:
        return [LintIssue(
            Severity.WARNING, "missing-references", "no references listed", pattern.pattern_id,
        )]
    issues = []
    for url in pattern.references:
        if not _is_absolute_http(url):
            issues.append(LintIssue(
                Severity.ERROR, "bad-reference", f"not an absolute URL: {url!r}",
                pattern.pattern_id,
            ))
    return issues


def _check_rule_ref(pattern: FindingPattern) -> list[LintIssue]:
    ref = pattern.external_rule_ref
    if not ref:
        return [LintIssue(
            Severity.ERROR, "bad-rule-ref", "no external rule reference", pattern.pattern_id,
        )]
    if not _RULE_ID_RE.match(ref):
        return [LintIssue(
            Severity.ERROR, "bad-rule-ref", f"malformed rule ID: {ref!r}", pattern.pattern_id,
        )]
    return []


def check_example_syntax(pattern: FindingPattern) -> LintIssue | None:
    """Parse the pattern's example in its declared language.

    Returns an issue if the example does not parse or its language is
    unknown, otherwise ``None``.
    """
    lang = pattern.example_language
    try:
        if lang == "python":
            ast.parse(pattern.example)
        elif lang == "jinja2":
            _JINJA_ENV.parse(pattern.example)
        else:
            return LintIssue(
                Severity.WARNING, "example-syntax",
                f"cannot check examples in {lang!r}", pattern.pattern_id,
            )
    except SyntaxError as exc:
        return LintIssue(
            Severity.ERROR, "example-syntax",
            f"{lang} example does not parse (line {exc.lineno}): {exc.msg}",
            pattern.pattern_id,
        )
    except jinja2.TemplateSyntaxError as exc:
        return LintIssue(
            Severity.ERROR, "example-syntax",
            f"jinja2 example does not parse (line {exc.lineno}): {exc.message}",
            pattern.pattern_id,
        )
    return None


def _check_cross_references(
    pattern: FindingPattern, known_ids: set[str]
) -> list[LintIssue]:
    prose = " ".join((
        pattern.title,
        pattern.description,
        pattern.mitigation.description,
        pattern.mitigation.alternative,
    ))
    issues = []
    for mention in sorted(set(_ID_MENTION_RE.findall(prose))):
        if mention in known_ids and mention != pattern.pattern_id:
            issues.append(LintIssue(
                Severity.WARNING, "cross-reference",
                f"refers to pattern {mention}; entries should stand alone",
                pattern.pattern_id,
            ))
    return issues


# ---------------------------------------------------------------------------
# Link resolution
# ---------------------------------------------------------------------------


def _open(url: str, method: str, timeout: float) -> int:
    req = urllib.request.Request(url, method=method, headers={"User-Agent": USER_AGENT})
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        return resp.status


def check_link(url: str, timeout: float = 10.0) -> str | None:
    """Return ``None`` if *url* resolves, otherwise a short reason.

    Uses ``HEAD`` and falls back to ``GET`` for servers that reject it.
    Retries with exponential backoff (1s, 2s) on HTTP 429 and 5xx.
    """
    method = "HEAD"
    for attempt in range(MAX_RETRIES + 1):
        try:
            _open(url, method, timeout)
            return None
        except urllib.error.HTTPError as exc:
            if exc.code in (403, 405, 501) and method == "HEAD":
                method = "GET"
                continue
            if (exc.code == 429 or exc.code >= 500) and attempt < MAX_RETRIES:
                time.sleep(2 ** attempt)
                continue
            return f"HTTP {exc.code}"
        except (urllib.error.URLError, OSError) as exc:
            reason = getattr(exc, "reason", exc)
            return f"unreachable: {reason}"
        except ValueError as exc:
            return f"invalid URL: {exc}"
    return "too many retries"


def _check_links(sheet: CheatSheet, timeout: float) -> list[LintIssue]:
    issues = []
    seen: dict[str, str | None] = {}
    for pattern in sheet.patterns():
        # Malformed references are already reported as bad-reference.
        urls = [url for url in pattern.references if _is_absolute_http(url)]
        if pattern.rule_url:
            urls.append(pattern.rule_url)
        for url in urls:
            if url not in seen:
                seen[url] = check_link(url, timeout=timeout)
                if seen[url]:
                    logger.warning("Link check failed for %s: %s", url, seen[url])
            if seen[url]:
                issues.append(LintIssue(
                    Severity.ERROR, "unreachable-link", f"{url} ({seen[url]})",
                    pattern.pattern_id,
                ))
    return issues


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def lint_sheet(
    sheet: CheatSheet,
    check_links: bool = False,
    timeout: float = 10.0,
) -> list[LintIssue]:
    """Run every content check against *sheet*.

    Args:
        sheet: The cheat sheet to check.
        check_links: Also resolve every reference and rule URL over the
            network.
        timeout: Per-request timeout in seconds for link checks.

    Returns:
        Issues in document order; sheet-wide issues come first.
    """
    issues: list[LintIssue] = []

    if not sheet.title.strip():
        issues.append(LintIssue(Severity.ERROR, "empty-field", "sheet title is empty"))
    if not sheet.ruleset.strip():
        issues.append(LintIssue(Severity.WARNING, "empty-field", "sheet has no ruleset"))

    all_patterns = list(sheet.patterns())
    if not all_patterns:
        issues.append(LintIssue(Severity.ERROR, "empty-sheet", "sheet contains no patterns"))

    known_ids = {p.pattern_id for p in all_patterns}
    seen_ids: set[str] = set()
    seen_rules: dict[str, str] = {}

    for section in sheet.sections:
        for pattern in section.patterns:
            pid = pattern.pattern_id
            if pid in seen_ids:
                issues.append(LintIssue(
                    Severity.ERROR, "duplicate-id", f"ID {pid} is used more than once", pid,
                ))
            seen_ids.add(pid)

            m = _PATTERN_ID_RE.match(pid)
            if m is None:
                issues.append(LintIssue(
                    Severity.ERROR, "bad-id", f"ID {pid!r} is not of the form '1.A'", pid,
                ))
            elif m.group(1) != section.number:
                issues.append(LintIssue(
                    Severity.ERROR, "bad-id",
                    f"ID {pid} is listed under section {section.number}", pid,
                ))

            issues.extend(_check_fields(pattern))
            issues.extend(_check_references(pattern))
            issues.extend(_check_rule_ref(pattern))

            ref = pattern.external_rule_ref
            if ref and ref in seen_rules:
                issues.append(LintIssue(
                    Severity.WARNING, "duplicate-rule",
                    f"rule {ref} is also referenced by {seen_rules[ref]}", pid,
                ))
            elif ref:
                seen_rules[ref] = pid

            if pattern.example.strip():
                syntax_issue = check_example_syntax(pattern)
                if syntax_issue is not None:
                    issues.append(syntax_issue)

            issues.extend(_check_cross_references(pattern, known_ids))

    if check_links:
        issues.extend(_check_links(sheet, timeout))

    return issues


def has_errors(issues: list[LintIssue]) -> bool:
    """Return True if any issue has error severity."""
    return any(i.severity == Severity.ERROR for i in issues)
