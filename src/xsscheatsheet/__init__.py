"""xsscheatsheet -- XSS risk patterns for Flask, as data.

A catalog of cross-site scripting risk patterns in Flask applications and
their Jinja2 templates.  Each entry pairs an example of the risky construct
with references, mitigation advice and the Semgrep registry rule that
detects it.  The catalog renders to a markdown cheat sheet, checks its own
content, and can run the referenced rules through the ``semgrep`` CLI.

Quick start::

    from xsscheatsheet import XssCheatSheet

    sheet = XssCheatSheet()
    print(sheet.render("markdown"))
    pattern = sheet.get_pattern("3.A")
    issues = sheet.lint()
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import ProjectConfig, discover_config, load_config
from .core import XssCheatSheet
from .findings import (
    CheatSheet,
    FindingPattern,
    LintIssue,
    Mitigation,
    Section,
    Severity,
)
from .lint import has_errors, lint_sheet
from .render import render_json, render_markdown, render_pattern, render_table
from .semgrep import RuleMatch, ScanResult, SemgrepError, build_command, run_semgrep
from .sheets import SheetError, list_frameworks, load_sheet, load_sheet_file

__all__ = [
    "__version__",
    "CheatSheet",
    "FindingPattern",
    "LintIssue",
    "Mitigation",
    "ProjectConfig",
    "RuleMatch",
    "ScanResult",
    "Section",
    "SemgrepError",
    "Severity",
    "SheetError",
    "XssCheatSheet",
    "build_command",
    "discover_config",
    "has_errors",
    "lint_sheet",
    "list_frameworks",
    "load_config",
    "load_sheet",
    "load_sheet_file",
    "render_json",
    "render_markdown",
    "render_pattern",
    "render_table",
    "run_semgrep",
]
