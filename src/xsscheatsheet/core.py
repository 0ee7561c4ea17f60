"""Core façade for the cheat sheet.

Ties the sheet registry, project configuration, renderers, content checks
and the scanner bridge into a single :class:`XssCheatSheet` object.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from . import __version__
from .config import ProjectConfig
from .findings import CheatSheet, FindingPattern, LintIssue
from .lint import lint_sheet
from .render import RENDERERS
from .semgrep import DEFAULT_BINARY, ScanResult, build_command, run_semgrep
from .sheets import list_frameworks, load_sheet, load_sheet_file


logger = logging.getLogger(__name__)


class XssCheatSheet:
    """Loaded cheat sheet plus the operations that work on it.

    Args:
        framework: Built-in sheet to load (default ``"flask"``).
        project_config: Optional project configuration.  Its ``sheet_path``
            wins over any framework; its ``framework`` is used when
            *framework* is left at the default.
    """

    def __init__(
        self,
        framework: str = "flask",
        project_config: Optional[ProjectConfig] = None,
    ) -> None:
        self._project_config = project_config
        cfg = project_config or ProjectConfig()

        if cfg.sheet_path:
            sheet = load_sheet_file(cfg.sheet_path)
            logger.info("Using custom sheet %s", cfg.sheet_path)
        else:
            if cfg.framework and framework == "flask":
                framework = cfg.framework
            sheet = load_sheet(framework)

        if cfg.ruleset:
            sheet.ruleset = cfg.ruleset
        if cfg.exclude_patterns:
            sheet = sheet.without(cfg.exclude_patterns)
        self._sheet = sheet

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def sheet(self) -> CheatSheet:
        """Return the active cheat sheet."""
        return self._sheet

    @property
    def project_config(self) -> Optional[ProjectConfig]:
        """Return the project configuration, if any."""
        return self._project_config

    def _semgrep_binary(self) -> str:
        if self._project_config and self._project_config.semgrep_binary:
            return self._project_config.semgrep_binary
        return DEFAULT_BINARY

    # ------------------------------------------------------------------
    # Catalog queries
    # ------------------------------------------------------------------

    def list_patterns(self) -> List[FindingPattern]:
        """Return every pattern in document order."""
        return list(self._sheet.patterns())

    def get_pattern(self, pattern_id: str) -> FindingPattern:
        """Return the pattern with *pattern_id*.

        Raises:
            KeyError: If the ID is unknown.
        """
        return self._sheet.get(pattern_id)

    def lookup_rule(self, rule_id: str) -> Optional[FindingPattern]:
        """Return the pattern documenting the scanner rule *rule_id*."""
        return self._sheet.find_by_rule(rule_id)

    def search(self, text: str) -> List[FindingPattern]:
        """Case-insensitive search over titles, descriptions and examples."""
        needle = text.strip().lower()
        if not needle:
            return []
        hits = []
        for pattern in self._sheet.patterns():
            haystack = " ".join((
                pattern.title,
                pattern.description,
                pattern.example,
                pattern.external_rule_ref,
            )).lower()
            if needle in haystack:
                hits.append(pattern)
        return hits

    # ------------------------------------------------------------------
    # Output and checks
    # ------------------------------------------------------------------

    def render(self, fmt: str = "markdown") -> str:
        """Render the sheet as ``"markdown"``, ``"table"`` or ``"json"``.

        Raises:
            ValueError: If *fmt* is unknown.
        """
        renderer = RENDERERS.get(fmt)
        if renderer is None:
            available = ", ".join(sorted(RENDERERS))
            raise ValueError(f"Unknown format {fmt!r}. Available: {available}")
        return renderer(self._sheet)

    def lint(self, check_links: bool = False) -> List[LintIssue]:
        """Run the content checks on the active sheet."""
        timeout = 10.0
        if self._project_config and self._project_config.link_timeout is not None:
            timeout = self._project_config.link_timeout
        issues = lint_sheet(self._sheet, check_links=check_links, timeout=timeout)
        logger.info("Lint produced %d issue(s)", len(issues))
        return issues

    def scanner_command(self, targets: Optional[Sequence[str]] = None) -> List[str]:
        """Return the scanner argv for *targets* without running it."""
        return build_command(
            self._sheet.ruleset,
            targets or (),
            json_output=False,
            binary=self._semgrep_binary(),
        )

    def scan(self, targets: Optional[Sequence[str]] = None) -> ScanResult:
        """Run the external scanner and map results to sheet entries."""
        return run_semgrep(
            self._sheet,
            targets or (),
            binary=self._semgrep_binary(),
        )

    def status(self) -> dict[str, Any]:
        """Return a summary of the loaded sheet and configuration."""
        result: dict[str, Any] = {
            "version": __version__,
            "framework": self._sheet.framework,
            "title": self._sheet.title,
            "ruleset": self._sheet.ruleset,
            "sections": len(self._sheet.sections),
            "patterns": len(self.list_patterns()),
            "available_frameworks": list_frameworks(),
        }
        if self._project_config is not None:
            result["project_config"] = self._project_config.to_dict()
        return result
