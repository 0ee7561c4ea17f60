"""Data models for cheat sheet entries.

Defines the :class:`FindingPattern` dataclass and the containers used to
group patterns into a :class:`CheatSheet`, plus the :class:`LintIssue`
record produced by the content checks.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator
from urllib.parse import quote

# Public search endpoint of the Semgrep rule registry.
RULE_REGISTRY_URL = "https://semgrep.dev/r?q="


class Severity(str, Enum):
    """Severity level of a content lint issue."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Mitigation:
    """Guidance for avoiding a risky construct.

    Attributes:
        description: Human-readable mitigation advice.
        alternative: Optional safer construct to use instead.
    """

    description: str
    alternative: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict, omitting an empty alternative."""
        d: dict[str, Any] = {"description": self.description}
        if self.alternative:
            d["alternative"] = self.alternative
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any] | str) -> Mitigation:
        """Deserialize from a plain dict or a bare description string."""
        if isinstance(data, str):
            return cls(description=data)
        return cls(
            description=data.get("description", ""),
            alternative=data.get("alternative", ""),
        )


@dataclass
class FindingPattern:
    """A single documented XSS risk pattern.

    Attributes:
        pattern_id: Section/subsection label, e.g. ``"1.A"``.
        title: Short name of the risky construct.
        description: Prose explanation of the risk.
        example: Literal code fragment illustrating the pattern.
        example_language: Language of *example* (``"python"`` or ``"jinja2"``).
        references: Ordered external links.
        mitigation: How to avoid the pattern.
        external_rule_ref: Identifier of the matching rule in the Semgrep
            registry.
    """

    pattern_id: str
    title: str
    description: str
    example: str
    example_language: str = "python"
    references: list[str] = field(default_factory=list)
    mitigation: Mitigation = field(default_factory=lambda: Mitigation(""))
    external_rule_ref: str = ""

    @property
    def rule_url(self) -> str:
        """Registry URL of the external rule (empty if no rule is set)."""
        if not self.external_rule_ref:
            return ""
        return RULE_REGISTRY_URL + quote(self.external_rule_ref, safe=".-_")

    @property
    def section_number(self) -> str:
        """The section part of the ID (``"1"`` for ``"1.A"``)."""
        return self.pattern_id.split(".", 1)[0]

    def matches_rule(self, rule_id: str) -> bool:
        """Return True if *rule_id* refers to this pattern's rule.

        Semgrep reports registry rules either by their full dotted ID or by
        an ID prefixed with the path of a local rules file, so matches on a
        dot boundary are also accepted.
        """
        ref = self.external_rule_ref
        if not ref or not rule_id:
            return False
        if rule_id == ref or rule_id.endswith("." + ref):
            return True
        # Registry rules are reported as ``<ref>.<name>`` or as the bare name.
        if rule_id.startswith(ref + "."):
            return True
        return ref.rsplit(".", 1)[-1] == rule_id

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict."""
        return {
            "id": self.pattern_id,
            "title": self.title,
            "description": self.description,
            "example": self.example,
            "example_language": self.example_language,
            "references": list(self.references),
            "mitigation": self.mitigation.to_dict(),
            "external_rule_ref": self.external_rule_ref,
            "rule_url": self.rule_url,
        }

    def to_json(self) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FindingPattern:
        """Deserialize from a plain dict.

        ``rule_url`` is derived, so it is ignored when present.
        """
        return cls(
            pattern_id=str(data["id"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            example=data.get("example", ""),
            example_language=data.get("example_language", "python"),
            references=list(data.get("references", [])),
            mitigation=Mitigation.from_dict(data.get("mitigation", {})),
            external_rule_ref=data.get("external_rule_ref", ""),
        )


@dataclass
class Section:
    """A numbered group of patterns sharing a theme."""

    number: str
    title: str
    patterns: list[FindingPattern] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "patterns": [p.to_dict() for p in self.patterns],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Section:
        return cls(
            number=str(data["number"]),
            title=data.get("title", ""),
            patterns=[FindingPattern.from_dict(p) for p in data.get("patterns", [])],
        )


@dataclass
class CheatSheet:
    """An ordered collection of sections documenting one framework.

    Attributes:
        framework: Framework identifier (e.g. ``"flask"``).
        title: Document title.
        intro: Introductory paragraph.
        ruleset: Semgrep ruleset that bundles every rule referenced by
            the sheet (passed as ``--config``).
        sections: Sections in document order.
    """

    framework: str
    title: str
    intro: str = ""
    ruleset: str = ""
    sections: list[Section] = field(default_factory=list)

    def patterns(self) -> Iterator[FindingPattern]:
        """Yield every pattern in document order."""
        for section in self.sections:
            yield from section.patterns

    def get(self, pattern_id: str) -> FindingPattern:
        """Return the pattern with *pattern_id*.

        Raises:
            KeyError: If no pattern has that ID.
        """
        wanted = pattern_id.strip().upper()
        for pattern in self.patterns():
            if pattern.pattern_id.upper() == wanted:
                return pattern
        available = ", ".join(p.pattern_id for p in self.patterns()) or "(none)"
        raise KeyError(
            f"Unknown pattern {pattern_id!r}. Available: {available}"
        )

    def find_by_rule(self, rule_id: str) -> FindingPattern | None:
        """Return the pattern whose external rule matches *rule_id*, if any."""
        for pattern in self.patterns():
            if pattern.matches_rule(rule_id):
                return pattern
        return None

    def scanner_command(self, targets: list[str] | None = None) -> list[str]:
        """Command line that runs the sheet's ruleset over *targets*."""
        return ["semgrep", "--config", self.ruleset, *(targets or [])]

    def without(self, pattern_ids: list[str] | tuple[str, ...]) -> CheatSheet:
        """Return a copy with the given pattern IDs removed.

        Sections left without patterns are dropped.
        """
        excluded = {pid.strip().upper() for pid in pattern_ids}
        sections = []
        for section in self.sections:
            kept = [p for p in section.patterns if p.pattern_id.upper() not in excluded]
            if kept:
                sections.append(Section(section.number, section.title, kept))
        return CheatSheet(
            framework=self.framework,
            title=self.title,
            intro=self.intro,
            ruleset=self.ruleset,
            sections=sections,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "framework": self.framework,
            "title": self.title,
            "intro": self.intro,
            "ruleset": self.ruleset,
            "sections": [s.to_dict() for s in self.sections],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CheatSheet:
        return cls(
            framework=data["framework"],
            title=data.get("title", ""),
            intro=data.get("intro", ""),
            ruleset=data.get("ruleset", ""),
            sections=[Section.from_dict(s) for s in data.get("sections", [])],
        )


@dataclass
class LintIssue:
    """A content problem found in a cheat sheet.

    Attributes:
        severity: How serious the problem is.
        check: Short name of the check that produced the issue.
        message: Human-readable description.
        pattern_id: ID of the offending pattern, if the issue is local to one.
    """

    severity: Severity
    check: str
    message: str
    pattern_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "check": self.check,
            "message": self.message,
            "pattern_id": self.pattern_id,
        }

    def __str__(self) -> str:
        where = f"[{self.pattern_id}] " if self.pattern_id else ""
        return f"{self.severity.value}: {where}{self.check}: {self.message}"
