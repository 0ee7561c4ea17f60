"""Framework-specific cheat sheets.

Built-in sheets are plain dicts kept in one module per framework.  Custom
sheets with the same shape can be loaded from YAML or JSON files.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import yaml

from xsscheatsheet.findings import CheatSheet
from xsscheatsheet.sheets.flask import FLASK_SHEET

logger = logging.getLogger("xsscheatsheet.sheets")

# Map of framework identifier -> raw sheet data.
# Keys should be lowercase.  Multiple aliases can point to the same sheet.
FRAMEWORK_SHEETS: dict[str, dict[str, Any]] = {
    "flask": FLASK_SHEET,
    "jinja2": FLASK_SHEET,
}


class SheetError(ValueError):
    """Raised when cheat sheet data is malformed."""


def list_frameworks() -> list[str]:
    """Return the sorted canonical names of the built-in sheets."""
    return sorted({data["framework"] for data in FRAMEWORK_SHEETS.values()})


def load_sheet(framework: str = "flask") -> CheatSheet:
    """Build the built-in cheat sheet for *framework*.

    Raises:
        KeyError: If no sheet is registered for *framework*.
    """
    key = framework.strip().lower()
    try:
        data = FRAMEWORK_SHEETS[key]
    except KeyError:
        available = ", ".join(sorted(FRAMEWORK_SHEETS))
        raise KeyError(
            f"Unknown framework {framework!r}. Available: {available}"
        ) from None
    return sheet_from_dict(data)


def load_sheet_file(path: str) -> CheatSheet:
    """Load a custom cheat sheet from a YAML or JSON file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        SheetError: If the format is unsupported or the data is malformed.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Sheet file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    with open(path, "r", encoding="utf-8") as fh:
        try:
            if ext == ".json":
                data = json.load(fh)
            elif ext in (".yaml", ".yml"):
                data = yaml.safe_load(fh)
            else:
                raise SheetError(f"Unsupported sheet format: {ext}")
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise SheetError(f"Could not parse {path}: {exc}") from exc

    logger.debug("Loaded sheet file %s", path)
    return sheet_from_dict(data)


_TEXT_FIELDS = ("title", "description", "example", "example_language", "external_rule_ref")


def _require_text(data: dict, keys: tuple[str, ...], where: str) -> None:
    for key in keys:
        if key in data and not isinstance(data[key], str):
            raise SheetError(f"{where}: '{key}' must be a string")


def sheet_from_dict(data: Any) -> CheatSheet:
    """Validate the overall shape of *data* and build a :class:`CheatSheet`.

    Only structure and value types are checked here; content problems (empty
    fields, bad links) are reported by :func:`xsscheatsheet.lint.lint_sheet`.
    """
    if not isinstance(data, dict):
        raise SheetError("Sheet must be a mapping")
    if not data.get("framework"):
        raise SheetError("Sheet missing key: framework")
    _require_text(data, ("framework", "title", "intro", "ruleset"), "Sheet")

    sections = data.get("sections", [])
    if not isinstance(sections, list):
        raise SheetError("'sections' must be a list")
    for section in sections:
        if not isinstance(section, dict) or "number" not in section:
            raise SheetError("Each section must be a mapping with a 'number'")
        _require_text(section, ("title",), f"Section {section['number']}")
        patterns = section.get("patterns", [])
        if not isinstance(patterns, list):
            raise SheetError(f"Section {section['number']}: 'patterns' must be a list")
        for pattern in patterns:
            if not isinstance(pattern, dict) or "id" not in pattern:
                raise SheetError(
                    f"Section {section['number']}: each pattern must be a mapping with an 'id'"
                )
            refs = pattern.get("references", [])
            if not isinstance(refs, list):
                raise SheetError(f"Pattern {pattern['id']}: 'references' must be a list")
            if not all(isinstance(ref, str) for ref in refs):
                raise SheetError(f"Pattern {pattern['id']}: references must be strings")
            _require_text(pattern, _TEXT_FIELDS, f"Pattern {pattern['id']}")
            mitigation = pattern.get("mitigation", "")
            if isinstance(mitigation, dict):
                _require_text(
                    mitigation, ("description", "alternative"), f"Pattern {pattern['id']} mitigation"
                )
            elif not isinstance(mitigation, str):
                raise SheetError(
                    f"Pattern {pattern['id']}: 'mitigation' must be a string or a mapping"
                )

    return CheatSheet.from_dict(data)


__all__ = [
    "FLASK_SHEET",
    "FRAMEWORK_SHEETS",
    "SheetError",
    "list_frameworks",
    "load_sheet",
    "load_sheet_file",
    "sheet_from_dict",
]
