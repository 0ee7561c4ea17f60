"""Project configuration discovery.

Discovers and loads ``.xsscheatsheet.json`` or ``.xsscheatsheet.yaml`` files
from the project directory tree, allowing per-project choice of framework,
custom sheets and scanner settings.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class ProjectConfig:
    """Per-project configuration.

    Attributes:
        framework: Name of the built-in sheet to use.
        sheet_path: Path to a custom sheet file; overrides *framework*.
            Relative paths are resolved against the config file's directory.
        ruleset: Semgrep ruleset override.
        exclude_patterns: Pattern IDs to leave out of the sheet.
        semgrep_binary: Name or path of the scanner executable.
        link_timeout: Per-request timeout for link checks, in seconds.
        config_path: Path to the config file that was loaded (None if defaults).
    """

    framework: Optional[str] = None
    sheet_path: Optional[str] = None
    ruleset: Optional[str] = None
    exclude_patterns: List[str] = field(default_factory=list)
    semgrep_binary: Optional[str] = None
    link_timeout: Optional[float] = None
    config_path: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        if self.framework:
            d["framework"] = self.framework
        if self.sheet_path:
            d["sheet_path"] = self.sheet_path
        if self.ruleset:
            d["ruleset"] = self.ruleset
        if self.exclude_patterns:
            d["exclude_patterns"] = list(self.exclude_patterns)
        if self.semgrep_binary:
            d["semgrep_binary"] = self.semgrep_binary
        if self.link_timeout is not None:
            d["link_timeout"] = self.link_timeout
        if self.config_path:
            d["config_path"] = self.config_path
        return d

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], config_path: Optional[str] = None
    ) -> "ProjectConfig":
        sheet_path = data.get("sheet_path")
        if sheet_path and config_path and not os.path.isabs(sheet_path):
            sheet_path = os.path.join(os.path.dirname(config_path), sheet_path)
        excludes = data.get("exclude_patterns") or []
        if not isinstance(excludes, list):
            raise ValueError("'exclude_patterns' must be a list of pattern IDs")
        timeout = data.get("link_timeout")
        return cls(
            framework=data.get("framework"),
            sheet_path=sheet_path,
            ruleset=data.get("ruleset"),
            exclude_patterns=[str(p) for p in excludes],
            semgrep_binary=data.get("semgrep_binary"),
            link_timeout=float(timeout) if timeout is not None else None,
            config_path=config_path,
        )


def _load_json(path: str) -> dict[str, Any]:
    """Load a JSON config file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _load_yaml(path: str) -> dict[str, Any]:
    """Load a YAML config file."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


# Config file names in priority order
_CONFIG_FILENAMES = [
    ".xsscheatsheet.json",
    ".xsscheatsheet.yaml",
    ".xsscheatsheet.yml",
]


def discover_config(
    start_dir: Optional[str] = None,
    max_depth: int = 10,
) -> Optional[ProjectConfig]:
    """Walk up the directory tree looking for a config file.

    Args:
        start_dir: Directory to start searching from (defaults to cwd).
        max_depth: Maximum number of parent directories to traverse.

    Returns:
        A ProjectConfig if a config file is found, otherwise None.
    """
    if start_dir is None:
        start_dir = os.getcwd()

    current = os.path.abspath(start_dir)

    for _ in range(max_depth):
        for filename in _CONFIG_FILENAMES:
            config_path = os.path.join(current, filename)
            if os.path.isfile(config_path):
                return load_config(config_path)

        parent = os.path.dirname(current)
        if parent == current:
            # Reached filesystem root
            break
        current = parent

    return None


def load_config(config_path: str) -> ProjectConfig:
    """Load a config file (JSON or YAML) and return a ProjectConfig.

    Raises:
        ValueError: If the file format is not supported, the YAML does not
            parse, or the file does not contain a mapping.
        FileNotFoundError: If the file doesn't exist.
        json.JSONDecodeError: If JSON parsing fails.
    """
    if not os.path.isfile(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    ext = os.path.splitext(config_path)[1].lower()
    if ext == ".json":
        data = _load_json(config_path)
    elif ext in (".yaml", ".yml"):
        try:
            data = _load_yaml(config_path)
        except yaml.YAMLError as exc:
            raise ValueError(f"Could not parse {config_path}: {exc}") from exc
    else:
        raise ValueError(f"Unsupported config format: {ext}")

    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    return ProjectConfig.from_dict(data, config_path=config_path)
