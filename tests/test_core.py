"""Tests for the XssCheatSheet façade."""

import json
from unittest.mock import patch

import pytest
import yaml

from xsscheatsheet import __version__
from xsscheatsheet.config import ProjectConfig
from xsscheatsheet.core import XssCheatSheet
from xsscheatsheet.findings import Severity
from xsscheatsheet.semgrep import ScanResult


CUSTOM_SHEET = {
    "framework": "bottle",
    "title": "Bottle XSS",
    "ruleset": "p/bottle",
    "sections": [
        {
            "number": "1",
            "title": "Server code",
            "patterns": [
                {
                    "id": "1.A",
                    "title": "Returning a formatted string",
                    "description": "Unescaped output.",
                    "example": "html = '<b>%s</b>' % name\n",
                    "references": ["https://bottlepy.org/docs/dev/"],
                    "mitigation": "Use a template.",
                    "external_rule_ref": "python.bottle.security.formatted-return",
                },
            ],
        },
    ],
}


class TestConstruction:
    def test_default_is_flask(self):
        cs = XssCheatSheet()
        assert cs.sheet.framework == "flask"
        assert cs.project_config is None
        assert len(cs.list_patterns()) == 12

    def test_unknown_framework(self):
        with pytest.raises(KeyError):
            XssCheatSheet(framework="rails")

    def test_config_framework_used_when_default(self):
        cs = XssCheatSheet(project_config=ProjectConfig(framework="jinja2"))
        assert cs.sheet.framework == "flask"

    def test_explicit_framework_beats_config(self):
        with pytest.raises(KeyError):
            XssCheatSheet(framework="rails", project_config=ProjectConfig(framework="flask"))

    def test_custom_sheet_path(self, tmp_path):
        path = tmp_path / "bottle.yaml"
        path.write_text(yaml.safe_dump(CUSTOM_SHEET))
        cs = XssCheatSheet(project_config=ProjectConfig(sheet_path=str(path)))
        assert cs.sheet.framework == "bottle"
        assert [p.pattern_id for p in cs.list_patterns()] == ["1.A"]

    def test_ruleset_override(self):
        cs = XssCheatSheet(project_config=ProjectConfig(ruleset="rules/xss.yaml"))
        assert cs.sheet.ruleset == "rules/xss.yaml"

    def test_exclude_patterns(self):
        cs = XssCheatSheet(project_config=ProjectConfig(exclude_patterns=["1.A", "4.c"]))
        ids = [p.pattern_id for p in cs.list_patterns()]
        assert "1.A" not in ids
        assert "4.C" not in ids
        assert len(ids) == 10


class TestQueries:
    def test_get_pattern(self):
        assert XssCheatSheet().get_pattern("2.A").title == "Using render_template_string()"

    def test_get_pattern_unknown(self):
        with pytest.raises(KeyError):
            XssCheatSheet().get_pattern("7.Q")

    def test_lookup_rule(self):
        p = XssCheatSheet().lookup_rule("template-href-var")
        assert p is not None and p.pattern_id == "4.B"

    def test_lookup_rule_unknown(self):
        assert XssCheatSheet().lookup_rule("python.lang.eval") is None

    def test_search(self):
        ids = [p.pattern_id for p in XssCheatSheet().search("MARKUP")]
        assert "1.B" in ids

    def test_search_blank(self):
        assert XssCheatSheet().search("   ") == []


class TestOutputs:
    def test_render_markdown(self):
        assert XssCheatSheet().render().startswith("# XSS prevention cheat sheet for Flask")

    def test_render_json(self):
        data = json.loads(XssCheatSheet().render("json"))
        assert data["ruleset"] == "p/minusworld.flask-xss"

    def test_render_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown format 'pdf'"):
            XssCheatSheet().render("pdf")

    def test_lint_builtin_is_clean(self):
        assert XssCheatSheet().lint() == []

    def test_lint_uses_configured_timeout(self):
        cs = XssCheatSheet(project_config=ProjectConfig(link_timeout=1.5))
        with patch("xsscheatsheet.core.lint_sheet", return_value=[]) as lint:
            cs.lint(check_links=True)
        assert lint.call_args.kwargs == {"check_links": True, "timeout": 1.5}

    def test_lint_reports_bad_custom_sheet(self, tmp_path):
        data = json.loads(json.dumps(CUSTOM_SHEET))
        data["sections"][0]["patterns"][0]["mitigation"] = ""
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(data))
        issues = XssCheatSheet(project_config=ProjectConfig(sheet_path=str(path))).lint()
        assert [(i.check, i.severity) for i in issues] == [("empty-field", Severity.ERROR)]


class TestScanner:
    def test_scanner_command(self):
        assert XssCheatSheet().scanner_command(["app"]) == [
            "semgrep", "--config", "p/minusworld.flask-xss", "app",
        ]

    def test_scanner_command_defaults_to_cwd(self):
        assert XssCheatSheet().scanner_command()[-1] == "."

    def test_scanner_command_uses_configured_binary(self):
        cs = XssCheatSheet(project_config=ProjectConfig(semgrep_binary="/opt/bin/semgrep"))
        assert cs.scanner_command()[0] == "/opt/bin/semgrep"

    def test_scan_delegates(self):
        cs = XssCheatSheet(project_config=ProjectConfig(semgrep_binary="sg"))
        fake = ScanResult(command=["sg"])
        with patch("xsscheatsheet.core.run_semgrep", return_value=fake) as run:
            assert cs.scan(["src"]) is fake
        assert run.call_args.args[1] == ["src"]
        assert run.call_args.kwargs["binary"] == "sg"


class TestStatus:
    def test_status(self):
        status = XssCheatSheet().status()
        assert status["version"] == __version__
        assert status["framework"] == "flask"
        assert status["sections"] == 4
        assert status["patterns"] == 12
        assert status["available_frameworks"] == ["flask"]
        assert "project_config" not in status

    def test_status_includes_project_config(self):
        pc = ProjectConfig(exclude_patterns=["1.A"])
        status = XssCheatSheet(project_config=pc).status()
        assert status["project_config"] == {"exclude_patterns": ["1.A"]}
        assert status["patterns"] == 11
