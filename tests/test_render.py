"""Tests for markdown and JSON rendering."""

import json

from xsscheatsheet.findings import CheatSheet, FindingPattern, Mitigation, Section
from xsscheatsheet.render import (
    RENDERERS,
    render_json,
    render_markdown,
    render_pattern,
    render_table,
)
from xsscheatsheet.sheets import load_sheet


def _pattern(**overrides):
    fields = dict(
        pattern_id="3.A",
        title="Using the |safe filter",
        description="Marks a value as safe.",
        example="{{ bio | safe }}\n",
        example_language="jinja2",
        references=["https://jinja.palletsprojects.com/"],
        mitigation=Mitigation("Remove the filter.", alternative="Sanitize first."),
        external_rule_ref="python.flask.security.xss.audit.template-unescaped-with-safe",
    )
    fields.update(overrides)
    return FindingPattern(**fields)


class TestRenderPattern:
    def test_template_order(self):
        text = render_pattern(_pattern())
        order = [
            "### 3.A. Using the |safe filter",
            "Marks a value as safe.",
            "```html+jinja",
            "{{ bio | safe }}",
            "**References:**",
            "- <https://jinja.palletsprojects.com/>",
            "**Mitigation:** Remove the filter.",
            "**Alternative:** Sanitize first.",
            "**Semgrep rule:** [python.flask.security.xss.audit.template-unescaped-with-safe]"
            "(https://semgrep.dev/r?q=python.flask.security.xss.audit.template-unescaped-with-safe)",
        ]
        positions = [text.index(fragment) for fragment in order]
        assert positions == sorted(positions)

    def test_python_fence(self):
        text = render_pattern(_pattern(example="x = 1\n", example_language="python"))
        assert "```python\nx = 1\n```" in text

    def test_fence_longer_than_backticks_in_example(self):
        example = "doc = \"\"\"\n```html\n{{ x }}\n```\n\"\"\"\n"
        text = render_pattern(_pattern(example=example, example_language="python"))
        assert "````python\n" in text
        assert text.count("````") == 2

    def test_no_alternative_line_when_empty(self):
        text = render_pattern(_pattern(mitigation=Mitigation("Remove the filter.")))
        assert "**Alternative:**" not in text

    def test_no_references_block_when_empty(self):
        assert "**References:**" not in render_pattern(_pattern(references=[]))

    def test_no_rule_line_without_rule(self):
        assert "Semgrep rule" not in render_pattern(_pattern(external_rule_ref=""))


class TestRenderMarkdown:
    def test_flask_document(self):
        text = render_markdown(load_sheet("flask"))
        assert text.startswith("# XSS prevention cheat sheet for Flask\n")
        assert "semgrep --config p/minusworld.flask-xss ." in text
        assert "## 1. Server code: generating HTML outside of templates" in text
        assert "## 4. Templates: variables in dangerous locations" in text
        assert text.count("\n### ") == 12
        assert text.count("**Semgrep rule:**") == 12
        assert text.endswith("\n")
        assert not text.endswith("\n\n")

    def test_exclude_pattern(self):
        text = render_markdown(load_sheet("flask"), exclude=["1.B"])
        assert "### 1.B." not in text
        assert "### 1.A." in text

    def test_exclude_whole_section(self):
        text = render_markdown(load_sheet("flask"), exclude=["4.A", "4.B", "4.C"])
        assert "## 4." not in text

    def test_no_scanner_block_without_ruleset(self):
        sheet = CheatSheet(
            framework="x", title="T", sections=[Section("3", "S", [_pattern()])]
        )
        text = render_markdown(sheet)
        assert "Check your project" not in text
        assert "## 3. S" in text


def test_render_table():
    text = render_table(load_sheet("flask"))
    lines = text.strip().splitlines()
    assert lines[0] == "| ID | Pattern | Semgrep rule |"
    assert len(lines) == 2 + 12
    assert "| 3.A | Using the \\|safe filter |" in text


def test_render_json():
    data = json.loads(render_json(load_sheet("flask")))
    assert data["framework"] == "flask"
    assert data["sections"][2]["patterns"][0]["id"] == "3.A"


def test_renderer_registry():
    assert set(RENDERERS) == {"markdown", "table", "json"}
