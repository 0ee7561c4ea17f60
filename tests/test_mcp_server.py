"""Tests for the cheat sheet MCP server."""

import io
import json
import sys
from unittest.mock import patch

from xsscheatsheet.core import XssCheatSheet
from xsscheatsheet.mcp_server import (
    MCP_PROTOCOL_VERSION,
    PROMPTS,
    RESOURCES,
    SERVER_INFO,
    TOOLS,
    XssCheatSheetMCPServer,
)
from xsscheatsheet.semgrep import SemgrepError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_server():
    """Create a server with a pre-initialized cheat sheet."""
    server = XssCheatSheetMCPServer(cheatsheet=XssCheatSheet())
    server._initialized = True
    return server


def _capture_output(server, messages):
    """Feed JSON-RPC messages to the server and capture stdout output.

    Returns a list of parsed JSON response dicts.
    """
    input_lines = "\n".join(json.dumps(m) for m in messages) + "\n"
    old_stdin = sys.stdin
    old_stdout = sys.stdout

    sys.stdin = io.StringIO(input_lines)
    sys.stdout = io.StringIO()

    try:
        server.run()
    finally:
        output = sys.stdout.getvalue()
        sys.stdin = old_stdin
        sys.stdout = old_stdout

    responses = []
    for line in output.strip().splitlines():
        if line.strip():
            responses.append(json.loads(line))
    return responses


def _call_tool(server, name, arguments=None):
    msg = {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments or {}},
    }
    return _capture_output(server, [msg])[0]["result"]


def _tool_payload(result):
    return json.loads(result["content"][0]["text"])


# ---------------------------------------------------------------------------
# Protocol tests
# ---------------------------------------------------------------------------


class TestInitialize:
    def test_initialize_response(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        server = XssCheatSheetMCPServer()
        msgs = [{"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}]
        responses = _capture_output(server, msgs)
        assert len(responses) == 1
        r = responses[0]
        assert r["result"]["protocolVersion"] == MCP_PROTOCOL_VERSION
        assert r["result"]["serverInfo"] == SERVER_INFO
        assert set(r["result"]["capabilities"]) == {"tools", "resources", "prompts"}
        assert server._cheatsheet is not None

    def test_initialize_keeps_provided_cheatsheet(self):
        cs = XssCheatSheet()
        server = XssCheatSheetMCPServer(cheatsheet=cs)
        _capture_output(server, [{"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}])
        assert server._cheatsheet is cs

    def test_tool_call_before_initialize(self):
        server = XssCheatSheetMCPServer(cheatsheet=XssCheatSheet())
        result = _call_tool(server, "list_patterns")
        assert result["isError"] is True


class TestProtocolErrors:
    def test_parse_error(self):
        server = _make_server()
        old_stdin, old_stdout = sys.stdin, sys.stdout
        sys.stdin = io.StringIO("{not json\n")
        sys.stdout = io.StringIO()
        try:
            server.run()
        finally:
            output = sys.stdout.getvalue()
            sys.stdin, sys.stdout = old_stdin, old_stdout
        assert json.loads(output)["error"]["code"] == -32700

    def test_unknown_method(self):
        responses = _capture_output(_make_server(), [
            {"jsonrpc": "2.0", "id": 7, "method": "bogus/method"},
        ])
        assert responses[0]["error"]["code"] == -32601

    def test_notification_gets_no_response(self):
        responses = _capture_output(_make_server(), [
            {"jsonrpc": "2.0", "method": "notifications/initialized"},
        ])
        assert responses == []

    def test_missing_method(self):
        responses = _capture_output(_make_server(), [{"jsonrpc": "2.0", "id": 3}])
        assert responses[0]["error"]["code"] == -32600

    def test_batch(self):
        responses = _capture_output(_make_server(), [[
            {"jsonrpc": "2.0", "id": 1, "method": "ping"},
            {"jsonrpc": "2.0", "id": 2, "method": "ping"},
        ]])
        assert [r["id"] for r in responses] == [1, 2]

    def test_batch_too_large(self):
        batch = [{"jsonrpc": "2.0", "id": i, "method": "ping"} for i in range(51)]
        responses = _capture_output(_make_server(), [batch])
        assert len(responses) == 1
        assert responses[0]["error"]["code"] == -32600
        assert responses[0]["id"] is None


class TestListings:
    def test_tools_list(self):
        responses = _capture_output(_make_server(), [
            {"jsonrpc": "2.0", "id": 1, "method": "tools/list"},
        ])
        names = {t["name"] for t in responses[0]["result"]["tools"]}
        assert names == {t["name"] for t in TOOLS}
        assert "lookup_rule" in names

    def test_resources_list(self):
        responses = _capture_output(_make_server(), [
            {"jsonrpc": "2.0", "id": 1, "method": "resources/list"},
        ])
        assert responses[0]["result"]["resources"] == RESOURCES

    def test_prompts_list(self):
        responses = _capture_output(_make_server(), [
            {"jsonrpc": "2.0", "id": 1, "method": "prompts/list"},
        ])
        assert responses[0]["result"]["prompts"] == PROMPTS


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class TestTools:
    def test_list_patterns(self):
        payload = _tool_payload(_call_tool(_make_server(), "list_patterns"))
        assert len(payload) == 12
        assert payload[0]["id"] == "1.A"

    def test_get_pattern(self):
        payload = _tool_payload(_call_tool(_make_server(), "get_pattern", {"pattern_id": "3.B"}))
        assert payload["title"] == "Using {% autoescape false %}"
        assert payload["rule_url"].startswith("https://semgrep.dev/r?q=")

    def test_get_pattern_unknown(self):
        result = _call_tool(_make_server(), "get_pattern", {"pattern_id": "8.H"})
        assert result["isError"] is True
        assert "Unknown pattern" in _tool_payload(result)["error"]

    def test_get_pattern_missing_argument(self):
        assert _call_tool(_make_server(), "get_pattern")["isError"] is True

    def test_lookup_rule(self):
        payload = _tool_payload(_call_tool(
            _make_server(), "lookup_rule",
            {"rule_id": "python.flask.security.audit.render-template-string"},
        ))
        assert payload["id"] == "2.A"

    def test_lookup_rule_unknown(self):
        result = _call_tool(_make_server(), "lookup_rule", {"rule_id": "nope"})
        assert result["isError"] is True

    def test_search_patterns(self):
        payload = _tool_payload(_call_tool(_make_server(), "search_patterns", {"query": "href"}))
        assert payload["count"] >= 1
        assert "4.B" in [p["id"] for p in payload["patterns"]]

    def test_render_cheatsheet_default_markdown(self):
        result = _call_tool(_make_server(), "render_cheatsheet")
        assert result["content"][0]["text"].startswith("# XSS prevention cheat sheet")

    def test_render_cheatsheet_bad_format(self):
        result = _call_tool(_make_server(), "render_cheatsheet", {"format": "pdf"})
        assert result["isError"] is True

    def test_lint_cheatsheet(self):
        payload = _tool_payload(_call_tool(_make_server(), "lint_cheatsheet"))
        assert payload == {"passed": True, "issue_count": 0, "issues": []}

    def test_scanner_command(self):
        payload = _tool_payload(_call_tool(_make_server(), "scanner_command", {"targets": ["app"]}))
        assert payload["shell"] == "semgrep --config p/minusworld.flask-xss app"

    def test_scanner_command_bad_targets(self):
        result = _call_tool(_make_server(), "scanner_command", {"targets": "app"})
        assert result["isError"] is True

    def test_run_scanner_reports_semgrep_error(self):
        with patch.object(XssCheatSheet, "scan", side_effect=SemgrepError("'semgrep' not found on PATH")):
            result = _call_tool(_make_server(), "run_scanner", {"targets": ["."]})
        assert result["isError"] is True
        assert "not found" in _tool_payload(result)["error"]

    def test_unknown_tool(self):
        result = _call_tool(_make_server(), "does_not_exist")
        assert result["isError"] is True

    def test_tool_exception_is_contained(self):
        with patch.object(XssCheatSheet, "list_patterns", side_effect=RuntimeError("boom")):
            result = _call_tool(_make_server(), "list_patterns")
        assert result["isError"] is True
        assert "encountered an error" in _tool_payload(result)["error"]


# ---------------------------------------------------------------------------
# Resources and prompts
# ---------------------------------------------------------------------------


class TestResources:
    def _read_response(self, uri, server=None):
        responses = _capture_output(server or _make_server(), [
            {"jsonrpc": "2.0", "id": 1, "method": "resources/read", "params": {"uri": uri}},
        ])
        return responses[0]

    def _read(self, uri):
        return self._read_response(uri)["result"]

    def test_sheet(self):
        content = self._read("xsscheatsheet://sheet")["contents"][0]
        assert content["mimeType"] == "text/markdown"
        assert "## 3. Templates: explicitly disabling escaping" in content["text"]

    def test_patterns(self):
        content = self._read("xsscheatsheet://patterns")["contents"][0]
        assert len(json.loads(content["text"])) == 12

    def test_config(self):
        content = self._read("xsscheatsheet://config")["contents"][0]
        assert json.loads(content["text"])["framework"] == "flask"

    def test_unknown(self):
        response = self._read_response("xsscheatsheet://nope")
        assert "result" not in response
        assert response["error"]["code"] == -32602

    def test_before_initialize_uses_environment(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".xsscheatsheet.json").write_text(json.dumps({"exclude_patterns": ["1.A"]}))
        monkeypatch.setenv("XSSCHEATSHEET_FRAMEWORK", "jinja2")
        server = XssCheatSheetMCPServer()
        content = self._read_response("xsscheatsheet://patterns", server)["result"]["contents"][0]
        assert [p["id"] for p in json.loads(content["text"])][0] == "1.B"

        sheet = server._cheatsheet
        _capture_output(server, [{"jsonrpc": "2.0", "id": 2, "method": "initialize", "params": {}}])
        assert server._cheatsheet is sheet


class TestPrompts:
    def test_review_template(self):
        responses = _capture_output(_make_server(), [{
            "jsonrpc": "2.0", "id": 1, "method": "prompts/get",
            "params": {
                "name": "review-template",
                "arguments": {"code": "{{ x | safe }}", "file_path": "t.html"},
            },
        }])
        text = responses[0]["result"]["messages"][0]["content"]["text"]
        assert "File: t.html" in text
        assert "{{ x | safe }}" in text

    def test_unknown_prompt(self):
        responses = _capture_output(_make_server(), [{
            "jsonrpc": "2.0", "id": 1, "method": "prompts/get", "params": {"name": "x"},
        }])
        assert responses[0]["error"]["code"] == -32602
        assert "Unknown prompt" in responses[0]["error"]["message"]
