"""MCP server -- Model Context Protocol interface to the cheat sheet.

Exposes the XSS cheat sheet as an MCP tool server over stdin/stdout
JSON-RPC, so an MCP-compatible editor or agent can look up risk patterns,
map scanner results to mitigation advice, render the sheet, and run its
content checks.

Configuration via environment variables:

    XSSCHEATSHEET_FRAMEWORK     Built-in sheet to load (default: "flask").
    XSSCHEATSHEET_DEBUG         Set to "1" for debug logging.

A ``.xsscheatsheet.json``/``.yaml`` file found from the working directory
upwards is also honoured.

Usage::

    python -m xsscheatsheet.mcp_server

    # Or via the installed entry point:
    xsscheatsheet-mcp
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any

from . import __version__
from .config import discover_config
from .core import XssCheatSheet
from .lint import has_errors
from .semgrep import SemgrepError

# ---------------------------------------------------------------------------
# Logging -- all output goes to stderr so stdout stays clean for JSON-RPC
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if os.environ.get("XSSCHEATSHEET_DEBUG") else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("xsscheatsheet.mcp_server")

# ---------------------------------------------------------------------------
# Protocol constants
# ---------------------------------------------------------------------------

JSONRPC_VERSION = "2.0"
MCP_PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

SERVER_INFO = {
    "name": "xsscheatsheet",
    "version": __version__,
}


class RpcError(Exception):
    """A JSON-RPC error to send back in place of a result."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


# ---------------------------------------------------------------------------
# Security limits
# ---------------------------------------------------------------------------

MAX_MESSAGE_SIZE = 2_000_000  # 2 MB
MAX_BATCH_SIZE = 50

# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

TOOLS: list[dict[str, Any]] = [
    {
        "name": "list_patterns",
        "description": (
            "List every XSS risk pattern in the cheat sheet with its ID, "
            "title and Semgrep rule."
        ),
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "get_pattern",
        "description": (
            "Return one pattern in full: description, example, references, "
            "mitigation and rule link."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "pattern_id": {
                    "type": "string",
                    "description": "Pattern ID such as '3.A'.",
                },
            },
            "required": ["pattern_id"],
        },
    },
    {
        "name": "lookup_rule",
        "description": (
            "Find the cheat sheet entry documenting a Semgrep rule ID "
            "(for example a check_id from scanner output)."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "rule_id": {
                    "type": "string",
                    "description": "Full or trailing part of a Semgrep rule ID.",
                },
            },
            "required": ["rule_id"],
        },
    },
    {
        "name": "search_patterns",
        "description": "Search pattern titles, descriptions and examples.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Case-insensitive text to look for.",
                },
            },
            "required": ["query"],
        },
    },
    {
        "name": "render_cheatsheet",
        "description": "Render the cheat sheet as markdown, a markdown table, or JSON.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "format": {
                    "type": "string",
                    "enum": ["markdown", "table", "json"],
                    "description": "Output format (default: markdown).",
                },
            },
        },
    },
    {
        "name": "lint_cheatsheet",
        "description": (
            "Run content checks on the cheat sheet: empty fields, malformed "
            "links and rule IDs, example syntax, and optionally link resolution."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "check_links": {
                    "type": "boolean",
                    "description": "Also resolve every link over the network.",
                },
            },
        },
    },
    {
        "name": "scanner_command",
        "description": "Return the semgrep command line that runs every referenced rule.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "targets": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Files or directories to scan (default: '.').",
                },
            },
        },
    },
    {
        "name": "run_scanner",
        "description": (
            "Run semgrep with the cheat sheet's ruleset and return results "
            "annotated with the matching pattern and its mitigation."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "targets": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Files or directories to scan (default: '.').",
                },
            },
        },
    },
]

# ---------------------------------------------------------------------------
# Resource definitions
# ---------------------------------------------------------------------------

RESOURCES: list[dict[str, Any]] = [
    {
        "uri": "xsscheatsheet://sheet",
        "name": "XSS Cheat Sheet",
        "description": "The full cheat sheet rendered as markdown.",
        "mimeType": "text/markdown",
    },
    {
        "uri": "xsscheatsheet://patterns",
        "name": "XSS Risk Patterns",
        "description": "All patterns as structured JSON.",
        "mimeType": "application/json",
    },
    {
        "uri": "xsscheatsheet://config",
        "name": "Current Configuration",
        "description": "Loaded sheet and project configuration.",
        "mimeType": "application/json",
    },
]

# ---------------------------------------------------------------------------
# Prompt definitions
# ---------------------------------------------------------------------------

PROMPTS: list[dict[str, Any]] = [
    {
        "name": "review-template",
        "description": (
            "Review Flask view code or a Jinja2 template for the XSS risk "
            "patterns in the cheat sheet."
        ),
        "arguments": [
            {
                "name": "code",
                "description": "The view code or template to review.",
                "required": True,
            },
            {
                "name": "file_path",
                "description": "Optional file path for context.",
                "required": False,
            },
        ],
    },
]


# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------


class XssCheatSheetMCPServer:
    """MCP server wrapping an :class:`XssCheatSheet` instance.

    Reads JSON-RPC messages from stdin and writes responses to stdout,
    following the Model Context Protocol specification.
    """

    def __init__(self, cheatsheet: XssCheatSheet | None = None) -> None:
        self._cheatsheet: XssCheatSheet | None = cheatsheet
        self._initialized = False
        logger.info("XssCheatSheetMCPServer created (cheatsheet=%r)", self._cheatsheet)

    # ------------------------------------------------------------------
    # Message loop
    # ------------------------------------------------------------------

    # JSON-RPC method name -> handler attribute.
    _METHODS = {
        "initialize": "_handle_initialize",
        "initialized": "_handle_initialized",
        "notifications/initialized": "_handle_initialized",
        "ping": "_handle_ping",
        "tools/list": "_handle_tools_list",
        "tools/call": "_handle_tools_call",
        "resources/list": "_handle_resources_list",
        "resources/read": "_handle_resources_read",
        "prompts/list": "_handle_prompts_list",
        "prompts/get": "_handle_prompts_get",
    }

    def run(self) -> None:
        """Serve one JSON-RPC message (or batch) per stdin line until EOF."""
        logger.info("MCP server starting, reading from stdin...")

        for raw_line in sys.stdin:
            line = raw_line.strip()
            if not line:
                continue
            try:
                messages = self._decode(line)
            except RpcError as exc:
                self._reply(None, error=exc)
                continue
            for message in messages:
                self._handle_message(message)

        logger.info("stdin closed, shutting down.")

    @staticmethod
    def _decode(line: str) -> list[Any]:
        if len(line) > MAX_MESSAGE_SIZE:
            raise RpcError(INVALID_REQUEST, "Message too large.")
        logger.debug("Received: %s", line[:200])
        try:
            decoded = json.loads(line)
        except json.JSONDecodeError as exc:
            raise RpcError(PARSE_ERROR, f"Parse error: {exc}") from exc
        if not isinstance(decoded, list):
            return [decoded]
        if len(decoded) > MAX_BATCH_SIZE:
            raise RpcError(INVALID_REQUEST, f"Batch too large (max {MAX_BATCH_SIZE}).")
        return decoded

    def _handle_message(self, message: Any) -> None:
        if not isinstance(message, dict):
            self._reply(None, error=RpcError(INVALID_REQUEST, "Invalid request: expected JSON object."))
            return

        method = message.get("method")
        msg_id = message.get("id")
        if method is None:
            self._reply(msg_id, error=RpcError(INVALID_REQUEST, "Invalid request: missing 'method'."))
            return

        logger.debug("Dispatching method=%r id=%r", method, msg_id)
        handler_name = self._METHODS.get(method)
        if handler_name is None:
            # Unknown notifications are ignored.
            if msg_id is not None:
                self._reply(msg_id, error=RpcError(METHOD_NOT_FOUND, f"Method not found: {method}"))
            return

        try:
            result = getattr(self, handler_name)(message.get("params", {}))
        except RpcError as exc:
            self._reply(msg_id, error=exc)
            return
        except Exception:
            logger.exception("Error handling %s", method)
            self._reply(msg_id, error=RpcError(INTERNAL_ERROR, "Internal server error."))
            return

        if msg_id is not None:
            self._reply(msg_id, result=result)

    # ------------------------------------------------------------------
    # Protocol handlers
    # ------------------------------------------------------------------

    def _handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        self._initialized = True

        client_name = params.get("clientInfo", {}).get("name", "unknown")
        logger.info("Client initialized: %s", client_name)

        self._ensure_cheatsheet()

        return {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {
                "tools": {},
                "resources": {},
                "prompts": {},
            },
            "serverInfo": SERVER_INFO,
        }

    def _ensure_cheatsheet(self) -> XssCheatSheet:
        """Build the cheat sheet from the environment and project config once."""
        if self._cheatsheet is None:
            framework = os.environ.get("XSSCHEATSHEET_FRAMEWORK", "flask")
            self._cheatsheet = XssCheatSheet(
                framework=framework, project_config=discover_config()
            )
        return self._cheatsheet

    def _handle_initialized(self, params: dict[str, Any]) -> dict[str, Any]:
        logger.debug("Client sent 'initialized' notification.")
        return {}

    def _handle_ping(self, params: dict[str, Any]) -> dict[str, Any]:
        return {}

    def _handle_tools_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": TOOLS}

    def _handle_tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        if not self._initialized:
            return self._tool_error("Server not initialized.")
        if self._cheatsheet is None:
            return self._tool_error("Cheat sheet not available.")

        tool_name = params.get("name")
        arguments = params.get("arguments", {})

        logger.info("Tool call: %s", tool_name)

        tool_handlers: dict[str, Any] = {
            "list_patterns": self._tool_list_patterns,
            "get_pattern": self._tool_get_pattern,
            "lookup_rule": self._tool_lookup_rule,
            "search_patterns": self._tool_search_patterns,
            "render_cheatsheet": self._tool_render_cheatsheet,
            "lint_cheatsheet": self._tool_lint_cheatsheet,
            "scanner_command": self._tool_scanner_command,
            "run_scanner": self._tool_run_scanner,
        }

        handler = tool_handlers.get(tool_name)
        if handler is None:
            return self._tool_error(f"Unknown tool: {tool_name}")

        try:
            return handler(arguments)
        except Exception:
            logger.exception("Tool %s raised an exception", tool_name)
            return self._tool_error(f"Tool '{tool_name}' encountered an error.")

    # ------------------------------------------------------------------
    # Resource handlers
    # ------------------------------------------------------------------

    def _handle_resources_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"resources": RESOURCES}

    def _handle_resources_read(self, params: dict[str, Any]) -> dict[str, Any]:
        uri = params.get("uri", "")
        cheatsheet = self._ensure_cheatsheet()

        if uri == "xsscheatsheet://sheet":
            mime = "text/markdown"
            content = cheatsheet.render("markdown")

        elif uri == "xsscheatsheet://patterns":
            mime = "application/json"
            content = json.dumps(
                [p.to_dict() for p in cheatsheet.list_patterns()], indent=2
            )

        elif uri == "xsscheatsheet://config":
            mime = "application/json"
            content = json.dumps(cheatsheet.status(), indent=2)

        else:
            raise RpcError(INVALID_PARAMS, f"Unknown resource: {uri}")

        return {
            "contents": [
                {
                    "uri": uri,
                    "mimeType": mime,
                    "text": content,
                }
            ],
        }

    # ------------------------------------------------------------------
    # Prompt handlers
    # ------------------------------------------------------------------

    def _handle_prompts_list(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"prompts": PROMPTS}

    def _handle_prompts_get(self, params: dict[str, Any]) -> dict[str, Any]:
        prompt_name = params.get("name")
        arguments = params.get("arguments", {})

        if prompt_name == "review-template":
            code = arguments.get("code", "")
            file_path = arguments.get("file_path")

            instructions = (
                "Review the following code for cross-site scripting risks. "
                "Use list_patterns and get_pattern to compare it against each "
                "pattern in the cheat sheet, and for every match quote the "
                "pattern ID, the offending line, and the mitigation.\n\n"
            )
            if file_path:
                instructions += f"File: {file_path}\n\n"
            instructions += f"```\n{code}\n```"

            return {
                "description": "XSS review against the cheat sheet",
                "messages": [
                    {
                        "role": "user",
                        "content": {"type": "text", "text": instructions},
                    }
                ],
            }

        raise RpcError(INVALID_PARAMS, f"Unknown prompt: {prompt_name}")

    # ------------------------------------------------------------------
    # Tool implementations
    # ------------------------------------------------------------------

    def _tool_list_patterns(self, args: dict[str, Any]) -> dict[str, Any]:
        assert self._cheatsheet is not None
        summary = [
            {
                "id": p.pattern_id,
                "title": p.title,
                "external_rule_ref": p.external_rule_ref,
            }
            for p in self._cheatsheet.list_patterns()
        ]
        return self._tool_success(json.dumps(summary, indent=2))

    def _tool_get_pattern(self, args: dict[str, Any]) -> dict[str, Any]:
        assert self._cheatsheet is not None
        pattern_id = args.get("pattern_id")
        if not pattern_id or not isinstance(pattern_id, str):
            return self._tool_error("'pattern_id' is required.")
        try:
            pattern = self._cheatsheet.get_pattern(pattern_id)
        except KeyError as exc:
            return self._tool_error(str(exc.args[0]))
        return self._tool_success(json.dumps(pattern.to_dict(), indent=2))

    def _tool_lookup_rule(self, args: dict[str, Any]) -> dict[str, Any]:
        assert self._cheatsheet is not None
        rule_id = args.get("rule_id")
        if not rule_id or not isinstance(rule_id, str):
            return self._tool_error("'rule_id' is required.")
        pattern = self._cheatsheet.lookup_rule(rule_id)
        if pattern is None:
            return self._tool_error(f"No pattern documents rule {rule_id!r}.")
        return self._tool_success(json.dumps(pattern.to_dict(), indent=2))

    def _tool_search_patterns(self, args: dict[str, Any]) -> dict[str, Any]:
        assert self._cheatsheet is not None
        query = args.get("query")
        if not query or not isinstance(query, str):
            return self._tool_error("'query' is required.")
        hits = self._cheatsheet.search(query)
        result = {
            "query": query,
            "count": len(hits),
            "patterns": [p.to_dict() for p in hits],
        }
        return self._tool_success(json.dumps(result, indent=2))

    def _tool_render_cheatsheet(self, args: dict[str, Any]) -> dict[str, Any]:
        assert self._cheatsheet is not None
        fmt = args.get("format", "markdown")
        try:
            text = self._cheatsheet.render(fmt)
        except ValueError as exc:
            return self._tool_error(str(exc))
        return self._tool_success(text)

    def _tool_lint_cheatsheet(self, args: dict[str, Any]) -> dict[str, Any]:
        assert self._cheatsheet is not None
        issues = self._cheatsheet.lint(check_links=bool(args.get("check_links", False)))
        result = {
            "passed": not has_errors(issues),
            "issue_count": len(issues),
            "issues": [i.to_dict() for i in issues],
        }
        return self._tool_success(json.dumps(result, indent=2))

    def _tool_scanner_command(self, args: dict[str, Any]) -> dict[str, Any]:
        assert self._cheatsheet is not None
        targets = args.get("targets") or []
        if not isinstance(targets, list):
            return self._tool_error("'targets' must be a list of paths.")
        cmd = self._cheatsheet.scanner_command([str(t) for t in targets])
        return self._tool_success(json.dumps({"command": cmd, "shell": " ".join(cmd)}, indent=2))

    def _tool_run_scanner(self, args: dict[str, Any]) -> dict[str, Any]:
        assert self._cheatsheet is not None
        targets = args.get("targets") or []
        if not isinstance(targets, list):
            return self._tool_error("'targets' must be a list of paths.")
        try:
            result = self._cheatsheet.scan([str(t) for t in targets])
        except SemgrepError as exc:
            return self._tool_error(str(exc))
        return self._tool_success(json.dumps(result.to_dict(), indent=2))

    # ------------------------------------------------------------------
    # Response helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _tool_success(text: str) -> dict[str, Any]:
        return {"content": [{"type": "text", "text": text}]}

    @staticmethod
    def _tool_error(message: str) -> dict[str, Any]:
        return {
            "content": [{"type": "text", "text": json.dumps({"error": message})}],
            "isError": True,
        }

    @staticmethod
    def _reply(msg_id: Any, result: Any = None, error: RpcError | None = None) -> None:
        response: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": msg_id}
        if error is not None:
            response["error"] = {"code": error.code, "message": error.message}
        else:
            response["result"] = result
        sys.stdout.write(json.dumps(response, ensure_ascii=False) + "\n")
        sys.stdout.flush()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Run the cheat sheet MCP server."""
    logger.info("Starting xsscheatsheet MCP server...")
    logger.info(
        "Config: XSSCHEATSHEET_FRAMEWORK=%r",
        os.environ.get("XSSCHEATSHEET_FRAMEWORK", "flask"),
    )

    try:
        server = XssCheatSheetMCPServer()
        server.run()
    except KeyboardInterrupt:
        logger.info("Server interrupted by user.")
        sys.exit(0)
    except Exception:
        logger.exception("Fatal error in MCP server.")
        sys.exit(1)


if __name__ == "__main__":
    main()
