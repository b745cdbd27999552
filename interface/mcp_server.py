#!/usr/bin/env python3
"""MCP (Model Context Protocol) stdio server for the task graph.

Newline-delimited JSON-RPC 2.0 over stdin/stdout. Every tool result is a
single text block; failures set `isError` instead of raising, so one bad
call never takes the loop down. stdout carries protocol frames only; logs
go to stderr.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TextIO

from application.todo_store import TodoStore, format_todo_item
from core import TaskMarker
from infrastructure.digest_file_manager import DigestFileManager, dedupe_items
from infrastructure.task_line_parser import ParseError, TaskLineParser
from interface.tool_inputs import (
    AddSourceTodoInput,
    AddTodoInput,
    ListTodosInput,
    RemoveTodoInput,
    SyncSourceInput,
    ToolInputError,
    UpdateTodoInput,
)

logger = logging.getLogger("notanote.mcp")

MCP_VERSION = "2024-11-05"
SERVER_NAME = "logseq-todos"
SERVER_VERSION = "1.0.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request. `is_notification` is True when no id was sent."""

    jsonrpc: str
    method: str
    id: Optional[int | str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    is_notification: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JsonRpcRequest":
        return cls(
            jsonrpc=str(data.get("jsonrpc", "2.0") or "2.0"),
            method=str(data["method"]),
            id=data.get("id"),
            params=data.get("params", {}) if isinstance(data.get("params", {}), dict) else {},
            is_notification="id" not in data,
        )


def json_rpc_response(id: Optional[int | str], result: Any) -> Dict[str, Any]:
    """Create JSON-RPC success response."""
    return {"jsonrpc": "2.0", "id": id, "result": result}


def json_rpc_error(id: Optional[int | str], code: int, message: str, data: Any = None) -> Dict[str, Any]:
    """Create JSON-RPC error response."""
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": id, "error": error}


def tool_result(text: str, is_error: bool = False) -> Dict[str, Any]:
    result: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
    if is_error:
        result["isError"] = True
    return result


_MARKER_ENUM = TaskMarker.names()
_PRIORITY_SCHEMA = {
    "type": "string",
    "description": "Optional priority: 'A' (high), 'B' (medium), 'C' (low)",
    "enum": ["A", "B", "C"],
}
_SOURCE_SCHEMA = {
    "type": "string",
    "description": "The source type: 'linear' or 'pylon'",
    "enum": ["linear", "pylon"],
}
_EXPECTED_LINE_SCHEMA = {
    "type": "string",
    "description": "Optional raw text of the line as last listed. If the file changed, the nearest identical line is used; if none exists the call fails and the file is untouched.",
}

_TOOL_SPECS: Dict[str, Dict[str, Any]] = {
    "list_todos": {
        "description": "List todo items from the graph. Returns todos with their status, content, tags, page references, priority, and source file info.",
        "schema": {
            "type": "object",
            "properties": {
                "filter": {
                    "type": "string",
                    "description": "Filter mode: 'all', 'active' (default), 'today', 'overdue', 'done'",
                    "enum": ["all", "active", "today", "overdue", "done"],
                },
                "search": {"type": "string", "description": "Optional text search across content, tags, and page references"},
                "tag": {"type": "string", "description": "Optional: filter by specific tag (without #)"},
                "limit": {"type": "number", "description": "Max number of items to return (default: 50)"},
                "source": {
                    "type": "string",
                    "description": "Optional: filter by source ('manual', 'linear', 'pylon')",
                    "enum": ["manual", "linear", "pylon"],
                },
            },
            "required": [],
        },
    },
    "add_todo": {
        "description": "Add a new TODO item to today's journal file. The item is prepended to the journal as '- TODO <text>'.",
        "schema": {
            "type": "object",
            "properties": {
                "text": {"type": "string", "description": "The todo item text"},
                "priority": _PRIORITY_SCHEMA,
            },
            "required": ["text"],
        },
    },
    "update_todo": {
        "description": "Update the status of an existing todo item. Changes the marker (TODO/DONE/NOW/LATER/DOING/WAITING/CANCELLED) in the source file.",
        "schema": {
            "type": "object",
            "properties": {
                "file_path": {"type": "string", "description": "The full path to the markdown file containing the todo"},
                "line_number": {"type": "number", "description": "The 0-based line number of the todo in the file"},
                "new_status": {"type": "string", "description": "The new status marker", "enum": _MARKER_ENUM},
                "expected_line": _EXPECTED_LINE_SCHEMA,
            },
            "required": ["file_path", "line_number", "new_status"],
        },
    },
    "add_source_todo": {
        "description": "Add a TODO item to a source-specific digest page (pages/linear-digest.md or pages/pylon-digest.md). The item is tagged with the source and includes an optional tracking ID and URL.",
        "schema": {
            "type": "object",
            "properties": {
                "source": _SOURCE_SCHEMA,
                "text": {"type": "string", "description": "The todo item text (e.g. issue title)"},
                "source_id": {"type": "string", "description": "Optional tracking ID (e.g. Linear issue UUID or Pylon issue UUID)"},
                "url": {"type": "string", "description": "Optional URL to the item in its source app"},
                "identifier": {"type": "string", "description": "Optional short identifier (e.g. 'EXT-42' for Linear or '#491' for Pylon)"},
                "priority": _PRIORITY_SCHEMA,
            },
            "required": ["source", "text"],
        },
    },
    "remove_todo": {
        "description": "Remove a todo line from a file entirely. Use this to clean up stale items from digest files (e.g. when an issue was closed externally).",
        "schema": {
            "type": "object",
            "properties": {
                "file_path": {"type": "string", "description": "The full path to the markdown file containing the todo"},
                "line_number": {"type": "number", "description": "The 0-based line number of the todo to remove"},
                "expected_line": _EXPECTED_LINE_SCHEMA,
            },
            "required": ["file_path", "line_number"],
        },
    },
    "sync_source": {
        "description": "Replace the entire contents of a source digest file with the provided todo items. Wipes the file and writes all items fresh. The file is at pages/<source>-digest.md.",
        "schema": {
            "type": "object",
            "properties": {
                "source": _SOURCE_SCHEMA,
                "items": {
                    "type": "array",
                    "description": "Array of todo items to write",
                    "items": {
                        "type": "object",
                        "properties": {
                            "text": {"type": "string", "description": "The todo item text"},
                            "source_id": {"type": "string", "description": "Optional tracking ID"},
                            "url": {"type": "string", "description": "Optional URL to the item"},
                            "identifier": {"type": "string", "description": "Optional short identifier (e.g. 'EXT-42' or '#491')"},
                            "status": {
                                "type": "string",
                                "description": "Optional status marker (default: 'TODO')",
                                "enum": _MARKER_ENUM,
                            },
                            "priority": {"type": "string", "description": "Optional priority: 'A', 'B', 'C'", "enum": ["A", "B", "C"]},
                        },
                        "required": ["text"],
                    },
                },
            },
            "required": ["source", "items"],
        },
    },
}


def get_tool_definitions() -> List[Dict[str, Any]]:
    return [
        {"name": name, "description": spec["description"], "inputSchema": spec["schema"]}
        for name, spec in _TOOL_SPECS.items()
    ]


class MCPServer:
    """Exposes the graph's tasks and digest pages as MCP tools."""

    def __init__(
        self,
        graph_path: Path,
        digest_manager: Optional[DigestFileManager] = None,
        store: Optional[TodoStore] = None,
        today: Callable[[], date] = date.today,
    ):
        self.graph_path = Path(graph_path).expanduser()
        self.digest_manager = digest_manager or DigestFileManager(self.graph_path)
        self.store = store or TodoStore(self.graph_path, fs=self.digest_manager.fs, today=today)
        self.fs = self.digest_manager.fs
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
            "list_todos": self._list_todos,
            "add_todo": self._add_todo,
            "update_todo": self._update_todo,
            "add_source_todo": self._add_source_todo,
            "remove_todo": self._remove_todo,
            "sync_source": self._sync_source,
        }

    # ---------------------------------------------------------- framing

    def handle_line(self, line: str) -> Optional[Dict[str, Any]]:
        """Decode one input line and return the response frame, if any."""
        raw = line.strip()
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            return json_rpc_error(None, PARSE_ERROR, f"Parse error: {exc}")
        if not isinstance(data, dict) or not isinstance(data.get("method"), str):
            req_id = data.get("id") if isinstance(data, dict) else None
            return json_rpc_error(req_id, INVALID_REQUEST, "Invalid Request")
        return self.handle_request(JsonRpcRequest.from_dict(data))

    def handle_request(self, request: JsonRpcRequest) -> Optional[Dict[str, Any]]:
        response = self._dispatch(request)
        if request.is_notification:
            return None
        return response

    def _dispatch(self, request: JsonRpcRequest) -> Optional[Dict[str, Any]]:
        method = request.method
        if method == "initialize":
            return json_rpc_response(
                request.id,
                {
                    "protocolVersion": MCP_VERSION,
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
                },
            )
        if method == "notifications/initialized":
            return None
        if method == "ping":
            return json_rpc_response(request.id, {})
        if method == "tools/list":
            return json_rpc_response(request.id, {"tools": get_tool_definitions()})
        if method == "tools/call":
            return self._handle_tools_call(request.id, request.params)
        return json_rpc_error(request.id, METHOD_NOT_FOUND, f"Method not found: {method}")

    def _handle_tools_call(self, id: Optional[int | str], params: Dict[str, Any]) -> Dict[str, Any]:
        tool_name = params.get("name")
        if not isinstance(tool_name, str) or not tool_name:
            return json_rpc_error(id, INVALID_PARAMS, "Missing tool name")
        handler = self._handlers.get(tool_name)
        if handler is None:
            return json_rpc_error(id, INVALID_PARAMS, f"Unknown tool: {tool_name}")
        arguments = params.get("arguments", {})
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return json_rpc_error(id, INVALID_PARAMS, "arguments must be an object")
        try:
            result = handler(arguments)
        except ToolInputError as exc:
            result = tool_result(f"Error: {exc}", is_error=True)
        except (ParseError, OSError) as exc:
            result = tool_result(f"Error: {exc}", is_error=True)
        except Exception as exc:  # tool boundary: report, keep serving
            logger.exception("tool %s failed", tool_name)
            result = tool_result(f"Error: {exc}", is_error=True)
        return json_rpc_response(id, result)

    # ------------------------------------------------------------ tools

    def _graph_file(self, file_path: str) -> Path:
        path = Path(file_path).expanduser()
        root = self.graph_path.resolve()
        resolved = path.resolve()
        if resolved != root and root not in resolved.parents:
            raise ToolInputError(f"{file_path} is outside the graph at {self.graph_path}")
        return path

    def _list_todos(self, args: Dict[str, Any]) -> Dict[str, Any]:
        inp = ListTodosInput.from_arguments(args)
        items = self.store.query(inp.filter, search=inp.search, tag=inp.tag, source=inp.source, limit=inp.limit)
        if not items:
            return tool_result(f"No todos found matching filter '{inp.filter.value}'")
        today = self.store.today()
        output = [format_todo_item(item, today) for item in items]
        return tool_result(f"{len(output)} todo(s) found:\n\n" + "\n---\n".join(output))

    def _add_todo(self, args: Dict[str, Any]) -> Dict[str, Any]:
        inp = AddTodoInput.from_arguments(args)
        path, line = self.store.add_to_journal(inp.text, inp.priority)
        return tool_result(f"Added to {path.name}:\n{line}")

    def _update_todo(self, args: Dict[str, Any]) -> Dict[str, Any]:
        inp = UpdateTodoInput.from_arguments(args)
        path = self._graph_file(inp.file_path)
        TaskLineParser.update_task_marker(path, inp.line_number, inp.new_status, expected_line=inp.expected_line, fs=self.fs)
        return tool_result(f"Updated line {inp.line_number} in {path.name} to {inp.new_status.value}")

    def _remove_todo(self, args: Dict[str, Any]) -> Dict[str, Any]:
        inp = RemoveTodoInput.from_arguments(args)
        path = self._graph_file(inp.file_path)
        removed = TaskLineParser.remove_line(path, inp.line_number, expected_line=inp.expected_line, fs=self.fs)
        return tool_result(f"Removed line {inp.line_number} from {path.name}:\n{removed}")

    def _add_source_todo(self, args: Dict[str, Any]) -> Dict[str, Any]:
        inp = AddSourceTodoInput.from_arguments(args)
        filename = self.digest_manager.digest_file_path(inp.source).name
        line, added = self.digest_manager.append_item(inp.source, inp.item)
        if not added:
            return tool_result(
                f"Skipped: item with {inp.source} ID {inp.item.source_id} already exists in {filename}"
            )
        return tool_result(f"Added to {filename}:\n{line}")

    def _sync_source(self, args: Dict[str, Any]) -> Dict[str, Any]:
        inp = SyncSourceInput.from_arguments(args)
        items, skipped = dedupe_items(inp.items)
        lines = [self.digest_manager.build_source_line(item, inp.source) for item in items]
        path = self.digest_manager.sync_items(inp.source, lines)
        message = f"Synced {len(lines)} item(s) to {path.name}"
        if skipped:
            message += f" ({skipped} duplicate(s) skipped)"
        return tool_result(message)


def run_stdio(
    graph_path: Path,
    *,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    server: Optional[MCPServer] = None,
) -> int:
    """Run the server over stdio (newline-delimited JSON-RPC) until EOF."""
    server = server or MCPServer(graph_path)
    source = stdin or sys.stdin
    sink = stdout or sys.stdout
    logger.info("MCP server ready (graph=%s)", server.graph_path)
    for line in source:
        out = server.handle_line(line)
        if out is None:
            continue
        sink.write(json.dumps(out, ensure_ascii=False, separators=(",", ":")) + "\n")
        sink.flush()
    return 0


__all__ = [
    "MCPServer",
    "JsonRpcRequest",
    "json_rpc_response",
    "json_rpc_error",
    "tool_result",
    "get_tool_definitions",
    "run_stdio",
    "MCP_VERSION",
    "SERVER_NAME",
]
