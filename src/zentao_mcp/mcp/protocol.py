"""MCP JSON-RPC protocol handler.

Implements the Model Context Protocol request/response cycle shared by the
HTTP (``POST /mcp``) and stdio transports, and maps tool calls onto a
``ZentaoSession``.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Optional

import httpx

from zentao_mcp import __version__
from zentao_mcp.core.audit import log_event
from zentao_mcp.core.config import Settings, ZentaoConfig, load_config
from zentao_mcp.core.errors import NotInitializedError
from zentao_mcp.core.logging_config import log_mcp_call
from zentao_mcp.core.models import BugResolution, BugStatus, CreateTaskRequest, TaskFinish, TaskStatus, TaskUpdate
from zentao_mcp.core.session import ZentaoSession

logger = logging.getLogger("zentao_mcp.mcp.protocol")

_TASK_STATUSES = [s.value for s in TaskStatus]
_BUG_STATUSES = [s.value for s in BugStatus]
_RESOLUTIONS = ["fixed", "notrepro", "duplicate", "bydesign", "willnotfix", "tostory", "external"]

_TASK_UPDATE_SCHEMA = {
    "type": "object",
    "properties": {
        "consumed": {"type": "number", "description": "Hours consumed"},
        "left": {"type": "number", "description": "Hours left"},
        "status": {"type": "string", "enum": _TASK_STATUSES},
        "finishedDate": {"type": "string"},
        "comment": {"type": "string"},
    },
}

_TASK_FINISH_SCHEMA = {
    "type": "object",
    "properties": {
        "consumed": {"type": "number", "description": "Hours consumed"},
        "left": {"type": "number", "description": "Hours left"},
        "comment": {"type": "string"},
    },
    "additionalProperties": False,
}

# ── Tool definitions (returned by tools/list) ────────────────────

TOOLS = [
    {
        "name": "init_zentao",
        "description": "Connect to ZenTao using the stored configuration. Must be called before any other tool.",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "get_my_tasks",
        "description": "List tasks assigned to me, or with include_all every task across executions, including sub-tasks hidden from listings.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "enum": _TASK_STATUSES},
                "include_all": {"type": "boolean", "description": "Aggregate team-wide tasks from every execution"},
                "execution_id": {"type": "integer", "minimum": 1},
                "project_id": {"type": "integer", "minimum": 1},
                "limit": {"type": "integer", "minimum": 1},
            },
        },
    },
    {
        "name": "get_task_detail",
        "description": "Fetch a single task by id.",
        "inputSchema": {
            "type": "object",
            "properties": {"task_id": {"type": "integer"}},
            "required": ["task_id"],
        },
    },
    {
        "name": "update_task",
        "description": "Update a task (hours, status, comment). The task is assigned to the configured user.",
        "inputSchema": {
            "type": "object",
            "properties": {"task_id": {"type": "integer"}, "update": _TASK_UPDATE_SCHEMA},
            "required": ["task_id", "update"],
        },
    },
    {
        "name": "finish_task",
        "description": "Mark a task done, stamping the finish date.",
        "inputSchema": {
            "type": "object",
            "properties": {"task_id": {"type": "integer"}, "update": _TASK_FINISH_SCHEMA},
            "required": ["task_id"],
        },
    },
    {
        "name": "create_task",
        "description": "Create a task in an execution.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "task": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "minLength": 1},
                        "desc": {"type": "string"},
                        "pri": {"type": "integer", "minimum": 1, "maximum": 4},
                        "estimate": {"type": "number"},
                        "project": {"type": "integer", "minimum": 1},
                        "execution": {"type": "integer", "minimum": 1},
                        "module": {"type": "integer"},
                        "story": {"type": "integer"},
                        "type": {"type": "string"},
                        "assignedTo": {"type": "string"},
                        "estStarted": {"type": "string"},
                        "deadline": {"type": "string"},
                    },
                    "required": ["name", "execution"],
                },
            },
            "required": ["task"],
        },
    },
    {
        "name": "get_products",
        "description": "List products.",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "get_projects",
        "description": "List projects. Cached for 24h; pass refresh to bypass the cache.",
        "inputSchema": {
            "type": "object",
            "properties": {"refresh": {"type": "boolean"}},
        },
    },
    {
        "name": "get_executions",
        "description": "List executions, optionally only those of one project.",
        "inputSchema": {
            "type": "object",
            "properties": {"project_id": {"type": "integer", "minimum": 1}},
        },
    },
    {
        "name": "get_project_task_count",
        "description": "Count a project's tasks across its executions.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "project_id": {"type": "integer", "minimum": 1},
                "status": {"type": "string", "enum": _TASK_STATUSES},
            },
            "required": ["project_id"],
        },
    },
    {
        "name": "get_my_bugs",
        "description": "List bugs assigned to me. Defaults to the first product when product_id is omitted.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "enum": _BUG_STATUSES},
                "product_id": {"type": "integer"},
            },
        },
    },
    {
        "name": "get_bug_detail",
        "description": "Fetch a single bug by id.",
        "inputSchema": {
            "type": "object",
            "properties": {"bug_id": {"type": "integer"}},
            "required": ["bug_id"],
        },
    },
    {
        "name": "resolve_bug",
        "description": "Resolve a bug.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "bug_id": {"type": "integer"},
                "resolution": {
                    "type": "object",
                    "properties": {
                        "resolution": {"type": "string", "enum": _RESOLUTIONS},
                        "resolvedBuild": {"type": "string"},
                        "duplicateBug": {"type": "integer"},
                        "comment": {"type": "string"},
                    },
                    "required": ["resolution"],
                },
            },
            "required": ["bug_id", "resolution"],
        },
    },
]


class MCPProtocolHandler:
    """Handles MCP JSON-RPC requests and dispatches tool calls."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
        config_loader: Callable[[Settings], Optional[ZentaoConfig]] = load_config,
    ) -> None:
        self.settings = settings
        self.transport = transport  # injected by tests to stand in for the backend
        self.config_loader = config_loader
        self.session: ZentaoSession | None = None

    def handle_request(self, body: dict[str, Any]) -> dict[str, Any]:
        """Process a single JSON-RPC request and return a JSON-RPC response.

        Notifications (no ``id``) get an empty dict back.
        """
        jsonrpc = body.get("jsonrpc", "2.0")
        method = body.get("method", "")
        params = body.get("params") or {}
        req_id = body.get("id")

        logger.info("MCP request: method=%s id=%s", method, req_id)
        try:
            result = self._dispatch(method, params)
        except Exception as exc:  # noqa: BLE001
            logger.error("MCP method %s failed: %s", method, exc)
            if req_id is None:
                return {}
            return self._error_response(req_id, -32603, str(exc))

        if req_id is None:
            return {}
        return {"jsonrpc": jsonrpc, "id": req_id, "result": result}

    def _dispatch(self, method: str, params: dict[str, Any]) -> Any:
        if method == "initialize":
            return self._handle_initialize(params)
        if method in ("initialized", "notifications/initialized"):
            return {}
        if method == "tools/list":
            return {"tools": TOOLS}
        if method == "tools/call":
            return self._handle_tools_call(params)
        if method == "ping":
            return {}
        raise ValueError(f"Unknown method: {method}")

    def _handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        return {
            "protocolVersion": "2025-03-26",
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": "zentao-mcp", "version": __version__},
        }

    def _handle_tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name", "")
        arguments = params.get("arguments") or {}
        logger.info("MCP tools/call: %s args=%s", name, json.dumps(arguments, default=str)[:200])
        t0 = time.monotonic()
        try:
            result = self._call_tool(name, arguments)
        except Exception as exc:  # noqa: BLE001
            duration_ms = (time.monotonic() - t0) * 1000
            logger.error("Tool %s failed: %s", name, exc)
            log_mcp_call("tools/call", tool_name=name, tool_args=arguments, error=str(exc), duration_ms=duration_ms)
            return {
                "content": [{"type": "text", "text": f"Error: {exc}"}],
                "isError": True,
            }
        duration_ms = (time.monotonic() - t0) * 1000
        log_mcp_call("tools/call", tool_name=name, tool_args=arguments, result=result, duration_ms=duration_ms)
        return {
            "content": [{"type": "text", "text": json.dumps(result, indent=2, ensure_ascii=False, default=str)}],
            "isError": False,
        }

    def _call_tool(self, name: str, args: dict[str, Any]) -> Any:
        if name == "init_zentao":
            return self._tool_init_zentao(args)
        if name == "get_my_tasks":
            return self._require_session().get_my_tasks(
                status=TaskStatus(args.get("status") or TaskStatus.ALL.value),
                include_all=bool(args.get("include_all")),
                execution_id=args.get("execution_id"),
                project_id=args.get("project_id"),
                limit=args.get("limit"),
            )
        if name == "get_task_detail":
            return self._require_session().get_task_detail(int(args["task_id"]))
        if name == "update_task":
            return self._tool_update_task(args)
        if name == "finish_task":
            return self._tool_finish_task(args)
        if name == "create_task":
            return self._tool_create_task(args)
        if name == "get_products":
            return self._require_session().get_products()
        if name == "get_projects":
            return self._require_session().get_projects(refresh=bool(args.get("refresh")))
        if name == "get_executions":
            return self._require_session().get_executions(project_id=args.get("project_id"))
        if name == "get_project_task_count":
            return self._tool_get_project_task_count(args)
        if name == "get_my_bugs":
            return self._require_session().get_my_bugs(
                status=BugStatus(args.get("status") or BugStatus.ALL.value),
                product_id=args.get("product_id"),
            )
        if name == "get_bug_detail":
            return self._require_session().get_bug_detail(int(args["bug_id"]))
        if name == "resolve_bug":
            return self._tool_resolve_bug(args)
        raise ValueError(f"Unknown tool: {name}")

    def _require_session(self) -> ZentaoSession:
        if self.session is None:
            raise NotInitializedError("ZenTao is not initialized; call init_zentao first")
        return self.session

    def _audit(self, action: str, payload: dict[str, Any]) -> None:
        log_event(self.settings.data_dir, action, payload)

    # ── Tool implementations ──────────────────────────────

    def _tool_init_zentao(self, args: dict[str, Any]) -> dict:
        config = self.config_loader(self.settings)
        if config is None:
            raise ValueError("No configuration found. Run `zentao-mcp configure` or set ZENTAO_URL/USERNAME/PASSWORD.")
        if self.session is not None:
            self.session.close()
        self.session = ZentaoSession(config, self.settings, transport=self.transport)
        logger.info("ZenTao session initialized for %s at %s", config.username, config.url)
        return config.public_view()

    def _tool_update_task(self, args: dict[str, Any]) -> dict:
        task_id = int(args["task_id"])
        update = TaskUpdate.model_validate(args.get("update") or {})
        task = self._require_session().update_task(task_id, update)
        self._audit("task.update", {"task_id": task_id, **update.fields()})
        return task

    def _tool_finish_task(self, args: dict[str, Any]) -> dict:
        task_id = int(args["task_id"])
        finish = TaskFinish.model_validate(args["update"]) if args.get("update") else None
        task = self._require_session().finish_task(task_id, finish)
        self._audit("task.finish", {"task_id": task_id})
        return task

    def _tool_create_task(self, args: dict[str, Any]) -> dict:
        request = CreateTaskRequest.model_validate(args["task"])
        task = self._require_session().create_task(request)
        self._audit("task.create", {
            "execution": request.execution,
            "name": request.name,
            "task_id": task.get("id") if isinstance(task, dict) else None,
        })
        return task

    def _tool_get_project_task_count(self, args: dict[str, Any]) -> dict:
        project_id = int(args["project_id"])
        status = TaskStatus(args.get("status") or TaskStatus.ALL.value).value
        count = self._require_session().get_project_task_count(project_id, status)
        return {"project_id": project_id, "status": status, "task_count": count}

    def _tool_resolve_bug(self, args: dict[str, Any]) -> dict:
        bug_id = int(args["bug_id"])
        resolution = BugResolution.model_validate(args["resolution"])
        bug = self._require_session().resolve_bug(bug_id, resolution)
        self._audit("bug.resolve", {"bug_id": bug_id, **resolution.fields()})
        return bug

    @staticmethod
    def _error_response(req_id: Any, code: int, message: str) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": req_id, "error": {"code": code, "message": message}}
