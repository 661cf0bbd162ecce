"""In-memory ZenTao backend served through httpx.MockTransport."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from urllib.parse import parse_qsl

import httpx

from zentao_mcp.core.config import Settings, ZentaoConfig

BASE = "http://zentao.test"


@dataclass
class Call:
    method: str
    path: str
    params: dict[str, str]
    content_type: str
    body: Any


@dataclass
class FakeZentao:
    executions: list[dict[str, Any]] = field(default_factory=list)
    # execution id -> list of tasks as the listing endpoint shows them
    execution_tasks: dict[int, list[dict[str, Any]]] = field(default_factory=dict)
    # task id -> detail payload (defaults to the listed task)
    details: dict[int, dict[str, Any]] = field(default_factory=dict)
    page_size: int = 100
    declare_total: bool = True
    lie_total: Optional[int] = None
    projects: list[dict[str, Any]] = field(default_factory=list)
    products: list[dict[str, Any]] = field(default_factory=list)
    bugs: list[dict[str, Any]] = field(default_factory=list)
    token_status: int = 200
    token_body: Any = None
    create_handler: Optional[Callable[[Call, int], httpx.Response]] = None
    calls: list[Call] = field(default_factory=list)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls_to(self, method: str, prefix: str) -> list[Call]:
        return [c for c in self.calls if c.method == method and c.path.startswith(prefix)]

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.split("/api.php/v1", 1)[-1]
        params = dict(request.url.params)
        content_type = request.headers.get("content-type", "")
        raw = request.content.decode("utf-8") if request.content else ""
        if "json" in content_type and raw:
            body: Any = json.loads(raw)
        elif raw:
            body = dict(parse_qsl(raw))
        else:
            body = None
        call = Call(request.method, path, params, content_type, body)
        self.calls.append(call)

        if path == "/tokens":
            if self.token_body is not None:
                return httpx.Response(self.token_status, json=self.token_body)
            return httpx.Response(self.token_status, json={"token": "tok-123"})
        if request.headers.get("Token") != "tok-123":
            return httpx.Response(401, json={"error": "unauthorized"})

        parts = [p for p in path.split("/") if p]
        if request.method == "GET" and parts == ["executions"]:
            return httpx.Response(200, json={"executions": self.executions})
        if len(parts) == 3 and parts[0] == "executions" and parts[2] == "tasks":
            execution_id = int(parts[1])
            if request.method == "POST":
                count = len(self.calls_to("POST", f"/executions/{execution_id}/tasks"))
                if self.create_handler is None:
                    return httpx.Response(500, json={"message": "no create handler"})
                return self.create_handler(call, count)
            return self._task_page(execution_id, int(params.get("page", "1")))
        if request.method == "GET" and parts == ["tasks"]:
            return httpx.Response(200, json={"tasks": self._all_listed()})
        if len(parts) == 2 and parts[0] == "tasks":
            task_id = int(parts[1])
            if request.method == "PUT":
                return httpx.Response(200, json={"id": task_id, **(body or {})})
            detail = self.details.get(task_id) or next(
                (t for t in self._all_listed() if t.get("id") == task_id), None
            )
            if detail is None:
                return httpx.Response(404, json={"message": "task not found"})
            return httpx.Response(200, json={"task": detail})
        if parts == ["projects"]:
            return httpx.Response(200, json={"projects": self.projects})
        if parts == ["products"]:
            return httpx.Response(200, json={"products": self.products})
        if parts == ["bugs"]:
            return httpx.Response(200, json={"bugs": self.bugs})
        if len(parts) == 2 and parts[0] == "bugs":
            bug_id = int(parts[1])
            if request.method == "PUT":
                return httpx.Response(200, json={"id": bug_id, **(body or {})})
            return httpx.Response(200, json={"bug": {"id": bug_id, "title": f"bug {bug_id}"}})
        return httpx.Response(404, json={"message": f"no route {request.method} {path}"})

    def _all_listed(self) -> list[dict[str, Any]]:
        return [t for tasks in self.execution_tasks.values() for t in tasks]

    def _task_page(self, execution_id: int, page: int) -> httpx.Response:
        tasks = self.execution_tasks.get(execution_id, [])
        start = (page - 1) * self.page_size
        body: dict[str, Any] = {"tasks": tasks[start:start + self.page_size]}
        if self.declare_total:
            body["total"] = self.lie_total if self.lie_total is not None else len(tasks)
            body["limit"] = self.page_size
        return httpx.Response(200, json=body)


def make_settings(tmp_path, **overrides: Any) -> Settings:
    values: dict[str, Any] = dict(
        log_level="info",
        log_dir=str(tmp_path / "logs"),
        data_dir=str(tmp_path / "data"),
        config_dir=str(tmp_path / "config"),
        cache_dir=str(tmp_path / "cache"),
        debug=False,
        api_version="v1",
        request_timeout=10.0,
        host="127.0.0.1",
        port=18791,
        mcp_token=None,
    )
    values.update(overrides)
    return Settings(**values)


def make_config() -> ZentaoConfig:
    return ZentaoConfig(url=BASE, username="alice", password="secret")


def tasks(*ids: int, prefix: str = "task") -> list[dict[str, Any]]:
    return [{"id": i, "name": f"{prefix} {i}", "status": "wait"} for i in ids]
