from __future__ import annotations

from datetime import datetime, timezone
import logging
import time
from typing import Any, Callable, Optional

import httpx

from zentao_mcp.core.aggregator import TaskAggregator, filter_executions
from zentao_mcp.core.config import Settings, ZentaoConfig
from zentao_mcp.core.discovery import HiddenTaskDiscoverer
from zentao_mcp.core.errors import ResponseShapeError, ZentaoError
from zentao_mcp.core.models import (
    BugResolution,
    BugStatus,
    CreateTaskRequest,
    Execution,
    Project,
    Task,
    TaskFinish,
    TaskStatus,
    TaskUpdate,
)
from zentao_mcp.core.negotiator import TaskCreationNegotiator
from zentao_mcp.core.paginator import ExecutionTaskPaginator
from zentao_mcp.core.project_cache import TieredProjectCache
from zentao_mcp.integrations.zentao import ZentaoClient

logger = logging.getLogger("zentao_mcp.session")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ZentaoSession:
    """One backend session: cached token, cached projects, all operations.

    Build one per process and pass it around; nothing here is reset short
    of constructing a new session.
    """

    def __init__(
        self,
        config: ZentaoConfig,
        settings: Settings,
        transport: httpx.BaseTransport | None = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config
        self.settings = settings
        self.client = ZentaoClient(config, timeout=settings.request_timeout, transport=transport)
        self.paginator = ExecutionTaskPaginator(self.client)
        self.discoverer = HiddenTaskDiscoverer(self.get_task_detail)
        self.aggregator = TaskAggregator(self.client, self.paginator, self.discoverer)
        self.negotiator = TaskCreationNegotiator(self.client, self.paginator)
        self.project_cache = TieredProjectCache(settings.projects_cache_path, clock=clock or time.time)

    def close(self) -> None:
        self.client.close()

    # ── Tasks ────────────────────────────────────────────────

    def get_my_tasks(
        self,
        status: TaskStatus | str = TaskStatus.ALL,
        include_all: bool = False,
        execution_id: int | None = None,
        project_id: int | None = None,
        limit: int | None = None,
    ) -> list[Task]:
        if include_all:
            return self.aggregator.collect(status, execution_id=execution_id, project_id=project_id, limit=limit)
        status_value = status.value if isinstance(status, TaskStatus) else status
        return self.client.get_list(
            "/tasks", "tasks",
            params={"assignedTo": self.client.username, "status": status_value},
            required=False,
        )

    def get_task_detail(self, task_id: int) -> Task:
        logger.debug("Fetching task %s", task_id)
        return self.client.get_object(f"/tasks/{task_id}", "task")

    def update_task(self, task_id: int, update: TaskUpdate) -> Task:
        body = {**update.fields(), "assignedTo": self.client.username}
        logger.info("Updating task %s", task_id)
        return self.client.request("PUT", f"/tasks/{task_id}", json_body=body)

    def finish_task(self, task_id: int, finish: TaskFinish | None = None) -> Task:
        fields: dict[str, Any] = finish.fields() if finish is not None else {}
        fields.update(status=TaskStatus.DONE, finishedDate=_now_iso())
        return self.update_task(task_id, TaskUpdate.model_validate(fields))

    def create_task(self, request: CreateTaskRequest) -> Task:
        return self.negotiator.create_task(request)

    # ── Projects, products, executions ───────────────────────

    def get_projects(self, refresh: bool = False, ttl_seconds: float | None = None) -> list[Project]:
        return self.project_cache.resolve(self._fetch_projects, refresh=refresh, ttl_seconds=ttl_seconds)

    def _fetch_projects(self) -> list[Project]:
        return self.client.get_list("/projects", "projects")

    def get_products(self) -> list[dict[str, Any]]:
        return self.client.get_list("/products", "products")

    def get_executions(self, project_id: int | None = None) -> list[Execution]:
        executions = self.aggregator.list_executions()
        return filter_executions(executions, project_id=project_id)

    def get_project_task_count(self, project_id: int, status: TaskStatus | str = TaskStatus.ALL) -> int:
        executions = filter_executions(self.aggregator.list_executions(), project_id=project_id)
        count = 0
        for execution in executions:
            page = self.paginator.fetch_task_page(execution["id"], status, 1)
            count += int(page.declared_total) if page.declared_total is not None else len(page.tasks)
        return count

    # ── Bugs ─────────────────────────────────────────────────

    def get_my_bugs(self, status: BugStatus | str = BugStatus.ALL, product_id: int | None = None) -> list[dict[str, Any]]:
        if not product_id:
            products = self.get_products()
            if not products or not isinstance(products[0], dict) or "id" not in products[0]:
                raise ZentaoError("get_my_bugs: no product available, pass product_id")
            product_id = products[0]["id"]
            logger.debug("get_my_bugs: defaulting to product %s", product_id)
        params = {
            "assignedTo": self.client.username,
            "status": status.value if isinstance(status, BugStatus) else status,
            "product": product_id,
        }
        return self.client.get_list("/bugs", "bugs", params=params)

    def get_bug_detail(self, bug_id: int) -> dict[str, Any]:
        payload = self.client.request("GET", f"/bugs/{bug_id}")
        if isinstance(payload, dict):
            if isinstance(payload.get("bug"), dict):
                return payload["bug"]
            if isinstance(payload.get("id"), (int, float)) and not isinstance(payload.get("id"), bool):
                return payload
        raise ResponseShapeError(f"get_bug_detail {bug_id}: unexpected response", payload)

    def resolve_bug(self, bug_id: int, resolution: BugResolution) -> dict[str, Any]:
        body = {
            "status": "resolved",
            "assignedTo": self.client.username,
            **resolution.fields(),
            "resolvedDate": _now_iso(),
        }
        logger.info("Resolving bug %s as %s", bug_id, resolution.resolution)
        return self.client.request("PUT", f"/bugs/{bug_id}", json_body=body)
