from __future__ import annotations

import logging

from zentao_mcp.core.discovery import HiddenTaskDiscoverer, coerce_task_id
from zentao_mcp.core.models import Execution, Task, TaskStatus
from zentao_mcp.core.paginator import ExecutionTaskPaginator
from zentao_mcp.integrations.zentao import ZentaoClient

logger = logging.getLogger("zentao_mcp.aggregator")


def filter_executions(
    executions: list[Execution],
    execution_id: int | None = None,
    project_id: int | None = None,
) -> list[Execution]:
    """Narrow by exact execution id, else by project (own id or owning project)."""
    if execution_id:
        return [e for e in executions if coerce_task_id(e.get("id")) == execution_id]
    if project_id:
        return [
            e for e in executions
            if coerce_task_id(e.get("id")) == project_id or coerce_task_id(e.get("project")) == project_id
        ]
    return list(executions)


class TaskAggregator:
    """Team-wide task listing assembled from every execution."""

    def __init__(
        self,
        client: ZentaoClient,
        paginator: ExecutionTaskPaginator,
        discoverer: HiddenTaskDiscoverer,
    ) -> None:
        self.client = client
        self.paginator = paginator
        self.discoverer = discoverer

    def list_executions(self) -> list[Execution]:
        executions = self.client.get_list("/executions", "executions", required=False)
        return [e for e in executions if isinstance(e, dict) and e.get("id") is not None]

    def collect(
        self,
        status: TaskStatus | str = TaskStatus.ALL,
        execution_id: int | None = None,
        project_id: int | None = None,
        limit: int | None = None,
    ) -> list[Task]:
        limit = limit if limit and limit > 0 else None
        executions = filter_executions(self.list_executions(), execution_id, project_id)
        logger.debug("Aggregating tasks over %s executions (limit=%s)", len(executions), limit)

        tasks: list[Task] = []
        seen: set[int] = set()
        for execution in executions:
            for task in self.paginator.fetch_all_tasks(execution["id"], status):
                task_id = coerce_task_id(task.get("id")) if isinstance(task, dict) else None
                if task_id is not None:
                    if task_id in seen:
                        continue
                    seen.add(task_id)
                tasks.append(task)
                if limit and len(tasks) >= limit:
                    return tasks[:limit]

        return self.discoverer.expand(tasks, seen, limit)
