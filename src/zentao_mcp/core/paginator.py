"""Execution-scoped task listing, page by page."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from zentao_mcp.core.errors import ResponseShapeError
from zentao_mcp.core.models import Task, TaskStatus
from zentao_mcp.integrations.zentao import ZentaoClient

logger = logging.getLogger("zentao_mcp.paginator")

DEFAULT_PAGE_SIZE = 100


def _positive_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or number <= 0:
        return None
    return number


@dataclass
class TaskPage:
    tasks: list[Task] = field(default_factory=list)
    declared_total: Optional[float] = None
    declared_page_size: Optional[float] = None

    @property
    def page_size(self) -> float:
        return self.declared_page_size or DEFAULT_PAGE_SIZE

    @property
    def total(self) -> float:
        return self.declared_total or len(self.tasks)

    def is_last(self, page: int) -> bool:
        # Without total/limit metadata this stops after one page.
        return not self.tasks or page * self.page_size >= self.total


class ExecutionTaskPaginator:
    def __init__(self, client: ZentaoClient) -> None:
        self.client = client

    def fetch_task_page(self, execution_id: int, status: TaskStatus | str, page: int) -> TaskPage:
        path = f"/executions/{execution_id}/tasks"
        payload = self.client.request("GET", path, params={"status": _status_value(status), "page": page})
        if not isinstance(payload, dict):
            raise ResponseShapeError(f"GET {path} page {page}: expected an object", payload)
        tasks = payload.get("tasks")
        return TaskPage(
            tasks=tasks if isinstance(tasks, list) else [],
            declared_total=_positive_number(payload.get("total")),
            declared_page_size=_positive_number(payload.get("limit")),
        )

    def iter_pages(
        self,
        execution_id: int,
        status: TaskStatus | str,
        max_pages: int | None = None,
    ) -> Iterator[TaskPage]:
        page = 1
        while max_pages is None or page <= max_pages:
            result = self.fetch_task_page(execution_id, status, page)
            logger.debug(
                "Execution %s page %s: %s tasks (total=%s limit=%s)",
                execution_id, page, len(result.tasks), result.declared_total, result.declared_page_size,
            )
            yield result
            if result.is_last(page):
                return
            page += 1

    def fetch_all_tasks(self, execution_id: int, status: TaskStatus | str) -> Iterator[Task]:
        """Lazily yield every task of one execution.

        Each call re-walks from page 1; pages are fetched only as the
        caller consumes them.
        """
        for result in self.iter_pages(execution_id, status):
            yield from result.tasks


def _status_value(status: TaskStatus | str) -> str:
    return status.value if isinstance(status, TaskStatus) else str(status)
