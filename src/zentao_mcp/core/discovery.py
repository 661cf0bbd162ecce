"""Discovery of child tasks hidden from execution listings.

Some deployments leave sub-tasks out of ``/executions/{id}/tasks``; their
ids only show up somewhere inside the parent's detail payload.
"""
from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from zentao_mcp.core.errors import ZentaoError
from zentao_mcp.core.models import Task

logger = logging.getLogger("zentao_mcp.discovery")

CHILD_KEYS = ("children", "childTasks", "subTasks", "subtasks", "tasks", "sons")


def coerce_task_id(value: Any) -> Optional[int]:
    """Return ``value`` as a positive integer id, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and value > 0:
            return int(value)
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return coerce_task_id(int(text))
        except ValueError:
            pass
        try:
            return coerce_task_id(float(text))
        except ValueError:
            return None
    return None


def _walk(value: Any, found: dict[int, None]) -> None:
    if value is None:
        return
    if isinstance(value, list):
        for item in value:
            _walk(item, found)
        return
    if isinstance(value, dict):
        if "id" in value:
            _add(value["id"], found)
        for item in value.values():
            _walk(item, found)
        return
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        _add(value, found)


def _add(value: Any, found: dict[int, None]) -> None:
    task_id = coerce_task_id(value)
    if task_id is not None:
        found[task_id] = None


def discover_children(detail: Any) -> list[int]:
    """Candidate child ids found beneath the known child keys.

    Unique, in discovery order.
    """
    if not isinstance(detail, dict):
        return []
    found: dict[int, None] = {}
    for key in CHILD_KEYS:
        if key in detail:
            _walk(detail[key], found)
    return list(found)


@dataclass
class DiscoveryQueue:
    """Seen ids plus a FIFO of ids still to expand."""

    seen: set[int] = field(default_factory=set)
    processed: set[int] = field(default_factory=set)
    pending: deque = field(default_factory=deque)

    def enqueue(self, task_id: int) -> None:
        self.pending.append(task_id)

    def next(self) -> Optional[int]:
        """Pop the next unprocessed id and mark it processed."""
        while self.pending:
            task_id = self.pending.popleft()
            if task_id in self.processed:
                continue
            self.processed.add(task_id)
            return task_id
        return None


class HiddenTaskDiscoverer:
    def __init__(self, fetch_detail: Callable[[int], Task]) -> None:
        self.fetch_detail = fetch_detail

    def expand(
        self,
        seed_tasks: Iterable[Task],
        already_seen: set[int],
        limit: int | None = None,
    ) -> list[Task]:
        """Append hidden child tasks reachable from ``seed_tasks``.

        ``already_seen`` is updated in place. Fetch failures skip that id.
        The result is truncated to ``limit`` as soon as it is reached.
        """
        result = list(seed_tasks)
        if limit and len(result) >= limit:
            return result[:limit]
        queue = DiscoveryQueue(seen=already_seen)
        for task in result:
            task_id = coerce_task_id(task.get("id")) if isinstance(task, dict) else None
            if task_id is not None:
                queue.enqueue(task_id)
        details: dict[int, Task] = {}

        while True:
            task_id = queue.next()
            if task_id is None:
                break
            detail = details.get(task_id)
            if detail is None:
                detail = self._fetch(task_id)
                if detail is None:
                    continue
                details[task_id] = detail

            for child_id in discover_children(detail):
                if child_id in queue.seen:
                    continue
                child = self._fetch(child_id)
                if child is None:
                    continue
                queue.seen.add(child_id)
                result.append(child)
                details[child_id] = child
                queue.enqueue(child_id)
                logger.debug("Discovered hidden task %s under %s", child_id, task_id)
                if limit and len(result) >= limit:
                    return result[:limit]
        return result

    def _fetch(self, task_id: int) -> Optional[Task]:
        try:
            return self.fetch_detail(task_id)
        except ZentaoError as exc:
            logger.debug("Skipping task %s: %s", task_id, exc)
            return None
