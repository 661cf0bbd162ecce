"""Task creation across deployments that disagree on the request encoding.

Encodings are tried in a fixed order against ``POST /executions/{id}/tasks``:

1. the fields as a JSON body
2. the fields wrapped under ``task`` as a JSON body
3. the fields form-encoded
4. the fields form-encoded as ``task[<field>]``

If none yields a task with a positive id, the execution listing is scanned
for a task with exactly the requested name.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Optional

from zentao_mcp.core.discovery import coerce_task_id
from zentao_mcp.core.errors import CreationError, ValidationError, ZentaoError
from zentao_mcp.core.models import CreateTaskRequest, Task, TaskStatus
from zentao_mcp.core.paginator import ExecutionTaskPaginator
from zentao_mcp.integrations.zentao import ZentaoClient

logger = logging.getLogger("zentao_mcp.negotiator")

FALLBACK_MAX_PAGES = 20


@dataclass(frozen=True)
class Encoding:
    name: str
    build: Callable[[dict[str, Any]], dict[str, Any]]


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _json_body(fields: dict[str, Any]) -> dict[str, Any]:
    return {"json_body": dict(fields)}


def _wrapped_json_body(fields: dict[str, Any]) -> dict[str, Any]:
    return {"json_body": {"task": dict(fields)}}


def _form_body(fields: dict[str, Any]) -> dict[str, Any]:
    return {"form": {key: _form_value(value) for key, value in fields.items() if value is not None}}


def _nested_form_body(fields: dict[str, Any]) -> dict[str, Any]:
    return {"form": {f"task[{key}]": _form_value(value) for key, value in fields.items() if value is not None}}


ENCODINGS: tuple[Encoding, ...] = (
    Encoding("json", _json_body),
    Encoding("wrapped-json", _wrapped_json_body),
    Encoding("form", _form_body),
    Encoding("nested-form", _nested_form_body),
)


def is_created_task(response: Any) -> bool:
    """A structured object whose ``id`` is a positive number."""
    if not isinstance(response, dict):
        return False
    value = response.get("id")
    if value is None or isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return not math.isnan(number) and number > 0


class TaskCreationNegotiator:
    def __init__(
        self,
        client: ZentaoClient,
        paginator: ExecutionTaskPaginator,
        encodings: tuple[Encoding, ...] = ENCODINGS,
    ) -> None:
        self.client = client
        self.paginator = paginator
        self.encodings = encodings

    def create_task(self, request: CreateTaskRequest) -> Task:
        execution_id = coerce_task_id(request.execution)
        if execution_id is None:
            raise ValidationError("create_task requires a positive integer execution id")

        path = f"/executions/{execution_id}/tasks"
        fields = request.fields()
        last_response: Any = None
        for encoding in self.encodings:
            try:
                response = self.client.request("POST", path, **encoding.build(fields))
            except ZentaoError as exc:
                logger.debug("create_task: %s encoding failed: %s", encoding.name, exc)
                continue
            last_response = response
            if is_created_task(response):
                logger.info("Created task %s in execution %s (%s encoding)", response["id"], execution_id, encoding.name)
                return response
            logger.debug("create_task: %s encoding returned no task id", encoding.name)

        matched = self.find_task_by_name(execution_id, request.name)
        if matched is not None:
            logger.info("create_task: matched task %s by name in execution %s", matched.get("id"), execution_id)
            return matched

        # Best-effort: a sparse success body beats failing outright, even
        # though it may not be a complete task.
        if isinstance(last_response, dict):
            logger.warning("create_task: returning response without a task id for execution %s", execution_id)
            return last_response

        raise CreationError(
            f"create_task: no encoding was accepted and no task named {request.name!r} "
            f"exists in execution {execution_id}"
        )

    def find_task_by_name(self, execution_id: int, name: str) -> Optional[Task]:
        pages = self.paginator.iter_pages(execution_id, TaskStatus.ALL, max_pages=FALLBACK_MAX_PAGES)
        for page in pages:
            for task in page.tasks:
                if isinstance(task, dict) and task.get("name") == name:
                    return task
        return None
