from __future__ import annotations

from tests.fakes import tasks
from zentao_mcp.core.aggregator import filter_executions
from zentao_mcp.core.models import TaskStatus


def test_tasks_shared_between_executions_appear_once(session, backend) -> None:
    backend.executions = [{"id": 1, "project": 10}, {"id": 2, "project": 10}]
    backend.execution_tasks = {1: tasks(1, 2, 3), 2: tasks(3, 4, 2)}
    result = session.get_my_tasks(TaskStatus.ALL, include_all=True)
    assert [t["id"] for t in result] == [1, 2, 3, 4]


def test_limit_stops_network_calls(session, backend) -> None:
    backend.executions = [{"id": 1}, {"id": 2}]
    backend.execution_tasks = {1: tasks(1, 2, 3), 2: tasks(4, 5)}
    result = session.get_my_tasks(include_all=True, limit=2)
    assert [t["id"] for t in result] == [1, 2]
    assert backend.calls_to("GET", "/executions/2") == []
    assert backend.calls_to("GET", "/tasks/") == []


def test_hidden_children_are_added(session, backend) -> None:
    backend.executions = [{"id": 1}]
    backend.execution_tasks = {1: tasks(1, 2)}
    backend.details = {
        1: {"id": 1, "name": "parent", "children": [{"id": 50, "name": "hidden"}]},
        50: {"id": 50, "name": "hidden", "sons": ["51"]},
        51: {"id": 51, "name": "hidden grandchild"},
    }
    result = session.get_my_tasks(include_all=True)
    assert [t["id"] for t in result] == [1, 2, 50, 51]


def test_hidden_children_respect_limit(session, backend) -> None:
    backend.executions = [{"id": 1}]
    backend.execution_tasks = {1: tasks(1)}
    backend.details = {1: {"id": 1, "children": [50, 51, 52]}, 50: {"id": 50}, 51: {"id": 51}, 52: {"id": 52}}
    result = session.get_my_tasks(include_all=True, limit=3)
    assert [t["id"] for t in result] == [1, 50, 51]


def test_execution_filter_narrows_the_walk(session, backend) -> None:
    backend.executions = [{"id": 1, "project": 10}, {"id": 2, "project": 20}]
    backend.execution_tasks = {1: tasks(1), 2: tasks(2)}
    result = session.get_my_tasks(include_all=True, execution_id=2)
    assert [t["id"] for t in result] == [2]
    assert backend.calls_to("GET", "/executions/1/") == []


def test_filter_executions() -> None:
    executions = [{"id": 1, "project": 10}, {"id": 10}, {"id": 3, "project": "20"}]
    assert filter_executions(executions, execution_id=3) == [{"id": 3, "project": "20"}]
    assert filter_executions(executions, project_id=10) == [{"id": 1, "project": 10}, {"id": 10}]
    assert filter_executions(executions, project_id=20) == [{"id": 3, "project": "20"}]
    assert filter_executions(executions, execution_id=3, project_id=10) == [{"id": 3, "project": "20"}]
    assert filter_executions(executions) == executions


def test_my_tasks_without_include_all_uses_assignment_listing(session, backend) -> None:
    backend.execution_tasks = {1: tasks(1, 2)}
    result = session.get_my_tasks(TaskStatus.DOING)
    assert [t["id"] for t in result] == [1, 2]
    call = backend.calls_to("GET", "/tasks")[0]
    assert call.params == {"assignedTo": "alice", "status": "doing"}
    assert backend.calls_to("GET", "/executions") == []
