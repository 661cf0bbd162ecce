from __future__ import annotations

import pytest

from zentao_mcp.core.discovery import (
    DiscoveryQueue,
    HiddenTaskDiscoverer,
    coerce_task_id,
    discover_children,
)
from zentao_mcp.core.errors import RequestError


@pytest.mark.parametrize(
    "value,expected",
    [
        (5, 5),
        ("12", 12),
        (" 8 ", 8),
        (3.0, 3),
        ("4.0", 4),
        (0, None),
        (-2, None),
        (2.5, None),
        ("abc", None),
        ("", None),
        (True, None),
        (None, None),
    ],
)
def test_coerce_task_id(value, expected) -> None:
    assert coerce_task_id(value) == expected


def test_discover_children_walks_only_known_keys() -> None:
    detail = {
        "id": 1,
        "parent": 99,
        "children": [{"id": 2, "name": "child"}, "3"],
        "sons": {"10": {"id": 4, "meta": {"deep": [5]}}},
        "subTasks": 6,
        "related": [77],
    }
    found = discover_children(detail)
    assert set(found) == {2, 3, 4, 5, 6}
    assert 99 not in found and 77 not in found and 10 not in found
    assert len(found) == len(set(found))


def test_discover_children_ignores_non_objects() -> None:
    assert discover_children(None) == []
    assert discover_children([1, 2]) == []
    assert discover_children({"children": None, "tasks": [None, True, "x"]}) == []


def test_discovery_queue_processes_each_id_once() -> None:
    queue = DiscoveryQueue()
    for task_id in (1, 2, 1):
        queue.enqueue(task_id)
    assert [queue.next(), queue.next(), queue.next()] == [1, 2, None]


def _fetcher(graph: dict[int, dict], calls: list[int]):
    def fetch(task_id: int) -> dict:
        calls.append(task_id)
        if task_id not in graph:
            raise RequestError(f"task {task_id} not found", status_code=404)
        return graph[task_id]
    return fetch


def test_expand_is_cycle_safe() -> None:
    graph = {
        1: {"id": 1, "name": "A", "children": [{"id": 2}]},
        2: {"id": 2, "name": "B", "children": [{"id": 1}]},
    }
    calls: list[int] = []
    seen = {1}
    result = HiddenTaskDiscoverer(_fetcher(graph, calls)).expand([{"id": 1, "name": "A"}], seen)
    assert [t["id"] for t in result] == [1, 2]
    assert seen == {1, 2}
    assert calls.count(2) == 1


def test_expand_skips_inaccessible_children() -> None:
    graph = {
        1: {"id": 1, "children": [404, 3]},
        3: {"id": 3},
    }
    calls: list[int] = []
    result = HiddenTaskDiscoverer(_fetcher(graph, calls)).expand([{"id": 1}], {1})
    assert [t["id"] for t in result] == [1, 3]


def test_expand_skips_seed_whose_detail_fails() -> None:
    graph = {2: {"id": 2, "children": [5]}, 5: {"id": 5}}
    calls: list[int] = []
    result = HiddenTaskDiscoverer(_fetcher(graph, calls)).expand([{"id": 1}, {"id": 2}], {1, 2})
    assert [t["id"] for t in result] == [1, 2, 5]


def test_expand_finds_grandchildren_and_honours_limit() -> None:
    graph = {
        1: {"id": 1, "children": [2, 3]},
        2: {"id": 2, "children": [4]},
        3: {"id": 3},
        4: {"id": 4},
    }
    full = HiddenTaskDiscoverer(_fetcher(graph, [])).expand([{"id": 1}], {1})
    assert [t["id"] for t in full] == [1, 2, 3, 4]

    calls: list[int] = []
    capped = HiddenTaskDiscoverer(_fetcher(graph, calls)).expand([{"id": 1}], {1}, limit=2)
    assert [t["id"] for t in capped] == [1, 2]
    assert 3 not in calls
