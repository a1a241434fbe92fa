from typing import Any

from taskgraph_engine.core.errors import DanglingEdgeError, TaskNotFoundError, ValidationError
from taskgraph_engine.core.graph import build_graph
from taskgraph_engine.core.model import Edge, Task


def _task(tid: str, duration: Any = 1.0) -> Task:
    return Task(id=tid, title=f"Task {tid}", status="not_started", project_id="P", duration_hours=duration)


def test_adjacency_in_both_directions():
    g = build_graph(
        [_task("A"), _task("B"), _task("C")],
        [Edge("A", "B"), Edge("A", "C"), Edge("B", "C")],
        project_id="P",
    )
    assert g.successors("A") == ("B", "C")
    assert g.predecessors("C") == ("A", "B")
    assert g.predecessors("A") == ()
    assert g.successors("C") == ()
    assert g.task_ids == ("A", "B", "C")
    assert len(g) == 3
    assert g.edge_between("A", "B") is not None
    assert g.edge_between("B", "A") is None


def test_dangling_edge_is_rejected():
    try:
        build_graph([_task("A")], [Edge("A", "GHOST", id="DEP-9")])
        assert False, "expected DanglingEdgeError"
    except DanglingEdgeError as e:
        assert e.code == "E_DANGLING_EDGE"
        assert "GHOST" in e.message
        assert e.path == "DEP-9"


def test_self_loop_and_duplicate_pair_are_rejected():
    try:
        build_graph([_task("A")], [Edge("A", "A")])
        assert False, "expected ValidationError"
    except ValidationError as e:
        assert e.code == "E_SELF_LOOP"

    try:
        build_graph([_task("A"), _task("B")], [Edge("A", "B"), Edge("A", "B", "START_TO_START")])
        assert False, "expected ValidationError"
    except ValidationError as e:
        assert e.code == "E_DUPLICATE_EDGE"


def test_negative_duration_is_rejected_before_graph_work():
    try:
        build_graph([_task("A", duration=-1.0)], [])
        assert False, "expected ValidationError"
    except ValidationError as e:
        assert e.code == "E_INVALID_DURATION"


def test_missing_duration_is_zero_hours():
    g = build_graph([_task("A", duration=None)], [])
    assert g.task("A").duration_hours == 0.0


def test_non_numeric_duration_is_a_validation_error():
    for bad in ("3", True, float("nan")):
        try:
            build_graph([_task("A", duration=bad)], [])
            assert False, f"expected ValidationError for {bad!r}"
        except ValidationError as e:
            assert e.code == "E_INVALID_DURATION"
            assert e.path == "A.duration_hours"


def test_statuses_from_any_store_are_normalized():
    t = Task(id="A", title="Task A", status="COMPLETED", project_id="P")
    u = Task(id="B", title="Task B", status="In Progress", project_id="P")
    g = build_graph([t, u], [])
    assert g.task("A").status == "completed"
    assert g.task("B").status == "in_progress"



def test_unknown_task_lookup():
    g = build_graph([_task("A")], [], project_id="P")
    assert g.has_task("A")
    assert not g.has_task("Z")
    try:
        g.task("Z")
        assert False, "expected TaskNotFoundError"
    except TaskNotFoundError as e:
        assert e.code == "E_TASK_NOT_FOUND"


def test_edge_lookup_by_pair():
    g = build_graph([_task("A"), _task("B")], [Edge("A", "B", "START_TO_START", id="E1")])
    assert g.edge("A", "B").id == "E1"
    assert g.edge_between("B", "A") is None
    try:
        g.edge("B", "A")
        assert False, "expected KeyError"
    except KeyError:
        pass
