import random

from taskgraph_engine.core.cpm.critical_path import compute_critical_path, topological_order
from taskgraph_engine.core.errors import InvariantViolationError
from taskgraph_engine.core.graph import build_graph
from taskgraph_engine.core.model import Edge, Task


def _graph(durations: dict[str, float], pairs):
    tasks = [
        Task(id=tid, title=f"Task {tid}", status="not_started", project_id="P", duration_hours=d)
        for tid, d in durations.items()
    ]
    return build_graph(tasks, [Edge(p, s) for p, s in pairs], project_id="P")


def test_linear_chain_is_entirely_critical():
    g = _graph({"A": 2, "B": 3, "C": 5}, [("A", "B"), ("B", "C")])
    report = compute_critical_path(g)

    assert report.schedule_for("C").earliest_finish == 10
    assert report.total_duration == 10
    assert report.critical_path == ["A", "B", "C"]
    assert all(s.slack == 0 and s.is_critical for s in report.tasks)


def test_diamond():
    g = _graph({"A": 1, "B": 5, "C": 2, "D": 1}, [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")])
    report = compute_critical_path(g)

    d = report.schedule_for("D")
    c = report.schedule_for("C")
    assert d.earliest_start == 6
    assert report.total_duration == 7
    assert report.critical_path == ["A", "B", "D"]
    assert c.earliest_finish == 3
    assert c.latest_start == 4
    assert c.latest_finish == 6
    assert c.slack == 3
    assert not c.is_critical


def test_backward_pass_takes_minimum_over_all_successors():
    # A feeds a short branch (B) and a long one (C -> E). A's latest finish
    # must come from the long branch whatever order successors are listed in.
    durations = {"A": 1, "B": 1, "C": 4, "E": 4, "F": 1}
    pairs = [("A", "B"), ("A", "C"), ("C", "E"), ("B", "F"), ("E", "F")]
    report = compute_critical_path(_graph(durations, pairs))
    a = report.schedule_for("A")
    assert a.latest_finish == 1
    assert a.slack == 0
    assert report.schedule_for("B").slack == 7
    assert report.critical_path == ["A", "C", "E", "F"]


def test_empty_graph():
    report = compute_critical_path(_graph({}, []))
    assert report.critical_path == []
    assert report.total_duration == 0
    assert report.tasks == []


def test_disconnected_components_share_one_completion_time():
    g = _graph({"A": 2, "B": 2, "X": 10, "Solo": 1}, [("A", "B")])
    report = compute_critical_path(g)
    assert report.total_duration == 10
    assert report.critical_path == ["X"]
    assert report.schedule_for("B").slack == 6
    assert report.schedule_for("Solo").slack == 9


def test_zero_duration_tasks():
    g = _graph({"Start": 0, "Work": 4, "Milestone": 0}, [("Start", "Work"), ("Work", "Milestone")])
    report = compute_critical_path(g)
    assert report.total_duration == 4
    assert report.critical_path == ["Start", "Work", "Milestone"]


def test_fractional_durations_are_not_rounded():
    g = _graph({"A": 0.1, "B": 0.2, "C": 0.25}, [("A", "B")])
    report = compute_critical_path(g)
    assert report.schedule_for("B").earliest_finish == 0.1 + 0.2
    assert report.critical_path == ["A", "B"]
    assert not report.schedule_for("C").is_critical


def test_idempotent():
    g = _graph({"A": 1, "B": 5, "C": 2, "D": 1}, [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")])
    assert compute_critical_path(g) == compute_critical_path(g)


def test_slack_is_never_negative_on_random_dags():
    rng = random.Random(99)
    for _ in range(60):
        n = rng.randint(1, 25)
        ids = [f"T{i:02d}" for i in range(n)]
        durations = {tid: rng.choice([0, 0.5, 1, 2.25, 3, 8, rng.uniform(0, 10)]) for tid in ids}
        pairs = [(ids[i], ids[j]) for i in range(n) for j in range(i + 1, n) if rng.random() < 0.25]
        rng.shuffle(pairs)
        report = compute_critical_path(_graph(durations, pairs))

        assert all(s.slack >= -1e-9 for s in report.tasks)
        assert report.critical_path, "every non-empty DAG has a critical task"
        finishes = [report.schedule_for(t).earliest_finish for t in report.critical_path]
        assert max(finishes) == report.total_duration
        for p, s in pairs:
            assert report.schedule_for(s).earliest_start >= report.schedule_for(p).earliest_finish


def test_topological_order_respects_edges():
    g = _graph({"C": 1, "B": 1, "A": 1}, [("A", "B"), ("B", "C")])
    assert topological_order(g) == ["A", "B", "C"]


def test_cycle_that_slipped_through_is_an_internal_fault():
    g = _graph({"A": 1, "B": 1, "C": 1}, [("A", "B"), ("B", "C"), ("C", "B")])
    try:
        compute_critical_path(g)
        assert False, "expected InvariantViolationError"
    except InvariantViolationError as e:
        assert e.code == "E_INVARIANT_CYCLE"
        assert "B" in e.message and "C" in e.message
