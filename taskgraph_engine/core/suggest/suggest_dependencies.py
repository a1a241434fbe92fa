from __future__ import annotations

from collections import deque
from typing import Callable, Optional

from taskgraph_engine.core.config import EngineConfig
from taskgraph_engine.core.graph.build_graph import DependencyGraph
from taskgraph_engine.core.model import Suggestion, Task


# Heuristics, in the order their reasons are reported:
# - same sub-scope
# - candidate type is one step before the task type in the canonical sequence
# - same assignee


def suggest_dependencies(
    graph: DependencyGraph,
    task_id: str,
    limit: Optional[int] = None,
    config: Optional[EngineConfig] = None,
) -> list[Suggestion]:
    """Rank tasks that could plausibly become predecessors of task_id.

    Tasks already related to task_id in either direction (directly or
    transitively) are skipped: ancestors are implied already and descendants
    would close a cycle. Candidates with no matching heuristic are dropped.
    Best effort: an empty list is a normal answer.
    """
    cfg = config or EngineConfig()
    cap = cfg.suggestion_limit if limit is None else limit
    task = graph.task(task_id)
    if cap <= 0:
        return []

    related = _reachable(graph.predecessors, task_id) | _reachable(graph.successors, task_id)

    out: list[Suggestion] = []
    for cid in graph.task_ids:
        if cid == task_id or cid in related:
            continue
        candidate = graph.tasks_by_id[cid]
        score, reasons = _score(task, candidate, cfg)
        if score > 0:
            out.append(Suggestion(task=candidate, score=score, reasons=reasons))

    out.sort(key=lambda s: (-s.score, s.task.id))
    return out[:cap]


def _score(task: Task, candidate: Task, cfg: EngineConfig) -> tuple[int, list[str]]:
    score = 0
    reasons: list[str] = []

    if task.sub_scope_id is not None and candidate.sub_scope_id == task.sub_scope_id:
        score += cfg.same_scope_weight
        reasons.append("Same sub-scope")

    if _precedes_in_sequence(candidate.task_type, task.task_type, cfg.type_sequence):
        score += cfg.type_sequence_weight
        reasons.append("Sequential task type")

    if task.assignee_id is not None and candidate.assignee_id == task.assignee_id:
        score += cfg.same_assignee_weight
        reasons.append("Same assignee")

    return score, reasons


def _precedes_in_sequence(before: Optional[str], after: Optional[str], sequence: tuple[str, ...]) -> bool:
    if not before or not after:
        return False
    try:
        i = sequence.index(before.lower())
        j = sequence.index(after.lower())
    except ValueError:
        return False
    return j == i + 1


def _reachable(neighbours: Callable[[str], tuple[str, ...]], start: str) -> set[str]:
    seen: set[str] = set()
    q: deque[str] = deque([start])
    while q:
        cur = q.popleft()
        for nxt in neighbours(cur):
            if nxt not in seen:
                seen.add(nxt)
                q.append(nxt)
    seen.discard(start)
    return seen
