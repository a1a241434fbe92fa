from __future__ import annotations

from collections import Counter
from typing import Any, Iterator, Optional

from taskgraph_engine.core.errors import ValidationError
from taskgraph_engine.core.model import KNOWN_DEPENDENCY_TYPES, normalize_dependency_type


# Project lint rules:
# - L_DUPLICATE_TASK_ID: the same task id appears more than once
# - L_SELF_LOOP: a dependency whose predecessor and successor are the same task
# - L_DUPLICATE_EDGE: the same predecessor/successor pair appears more than once
# - L_DANGLING_EDGE: a dependency references a task id that is not in the file
# - L_UNKNOWN_DEPENDENCY_TYPE: type is not one of the four standard link types
# - L_CYCLE_DETECTED: the dependency edges contain a cycle


def lint_project(doc: dict[str, Any]) -> list[ValidationError]:
    """Lint a project document.

    Runs on the raw document, best effort, so that stored data which the
    engine would refuse to build a graph from can still be diagnosed in one
    go. Shape problems are left to parse_project.
    """

    file = _cast_optional_str(doc.get("__file__"))

    tasks = doc.get("tasks")
    if not isinstance(tasks, list):
        return []
    deps = doc.get("dependencies")
    if not isinstance(deps, list):
        deps = []

    ids: list[str] = []
    id_to_index: dict[str, int] = {}
    for i, raw in enumerate(tasks):
        if not isinstance(raw, dict):
            continue
        tid = _as_id(raw.get("id"))
        if tid is None:
            continue
        ids.append(tid)
        id_to_index.setdefault(tid, i)

    errors: list[ValidationError] = []

    # Rule: duplicate task ids
    counts = Counter(ids)
    seen: set[str] = set()
    for i, raw in enumerate(tasks):
        if not isinstance(raw, dict):
            continue
        tid = _as_id(raw.get("id"))
        if tid is None or counts[tid] < 2:
            continue
        if tid not in seen:
            seen.add(tid)
            continue
        errors.append(
            ValidationError(
                code="L_DUPLICATE_TASK_ID",
                message=f"duplicate task id: {tid} (count={counts[tid]})",
                file=file,
                path=f"tasks[{i}].id",
            )
        )

    known = set(id_to_index.keys())
    adjacency: dict[str, list[str]] = {tid: [] for tid in id_to_index}
    edge_index: dict[tuple[str, str], int] = {}

    for i, raw in enumerate(deps):
        if not isinstance(raw, dict):
            continue
        p = _as_id(raw.get("predecessor"))
        s = _as_id(raw.get("successor"))
        if p is None or s is None:
            continue

        dep_type = raw.get("type")
        if isinstance(dep_type, str) and dep_type.strip():
            if normalize_dependency_type(dep_type) not in KNOWN_DEPENDENCY_TYPES:
                errors.append(
                    ValidationError(
                        code="L_UNKNOWN_DEPENDENCY_TYPE",
                        message=(
                            f"dependency type {dep_type!r} is not one of "
                            f"{sorted(KNOWN_DEPENDENCY_TYPES)}; scheduled as finish-to-start"
                        ),
                        file=file,
                        path=f"dependencies[{i}].type",
                    )
                )

        dangling = [end for end in (p, s) if end not in known]
        for end in dangling:
            errors.append(
                ValidationError(
                    code="L_DANGLING_EDGE",
                    message=f"dependency references unknown task: {end}",
                    file=file,
                    path=f"dependencies[{i}]",
                )
            )
        if dangling:
            continue

        if p == s:
            errors.append(
                ValidationError(
                    code="L_SELF_LOOP",
                    message=f"task depends on itself: {p}",
                    file=file,
                    path=f"dependencies[{i}]",
                )
            )
            continue

        if (p, s) in edge_index:
            errors.append(
                ValidationError(
                    code="L_DUPLICATE_EDGE",
                    message=f"duplicate dependency {p} -> {s} (first at dependencies[{edge_index[(p, s)]}])",
                    file=file,
                    path=f"dependencies[{i}]",
                )
            )
            continue

        edge_index[(p, s)] = i
        adjacency[p].append(s)

    # Rule: cycle detection
    for tid, msg in _detect_cycles(adjacency):
        errors.append(
            ValidationError(
                code="L_CYCLE_DETECTED",
                message=msg,
                file=file,
                path=f"tasks[{id_to_index.get(tid, 0)}].id",
            )
        )

    return _sorted(errors)


def _detect_cycles(adjacency: dict[str, list[str]]) -> list[tuple[str, str]]:
    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {tid: WHITE for tid in adjacency}
    emitted: set[str] = set()
    out: list[tuple[str, str]] = []

    for root in adjacency:
        if state[root] != WHITE:
            continue
        state[root] = GRAY
        path: list[str] = [root]
        stack: list[Iterator[str]] = [iter(adjacency[root])]
        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                stack.pop()
                state[path.pop()] = BLACK
                continue
            if state[nxt] == GRAY:
                # cycle: nxt ... path[-1] -> nxt
                cycle = path[path.index(nxt):] + [nxt]
                key = "->".join(cycle)
                if key not in emitted:
                    emitted.add(key)
                    out.append((path[-1], "dependency cycle detected: " + " -> ".join(cycle)))
            elif state[nxt] == WHITE:
                state[nxt] = GRAY
                path.append(nxt)
                stack.append(iter(adjacency[nxt]))

    return out


def _as_id(v: Any) -> Optional[str]:
    if isinstance(v, bool):
        return None
    if isinstance(v, int):
        return str(v)
    if isinstance(v, str) and v.strip():
        return v
    return None


def _sorted(errors: list[ValidationError]) -> list[ValidationError]:
    return sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))


def _cast_optional_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) else None
