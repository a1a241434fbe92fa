from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, cast

import yaml

from taskgraph_engine.core.errors import ProjectLoadError, ValidationError
from taskgraph_engine.core.model import (
    FINISH_TO_START,
    Edge,
    Task,
    normalize_dependency_type,
    normalize_status,
    parse_duration,
)


DEFAULT_STATUS = "not_started"


@dataclass(frozen=True)
class ProjectRecords:
    schema_version: str
    project_id: str
    tasks: list[Task]
    edges: list[Edge]


def load_project(path: str) -> dict[str, Any]:
    """Load a YAML/JSON project file.

    Returns a dict with keys: schema_version, project_id, tasks, dependencies.
    Does not coerce types; parse_project owns shape checking.
    """

    p = Path(path)
    if not p.exists():
        raise ProjectLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise ProjectLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise ProjectLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except ProjectLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise ProjectLoadError(code=code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise ProjectLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )

    normalized: dict[str, Any] = {
        "schema_version": data.get("schema_version"),
        "project_id": data.get("project_id"),
        "tasks": data.get("tasks"),
        "dependencies": data.get("dependencies", []),
    }
    normalized["__file__"] = str(p)
    return normalized


def parse_project(doc: dict[str, Any]) -> tuple[Optional[ProjectRecords], list[ValidationError]]:
    """Turn a raw project document into Task/Edge value records.

    Returns (records, errors). Records is None when errors exist. Absent
    durations become 0.0 here so that the CPM math never sees None.
    """

    file = cast(Optional[str], doc.get("__file__"))
    errors: list[ValidationError] = []

    schema_version = doc.get("schema_version")
    if not isinstance(schema_version, str) or not schema_version.strip():
        errors.append(
            ValidationError(
                code="E_REQUIRED_FIELD",
                message="schema_version is required and must be a non-empty string",
                file=file,
                path="schema_version",
            )
        )

    project_id = doc.get("project_id")
    if not isinstance(project_id, str) or not project_id.strip():
        errors.append(
            ValidationError(
                code="E_REQUIRED_FIELD",
                message="project_id is required and must be a non-empty string",
                file=file,
                path="project_id",
            )
        )
        project_id = ""

    raw_tasks = doc.get("tasks")
    if not isinstance(raw_tasks, list):
        errors.append(
            ValidationError(
                code="E_REQUIRED_FIELD",
                message="tasks is required and must be an array",
                file=file,
                path="tasks",
            )
        )
        return None, _sorted(errors)

    tasks: list[Task] = []
    seen_ids: set[str] = set()
    for i, raw in enumerate(raw_tasks):
        task, task_errors = _parse_task(raw, f"tasks[{i}]", file, default_project=cast(str, project_id))
        errors.extend(task_errors)
        if task is None:
            continue
        if task.id in seen_ids:
            errors.append(
                ValidationError(
                    code="E_DUPLICATE_ID",
                    message=f"duplicate task id: {task.id}",
                    file=file,
                    path=f"tasks[{i}].id",
                )
            )
            continue
        seen_ids.add(task.id)
        tasks.append(task)

    raw_deps = doc.get("dependencies")
    if raw_deps is None:
        raw_deps = []
    if not isinstance(raw_deps, list):
        errors.append(
            ValidationError(
                code="E_INVALID_TYPE",
                message="dependencies must be an array",
                file=file,
                path="dependencies",
            )
        )
        raw_deps = []

    edges: list[Edge] = []
    for i, raw in enumerate(raw_deps):
        edge, edge_errors = _parse_edge(raw, f"dependencies[{i}]", file)
        errors.extend(edge_errors)
        if edge is not None:
            edges.append(edge)

    if errors:
        return None, _sorted(errors)

    return (
        ProjectRecords(
            schema_version=cast(str, schema_version),
            project_id=cast(str, project_id),
            tasks=tasks,
            edges=edges,
        ),
        [],
    )



def _parse_task(
    raw: Any, path: str, file: Optional[str], *, default_project: str
) -> tuple[Optional[Task], list[ValidationError]]:
    errors: list[ValidationError] = []
    if not isinstance(raw, dict):
        return None, [
            ValidationError(code="E_INVALID_TYPE", message="task must be an object", file=file, path=path)
        ]

    tid = raw.get("id")
    if isinstance(tid, int) and not isinstance(tid, bool):
        tid = str(tid)
    if not isinstance(tid, str) or not tid.strip():
        return None, [
            ValidationError(
                code="E_REQUIRED_FIELD",
                message="id is required and must be a non-empty string",
                file=file,
                path=f"{path}.id",
            )
        ]

    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append(
            ValidationError(
                code="E_REQUIRED_FIELD",
                message="title is required and must be a non-empty string",
                file=file,
                path=f"{path}.title",
            )
        )

    status = raw.get("status", DEFAULT_STATUS)
    if not isinstance(status, str) or not status.strip():
        errors.append(
            ValidationError(
                code="E_INVALID_TYPE",
                message="status must be a non-empty string",
                file=file,
                path=f"{path}.status",
            )
        )

    try:
        duration = parse_duration(raw.get("duration_hours"))
    except ValueError as e:
        errors.append(
            ValidationError(code="E_INVALID_DURATION", message=str(e), file=file, path=f"{path}.duration_hours")
        )
        duration = 0.0

    optional: dict[str, Optional[str]] = {}
    for key in ("project_id", "sub_scope_id", "assignee_id", "task_type"):
        v = raw.get(key)
        if v is not None and not isinstance(v, str):
            errors.append(
                ValidationError(
                    code="E_INVALID_TYPE",
                    message=f"{key} must be a string",
                    file=file,
                    path=f"{path}.{key}",
                )
            )
            v = None
        optional[key] = v

    assignments = raw.get("assignments") or []
    if not isinstance(assignments, list) or not all(isinstance(a, str) for a in assignments):
        errors.append(
            ValidationError(
                code="E_INVALID_TYPE",
                message="assignments must be an array of strings",
                file=file,
                path=f"{path}.assignments",
            )
        )
        assignments = []

    if errors:
        return None, errors

    task_type = optional["task_type"]
    return (
        Task(
            id=tid,
            title=cast(str, title),
            status=normalize_status(cast(str, status)),
            project_id=optional["project_id"] or default_project,
            duration_hours=duration,
            sub_scope_id=optional["sub_scope_id"],
            assignee_id=optional["assignee_id"],
            task_type=task_type.strip().lower() if task_type else None,
            assignments=tuple(assignments),
        ),
        [],
    )


def _parse_edge(raw: Any, path: str, file: Optional[str]) -> tuple[Optional[Edge], list[ValidationError]]:
    if not isinstance(raw, dict):
        return None, [
            ValidationError(code="E_INVALID_TYPE", message="dependency must be an object", file=file, path=path)
        ]

    errors: list[ValidationError] = []
    ends: dict[str, str] = {}
    for key in ("predecessor", "successor"):
        v = raw.get(key)
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str) or not v.strip():
            errors.append(
                ValidationError(
                    code="E_REQUIRED_FIELD",
                    message=f"{key} is required and must be a task id",
                    file=file,
                    path=f"{path}.{key}",
                )
            )
            continue
        ends[key] = v

    dep_type = raw.get("type", FINISH_TO_START)
    if not isinstance(dep_type, str) or not dep_type.strip():
        errors.append(
            ValidationError(
                code="E_INVALID_TYPE",
                message="type must be a non-empty string",
                file=file,
                path=f"{path}.type",
            )
        )

    edge_id = raw.get("id")
    if edge_id is not None and not isinstance(edge_id, (str, int)):
        errors.append(
            ValidationError(code="E_INVALID_TYPE", message="id must be a string", file=file, path=f"{path}.id")
        )

    if errors:
        return None, errors

    return (
        Edge(
            predecessor_id=ends["predecessor"],
            successor_id=ends["successor"],
            dependency_type=normalize_dependency_type(cast(str, dep_type)),
            id=str(edge_id) if edge_id is not None else None,
        ),
        [],
    )


def project_to_dict(
    *, schema_version: str, project_id: str, tasks: Iterable[Task], edges: Iterable[Edge]
) -> dict[str, Any]:
    return {
        "schema_version": schema_version,
        "project_id": project_id,
        "tasks": [_task_to_dict(t, project_id) for t in tasks],
        "dependencies": [_edge_to_dict(e) for e in edges],
    }


def dump_project(path: str, doc: dict[str, Any]) -> None:
    """Write a project document; .json paths get JSON, everything else YAML."""
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    if p.suffix.lower() == ".json":
        text = json.dumps(doc, indent=2) + "\n"
    else:
        text = yaml.safe_dump(doc, sort_keys=False, allow_unicode=True)
    p.write_text(text, encoding="utf-8")


def _task_to_dict(t: Task, project_id: str) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": t.id,
        "title": t.title,
        "status": t.status,
        "duration_hours": t.duration_hours,
    }
    if t.project_id != project_id:
        out["project_id"] = t.project_id
    if t.sub_scope_id is not None:
        out["sub_scope_id"] = t.sub_scope_id
    if t.assignee_id is not None:
        out["assignee_id"] = t.assignee_id
    if t.task_type is not None:
        out["task_type"] = t.task_type
    if t.assignments:
        out["assignments"] = list(t.assignments)
    return out


def _edge_to_dict(e: Edge) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if e.id is not None:
        out["id"] = e.id
    out["predecessor"] = e.predecessor_id
    out["successor"] = e.successor_id
    out["type"] = e.dependency_type
    return out


def _sorted(errors: Iterable[ValidationError]) -> list[ValidationError]:
    return sorted(
        list(errors),
        key=lambda e: (
            e.file or "",
            e.path or "",
            e.code,
        ),
    )
