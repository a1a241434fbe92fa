from __future__ import annotations

import json
from typing import Any, NoReturn, Optional

import typer

from taskgraph_engine.core.config import ConfigError, load_config
from taskgraph_engine.core.errors import (
    EngineError,
    InvariantViolationError,
    ProjectLoadError,
    ValidationError,
)
from taskgraph_engine.core.io.load_project import load_project
from taskgraph_engine.core.lint.lint_project import lint_project
from taskgraph_engine.core.log_setup import configure_logging
from taskgraph_engine.core.model import FINISH_TO_START, ChainEntry, Task
from taskgraph_engine.core.report.report import graph_view_to_dict
from taskgraph_engine.core.store.file_store import ProjectFileStore
from taskgraph_engine.service import DependencyService

app = typer.Typer(add_completion=False, no_args_is_help=True)

FORMATS = ("text", "json")


@app.callback()
def _callback(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG|INFO|WARNING|ERROR|CRITICAL"),
    config: Optional[str] = typer.Option(None, "--config", help="Optional YAML file with engine settings"),
) -> None:
    """Task dependency graph and critical path CLI."""
    try:
        cfg = load_config(config)
    except FileNotFoundError:
        _print_errors(
            [
                ProjectLoadError(
                    code="E_CONFIG_FILE_NOT_FOUND",
                    message=f"config file not found: {config}",
                    path="config",
                )
            ]
        )
        raise typer.Exit(code=1)
    except ConfigError as e:
        _print_errors([ValidationError(code="E_CONFIG_INVALID", message=str(e), path="config")])
        raise typer.Exit(code=2)

    configure_logging(log_level or cfg.log_level)
    ctx.obj = {"config": cfg}


@app.command("critical-path")
def critical_path(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a project file (.yaml/.yml/.json)"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (defaults to the file's)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Compute earliest/latest times, slack and the critical path (CPM)."""
    _check_format("critical-path", format)
    service, project_id = _open(ctx, path, project)

    try:
        report = service.critical_path(project_id)
    except EngineError as e:
        _fail("critical-path", format, e)

    if format == "json":
        _emit_json(
            "critical-path",
            ok=True,
            exit_code=0,
            result={
                "criticalPath": report.critical_path,
                "totalDuration": report.total_duration,
                "tasks": [
                    {
                        "id": s.task_id,
                        "title": s.title,
                        "duration": s.duration,
                        "earliestStart": s.earliest_start,
                        "earliestFinish": s.earliest_finish,
                        "latestStart": s.latest_start,
                        "latestFinish": s.latest_finish,
                        "slack": s.slack,
                        "isCritical": s.is_critical,
                    }
                    for s in report.tasks
                ],
            },
        )

    typer.echo(f"Total duration: {_fmt(report.total_duration)}h")
    typer.echo("Critical path: " + (" -> ".join(report.critical_path) or "(none)"))
    for s in report.tasks:
        marker = " *" if s.is_critical else ""
        typer.echo(
            f"- {s.task_id}: ES={_fmt(s.earliest_start)} EF={_fmt(s.earliest_finish)} "
            f"LS={_fmt(s.latest_start)} LF={_fmt(s.latest_finish)} slack={_fmt(s.slack)}{marker}"
        )


@app.command("chain")
def chain(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a project file (.yaml/.yml/.json)"),
    task_id: str = typer.Argument(..., help="Task id"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (defaults to the file's)"),
    allow_partial: bool = typer.Option(
        False, "--allow-partial", help="Return a truncated chain instead of failing past the depth bound"
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """List all transitive predecessors and successors of a task."""
    _check_format("chain", format)
    service, project_id = _open(ctx, path, project)

    try:
        result = service.dependency_chain(project_id, task_id, allow_partial=allow_partial)
    except EngineError as e:
        _fail("chain", format, e)

    if format == "json":
        _emit_json(
            "chain",
            ok=True,
            exit_code=0,
            result={
                "taskId": result.task_id,
                "predecessors": [_chain_item(c) for c in result.predecessors],
                "successors": [_chain_item(c) for c in result.successors],
                "truncated": result.truncated,
            },
        )

    typer.echo(f"Task {result.task_id}")
    for label, entries in (("Predecessors", result.predecessors), ("Successors", result.successors)):
        typer.echo(f"{label}:")
        if not entries:
            typer.echo("  (none)")
        for c in entries:
            typer.echo(f"  {'  ' * c.depth}- {c.task.id}: {c.task.title} [{c.dependency_type}] depth={c.depth}")
    if result.truncated:
        typer.echo("WARN: chain truncated at the depth bound", err=True)


@app.command("available")
def available(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a project file (.yaml/.yml/.json)"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (defaults to the file's)"),
    assignee: Optional[str] = typer.Option(None, "--assignee", help="Only tasks assigned to this user"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Open tasks whose predecessors are all completed."""
    _check_format("available", format)
    service, project_id = _open(ctx, path, project)

    try:
        tasks = service.available_tasks(project_id, assignee_id=assignee)
    except EngineError as e:
        _fail("available", format, e)

    if format == "json":
        _emit_json("available", ok=True, exit_code=0, result={"tasks": [_task_item(t) for t in tasks]})

    typer.echo(f"Available: {len(tasks)}")
    for t in tasks:
        typer.echo(f"- {t.id}: {t.title} ({t.status})")


@app.command("blocked")
def blocked(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a project file (.yaml/.yml/.json)"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (defaults to the file's)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Open tasks held up by incomplete predecessors."""
    _check_format("blocked", format)
    service, project_id = _open(ctx, path, project)

    try:
        items = service.blocked_tasks(project_id)
    except EngineError as e:
        _fail("blocked", format, e)

    if format == "json":
        _emit_json(
            "blocked",
            ok=True,
            exit_code=0,
            result={
                "tasks": [
                    {
                        **_task_item(b.task),
                        "blockingPredecessors": [_task_item(p) for p in b.blocking_predecessors],
                    }
                    for b in items
                ]
            },
        )

    typer.echo(f"Blocked: {len(items)}")
    for b in items:
        blockers = ", ".join(f"{p.id} ({p.status})" for p in b.blocking_predecessors)
        typer.echo(f"- {b.task.id}: {b.task.title} <- {blockers}")


@app.command("validate-dep")
def validate_dep(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a project file (.yaml/.yml/.json)"),
    predecessor: str = typer.Argument(..., help="Task that must finish first"),
    successor: str = typer.Argument(..., help="Task that waits for the predecessor"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (defaults to the file's)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Check whether predecessor -> successor can be added without a cycle."""
    _check_format("validate-dep", format)
    service, project_id = _open(ctx, path, project)

    try:
        result = service.validate_dependency(project_id, predecessor, successor)
    except EngineError as e:
        _fail("validate-dep", format, e)

    exit_code = 0 if result.is_valid else 2
    if format == "json":
        _emit_json(
            "validate-dep",
            ok=result.is_valid,
            exit_code=exit_code,
            result={"isValid": result.is_valid, "reason": result.reason, "code": result.code},
        )

    if result.is_valid:
        typer.echo(f"OK: {predecessor} -> {successor} is valid")
        return
    typer.echo(f"{predecessor} -> {successor}: {result.code}: {result.reason}", err=True)
    raise typer.Exit(code=exit_code)


@app.command("add-dep")
def add_dep(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a project file (.yaml/.yml/.json)"),
    predecessor: str = typer.Argument(..., help="Task that must finish first"),
    successor: str = typer.Argument(..., help="Task that waits for the predecessor"),
    dep_type: str = typer.Option(FINISH_TO_START, "--type", help="Dependency type label"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (defaults to the file's)"),
    out: Optional[str] = typer.Option(None, "--out", help="Write the updated project here instead of in place"),
) -> None:
    """Validate and add a dependency, then save the project file."""
    store, project_id = _open_store(path, project)
    service = DependencyService(store, config=_config(ctx))

    try:
        edge = service.add_dependency(project_id, predecessor, successor, dep_type)
    except EngineError as e:
        _fail("add-dep", "text", e)

    store.save(out)
    typer.echo(f"OK: added {edge.id}: {edge.predecessor_id} -> {edge.successor_id} ({edge.dependency_type})")


@app.command("remove-dep")
def remove_dep(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a project file (.yaml/.yml/.json)"),
    edge_id: str = typer.Argument(..., help="Dependency id"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (defaults to the file's)"),
    out: Optional[str] = typer.Option(None, "--out", help="Write the updated project here instead of in place"),
) -> None:
    """Remove a dependency by id, then save the project file."""
    store, project_id = _open_store(path, project)
    service = DependencyService(store, config=_config(ctx))

    try:
        edge = service.remove_dependency(project_id, edge_id)
    except EngineError as e:
        _fail("remove-dep", "text", e)

    store.save(out)
    typer.echo(f"OK: removed {edge.id}: {edge.predecessor_id} -> {edge.successor_id}")


@app.command("suggest")
def suggest(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a project file (.yaml/.yml/.json)"),
    task_id: str = typer.Argument(..., help="Task to find predecessor candidates for"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (defaults to the file's)"),
    limit: Optional[int] = typer.Option(None, "--limit", help="Maximum number of suggestions"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Rank plausible new predecessors for a task."""
    _check_format("suggest", format)
    service, project_id = _open(ctx, path, project)

    try:
        items = service.suggest_dependencies(project_id, task_id, limit=limit)
    except EngineError as e:
        _fail("suggest", format, e)

    if format == "json":
        _emit_json(
            "suggest",
            ok=True,
            exit_code=0,
            result={
                "suggestions": [
                    {**_task_item(s.task), "score": s.score, "reason": s.reason, "reasons": list(s.reasons)}
                    for s in items
                ]
            },
        )

    if not items:
        typer.echo("No suggestions")
        return
    for s in items:
        typer.echo(f"- {s.task.id}: {s.task.title} (score={s.score}: {s.reason})")


@app.command("stats")
def stats(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a project file (.yaml/.yml/.json)"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (defaults to the file's)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Dependency statistics for a project."""
    _check_format("stats", format)
    service, project_id = _open(ctx, path, project)

    try:
        s = service.dependency_stats(project_id)
    except EngineError as e:
        _fail("stats", format, e)

    if format == "json":
        _emit_json(
            "stats",
            ok=True,
            exit_code=0,
            result={
                "totalTasks": s.total_tasks,
                "tasksWithDependencies": s.tasks_with_dependencies,
                "totalDependencies": s.total_dependencies,
                "blockedTasksCount": s.blocked_tasks_count,
                "dependencyRatio": s.dependency_ratio,
            },
        )

    typer.echo(
        f"tasks={s.total_tasks}, with_dependencies={s.tasks_with_dependencies}, "
        f"dependencies={s.total_dependencies}, blocked={s.blocked_tasks_count}, "
        f"ratio={s.dependency_ratio:.2f}"
    )


@app.command("graph")
def graph(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Path to a project file (.yaml/.yml/.json)"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (defaults to the file's)"),
) -> None:
    """Nodes and edges annotated with critical-path data (JSON)."""
    service, project_id = _open(ctx, path, project)

    try:
        view = service.dependency_graph(project_id)
    except EngineError as e:
        _fail("graph", "json", e)

    _emit_json("graph", ok=True, exit_code=0, result=graph_view_to_dict(view))


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to a project file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Report every structural problem in a project file at once."""
    _check_format("lint", format)

    try:
        doc = load_project(path)
    except ProjectLoadError as e:
        _fail("lint", format, e)

    errors = lint_project(doc)

    if format == "json":
        _emit_json(
            "lint",
            ok=not errors,
            exit_code=2 if errors else 0,
            errors=errors,
        )

    if errors:
        _print_errors(errors)
        raise typer.Exit(code=2)
    typer.echo("OK: lint passed")


def _config(ctx: typer.Context) -> Any:
    obj = ctx.obj or {}
    return obj.get("config")


def _open_store(path: str, project: Optional[str]) -> tuple[ProjectFileStore, str]:
    try:
        store, errors = ProjectFileStore.open(path)
    except ProjectLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    if errors or store is None:
        _print_errors(list(errors))
        raise typer.Exit(code=2)
    return store, project or store.project_id


def _open(ctx: typer.Context, path: str, project: Optional[str]) -> tuple[DependencyService, str]:
    store, project_id = _open_store(path, project)
    return DependencyService(store, config=_config(ctx)), project_id


def _check_format(command: str, format: str) -> None:
    if format in FORMATS:
        return
    err = ValidationError(
        code=f"E_{command.replace('-', '_').upper()}_UNKNOWN_FORMAT",
        message=f"unknown format: {format} (choose one of: {', '.join(FORMATS)})",
        file=None,
        path="format",
    )
    _print_errors([err])
    raise typer.Exit(code=2)


def _exit_code_for(e: EngineError) -> int:
    if isinstance(e, ProjectLoadError):
        return 1
    if isinstance(e, InvariantViolationError):
        return 3
    return 2


def _fail(command: str, format: str, e: EngineError) -> NoReturn:
    code = _exit_code_for(e)
    if format == "json":
        _emit_json(command, ok=False, exit_code=code, errors=[e])
    _print_errors([e])
    raise typer.Exit(code=code)


def _emit_json(
    command: str,
    *,
    ok: bool,
    exit_code: int,
    result: Optional[dict[str, Any]] = None,
    errors: Optional[list[EngineError]] = None,
) -> NoReturn:
    errs = list(errors or [])
    payload = {
        "tool": "taskgraph",
        "command": command,
        "ok": ok,
        "error_count": len(errs),
        "errors": [_error_item(e) for e in errs],
        "result": result,
    }
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _error_item(e: EngineError) -> dict[str, Any]:
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "kind": type(e).__name__,
        "severity": "fatal" if isinstance(e, InvariantViolationError) else "error",
    }


def _task_item(t: Task) -> dict[str, Any]:
    return {
        "id": t.id,
        "title": t.title,
        "status": t.status,
        "durationHours": t.duration_hours,
        "subScopeId": t.sub_scope_id,
        "assigneeId": t.assignee_id,
        "taskType": t.task_type,
    }


def _chain_item(c: ChainEntry) -> dict[str, Any]:
    return {**_task_item(c.task), "dependencyType": c.dependency_type, "depth": c.depth}


def _fmt(x: float) -> str:
    return f"{x:g}"


def _print_errors(errors: list[EngineError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="taskgraph")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
