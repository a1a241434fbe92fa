from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional


FINISH_TO_START = "FINISH_TO_START"
KNOWN_DEPENDENCY_TYPES: set[str] = {
    FINISH_TO_START,
    "START_TO_START",
    "FINISH_TO_FINISH",
    "START_TO_FINISH",
}

STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
CLOSED_STATUSES: set[str] = {STATUS_COMPLETED, STATUS_CANCELLED}


def normalize_status(status: str) -> str:
    """'COMPLETED', 'Completed' and 'completed' are the same status."""
    return status.strip().lower().replace("-", "_").replace(" ", "_")


def normalize_dependency_type(dependency_type: str) -> str:
    return dependency_type.strip().upper().replace("-", "_").replace(" ", "_")


def parse_duration(value: Any) -> float:
    """None -> 0.0. Raises ValueError for anything that is not a finite number >= 0."""
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("duration_hours must be a number")
    d = float(value)
    if math.isnan(d) or math.isinf(d) or d < 0:
        raise ValueError("duration_hours must be a finite non-negative number")
    return d


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    status: str
    project_id: str
    duration_hours: float = 0.0

    sub_scope_id: Optional[str] = None
    assignee_id: Optional[str] = None
    task_type: Optional[str] = None
    assignments: tuple[str, ...] = ()


@dataclass(frozen=True)
class Edge:
    predecessor_id: str
    successor_id: str
    dependency_type: str = FINISH_TO_START
    id: Optional[str] = None


@dataclass(frozen=True)
class TaskSchedule:
    task_id: str
    title: str
    duration: float
    earliest_start: float
    earliest_finish: float
    latest_start: float
    latest_finish: float
    slack: float
    is_critical: bool


@dataclass(frozen=True)
class CriticalPathReport:
    tasks: list[TaskSchedule]
    critical_path: list[str]
    total_duration: float

    def schedule_for(self, task_id: str) -> TaskSchedule:
        for s in self.tasks:
            if s.task_id == task_id:
                return s
        raise KeyError(task_id)


@dataclass(frozen=True)
class EdgeValidation:
    is_valid: bool
    reason: Optional[str] = None
    code: Optional[str] = None


@dataclass(frozen=True)
class ChainEntry:
    task: Task
    dependency_type: str
    depth: int


@dataclass(frozen=True)
class DependencyChain:
    task_id: str
    predecessors: list[ChainEntry] = field(default_factory=list)
    successors: list[ChainEntry] = field(default_factory=list)
    truncated: bool = False


@dataclass(frozen=True)
class BlockedTask:
    task: Task
    blocking_predecessors: list[Task]


@dataclass(frozen=True)
class Suggestion:
    task: Task
    score: int
    reasons: list[str]

    @property
    def reason(self) -> str:
        return ", ".join(self.reasons)
