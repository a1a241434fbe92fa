from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EngineError(Exception):
    """Base error envelope shared by the engine, the stores and the CLI."""

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.file:
            parts.append(self.file)
        if self.path:
            parts.append(self.path)
        loc = ":".join(parts) if parts else "<project>"
        return f"{loc}: {self.code}: {self.message}"


class ProjectLoadError(EngineError):
    pass


class ValidationError(EngineError):
    """Rejected before any graph work (self-loop, malformed duration, ...)."""


class CycleRejectedError(ValidationError):
    """The proposed edge would close a loop. Expected outcome, not a fault."""


class DuplicateEdgeError(ValidationError):
    pass


class EdgeNotFoundError(EngineError):
    pass


class TaskNotFoundError(EngineError):
    pass


class DanglingEdgeError(EngineError):
    pass


class DependencyChainTooDeepError(EngineError):
    """Traversal hit the depth bound; the graph may no longer be acyclic."""


class InvariantViolationError(EngineError):
    """Internal fault: the acyclic invariant was broken upstream. Never retried."""
