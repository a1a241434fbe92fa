from __future__ import annotations

from taskgraph_engine.core.io.load_project import (
    ProjectRecords,
    dump_project,
    load_project,
    parse_project,
    project_to_dict,
)
from taskgraph_engine.core.errors import ValidationError
from taskgraph_engine.core.store.memory_store import InMemoryStore


class ProjectFileStore(InMemoryStore):
    """InMemoryStore backed by a YAML/JSON project file.

    Mutations stay in memory until save() writes the whole document back.
    """

    def __init__(self, path: str, records: ProjectRecords) -> None:
        super().__init__(records.tasks, records.edges)
        self.path = path
        self.schema_version = records.schema_version
        self.project_id = records.project_id

    @classmethod
    def open(cls, path: str) -> tuple["ProjectFileStore | None", list[ValidationError]]:
        """Load and parse a project file.

        Raises ProjectLoadError when the file cannot be read at all; shape
        problems come back as a list, like parse_project.
        """
        doc = load_project(path)
        records, errors = parse_project(doc)
        if errors or records is None:
            return None, errors
        return cls(path, records), []

    def save(self, path: str | None = None) -> None:
        doc = project_to_dict(
            schema_version=self.schema_version,
            project_id=self.project_id,
            tasks=self.tasks,
            edges=self.edges,
        )
        dump_project(path or self.path, doc)
