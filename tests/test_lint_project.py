from pathlib import Path

from taskgraph_engine.core.io.load_project import load_project
from taskgraph_engine.core.lint.lint_project import lint_project

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def _codes(errors):
    return [e.code for e in errors]


def test_lint_clean_project():
    assert lint_project(load_project(str(EXAMPLES / "diamond-project.yaml"))) == []
    assert lint_project(load_project(str(EXAMPLES / "sdlc-project.yaml"))) == []


def test_lint_reports_cycle_once():
    errors = lint_project(load_project(str(EXAMPLES / "cyclic-project.yaml")))
    assert _codes(errors) == ["L_CYCLE_DETECTED"]
    assert errors[0].message == "dependency cycle detected: A -> B -> C -> A"
    assert errors[0].file.endswith("cyclic-project.yaml")


def test_lint_reports_dangling_edge():
    errors = lint_project(load_project(str(EXAMPLES / "invalid-dangling-edge.yaml")))
    assert _codes(errors) == ["L_DANGLING_EDGE"]
    assert "GHOST" in errors[0].message
    assert errors[0].path == "dependencies[0]"


def test_lint_collects_every_problem():
    doc = {
        "tasks": [
            {"id": "A", "title": "a"},
            {"id": "B", "title": "b"},
            {"id": "A", "title": "again"},
        ],
        "dependencies": [
            {"predecessor": "A", "successor": "A"},
            {"predecessor": "A", "successor": "B", "type": "SOMETIMES"},
            {"predecessor": "A", "successor": "B"},
            {"predecessor": "B", "successor": "Z"},
        ],
    }
    codes = set(_codes(lint_project(doc)))
    assert codes == {
        "L_DUPLICATE_TASK_ID",
        "L_SELF_LOOP",
        "L_UNKNOWN_DEPENDENCY_TYPE",
        "L_DUPLICATE_EDGE",
        "L_DANGLING_EDGE",
    }


def test_lint_known_types_in_any_case():
    doc = {
        "tasks": [{"id": "A", "title": "a"}, {"id": "B", "title": "b"}],
        "dependencies": [{"predecessor": "A", "successor": "B", "type": "start-to-start"}],
    }
    assert lint_project(doc) == []


def test_lint_ignores_missing_sections():
    assert lint_project({}) == []
    assert lint_project({"tasks": [{"id": "A"}]}) == []
