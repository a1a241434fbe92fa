from pathlib import Path

from taskgraph_engine.core.errors import ProjectLoadError
from taskgraph_engine.core.io.load_project import load_project, parse_duration, parse_project

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def test_load_yaml_success():
    doc = load_project(str(EXAMPLES / "diamond-project.yaml"))
    assert doc["schema_version"] == "0.1.0"
    assert doc["project_id"] == "PRJ-DIAMOND"
    assert isinstance(doc["tasks"], list)
    assert doc["__file__"].endswith("diamond-project.yaml")


def test_load_missing_file():
    try:
        load_project(str(EXAMPLES / "does-not-exist.yaml"))
        assert False, "expected ProjectLoadError"
    except ProjectLoadError as e:
        assert e.code == "E_FILE_NOT_FOUND"


def test_load_unsupported_format(tmp_path):
    p = tmp_path / "project.txt"
    p.write_text("hello", encoding="utf-8")
    try:
        load_project(str(p))
        assert False, "expected ProjectLoadError"
    except ProjectLoadError as e:
        assert e.code == "E_UNSUPPORTED_FORMAT"


def test_load_broken_json(tmp_path):
    p = tmp_path / "project.json"
    p.write_text("{not json", encoding="utf-8")
    try:
        load_project(str(p))
        assert False, "expected ProjectLoadError"
    except ProjectLoadError as e:
        assert e.code == "E_JSON_PARSE"


def test_parse_defaults_duration_and_normalizes_status():
    doc = load_project(str(EXAMPLES / "sdlc-project.yaml"))
    records, errors = parse_project(doc)
    assert errors == []
    assert records is not None
    by_id = {t.id: t for t in records.tasks}
    assert by_id["DOC-1"].duration_hours == 0.0
    assert by_id["DOC-1"].assignments == ("bob",)
    assert by_id["REQ-1"].project_id == "PRJ-SDLC"
    assert by_id["OPS-1"].status == "cancelled"
    assert [e.dependency_type for e in records.edges] == ["FINISH_TO_START", "FINISH_TO_START"]


def test_yaml_and_json_parse_to_the_same_records():
    y, _ = parse_project(load_project(str(EXAMPLES / "diamond-project.yaml")))
    j, _ = parse_project(load_project(str(EXAMPLES / "diamond-project.json")))
    assert y is not None and j is not None
    assert y.tasks == j.tasks
    assert y.edges == j.edges


def test_parse_collects_every_error():
    records, errors = parse_project(load_project(str(EXAMPLES / "invalid-missing-field.yaml")))
    assert records is None
    codes = {(e.path, e.code) for e in errors}
    assert ("tasks[0].title", "E_REQUIRED_FIELD") in codes
    assert ("tasks[0].duration_hours", "E_INVALID_DURATION") in codes
    assert ("tasks[1].id", "E_REQUIRED_FIELD") in codes


def test_parse_rejects_duplicate_task_ids():
    doc = {
        "schema_version": "0.1.0",
        "project_id": "P",
        "tasks": [{"id": "A", "title": "a"}, {"id": "A", "title": "again"}],
    }
    records, errors = parse_project(doc)
    assert records is None
    assert [e.code for e in errors] == ["E_DUPLICATE_ID"]


def test_parse_accepts_integer_ids():
    doc = {
        "schema_version": "0.1.0",
        "project_id": "P",
        "tasks": [{"id": 1, "title": "a"}, {"id": 2, "title": "b"}],
        "dependencies": [{"predecessor": 1, "successor": 2, "type": "start-to-start"}],
    }
    records, errors = parse_project(doc)
    assert errors == []
    assert records is not None
    assert [t.id for t in records.tasks] == ["1", "2"]
    assert records.edges[0].dependency_type == "START_TO_START"
    assert records.edges[0].id is None


def test_parse_duration_rules():
    assert parse_duration(None) == 0.0
    assert parse_duration(3) == 3.0
    assert parse_duration(2.5) == 2.5
    for bad in (-1, float("nan"), float("inf"), "3", True):
        try:
            parse_duration(bad)
            assert False, f"expected ValueError for {bad!r}"
        except ValueError:
            pass
