import pytest
from pydantic import ValidationError as SettingsValidationError

from taskgraph_engine.core.config import ConfigError, EngineConfig, load_config, merged_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in (
        "TASKGRAPH_MAX_CHAIN_DEPTH",
        "TASKGRAPH_SUGGESTION_LIMIT",
        "TASKGRAPH_LOG_LEVEL",
        "TASKGRAPH_TYPE_SEQUENCE",
    ):
        monkeypatch.delenv(var, raising=False)


def test_defaults():
    cfg = load_config()
    assert cfg == EngineConfig()
    assert cfg.max_chain_depth == 10
    assert cfg.suggestion_limit == 5
    assert cfg.type_sequence[0] == "requirement"


def test_config_is_immutable():
    cfg = EngineConfig()
    try:
        cfg.max_chain_depth = 3
        assert False, "expected frozen config"
    except SettingsValidationError:
        pass
    assert cfg.max_chain_depth == 10


def test_yaml_file_overrides_defaults(tmp_path):
    p = tmp_path / "engine.yaml"
    p.write_text(
        "max_chain_depth: 4\nsame_scope_weight: 7\ntype_sequence: [Plan, Build]\nlog_level: info\n",
        encoding="utf-8",
    )
    cfg = load_config(str(p))
    assert cfg.max_chain_depth == 4
    assert cfg.same_scope_weight == 7
    assert cfg.type_sequence == ("plan", "build")
    assert cfg.log_level == "INFO"


def test_empty_yaml_file_is_defaults(tmp_path):
    p = tmp_path / "engine.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config(str(p)) == EngineConfig()


def test_env_wins_over_file(tmp_path, monkeypatch):
    p = tmp_path / "engine.yaml"
    p.write_text("suggestion_limit: 2\nmax_chain_depth: 4\n", encoding="utf-8")
    monkeypatch.setenv("TASKGRAPH_SUGGESTION_LIMIT", "9")
    monkeypatch.setenv("TASKGRAPH_LOG_LEVEL", "debug")
    cfg = load_config(str(p))
    assert cfg.suggestion_limit == 9
    assert cfg.max_chain_depth == 4
    assert cfg.log_level == "DEBUG"


def test_bad_env_value_is_a_config_error(monkeypatch):
    monkeypatch.setenv("TASKGRAPH_MAX_CHAIN_DEPTH", "deep")
    try:
        load_config()
        assert False, "expected ConfigError"
    except ConfigError as e:
        assert "max_chain_depth" in str(e)


def test_unknown_key_is_rejected(tmp_path):
    p = tmp_path / "engine.yaml"
    p.write_text("max_depth: 3\n", encoding="utf-8")
    try:
        load_config(str(p))
        assert False, "expected ConfigError"
    except ConfigError as e:
        assert "max_depth" in str(e)


def test_bad_values_are_rejected():
    for overrides in (
        {"max_chain_depth": "deep"},
        {"max_chain_depth": 0},
        {"suggestion_limit": 0},
        {"same_assignee_weight": -1},
        {"same_scope_weight": True},
        {"type_sequence": []},
        {"type_sequence": ["coding", ""]},
        {"log_level": "LOUD"},
    ):
        try:
            merged_config(overrides)
            assert False, f"expected ConfigError for {overrides}"
        except ConfigError:
            pass


def test_missing_file_propagates():
    try:
        load_config("/nonexistent/engine.yaml")
        assert False, "expected FileNotFoundError"
    except FileNotFoundError:
        pass
