from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError as SettingsValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict, SettingsError


DEFAULT_TYPE_SEQUENCE: tuple[str, ...] = (
    "requirement",
    "design",
    "coding",
    "testing",
    "documentation",
)

LOG_LEVELS: set[str] = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ConfigError(ValueError):
    pass


class EngineConfig(BaseSettings):
    """Engine settings.

    Precedence, lowest first: defaults, keyword arguments (the YAML file when
    built through load_config), TASKGRAPH_* environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix="TASKGRAPH_",
        case_sensitive=False,
        frozen=True,
        extra="forbid",
    )

    max_chain_depth: int = Field(default=10, ge=1)
    suggestion_limit: int = Field(default=5, ge=1)
    same_scope_weight: int = Field(default=3, ge=0)
    type_sequence_weight: int = Field(default=2, ge=0)
    same_assignee_weight: int = Field(default=1, ge=0)
    type_sequence: tuple[str, ...] = DEFAULT_TYPE_SEQUENCE
    log_level: str = "WARNING"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings

    @field_validator(
        "max_chain_depth",
        "suggestion_limit",
        "same_scope_weight",
        "type_sequence_weight",
        "same_assignee_weight",
        mode="before",
    )
    @classmethod
    def validate_not_bool(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("must be an integer, not a boolean")
        return v

    @field_validator("type_sequence", mode="before")
    @classmethod
    def validate_type_sequence(cls, v: Any) -> tuple[str, ...]:
        if not isinstance(v, (list, tuple)) or not v:
            raise ValueError("must be a non-empty list of strings")
        seq: list[str] = []
        for item in v:
            if not isinstance(item, str) or not item.strip():
                raise ValueError("items must be non-empty strings")
            seq.append(item.strip().lower())
        return tuple(seq)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        if not isinstance(v, str) or v.strip().upper() not in LOG_LEVELS:
            raise ValueError(f"must be one of {sorted(LOG_LEVELS)}")
        return v.strip().upper()


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load engine settings from a YAML file.

    Format:
      max_chain_depth: 10
      suggestion_limit: 5
      type_sequence: [requirement, design, coding, testing, documentation]

    Unknown keys are rejected so typos do not silently fall back to defaults.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config file must be a mapping of setting -> value")

    known = set(EngineConfig.model_fields)
    for k in raw:
        if not isinstance(k, str) or k not in known:
            raise ConfigError(f"unknown setting: {k!r} (choose from: {', '.join(sorted(known))})")
    return dict(raw)


def merged_config(overrides: dict[str, Any] | None = None) -> EngineConfig:
    """Build an EngineConfig, turning pydantic's errors into ConfigError."""
    try:
        return EngineConfig(**(overrides or {}))
    except SettingsValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(problems) from e
    except SettingsError as e:
        raise ConfigError(str(e)) from e


def load_config(path: str | None = None) -> EngineConfig:
    """Defaults <- optional YAML file <- TASKGRAPH_* environment variables."""
    return merged_config(load_config_file(path) if path else None)
