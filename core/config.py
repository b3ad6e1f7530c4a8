"""Settings loading: optional YAML file plus environment overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ConfigDict, Field, ValidationError

_DEFAULT_GENERATOR_TIMEOUT_SECONDS = 60.0
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class Settings(BaseModel):
    """Runtime configuration for generator, store and form behavior."""

    model_config = ConfigDict(extra="forbid")

    generator_url: str = "http://localhost:54321/functions/v1/generate-report"
    generator_timeout_seconds: float = _DEFAULT_GENERATOR_TIMEOUT_SECONDS
    store_url: str | None = None
    store_key: str | None = None
    store_table: str = "reports"
    preserve_common_on_switch: bool = True
    session_idle_ttl_seconds: float = Field(default=3600.0, gt=0)
    max_sessions: int = Field(default=1000, gt=0)
    log_level: str = "INFO"


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from YAML (``path`` or ``$INSPECTA_CONFIG``) and the environment."""

    raw: dict[str, Any] = {}
    config_path = path
    if config_path is None and os.getenv("INSPECTA_CONFIG"):
        config_path = Path(os.environ["INSPECTA_CONFIG"])
    if config_path is not None:
        raw = _read_yaml_mapping(config_path)

    try:
        settings = Settings.model_validate(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid settings schema: {config_path}") from exc

    return settings.model_copy(update=_env_overrides(settings))


def _read_yaml_mapping(config_path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Settings file not found: {config_path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in settings file: {config_path}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Settings file must contain a mapping: {config_path}")
    return raw


def _env_overrides(settings: Settings) -> dict[str, Any]:
    overrides: dict[str, Any] = {}

    for env_name, field_name in (
        ("INSPECTA_GENERATOR_URL", "generator_url"),
        ("INSPECTA_STORE_URL", "store_url"),
        ("INSPECTA_STORE_KEY", "store_key"),
        ("INSPECTA_STORE_TABLE", "store_table"),
    ):
        raw = os.getenv(env_name)
        if raw:
            overrides[field_name] = raw

    raw_level = os.getenv("INSPECTA_LOG_LEVEL")
    if raw_level:
        overrides["log_level"] = raw_level.strip().upper()

    overrides["generator_timeout_seconds"] = _timeout_seconds(settings.generator_timeout_seconds)

    raw_preserve = os.getenv("INSPECTA_PRESERVE_COMMON")
    if raw_preserve is not None:
        normalized = raw_preserve.strip().lower()
        if normalized in _TRUE_VALUES:
            overrides["preserve_common_on_switch"] = True
        elif normalized in _FALSE_VALUES:
            overrides["preserve_common_on_switch"] = False

    return overrides


def _timeout_seconds(default: float) -> float:
    raw = os.getenv("INSPECTA_GENERATOR_TIMEOUT_SECONDS")
    if raw is None:
        return default
    try:
        parsed = float(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else default
