from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, field_validator

from baseline.schemas import BaselineBaseModel

CONFIG_KEY = "baseline"
DEFAULT_ENCODING = "utf-8"


class ConfigError(ValueError):
    def __init__(self, *, source: str, details: str) -> None:
        super().__init__(f"invalid configuration in {source}: {details}")
        self.source = source
        self.details = details


def _parse_bool(raw: str, *, env_var: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{env_var} must be a boolean value")


def _validate_pattern(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    try:
        re.compile(text)
    except re.error as exc:
        raise ValueError(f"invalid regular expression: {exc}") from exc
    return text


class StaticFilesConfig(BaselineBaseModel):
    paths: list[str] = Field(default_factory=list)
    include_pattern: str | None = None
    exclude_pattern: str | None = None
    exclude: list[str] = Field(default_factory=list)

    @field_validator("include_pattern", "exclude_pattern")
    @classmethod
    def validate_patterns(cls, value: str | None) -> str | None:
        return _validate_pattern(value)

    @field_validator("paths", "exclude")
    @classmethod
    def validate_paths(cls, value: list[str]) -> list[str]:
        paths = [item.strip() for item in value if item and item.strip()]
        return list(dict.fromkeys(paths))


class TemplateConfig(BaselineBaseModel):
    output_source_files: bool = True
    encoding: str = DEFAULT_ENCODING
    page_title_prefix: str = ""
    static_files: StaticFilesConfig = Field(default_factory=StaticFilesConfig)

    @field_validator("encoding")
    @classmethod
    def validate_encoding(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("encoding must be non-empty")
        return text


def _camel_to_snake(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def _normalize_keys(value: Any) -> Any:
    # JSDoc conf files spell keys in camelCase (outputSourceFiles, staticFiles).
    if isinstance(value, dict):
        return {_camel_to_snake(str(key)): _normalize_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_normalize_keys(item) for item in value]
    return value


def _select_section(payload: dict[str, Any]) -> dict[str, Any]:
    templates = payload.get("templates")
    if isinstance(templates, dict):
        section = templates.get(CONFIG_KEY) or {}
        if not isinstance(section, dict):
            raise ValueError(f"templates.{CONFIG_KEY} must be an object")
        return section
    return payload


def parse_config(payload: Any, *, source: str = "<config>") -> TemplateConfig:
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ConfigError(source=source, details="config must be an object")
    try:
        section = _select_section(payload)
        return TemplateConfig.model_validate(_normalize_keys(section))
    except ValidationError as exc:
        error = exc.errors()[0]
        location = ".".join(str(part) for part in error["loc"])
        raise ConfigError(source=source, details=f"{location}: {error['msg']}") from exc
    except ValueError as exc:
        raise ConfigError(source=source, details=str(exc)) from exc


def load_config(path: Path) -> TemplateConfig:
    """Load a YAML or JSON config file (JSON parses as YAML)."""
    try:
        text = path.read_text(encoding=DEFAULT_ENCODING)
    except OSError as exc:
        raise ConfigError(source=path.as_posix(), details=str(exc)) from exc
    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(source=path.as_posix(), details=f"parse error: {exc}") from exc
    return parse_config(payload, source=path.as_posix())


def load_config_from_env(
    environ: Mapping[str, str] | None = None,
    *,
    base_config: TemplateConfig | None = None,
) -> TemplateConfig:
    env = dict(os.environ if environ is None else environ)
    config = base_config or TemplateConfig()
    payload = config.model_dump(mode="python")

    if "BASELINE_OUTPUT_SOURCE_FILES" in env:
        payload["output_source_files"] = _parse_bool(
            env["BASELINE_OUTPUT_SOURCE_FILES"],
            env_var="BASELINE_OUTPUT_SOURCE_FILES",
        )
    if "BASELINE_ENCODING" in env:
        payload["encoding"] = env["BASELINE_ENCODING"]
    if "BASELINE_PAGE_TITLE_PREFIX" in env:
        payload["page_title_prefix"] = env["BASELINE_PAGE_TITLE_PREFIX"]
    if "BASELINE_STATIC_PATHS" in env:
        payload["static_files"]["paths"] = env["BASELINE_STATIC_PATHS"].split(os.pathsep)

    try:
        return TemplateConfig.model_validate(payload)
    except ValidationError as exc:
        error = exc.errors()[0]
        location = ".".join(str(part) for part in error["loc"])
        raise ConfigError(source="environment", details=f"{location}: {error['msg']}") from exc
