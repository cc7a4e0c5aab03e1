"""YAML configuration loading, CLI overrides and validation."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from trainrunner.config.schemas import RunConfig
from trainrunner.errors import ConfigurationError

# Override value that removes a key from its section.
CLEAR = object()


def resolve_config_path(config_path: str) -> tuple[str, Path]:
    """Return the provided config path and its absolute resolved path."""
    if not config_path or not config_path.strip():
        raise ConfigurationError("config path must be a non-empty string")

    raw_path = config_path
    path = Path(config_path).expanduser()
    resolved = path if path.is_absolute() else (Path.cwd() / path)
    return raw_path, resolved.resolve()


def load_yaml_config(config_path: Path) -> Any:
    """Load YAML safely, raising ConfigurationError on parse or read errors."""
    try:
        with config_path.open(encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"YAML parse error in {config_path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"unable to read config file {config_path}: {exc}") from exc

    return {} if data is None else data


def apply_overrides(
    raw_config: dict[str, Any], overrides: Mapping[str, Mapping[str, Any]]
) -> dict[str, Any]:
    """Merge ``{section: {key: value}}`` overrides into a raw config mapping.

    ``None`` values are skipped so unset CLI flags leave the file untouched;
    ``CLEAR`` drops the key from the section.
    A section that is not a mapping in the file is reported as a config error.
    """
    merged = dict(raw_config)
    for section, values in overrides.items():
        present = {key: value for key, value in values.items() if value is not None}
        if not present:
            continue
        current = merged.get(section) or {}
        if not isinstance(current, dict):
            raise ConfigurationError(f"config section '{section}' must be a mapping")
        section_values = {**current, **present}
        merged[section] = {
            key: value for key, value in section_values.items() if value is not CLEAR
        }
    return merged


def load_and_validate_config(
    config_path: str,
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
) -> tuple[RunConfig, str, Path]:
    """Load YAML config, apply overrides, validate with Pydantic, and return config + paths."""
    raw_path, resolved_path = resolve_config_path(config_path)
    raw_config = load_yaml_config(resolved_path)

    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"top-level config must be a mapping: {resolved_path}")

    if overrides:
        raw_config = apply_overrides(raw_config, overrides)

    try:
        resolved = RunConfig.model_validate(raw_config)
    except PydanticValidationError as exc:
        raise ConfigurationError(
            f"validation failed for {resolved_path}",
            details=str(exc),
            errors=exc.errors(),
        ) from exc

    return resolved, raw_path, resolved_path
