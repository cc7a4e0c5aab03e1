"""Working directory preparation and config persistence utilities."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from trainrunner.config.schemas import RunConfig
from trainrunner.errors import ConfigurationError


def prepare_working_dir(working_dir: str | Path) -> Path:
    """Create the working directory if needed and check it is readable and writable."""
    path = Path(working_dir).expanduser()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"Cannot create working directory {path}: {exc}") from exc

    if not path.is_dir() or not os.access(path, os.R_OK | os.W_OK | os.X_OK):
        raise ConfigurationError(f"Cannot access working directory {path}")
    return path


def write_resolved_config(working_dir: str | Path, config: RunConfig) -> Path:
    """Write resolved config to working_dir/config.yaml in canonical order."""
    work_path = Path(working_dir)
    output_path = work_path / "config.yaml"
    tmp_path = work_path / "config.yaml.tmp"

    payload = config.model_dump()

    with tmp_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=False)

    tmp_path.replace(output_path)
    return output_path
