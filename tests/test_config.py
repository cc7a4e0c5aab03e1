from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from trainrunner.config.loader import CLEAR, apply_overrides, load_and_validate_config
from trainrunner.errors import ConfigurationError


def _minimal_config() -> dict[str, object]:
    return {
        "run": {"name": "test-run"},
        "model": {"name": "mlp_sigmoid"},
        "data": {"name": "binary_and"},
        "schedule": {"epochs": 3},
    }


def _write_config(tmp_path: Path, payload: object) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
    return config_path


def test_load_and_validate_materializes_defaults(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, _minimal_config())

    config, raw_path, resolved_path = load_and_validate_config(str(config_path))

    assert raw_path == str(config_path)
    assert resolved_path == config_path.resolve()
    assert config.run.seed == 1337
    assert config.model.lr == 0.01
    assert config.data.batch_size == 5
    assert config.data.resettable is True
    assert config.schedule.save_every_s == 300.0
    assert config.schedule.validate_every_s == 60.0
    assert config.checkpoint.prefix == "checkpoint"
    assert config.checkpoint.suffix == ".pt"
    assert config.tracking.enabled is False
    assert config.logging.file_name == "training.log"
    assert config.output.working_dir == "work"


def test_load_and_validate_rejects_extra_fields(tmp_path: Path) -> None:
    payload = _minimal_config()
    payload["run"] = {"name": "test-run", "extra": "nope"}
    config_path = _write_config(tmp_path, payload)

    with pytest.raises(ConfigurationError) as excinfo:
        load_and_validate_config(str(config_path))

    assert excinfo.value.errors
    assert excinfo.value.details


@pytest.mark.parametrize(
    ("section", "key"), [(None, "schema_version"), ("run", "notes")]
)
def test_unused_keys_are_not_part_of_the_schema(
    tmp_path: Path, section: str | None, key: str
) -> None:
    payload = _minimal_config()
    target = payload if section is None else payload[section]
    target[key] = 1
    config_path = _write_config(tmp_path, payload)

    with pytest.raises(ConfigurationError) as excinfo:
        load_and_validate_config(str(config_path))

    assert key in (excinfo.value.details or "")


def test_run_mode_required(tmp_path: Path) -> None:
    payload = _minimal_config()
    payload["schedule"] = {}
    config_path = _write_config(tmp_path, payload)

    with pytest.raises(ConfigurationError) as excinfo:
        load_and_validate_config(str(config_path))

    assert "either epochs or validate_only" in (excinfo.value.details or "")


def test_run_modes_are_exclusive(tmp_path: Path) -> None:
    payload = _minimal_config()
    payload["schedule"] = {"epochs": 2, "validate_only": True}
    config_path = _write_config(tmp_path, payload)

    with pytest.raises(ConfigurationError) as excinfo:
        load_and_validate_config(str(config_path))

    assert "cannot be combined" in (excinfo.value.details or "")


@pytest.mark.parametrize("prefix", ["", "has_underscore", "has space"])
def test_checkpoint_prefix_must_not_contain_separator(tmp_path: Path, prefix: str) -> None:
    payload = _minimal_config()
    payload["checkpoint"] = {"prefix": prefix}
    config_path = _write_config(tmp_path, payload)

    with pytest.raises(ConfigurationError):
        load_and_validate_config(str(config_path))


def test_overrides_replace_file_values(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, _minimal_config())

    config, _, _ = load_and_validate_config(
        str(config_path),
        {
            "schedule": {"epochs": 7, "save_every_s": 5.0, "validate_every_s": None},
            "output": {"working_dir": str(tmp_path / "elsewhere")},
        },
    )

    assert config.schedule.epochs == 7
    assert config.schedule.save_every_s == 5.0
    assert config.schedule.validate_every_s == 60.0
    assert config.output.working_dir == str(tmp_path / "elsewhere")


def test_override_can_switch_to_validate_only(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, _minimal_config())

    config, _, _ = load_and_validate_config(
        str(config_path), {"schedule": {"validate_only": True, "epochs": CLEAR}}
    )

    assert config.schedule.validate_only is True
    assert config.schedule.epochs is None


def test_apply_overrides_rejects_non_mapping_section() -> None:
    with pytest.raises(ConfigurationError, match="must be a mapping"):
        apply_overrides({"schedule": [1, 2]}, {"schedule": {"epochs": 1}})


def test_apply_overrides_leaves_input_untouched() -> None:
    raw = {"schedule": {"epochs": 1}}
    merged = apply_overrides(raw, {"schedule": {"epochs": 4}})
    assert raw == {"schedule": {"epochs": 1}}
    assert merged == {"schedule": {"epochs": 4}}


def test_yaml_parse_error_is_configuration_error(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("run: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="YAML parse error"):
        load_and_validate_config(str(config_path))


def test_missing_file_is_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="unable to read"):
        load_and_validate_config(str(tmp_path / "absent.yaml"))


def test_top_level_must_be_mapping(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, ["not", "a", "mapping"])

    with pytest.raises(ConfigurationError, match="top-level config must be a mapping"):
        load_and_validate_config(str(config_path))


def test_blank_config_path_rejected() -> None:
    with pytest.raises(ConfigurationError):
        load_and_validate_config("  ")
