# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the config loader, the entry point for all config loading in b2kit.

We test:
  1. Valid YAML loads into a frozen, correct config object
  2. Schema violations raise ConfigValidationError
  3. Broken or missing files raise ConfigLoadError
"""

import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from b2kit.config.exceptions import ConfigLoadError, ConfigValidationError
from b2kit.config.loader import load_config


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


class TestLoadValidConfig:
    def test_loads_minimal_valid_config(self, tmp_config_file: Path) -> None:
        config = load_config(tmp_config_file)
        assert config.global_config.config_version == "1.0.0"
        assert config.global_config.log_level == "DEBUG"
        assert config.global_config.log_file is None

    def test_optional_sections_default_to_none(self, tmp_config_file: Path) -> None:
        config = load_config(tmp_config_file)
        assert config.client is None
        assert config.retry is None
        assert config.upload is None
        assert config.release is None

    def test_loads_full_config_with_all_sections(self, tmp_path: Path) -> None:
        config_file = _write(
            tmp_path,
            "full.yaml",
            """\
            global:
              config_version: "1.0.0"
              log_level: "WARNING"
              log_file: "logs/b2kit.log"
            client:
              master_url: "https://api.example.com/"
              user_agent: "release-bot/2.0"
              test_mode: "fail_some_uploads"
            retry:
              max_attempts: 3
              max_delay_seconds: 8
            upload:
              max_workers: 8
            release:
              project_name: "widget"
              project_version: "1.2.3"
              sign: true
              descriptors: ["build/widget.pom"]
              registry_bucket: "widget-releases"
            """,
        )

        config = load_config(config_file)
        assert config.client is not None and config.client.test_mode == "fail_some_uploads"
        assert config.retry is not None and config.retry.max_attempts == 3
        assert config.upload is not None and config.upload.max_workers == 8
        assert config.release is not None
        assert config.release.project_version == "1.2.3"
        assert config.release.descriptors == ["build/widget.pom"]
        assert config.release.bundle is True


class TestLoadInvalidConfig:
    def test_missing_required_field_raises_validation_error(self, invalid_config_file: Path) -> None:
        with pytest.raises(ConfigValidationError):
            load_config(invalid_config_file)

    def test_unknown_field_raises_validation_error(self, tmp_path: Path) -> None:
        config_file = _write(
            tmp_path,
            "unknown_field.yaml",
            """\
            global:
              config_version: "1.0.0"
            client:
              some_nonsense_field: true
            """,
        )
        with pytest.raises(ConfigValidationError):
            load_config(config_file)

    def test_wrong_type_raises_validation_error(self, tmp_path: Path) -> None:
        config_file = _write(
            tmp_path,
            "wrong_type.yaml",
            """\
            global:
              config_version: "1.0.0"
            upload:
              max_workers: "lots"
            """,
        )
        with pytest.raises(ConfigValidationError):
            load_config(config_file)

    def test_top_level_list_raises_load_error(self, tmp_path: Path) -> None:
        config_file = _write(tmp_path, "list.yaml", "- just\n- a list\n")
        with pytest.raises(ConfigLoadError):
            load_config(config_file)

    def test_broken_yaml_raises_load_error(self, broken_yaml_file: Path) -> None:
        with pytest.raises(ConfigLoadError):
            load_config(broken_yaml_file)

    def test_nonexistent_file_raises_load_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigLoadError):
            load_config(tmp_path / "does_not_exist.yaml")

    def test_directory_path_raises_load_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigLoadError):
            load_config(tmp_path)


class TestConfigImmutability:
    def test_cannot_mutate_frozen_config(self, tmp_config_file: Path) -> None:
        config = load_config(tmp_config_file)
        with pytest.raises(ValidationError):
            config.global_config.log_level = "ERROR"  # type: ignore[misc]
