# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for b2kit tests.

Builders for fake HTTP responses live in fakes.py so test modules can import
them directly.
"""

import textwrap
from pathlib import Path

import pytest
from fakes import auth_wire

from b2kit.client.retry import Sleeper
from b2kit.client.structures import AccountAuthorization


class RecordingSleeper(Sleeper):
    """Records requested sleeps instead of sleeping."""

    def __init__(self) -> None:
        self.slept: list[int] = []

    def sleep_seconds(self, seconds: int) -> None:
        self.slept.append(seconds)


@pytest.fixture()
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture()
def authorization() -> AccountAuthorization:
    return AccountAuthorization.model_validate(auth_wire())


@pytest.fixture()
def b2_env() -> dict[str, str]:
    return {"B2_APPLICATION_KEY_ID": "key-id-1", "B2_APPLICATION_KEY": "secret-key-1"}


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """The smallest config that passes schema validation."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """Valid YAML that fails schema validation (config_version missing)."""
    config_content = textwrap.dedent("""\
        global:
          log_level: "INFO"
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file
