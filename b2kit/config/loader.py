# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Loads b2kit YAML config files into a frozen B2KitConfig.

A config file that can't be read, isn't YAML, isn't a mapping or doesn't
match the schema stops the load with a ConfigError subclass. Defaults only
come from the schema, never from a partially broken file.
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from b2kit.config.exceptions import ConfigLoadError, ConfigValidationError
from b2kit.config.schema import B2KitConfig
from b2kit.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)


def _parse_mapping(config_path: Path) -> dict[str, Any]:
    if not config_path.is_file():
        reason = "is not a file" if config_path.exists() else "not found"
        raise ConfigLoadError(f"Config file {reason}: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as stream:
            document = yaml.safe_load(stream)
    except OSError as err:
        raise ConfigLoadError(f"Cannot read config file {config_path}: {err}") from err
    except yaml.YAMLError as err:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {err}") from err

    if not isinstance(document, dict):
        raise ConfigLoadError(
            f"{config_path} must hold a YAML mapping at the top level, got {type(document).__name__}"
        )
    return document


def _describe(err: ValidationError) -> str:
    # one "section.field: problem" line per schema violation
    return "\n".join(
        f"  {'.'.join(str(part) for part in problem['loc']) or '<root>'}: {problem['msg']}"
        for problem in err.errors()
    )


def load_config(config_path: Path) -> B2KitConfig:
    """
    Read and validate a config file.

    Raises:
        ConfigLoadError: The file is missing, unreadable, not YAML or not a mapping.
        ConfigValidationError: The mapping doesn't match the schema (missing or
            unknown keys, wrong types, out-of-range values).
    """
    document = _parse_mapping(config_path)

    try:
        config = B2KitConfig.model_validate(document)
    except ValidationError as err:
        raise ConfigValidationError(f"Invalid config in {config_path}:\n{_describe(err)}") from err

    _logger.debug(
        "Config loaded",
        extra={"path": str(config_path), "sections": sorted(document)},
    )
    return config
