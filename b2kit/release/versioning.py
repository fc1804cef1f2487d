# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Publish-version computation.

A release build publishes exactly the project version. Any other build with
a build number publishes "<version>+<build>", a PEP 440 local version, so
snapshot artifacts can never be mistaken for the release.
"""

import logging
import os
from typing import Mapping, Optional

from b2kit.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)

_TRUTHY: frozenset[str] = frozenset({"1", "true", "yes", "on"})


def is_flag_set(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() in _TRUTHY


def publish_version(
    project_version: str,
    env: Optional[Mapping[str, str]] = None,
    release_flag_env: str = "RELEASE_BUILD",
    build_number_env: str = "BUILD_NUMBER",
) -> str:
    """
    Compute the version artifacts are published under.

    Args:
        project_version: The version declared by the project.
        env: Environment to read the flag and build number from. Defaults to os.environ.
        release_flag_env: Name of the release-mode flag variable.
        build_number_env: Name of the build-number variable.

    Returns:
        project_version in release mode, otherwise project_version+build when
        a build number is set, otherwise project_version.

    Raises:
        ValueError: If project_version is empty.
    """
    if not project_version.strip():
        raise ValueError("project_version must be non-empty")

    env = env if env is not None else os.environ
    if is_flag_set(env.get(release_flag_env)):
        version = project_version
    else:
        build_number = (env.get(build_number_env) or "").strip()
        version = f"{project_version}+{build_number}" if build_number else project_version

    _logger.debug(
        "Computed publish version",
        extra={"project_version": project_version, "publish_version": version},
    )
    return version
