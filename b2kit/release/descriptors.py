# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Versioned copies of generated descriptor files.

Build tooling writes descriptors (package metadata, SBOMs, ...) under fixed
names. A release carries them as "<project>-<version><suffix>" so several
versions can sit side by side in a registry.
"""

import logging
import shutil
from pathlib import Path
from typing import Sequence

from b2kit.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)


def _full_suffix(path: Path) -> str:
    # "bom.cdx.json" keeps ".cdx.json"
    return "".join(path.suffixes)


def stamped_name(descriptor: Path, project_name: str, version: str) -> str:
    return f"{project_name}-{version}{_full_suffix(descriptor)}"


def stamp_descriptors(
    descriptors: Sequence[Path],
    output_dir: Path,
    project_name: str,
    version: str,
) -> list[Path]:
    """
    Copy each descriptor into output_dir under its versioned name, overwriting.

    Raises:
        FileNotFoundError: If a descriptor doesn't exist.
        ValueError: If two descriptors would get the same versioned name.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    targets: dict[str, Path] = {}
    for descriptor in descriptors:
        if not descriptor.is_file():
            raise FileNotFoundError(f"Descriptor not found: {descriptor}")
        name = stamped_name(descriptor, project_name, version)
        if name in targets:
            raise ValueError(f"Descriptors {targets[name]} and {descriptor} both stamp to {name}")
        targets[name] = descriptor

    stamped: list[Path] = []
    for name, descriptor in targets.items():
        target = output_dir / name
        shutil.copyfile(descriptor, target)
        stamped.append(target)
        _logger.info("Stamped descriptor", extra={"source": str(descriptor), "target": name})
    return stamped
