# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release manifest (metadata.json).

Records what was released and from where: project and versions, the build
number and git commit it was built from, when, whether it was signed, and
the SHA256 of every artifact.
"""

import json
import logging
import subprocess
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from b2kit.logging.logger import get_logger
from b2kit.utils.filesystem import atomic_write

_logger: logging.Logger = get_logger(__name__)

MANIFEST_FILE_NAME = "metadata.json"


@dataclass(frozen=True)
class ReleaseManifest:
    project_name: str
    version: str
    publish_version: str
    build_number: Optional[str]
    git_commit: str
    timestamp: str
    signed: bool
    artifacts: dict[str, str] = field(default_factory=dict)


REQUIRED_MANIFEST_FIELDS: frozenset[str] = frozenset(
    {
        "project_name",
        "version",
        "publish_version",
        "git_commit",
        "timestamp",
        "signed",
        "artifacts",
    }
)


def get_git_commit() -> str:
    """HEAD of the current git checkout, or "unknown" outside one."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass

    _logger.warning("Could not determine git commit hash")
    return "unknown"


def create_manifest(
    project_name: str,
    version: str,
    publish_version: str,
    artifacts: dict[str, str],
    signed: bool,
    build_number: Optional[str] = None,
    git_commit: Optional[str] = None,
) -> ReleaseManifest:
    manifest = ReleaseManifest(
        project_name=project_name,
        version=version,
        publish_version=publish_version,
        build_number=build_number or None,
        git_commit=git_commit if git_commit is not None else get_git_commit(),
        timestamp=datetime.now(tz=timezone.utc).isoformat(),
        signed=signed,
        artifacts=dict(sorted(artifacts.items())),
    )
    _logger.info(
        "Manifest created",
        extra={
            "publish_version": publish_version,
            "artifact_count": len(artifacts),
            "signed": signed,
        },
    )
    return manifest


def write_manifest(manifest: ReleaseManifest, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(path, json.dumps(asdict(manifest), indent=2, sort_keys=True) + "\n")
    _logger.info("Manifest written", extra={"path": str(path)})


def validate_manifest_data(data: object) -> list[str]:
    """Problems with a decoded metadata.json; empty when it is usable."""
    if not isinstance(data, dict):
        return ["manifest root is not a JSON object"]

    errors: list[str] = []
    missing = REQUIRED_MANIFEST_FIELDS - set(data)
    if missing:
        errors.append(f"missing manifest fields: {', '.join(sorted(missing))}")
    for name in ("project_name", "version", "publish_version", "git_commit", "timestamp"):
        if name in data and not isinstance(data[name], str):
            errors.append(f"{name} must be a string")
    if "signed" in data and not isinstance(data["signed"], bool):
        errors.append("signed must be a boolean")
    if "artifacts" in data and not (
        isinstance(data["artifacts"], dict)
        and all(isinstance(v, str) for v in data["artifacts"].values())
    ):
        errors.append("artifacts must map file names to SHA256 strings")
    return errors


def load_manifest(path: Path) -> ReleaseManifest:
    """
    Raises:
        FileNotFoundError: If path doesn't exist.
        ValueError: If the file isn't JSON or misses required fields.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Manifest file not found: {path}")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as err:
        raise ValueError(f"Manifest is not valid JSON: {err}") from err

    errors = validate_manifest_data(data)
    if errors:
        raise ValueError("; ".join(errors))

    build_number = data.get("build_number")
    return ReleaseManifest(
        project_name=data["project_name"],
        version=data["version"],
        publish_version=data["publish_version"],
        build_number=str(build_number) if build_number is not None else None,
        git_commit=data["git_commit"],
        timestamp=data["timestamp"],
        signed=data["signed"],
        artifacts=dict(data["artifacts"]),
    )
