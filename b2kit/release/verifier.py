# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release verification: is a release directory complete and intact?

Checks, in order:
  1. metadata.json parses and has every required field
  2. every artifact the manifest lists is present
  3. each artifact matches the SHA256 the manifest recorded
  4. checksum.txt matches the files it lists
  5. signatures exist for every artifact when the manifest says signed

All checks run even after a failure, so the report lists every problem.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from b2kit.logging.logger import get_logger
from b2kit.release.checksums import verify_checksums
from b2kit.release.manifest import MANIFEST_FILE_NAME, validate_manifest_data
from b2kit.release.signing import signature_path
from b2kit.utils.hashing import compute_sha256

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class VerificationReport:
    is_valid: bool
    release_dir: str
    checks_passed: list[str] = field(default_factory=list)
    checks_failed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _read_manifest(release_dir: Path) -> tuple[dict, list[str]]:
    path = release_dir / MANIFEST_FILE_NAME
    if not path.is_file():
        return {}, [f"{MANIFEST_FILE_NAME} not found"]
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as err:
        return {}, [f"Failed to parse {MANIFEST_FILE_NAME}: {err}"]
    errors = validate_manifest_data(data)
    return (data if not errors else {}), errors


def _check_artifacts_present(release_dir: Path, artifacts: dict[str, str]) -> list[str]:
    return [f"Missing artifact: {name}" for name in sorted(artifacts) if not (release_dir / name).is_file()]


def _check_artifact_hashes(release_dir: Path, artifacts: dict[str, str]) -> list[str]:
    errors: list[str] = []
    for name, digest in sorted(artifacts.items()):
        path = release_dir / name
        if path.is_file() and compute_sha256(path) != digest.lower():
            errors.append(f"Artifact does not match manifest: {name}")
    return errors


def _check_signatures(release_dir: Path, artifacts: dict[str, str]) -> list[str]:
    return [
        f"Missing signature: {signature_path(release_dir / name).name}"
        for name in sorted(artifacts)
        if not signature_path(release_dir / name).is_file()
    ]


def verify_release(release_dir: Path) -> VerificationReport:
    if not release_dir.is_dir():
        return VerificationReport(
            is_valid=False,
            release_dir=str(release_dir),
            checks_failed=["directory_exists"],
            errors=[f"Release directory not found: {release_dir}"],
        )

    passed: list[str] = []
    failed: list[str] = []
    errors: list[str] = []

    def record(check: str, problems: list[str]) -> None:
        if problems:
            failed.append(check)
            errors.extend(problems)
        else:
            passed.append(check)

    manifest, manifest_errors = _read_manifest(release_dir)
    record("manifest_valid", manifest_errors)

    artifacts: dict[str, str] = manifest.get("artifacts", {})
    if manifest:
        record("artifacts_present", _check_artifacts_present(release_dir, artifacts))
        record("artifact_hashes", _check_artifact_hashes(release_dir, artifacts))

    checksums = verify_checksums(release_dir)
    record(
        "checksums_valid",
        [f"Checksum mismatch: {name}" for name in checksums.mismatches]
        + [f"Missing file in checksums: {name}" for name in checksums.missing_files]
        + checksums.errors,
    )

    if manifest.get("signed"):
        record("signatures_present", _check_signatures(release_dir, artifacts))

    is_valid = not failed
    if is_valid:
        _logger.info(
            "Release verification passed",
            extra={"release_dir": str(release_dir), "checks_passed": len(passed)},
        )
    else:
        _logger.error(
            "Release verification failed",
            extra={"release_dir": str(release_dir), "checks_failed": failed, "errors": errors},
        )

    return VerificationReport(
        is_valid=is_valid,
        release_dir=str(release_dir),
        checks_passed=passed,
        checks_failed=failed,
        errors=errors,
    )
