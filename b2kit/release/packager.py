# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release packager: builds one immutable release directory from dist/.

    <output>/<publish_version>/
    ├─ <artifacts copied from dist/>
    ├─ <project>-<version><suffix>      stamped descriptors
    ├─ *.asc                            when signing is on
    ├─ metadata.json
    ├─ checksum.txt
    └─ <project>-<version>.zip          when bundling is on

A publish version is released once. An existing release directory is never
touched; a different build needs a different version. If any step fails the
partial directory is removed.
"""

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import b2kit
from b2kit.config.schema import ReleaseConfig
from b2kit.logging.logger import get_logger
from b2kit.release.bundle import assemble_bundle
from b2kit.release.checksums import checksum_files, generate_checksums, write_checksum_file
from b2kit.release.descriptors import stamp_descriptors
from b2kit.release.manifest import MANIFEST_FILE_NAME, ReleaseManifest, create_manifest, write_manifest
from b2kit.release.signing import select_signing_mode, sign_artifacts
from b2kit.release.versioning import publish_version

_logger: logging.Logger = get_logger(__name__)


@dataclass(frozen=True)
class ReleaseResult:
    publish_version: str
    release_dir: str
    manifest: ReleaseManifest
    artifacts: list[str]
    signatures: list[str]
    bundle_path: Optional[str]


def _dist_artifacts(dist_dir: Path) -> list[Path]:
    if not dist_dir.is_dir():
        raise FileNotFoundError(f"Distribution directory not found: {dist_dir}")
    artifacts = sorted(path for path in dist_dir.iterdir() if path.is_file())
    if not artifacts:
        raise FileNotFoundError(f"No artifacts found in {dist_dir}")
    return artifacts


def bundle_name(project_name: str, version: str) -> str:
    return f"{project_name}-{version}.zip"


def create_release(
    config: Optional[ReleaseConfig] = None,
    env: Optional[Mapping[str, str]] = None,
    project_root: Path = Path("."),
    git_commit: Optional[str] = None,
) -> ReleaseResult:
    """
    Run the release pipeline.

    Args:
        config: Release settings; defaults when None.
        env: Environment with the release flag, build number and signing
            key material. Defaults to os.environ.
        project_root: Directory the relative paths in config resolve against.
        git_commit: Commit to record; read from git when None.

    Returns:
        ReleaseResult describing the new release directory.

    Raises:
        FileNotFoundError: If dist/ or a descriptor is missing.
        FileExistsError: If this publish version was already released.
        SigningError: If signing is on and gpg fails.
    """
    config = config if config is not None else ReleaseConfig()
    env = env if env is not None else os.environ

    project_version = config.project_version or b2kit.sdk_version()
    version = publish_version(project_version, env, config.release_flag_env, config.build_number_env)

    dist_artifacts = _dist_artifacts(project_root / config.dist_directory)
    descriptors = [project_root / d for d in config.descriptors]
    release_dir = project_root / config.output_directory / version
    if release_dir.exists():
        raise FileExistsError(
            f"Release {version} already exists at {release_dir}. Releases are immutable; bump the version."
        )

    _logger.info(
        "Creating release",
        extra={"project": config.project_name, "publish_version": version, "output": str(release_dir)},
    )
    release_dir.mkdir(parents=True, exist_ok=False)

    try:
        artifacts: list[Path] = []
        for source in dist_artifacts:
            target = release_dir / source.name
            shutil.copy2(source, target)
            artifacts.append(target)
        artifacts.extend(stamp_descriptors(descriptors, release_dir, config.project_name, version))
        artifacts.sort()

        signatures: list[Path] = []
        if config.sign:
            mode = select_signing_mode(env, config.signing_key_env, config.signing_passphrase_env)
            signatures = sign_artifacts(
                artifacts,
                mode,
                env,
                config.signing_key_env,
                config.signing_passphrase_env,
                config.signing_key_id,
                config.gpg_binary,
            )

        manifest = create_manifest(
            project_name=config.project_name,
            version=project_version,
            publish_version=version,
            artifacts=checksum_files(artifacts),
            signed=config.sign,
            build_number=(env.get(config.build_number_env) or "").strip() or None,
            git_commit=git_commit,
        )
        manifest_path = release_dir / MANIFEST_FILE_NAME
        write_manifest(manifest, manifest_path)

        write_checksum_file(release_dir, generate_checksums(release_dir))

        bundle_path: Optional[Path] = None
        if config.bundle:
            bundle_path = assemble_bundle(
                [*artifacts, manifest_path],
                release_dir / bundle_name(config.project_name, version),
                f"{config.project_name}-{version}",
            )

        _logger.info(
            "Release created",
            extra={
                "publish_version": version,
                "release_dir": str(release_dir),
                "artifact_count": len(artifacts),
                "signed": config.sign,
            },
        )
        return ReleaseResult(
            publish_version=version,
            release_dir=str(release_dir),
            manifest=manifest,
            artifacts=[path.name for path in artifacts],
            signatures=[path.name for path in signatures],
            bundle_path=str(bundle_path) if bundle_path is not None else None,
        )

    except Exception:
        if release_dir.exists():
            shutil.rmtree(release_dir)
            _logger.warning("Removed partial release after failure", extra={"release_dir": str(release_dir)})
        raise
