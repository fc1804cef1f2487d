# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Single-archive release bundles.

A registry upload is easier to handle as one file, so the release can be
packed into a zip. Entries live under "<prefix>/" and are written in sorted
order with a fixed timestamp, so the same inputs always give the same bytes.
"""

import logging
import zipfile
from pathlib import Path
from typing import Sequence

from b2kit.logging.logger import get_logger
from b2kit.release.checksums import CHECKSUM_FILE_NAME
from b2kit.release.signing import signature_path

_logger: logging.Logger = get_logger(__name__)

_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def _with_companions(artifacts: Sequence[Path]) -> dict[str, Path]:
    entries: dict[str, Path] = {}
    for artifact in artifacts:
        if not artifact.is_file():
            raise FileNotFoundError(f"Artifact not found: {artifact}")
        entries[artifact.name] = artifact
        signature = signature_path(artifact)
        if signature.is_file():
            entries[signature.name] = signature

        checksum = artifact.parent / CHECKSUM_FILE_NAME
        if checksum.is_file():
            entries.setdefault(checksum.name, checksum)
    return entries


def assemble_bundle(artifacts: Sequence[Path], bundle_path: Path, entry_prefix: str) -> Path:
    """
    Zip artifacts, plus their signatures and checksum file when present.

    Args:
        artifacts: Files to include.
        bundle_path: Zip file to write; replaced if it exists.
        entry_prefix: Directory every entry is placed under inside the zip.

    Returns:
        bundle_path.

    Raises:
        FileNotFoundError: If an artifact doesn't exist.
    """
    entries = _with_companions(artifacts)
    prefix = entry_prefix.strip("/")
    bundle_path.parent.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(bundle_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name in sorted(entries):
            info = zipfile.ZipInfo(f"{prefix}/{name}" if prefix else name, date_time=_FIXED_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            archive.writestr(info, entries[name].read_bytes())

    _logger.info(
        "Bundle assembled",
        extra={"bundle": str(bundle_path), "entries": len(entries)},
    )
    return bundle_path
