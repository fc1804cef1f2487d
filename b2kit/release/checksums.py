# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
SHA256 checksum files for release directories.

checksum.txt uses the sha256sum layout so it can also be checked with
coreutils:

    <sha256hex>  <filename>

one line per file, sorted by file name. checksum.txt never lists itself.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from b2kit.logging.logger import get_logger
from b2kit.utils.filesystem import atomic_write
from b2kit.utils.hashing import compute_sha256

_logger: logging.Logger = get_logger(__name__)

CHECKSUM_FILE_NAME = "checksum.txt"
_SHA256_HEX_LENGTH = 64


@dataclass(frozen=True)
class ChecksumReport:
    is_valid: bool
    checked_count: int
    mismatches: list[str] = field(default_factory=list)
    missing_files: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def checksum_files(paths: Iterable[Path]) -> dict[str, str]:
    """SHA256 of each path, keyed and sorted by file name."""
    return {path.name: compute_sha256(path) for path in sorted(paths, key=lambda p: p.name)}


def generate_checksums(release_dir: Path) -> dict[str, str]:
    """
    Checksum every regular file directly inside release_dir, except checksum.txt.

    Raises:
        FileNotFoundError: If release_dir isn't a directory.
    """
    if not release_dir.is_dir():
        raise FileNotFoundError(f"Release directory not found: {release_dir}")

    checksums = checksum_files(
        path for path in release_dir.iterdir() if path.is_file() and path.name != CHECKSUM_FILE_NAME
    )
    _logger.info(
        "Checksums generated",
        extra={"release_dir": str(release_dir), "file_count": len(checksums)},
    )
    return checksums


def format_checksums(checksums: dict[str, str]) -> str:
    return "".join(f"{checksums[name]}  {name}\n" for name in sorted(checksums))


def write_checksum_file(release_dir: Path, checksums: dict[str, str]) -> Path:
    path = release_dir / CHECKSUM_FILE_NAME
    atomic_write(path, format_checksums(checksums))
    _logger.info("Checksum file written", extra={"path": str(path), "entries": len(checksums)})
    return path


def parse_checksums(text: str) -> dict[str, str]:
    """
    Parse checksum.txt content.

    Raises:
        ValueError: On a line that isn't "<64 hex chars>  <name>".
    """
    checksums: dict[str, str] = {}
    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        digest, sep, name = line.partition("  ")
        if not sep or not name:
            raise ValueError(f"line {line_number}: expected '<sha256>  <filename>', got {line!r}")
        if len(digest) != _SHA256_HEX_LENGTH or any(c not in "0123456789abcdefABCDEF" for c in digest):
            raise ValueError(f"line {line_number}: not a SHA256 hex digest: {digest!r}")
        checksums[name] = digest.lower()
    return checksums


def read_checksum_file(path: Path) -> dict[str, str]:
    """
    Raises:
        FileNotFoundError: If path doesn't exist.
        ValueError: If the content is malformed.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Checksum file not found: {path}")
    return parse_checksums(path.read_text(encoding="utf-8"))


def verify_checksums(release_dir: Path) -> ChecksumReport:
    """Check every file listed in checksum.txt. Reports all problems, not only the first."""
    try:
        expected = read_checksum_file(release_dir / CHECKSUM_FILE_NAME)
    except FileNotFoundError:
        return ChecksumReport(False, 0, errors=[f"{CHECKSUM_FILE_NAME} not found in {release_dir}"])
    except ValueError as err:
        return ChecksumReport(False, 0, errors=[f"Malformed {CHECKSUM_FILE_NAME}: {err}"])

    mismatches: list[str] = []
    missing: list[str] = []
    checked = 0
    for name, digest in sorted(expected.items()):
        path = release_dir / name
        if not path.is_file():
            missing.append(name)
            continue
        checked += 1
        if compute_sha256(path) != digest:
            mismatches.append(name)
            _logger.error("Checksum mismatch", extra={"file": name})

    is_valid = not mismatches and not missing
    if not is_valid:
        _logger.error(
            "Checksum verification failed",
            extra={"mismatches": mismatches, "missing": missing},
        )
    return ChecksumReport(is_valid, checked, mismatches, missing)
