# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Hashing utilities for b2kit.

Two digests are in play. B2 verifies uploads with SHA1, so upload and
download paths hash with SHA1. Release artifacts are checksummed with
SHA256. Files are read in 64 KiB chunks either way.
"""

import hashlib
from pathlib import Path
from typing import BinaryIO, Optional

HASH_BUFFER_SIZE = 65536  # 64 KiB
SHA1_HEX_LENGTH = 40


def _hash_file(hasher: "hashlib._Hash", file_path: Path) -> str:
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(HASH_BUFFER_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def compute_sha256(file_path: Path) -> str:
    """
    Compute the SHA256 hex digest of a file.

    Args:
        file_path: Path to the file to hash.

    Returns:
        Lowercase hex string of the SHA256 digest.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        OSError: If the file can't be read.
    """
    return _hash_file(hashlib.sha256(), file_path)


def compute_sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def verify_checksum(file_path: Path, expected_hash: str) -> bool:
    """True when the file's SHA256 matches expected_hash (case-insensitive)."""
    return compute_sha256(file_path) == expected_hash.lower()


def compute_sha1(file_path: Path) -> str:
    return _hash_file(hashlib.sha1(), file_path)


def compute_sha1_bytes(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def compute_sha1_stream(stream: BinaryIO, length: Optional[int] = None) -> str:
    """
    SHA1 of a binary stream, reading at most `length` bytes when given.

    Raises:
        EOFError: If the stream ends before `length` bytes were read.
    """
    hasher = hashlib.sha1()
    remaining = length
    while remaining is None or remaining > 0:
        size = HASH_BUFFER_SIZE if remaining is None else min(HASH_BUFFER_SIZE, remaining)
        chunk = stream.read(size)
        if not chunk:
            break
        hasher.update(chunk)
        if remaining is not None:
            remaining -= len(chunk)
    if remaining:
        raise EOFError(f"stream ended with {remaining} bytes still expected")
    return hasher.hexdigest()
