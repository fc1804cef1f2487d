# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for SHA1 and SHA256 helpers."""

import hashlib
import io
from pathlib import Path

import pytest

from b2kit.utils.hashing import (
    HASH_BUFFER_SIZE,
    compute_sha1,
    compute_sha1_bytes,
    compute_sha1_stream,
    compute_sha256,
    compute_sha256_bytes,
    verify_checksum,
)


class TestSha256:
    def test_file_matches_hashlib(self, tmp_path: Path) -> None:
        path = tmp_path / "artifact.whl"
        path.write_bytes(b"wheel contents")
        assert compute_sha256(path) == hashlib.sha256(b"wheel contents").hexdigest()

    def test_bytes(self) -> None:
        assert compute_sha256_bytes(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

    def test_verify_is_case_insensitive(self, tmp_path: Path) -> None:
        path = tmp_path / "a"
        path.write_bytes(b"abc")
        assert verify_checksum(path, compute_sha256(path).upper())
        assert not verify_checksum(path, "0" * 64)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            compute_sha256(tmp_path / "nope")


class TestSha1:
    def test_known_digest(self) -> None:
        assert compute_sha1_bytes(b"abc") == "a9993e364706816aba3e25717850c26c9cd0d89d"

    def test_file_spanning_several_buffers(self, tmp_path: Path) -> None:
        data = b"x" * (HASH_BUFFER_SIZE * 2 + 7)
        path = tmp_path / "big"
        path.write_bytes(data)
        assert compute_sha1(path) == hashlib.sha1(data).hexdigest()

    def test_stream_reads_only_length(self) -> None:
        stream = io.BytesIO(b"abcdef")
        assert compute_sha1_stream(stream, 3) == compute_sha1_bytes(b"abc")
        assert stream.read() == b"def"

    def test_stream_to_end(self) -> None:
        assert compute_sha1_stream(io.BytesIO(b"abc")) == compute_sha1_bytes(b"abc")

    def test_short_stream_raises(self) -> None:
        with pytest.raises(EOFError):
            compute_sha1_stream(io.BytesIO(b"ab"), 3)
