# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Where upload bytes come from and where download bytes go.

A ContentSource can be opened any number of times; every retry of an upload
opens a fresh stream. Sources know their length up front and may know their
SHA1. When they don't, ContentDetailsForUpload arranges for the SHA1 to be
computed while streaming and sent after the content, which B2 supports with
the "hex_digits_at_end" header value.

Content sinks receive the response headers and the body stream of a
download. The stock sinks check the downloaded bytes against the SHA1 the
service reports, for whole-file downloads where it reports one.
"""

import hashlib
import io
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Iterator, Optional

from b2kit.client import headers as h
from b2kit.client.exceptions import LocalError
from b2kit.client.headers import Headers
from b2kit.client.progress import ByteProgressListener
from b2kit.logging.logger import get_logger
from b2kit.utils.filesystem import atomic_copy_stream
from b2kit.utils.hashing import HASH_BUFFER_SIZE, SHA1_HEX_LENGTH, compute_sha1, compute_sha1_stream

if TYPE_CHECKING:
    from b2kit.client.large_file import CancellationToken

_logger: logging.Logger = get_logger(__name__)


class ContentSource(ABC):
    @abstractmethod
    def content_length(self) -> int: ...

    @abstractmethod
    def open(self) -> BinaryIO:
        """Open a new stream positioned at the start of the content."""

    def sha1_or_none(self) -> Optional[str]:
        return None

    def src_last_modified_millis_or_none(self) -> Optional[int]:
        return None


class BytesContentSource(ContentSource):
    """In-memory content. Its SHA1 is computed eagerly since the bytes are already here."""

    def __init__(self, data: bytes, src_last_modified_millis: Optional[int] = None) -> None:
        self._data = data
        self._sha1 = hashlib.sha1(data).hexdigest()
        self._src_last_modified_millis = src_last_modified_millis

    def content_length(self) -> int:
        return len(self._data)

    def sha1_or_none(self) -> Optional[str]:
        return self._sha1

    def src_last_modified_millis_or_none(self) -> Optional[int]:
        return self._src_last_modified_millis

    def open(self) -> BinaryIO:
        return io.BytesIO(self._data)

    def __repr__(self) -> str:
        return f"BytesContentSource(length={len(self._data)})"


class FileContentSource(ContentSource):
    """
    Content of a local file.

    The SHA1 is computed on first request and remembered. Pass
    compute_sha1=False to skip that read and send the SHA1 at the end of
    the upload instead.
    """

    def __init__(self, path: Path, compute_sha1: bool = True) -> None:
        self._path = Path(path)
        self._compute_sha1 = compute_sha1
        self._sha1: Optional[str] = None

    @property
    def path(self) -> Path:
        return self._path

    def content_length(self) -> int:
        return self._path.stat().st_size

    def sha1_or_none(self) -> Optional[str]:
        if not self._compute_sha1:
            return None
        if self._sha1 is None:
            self._sha1 = compute_sha1(self._path)
        return self._sha1

    def src_last_modified_millis_or_none(self) -> Optional[int]:
        return int(self._path.stat().st_mtime * 1000)

    def open(self) -> BinaryIO:
        return open(self._path, "rb")

    def __repr__(self) -> str:
        return f"FileContentSource({str(self._path)!r})"


class PartOfContentSource(ContentSource):
    """A byte range of another source, used for the parts of a large file."""

    def __init__(self, source: ContentSource, start: int, length: int) -> None:
        self._source = source
        self._start = start
        self._length = length

    def content_length(self) -> int:
        return self._length

    def open(self) -> BinaryIO:
        stream = self._source.open()
        if stream.seekable():
            stream.seek(self._start)
        else:
            _skip(stream, self._start)
        return _LimitedStream(stream, self._length)

    def __repr__(self) -> str:
        return f"PartOfContentSource({self._source!r}, start={self._start}, length={self._length})"


def _skip(stream: BinaryIO, count: int) -> None:
    while count > 0:
        chunk = stream.read(min(HASH_BUFFER_SIZE, count))
        if not chunk:
            raise LocalError("read_failed", f"source ended {count} bytes before the part started")
        count -= len(chunk)


class _LimitedStream(io.RawIOBase):
    """Reads at most `limit` bytes from an underlying stream and closes it on close()."""

    def __init__(self, stream: BinaryIO, limit: int) -> None:
        self._stream = stream
        self._remaining = limit

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        if self._remaining <= 0:
            return 0
        size = min(len(buffer), self._remaining)
        chunk = self._stream.read(size)
        buffer[: len(chunk)] = chunk
        self._remaining -= len(chunk)
        return len(chunk)

    def close(self) -> None:
        self._stream.close()
        super().close()


class UploadStream:
    """
    The request body of one upload attempt.

    Reads exactly `length` bytes of content and then `suffix` (the trailing
    hex SHA1 when it is sent at the end). Byte counts go to the progress
    listener and the cancellation token is checked on every read. requests
    streams this object and takes Content-Length from len().
    """

    def __init__(
        self,
        stream: BinaryIO,
        length: int,
        suffix: bytes = b"",
        listener: Optional[ByteProgressListener] = None,
        cancellation: Optional["CancellationToken"] = None,
        sha1_of_content: Optional["hashlib._Hash"] = None,
    ) -> None:
        self._stream = stream
        self._content_remaining = length
        self._suffix = suffix
        self._sha1_of_content = sha1_of_content
        self._listener = listener
        self._cancellation = cancellation
        self._total = length + len(suffix)
        self._bytes_so_far = 0

    def __len__(self) -> int:
        return self._total - self._bytes_so_far

    @property
    def bytes_so_far(self) -> int:
        return self._bytes_so_far

    def __iter__(self) -> Iterator[bytes]:
        while True:
            chunk = self.read(HASH_BUFFER_SIZE)
            if not chunk:
                return
            yield chunk

    def read(self, size: int = -1) -> bytes:
        if self._cancellation is not None:
            self._cancellation.raise_if_cancelled()
        if size is None or size < 0:
            size = self._total

        try:
            chunk = self._read_content(size)
        except Exception as err:
            if self._listener is not None:
                self._listener.hit_exception(err, self._bytes_so_far)
            raise

        if not chunk and self._suffix:
            if self._sha1_of_content is not None:
                self._suffix = self._sha1_of_content.hexdigest().encode("ascii")
                self._sha1_of_content = None
            chunk, self._suffix = self._suffix[:size], self._suffix[size:]

        if chunk:
            self._bytes_so_far += len(chunk)
            if self._listener is not None:
                self._listener.progress(self._bytes_so_far)
        elif self._listener is not None:
            self._listener.reached_eof(self._bytes_so_far)
        return chunk

    def _read_content(self, size: int) -> bytes:
        if self._content_remaining <= 0:
            return b""
        chunk = self._stream.read(min(size, self._content_remaining))
        if not chunk:
            raise LocalError(
                "read_failed",
                f"content ended {self._content_remaining} bytes earlier than its declared length",
            )
        self._content_remaining -= len(chunk)
        if self._sha1_of_content is not None:
            self._sha1_of_content.update(chunk)
        return chunk

    def close(self) -> None:
        self._stream.close()


class ContentDetailsForUpload:
    """
    Length and SHA1 header value of an upload, and the body stream to send.

    When the source knows its SHA1 the header carries it. Otherwise the
    header is "hex_digits_at_end" and the stream appends the 40 hex digits
    after the content, so the declared length grows by 40.
    """

    def __init__(self, source: ContentSource) -> None:
        self._source = source
        self._content_length = source.content_length()
        self._sha1 = source.sha1_or_none()
        self._src_last_modified_millis = source.src_last_modified_millis_or_none()

    @property
    def content_sha1_header_value(self) -> str:
        return self._sha1 if self._sha1 is not None else h.HEX_DIGITS_AT_END

    @property
    def content_length(self) -> int:
        return self._content_length

    @property
    def length_including_sha1(self) -> int:
        if self._sha1 is None:
            return self._content_length + SHA1_HEX_LENGTH
        return self._content_length

    @property
    def src_last_modified_millis_or_none(self) -> Optional[int]:
        return self._src_last_modified_millis

    def open_stream(
        self,
        listener: Optional[ByteProgressListener] = None,
        cancellation: Optional["CancellationToken"] = None,
    ) -> UploadStream:
        stream = self._source.open()
        if self._sha1 is not None:
            return UploadStream(stream, self._content_length, listener=listener, cancellation=cancellation)
        return UploadStream(
            stream,
            self._content_length,
            suffix=b"0" * SHA1_HEX_LENGTH,
            listener=listener,
            cancellation=cancellation,
            sha1_of_content=hashlib.sha1(),
        )


def expected_download_sha1(response_headers: Headers) -> Optional[str]:
    """
    The SHA1 a whole-file download should hash to, or None if it can't be checked.

    Range responses can't be checked. Large files report "none" as their
    content SHA1 and may carry the whole-file SHA1 in file info instead.
    """
    if response_headers.has_content_range():
        return None
    sha1 = response_headers.content_sha1_even_if_unverified()
    if sha1 is None or sha1 == "none":
        sha1 = response_headers.large_file_sha1()
    return sha1.lower() if sha1 else None


class _HashingReader(io.RawIOBase):
    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self.hasher = hashlib.sha1()

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        chunk = self._stream.read(len(buffer))
        buffer[: len(chunk)] = chunk
        self.hasher.update(chunk)
        return len(chunk)


def _check_sha1(expected: Optional[str], actual: str, what: str) -> None:
    if expected is not None and expected != actual:
        raise LocalError(
            "sha1_mismatch",
            f"{what}: expected SHA1 {expected} but downloaded content has {actual}",
        )


class ContentSink(ABC):
    """Receives the headers and body of a successful download."""

    @abstractmethod
    def write(self, response_headers: Headers, body: BinaryIO) -> None: ...


class MemorySink(ContentSink):
    def __init__(self) -> None:
        self.headers: Optional[Headers] = None
        self.data: bytes = b""

    def write(self, response_headers: Headers, body: BinaryIO) -> None:
        data = body.read()
        _check_sha1(expected_download_sha1(response_headers), hashlib.sha1(data).hexdigest(), "download")
        self.headers = response_headers
        self.data = data


class FileSink(ContentSink):
    """
    Writes the body to a local file atomically.

    On a SHA1 mismatch the target is left untouched.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.headers: Optional[Headers] = None
        self.bytes_written = 0

    def write(self, response_headers: Headers, body: BinaryIO) -> None:
        expected = expected_download_sha1(response_headers)
        reader = _HashingReader(body)
        staging = self.path.with_name(f".{self.path.name}.download")
        try:
            written = atomic_copy_stream(staging, io.BufferedReader(reader))
            _check_sha1(expected, reader.hasher.hexdigest(), str(self.path))
            os.replace(staging, self.path)
        finally:
            if staging.exists():
                staging.unlink()
        self.headers = response_headers
        self.bytes_written = written
        _logger.debug("Download written", extra={"path": str(self.path), "bytes": written})


class StreamSink(ContentSink):
    """Copies the body into a caller-owned binary stream. The stream is not closed."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self.headers: Optional[Headers] = None

    def write(self, response_headers: Headers, body: BinaryIO) -> None:
        expected = expected_download_sha1(response_headers)
        hasher = hashlib.sha1()
        while True:
            chunk = body.read(HASH_BUFFER_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
            self._stream.write(chunk)
        self.headers = response_headers
        _check_sha1(expected, hasher.hexdigest(), "download")


def sha1_of_source(source: ContentSource) -> str:
    """Hash a source's content by streaming it, for sources that don't know their SHA1."""
    known = source.sha1_or_none()
    if known is not None:
        return known
    with source.open() as stream:
        return compute_sha1_stream(stream, source.content_length())
