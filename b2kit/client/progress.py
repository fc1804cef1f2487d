# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Upload progress reporting.

Callers pass an UploadListener (any callable taking an UploadProgress) with
an upload request. A small file is reported as part 0 of 1; a large file
reports each part separately, so a listener sees interleaved updates from
parallel part uploads and should key on part_index.

Lower down, content streams report raw byte counts to a ByteProgressListener.
UploadProgressAdapter turns those byte counts into UploadProgress values, and
ByteProgressFilteringListener keeps a fast stream from flooding the listener.
"""

import enum
import time
from dataclasses import dataclass
from typing import Callable, Optional


class UploadState(enum.Enum):
    WAITING_TO_START = "waiting_to_start"
    STARTING = "starting"
    UPLOADING = "uploading"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class UploadProgress:
    part_index: int
    part_count: int
    start_byte: int
    length: int
    bytes_so_far: int
    state: UploadState


UploadListener = Callable[[UploadProgress], None]


def no_op_listener(progress: UploadProgress) -> None:
    pass


def report(
    listener: UploadListener,
    part_index: int,
    part_count: int,
    start_byte: int,
    length: int,
    bytes_so_far: int,
    state: UploadState,
) -> None:
    listener(UploadProgress(part_index, part_count, start_byte, length, bytes_so_far, state))


def report_single_file(
    listener: UploadListener,
    length: int,
    bytes_so_far: int,
    state: UploadState,
) -> None:
    report(listener, 0, 1, 0, length, bytes_so_far, state)


class ByteProgressListener:
    """Receives byte counts from a stream that is being read."""

    def progress(self, bytes_so_far: int) -> None:
        pass

    def hit_exception(self, error: BaseException, bytes_so_far: int) -> None:
        pass

    def reached_eof(self, bytes_so_far: int) -> None:
        pass


class UploadProgressAdapter(ByteProgressListener):
    """Turns byte counts for one part into UPLOADING or FAILED progress updates."""

    def __init__(
        self,
        listener: UploadListener,
        part_index: int,
        part_count: int,
        start_byte: int,
        length: int,
    ) -> None:
        self._listener = listener
        self._part_index = part_index
        self._part_count = part_count
        self._start_byte = start_byte
        self._length = length

    def progress(self, bytes_so_far: int) -> None:
        report(
            self._listener,
            self._part_index,
            self._part_count,
            self._start_byte,
            self._length,
            bytes_so_far,
            UploadState.UPLOADING,
        )

    def hit_exception(self, error: BaseException, bytes_so_far: int) -> None:
        report(
            self._listener,
            self._part_index,
            self._part_count,
            self._start_byte,
            self._length,
            bytes_so_far,
            UploadState.FAILED,
        )

    def reached_eof(self, bytes_so_far: int) -> None:
        # At EOF the true length is known, which matters when the stream
        # carried a trailing SHA1.
        report(
            self._listener,
            self._part_index,
            self._part_count,
            self._start_byte,
            bytes_so_far,
            bytes_so_far,
            UploadState.UPLOADING,
        )


class ByteProgressFilteringListener(ByteProgressListener):
    """
    Passes on at most one progress() call per interval.

    hit_exception() and reached_eof() always pass through.
    """

    def __init__(
        self,
        listener: ByteProgressListener,
        interval_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._listener = listener
        self._interval_seconds = interval_seconds
        self._clock = clock
        self._next_report_at: Optional[float] = None

    def progress(self, bytes_so_far: int) -> None:
        now = self._clock()
        if self._next_report_at is None or now >= self._next_report_at:
            self._listener.progress(bytes_so_far)
            self._next_report_at = now + self._interval_seconds

    def hit_exception(self, error: BaseException, bytes_so_far: int) -> None:
        self._listener.hit_exception(error, bytes_so_far)

    def reached_eof(self, bytes_so_far: int) -> None:
        self._listener.reached_eof(bytes_so_far)
