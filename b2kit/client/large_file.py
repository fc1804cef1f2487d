# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Large-file uploads: start, upload parts in parallel, finish.

The uploader picks part boundaries, submits one job per part to an executor
and then collects the results in part order, because b2_finish_large_file
takes the part SHA1s in part order. Each part has its own retry loop and
draws upload URLs from a pool shared by all parts of the file.

Resuming an unfinished large file reuses the parts that were already
uploaded, as long as their numbers and lengths line up with the parts the
uploader would pick today. Everything else is uploaded again.

If any part fails for good, the remaining jobs are cancelled and the error
is raised. The unfinished file stays on the server so it can be resumed.
"""

import logging
import threading
from concurrent.futures import Executor, Future
from typing import TYPE_CHECKING, Callable, Optional

from b2kit.client.caches import UploadPartUrlCache
from b2kit.client.content import PartOfContentSource
from b2kit.client.exceptions import B2Error, LocalError
from b2kit.client.parts import PartSizes, PartSpec
from b2kit.client.progress import (
    ByteProgressFilteringListener,
    UploadProgressAdapter,
    UploadState,
    report,
)
from b2kit.client.retry import Retryer, RetryPolicy
from b2kit.client.structures import (
    AUTO_CONTENT_TYPE,
    LARGE_FILE_SHA1_INFO_NAME,
    FileVersion,
    Part,
    UploadFileRequest,
)
from b2kit.logging.logger import get_logger

if TYPE_CHECKING:
    from b2kit.client.auth import AccountAuthorizationCache
    from b2kit.client.webifier import Webifier

_logger: logging.Logger = get_logger(__name__)

DEFAULT_PROGRESS_INTERVAL_SECONDS = 5.0


class CancellationToken:
    """Lets a caller stop an upload that is in progress. Checked as parts start and stream."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise LocalError("cancelled", "Request cancelled by caller")


def start_large_file_info(request: UploadFileRequest) -> dict[str, str]:
    """The file info sent to b2_start_large_file: the caller's, plus the whole-file SHA1 when known."""
    info = dict(request.file_info)
    sha1 = request.content_source.sha1_or_none()
    if sha1 is not None:
        info[LARGE_FILE_SHA1_INFO_NAME] = sha1
    return info


def _check_match(name: str, requested: object, existing: object) -> None:
    if requested != existing:
        raise LocalError(
            "mismatch",
            f"contentSource has {name} '{requested}', but largeFileVersion has '{existing}'",
        )


def check_large_file_matches_request(file_version: FileVersion, request: UploadFileRequest) -> None:
    """
    Make sure an unfinished large file is the one the request would create.

    The content length can't be compared: the service doesn't know it until
    the file is finished.

    Raises:
        LocalError: code "mismatch" when any compared field differs.
    """
    _check_match("fileName", request.file_name, file_version.file_name)
    _check_match("sha1", request.content_source.sha1_or_none(), file_version.large_file_sha1)
    if request.content_type != AUTO_CONTENT_TYPE:
        _check_match("contentType", request.content_type, file_version.content_type)

    existing_info = {
        name: value
        for name, value in file_version.file_info.items()
        if name != LARGE_FILE_SHA1_INFO_NAME
    }
    _check_match("fileInfo", dict(sorted(request.file_info.items())), dict(sorted(existing_info.items())))


def match_already_uploaded(
    part_specs: list[PartSpec], already_uploaded: list[Part]
) -> dict[int, Part]:
    """
    Pair uploaded parts with part specs of the same number and length.

    Returns:
        Reusable parts keyed by part number.
    """
    uploaded = sorted(already_uploaded, key=lambda part: part.part_number)
    reusable: dict[int, Part] = {}
    spec_index = 0
    part_index = 0
    while spec_index < len(part_specs) and part_index < len(uploaded):
        spec = part_specs[spec_index]
        part = uploaded[part_index]
        if spec.part_number == part.part_number and spec.length == part.content_length:
            reusable[spec.part_number] = part
            part_index += 1
        spec_index += 1
    return reusable


class LargeFileUploader:
    def __init__(
        self,
        retryer: Retryer,
        webifier: "Webifier",
        auth_cache: "AccountAuthorizationCache",
        retry_policy_factory: Callable[[], RetryPolicy],
        executor: Executor,
        part_sizes: PartSizes,
        request: UploadFileRequest,
        content_length: int,
        cancellation: Optional[CancellationToken] = None,
        progress_interval_seconds: float = DEFAULT_PROGRESS_INTERVAL_SECONDS,
    ) -> None:
        self._retryer = retryer
        self._webifier = webifier
        self._auth_cache = auth_cache
        self._retry_policy_factory = retry_policy_factory
        self._executor = executor
        self._part_sizes = part_sizes
        self._request = request
        self._content_length = content_length
        self._cancellation = cancellation
        self._progress_interval_seconds = progress_interval_seconds

    def upload_large_file(self) -> FileVersion:
        part_specs = self._part_sizes.pick_parts(self._content_length)
        request = self._request
        file_info = start_large_file_info(request)

        large_file = self._retryer.do_retry(
            "b2_start_large_file",
            self._auth_cache,
            lambda is_retry: self._webifier.start_large_file(
                self._auth_cache.get(),
                request.bucket_id,
                request.file_name,
                request.content_type,
                file_info,
            ),
            self._retry_policy_factory(),
        )
        _logger.info(
            "Started large file",
            extra={
                "file_id": large_file.file_id,
                "file_name": large_file.file_name,
                "part_count": len(part_specs),
            },
        )
        return self._upload_parts_and_finish(large_file, part_specs, {})

    def finish_uploading_large_file(
        self, large_file: FileVersion, already_uploaded: list[Part]
    ) -> FileVersion:
        check_large_file_matches_request(large_file, self._request)
        part_specs = self._part_sizes.pick_parts(self._content_length)
        reusable = match_already_uploaded(part_specs, already_uploaded)
        _logger.info(
            "Resuming large file",
            extra={
                "file_id": large_file.file_id,
                "part_count": len(part_specs),
                "reused_parts": len(reusable),
            },
        )
        return self._upload_parts_and_finish(large_file, part_specs, reusable)

    def _report(self, spec: PartSpec, part_count: int, bytes_so_far: int, state: UploadState) -> None:
        report(
            self._request.listener,
            spec.part_number - 1,
            part_count,
            spec.start,
            spec.length,
            bytes_so_far,
            state,
        )

    def _upload_parts_and_finish(
        self,
        large_file: FileVersion,
        part_specs: list[PartSpec],
        reusable: dict[int, Part],
    ) -> FileVersion:
        if large_file.file_id is None:
            raise LocalError("parsing_failed", "b2_start_large_file returned no fileId")
        file_id = large_file.file_id
        part_count = len(part_specs)
        url_cache = UploadPartUrlCache(self._webifier, self._auth_cache, file_id)

        futures: list[Future[Part]] = []
        part_sha1s: list[str] = []
        try:
            for spec in part_specs:
                self._report(spec, part_count, 0, UploadState.WAITING_TO_START)
                already = reusable.get(spec.part_number)
                if already is None:
                    futures.append(
                        self._executor.submit(self._upload_one_part, url_cache, part_count, spec)
                    )
                else:
                    self._report(spec, part_count, spec.length, UploadState.SUCCEEDED)
                    done: Future[Part] = Future()
                    done.set_result(already)
                    futures.append(done)

            for future in futures:
                try:
                    part_sha1s.append(future.result().content_sha1)
                except B2Error:
                    raise
                except Exception as err:
                    raise LocalError("trouble", f"exception while trying to upload parts: {err!r}") from err
        finally:
            for future in futures:
                future.cancel()

        finished = self._retryer.do_retry(
            "b2_finish_large_file",
            self._auth_cache,
            lambda is_retry: self._webifier.finish_large_file(self._auth_cache.get(), file_id, part_sha1s),
            self._retry_policy_factory(),
        )
        _logger.info(
            "Finished large file",
            extra={"file_id": file_id, "file_name": finished.file_name, "part_count": part_count},
        )
        return finished

    def _upload_one_part(self, url_cache: UploadPartUrlCache, part_count: int, spec: PartSpec) -> Part:
        def attempt(is_retry: bool) -> Part:
            try:
                if self._cancellation is not None:
                    self._cancellation.raise_if_cancelled()
                upload_url = url_cache.get(is_retry)
                self._report(spec, part_count, 0, UploadState.STARTING)

                byte_listener = ByteProgressFilteringListener(
                    UploadProgressAdapter(
                        self._request.listener,
                        spec.part_number - 1,
                        part_count,
                        spec.start,
                        spec.length,
                    ),
                    self._progress_interval_seconds,
                )

                source = PartOfContentSource(self._request.content_source, spec.start, spec.length)
                part = self._webifier.upload_part(
                    upload_url, spec.part_number, source, byte_listener, self._cancellation
                )
                url_cache.unget(upload_url)
                self._report(spec, part_count, spec.length, UploadState.SUCCEEDED)
                return part
            except Exception:
                self._report(spec, part_count, 0, UploadState.FAILED)
                raise

        return self._retryer.do_retry(
            "b2_upload_part", self._auth_cache, attempt, self._retry_policy_factory()
        )
