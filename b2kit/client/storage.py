# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
StorageClient: the public face of the B2 client.

Every operation is one webifier call wrapped in the retryer with a fresh
retry policy, so each call gets its own backoff state. Uploads draw URLs from
the shared pool; large files are split into parts uploaded on the client's
executor.

Example:
    with create_client(config, credentials_from_environment()) as client:
        bucket = client.get_bucket_or_none_by_name("my-bucket")
        client.upload_file(UploadFileRequest(bucket.bucket_id, "a.txt", "text/plain", source))
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, TypeVar

import requests

from b2kit.client.auth import AccountAuthorizationCache, AccountAuthorizer, SimpleAccountAuthorizer
from b2kit.client.caches import UploadUrlCache
from b2kit.client.content import ContentSink
from b2kit.client.large_file import CancellationToken, LargeFileUploader
from b2kit.client.listing import (
    FileNamesIterable,
    FileVersionsIterable,
    KeysIterable,
    PartsIterable,
    UnfinishedLargeFilesIterable,
)
from b2kit.client.parts import PartSizes
from b2kit.client.retry import DefaultRetryPolicy, Retryer, RetryPolicy
from b2kit.client.structures import (
    AccountAuthorization,
    ApplicationKey,
    Bucket,
    CreateKeyRequest,
    CreatedApplicationKey,
    DeleteFileVersionResponse,
    DownloadAuthorization,
    DownloadRequest,
    FileVersion,
    GetDownloadAuthorizationRequest,
    ListFileNamesRequest,
    ListFileVersionsRequest,
    ListKeysRequest,
    ListPartsRequest,
    ListUnfinishedLargeFilesRequest,
    UploadFileRequest,
)
from b2kit.client.webapi import WebApiClient
from b2kit.client.webifier import Webifier
from b2kit.config.credentials import Credentials
from b2kit.config.schema import B2KitConfig, RetryConfig, UploadConfig
from b2kit.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)

T = TypeVar("T")


def retry_policy_factory(config: Optional[RetryConfig] = None) -> Callable[[], RetryPolicy]:
    """A factory producing a fresh DefaultRetryPolicy per call, configured by config."""
    config = config if config is not None else RetryConfig()

    def make() -> RetryPolicy:
        return DefaultRetryPolicy(
            max_attempts=config.max_attempts,
            initial_delay_seconds=config.initial_delay_seconds,
            max_delay_seconds=config.max_delay_seconds,
        )

    return make


class StorageClient:
    def __init__(
        self,
        webifier: Webifier,
        authorizer: AccountAuthorizer,
        retry_policy_factory_: Optional[Callable[[], RetryPolicy]] = None,
        upload_config: Optional[UploadConfig] = None,
        retryer: Optional[Retryer] = None,
    ) -> None:
        upload_config = upload_config if upload_config is not None else UploadConfig()

        self._webifier = webifier
        self._retryer = retryer if retryer is not None else Retryer()
        self._retry_policy_factory = (
            retry_policy_factory_ if retry_policy_factory_ is not None else retry_policy_factory()
        )
        self._auth_cache = AccountAuthorizationCache(webifier, authorizer)
        self._upload_url_cache = UploadUrlCache(webifier, self._auth_cache)
        self._executor = ThreadPoolExecutor(
            max_workers=upload_config.max_workers, thread_name_prefix="b2kit-upload"
        )
        self._progress_interval_seconds = upload_config.progress_interval_seconds
        self._closed = False

    def _retry(self, operation: str, callable_: Callable[[bool], T]) -> T:
        return self._retryer.do_retry(operation, self._auth_cache, callable_, self._retry_policy_factory())

    def _call(self, operation: str, method: Callable[..., T], *args: Any) -> T:
        """Retry method(authorization, *args), fetching the authorization on every attempt."""
        return self._retry(operation, lambda is_retry: method(self._auth_cache.get(), *args))

    # Account.

    def account_id(self) -> str:
        return self._retry("get_account_id", lambda is_retry: self._auth_cache.account_id())

    def account_authorization(self) -> AccountAuthorization:
        return self._retry("get_account_authorization", lambda is_retry: self._auth_cache.get())

    def invalidate_account_authorization(self) -> None:
        self._auth_cache.clear()

    def file_policy(self) -> PartSizes:
        """Part sizes for large files, as recommended by the current authorization."""
        return PartSizes.from_authorization(self.account_authorization())

    # Buckets.

    def create_bucket(
        self,
        bucket_name: str,
        bucket_type: str,
        bucket_info: Optional[dict[str, str]] = None,
        lifecycle_rules: Optional[list[dict[str, Any]]] = None,
    ) -> Bucket:
        return self._call(
            "b2_create_bucket",
            self._webifier.create_bucket,
            bucket_name,
            bucket_type,
            bucket_info,
            lifecycle_rules,
        )

    def list_buckets(self) -> list[Bucket]:
        return self._call("b2_list_buckets", self._webifier.list_buckets).buckets

    def get_bucket_or_none_by_name(self, bucket_name: str) -> Optional[Bucket]:
        response = self._call("b2_list_buckets", self._webifier.list_buckets, bucket_name)
        for bucket in response.buckets:
            if bucket.bucket_name == bucket_name:
                return bucket
        return None

    def update_bucket(
        self,
        bucket_id: str,
        bucket_type: Optional[str] = None,
        bucket_info: Optional[dict[str, str]] = None,
        lifecycle_rules: Optional[list[dict[str, Any]]] = None,
        if_revision_is: Optional[int] = None,
    ) -> Bucket:
        return self._call(
            "b2_update_bucket",
            self._webifier.update_bucket,
            bucket_id,
            bucket_type,
            bucket_info,
            lifecycle_rules,
            if_revision_is,
        )

    def delete_bucket(self, bucket_id: str) -> Bucket:
        return self._call("b2_delete_bucket", self._webifier.delete_bucket, bucket_id)

    # Application keys.

    def create_key(self, request: CreateKeyRequest) -> CreatedApplicationKey:
        return self._call("b2_create_key", self._webifier.create_key, request)

    def application_keys(self, request: Optional[ListKeysRequest] = None) -> KeysIterable:
        return KeysIterable(
            request if request is not None else ListKeysRequest(),
            lambda page: self._call("b2_list_keys", self._webifier.list_keys, page),
        )

    def delete_key(self, application_key_id: str) -> ApplicationKey:
        return self._call("b2_delete_key", self._webifier.delete_key, application_key_id)

    # Uploads.

    def upload_small_file(self, request: UploadFileRequest) -> FileVersion:
        def attempt(is_retry: bool) -> FileVersion:
            upload_url = self._upload_url_cache.get(request.bucket_id, is_retry)
            version = self._webifier.upload_file(upload_url, request)
            self._upload_url_cache.unget(upload_url)
            return version

        version = self._retry("b2_upload_file", attempt)
        _logger.info(
            "Uploaded file",
            extra={
                "file_id": version.file_id,
                "file_name": version.file_name,
                "content_length": version.content_length,
            },
        )
        return version

    def upload_file(
        self, request: UploadFileRequest, cancellation: Optional[CancellationToken] = None
    ) -> FileVersion:
        """Upload as one file or as a large file, whichever the part sizes call for."""
        content_length = request.content_source.content_length()
        part_sizes = self.file_policy()
        if part_sizes.should_treat_as_large_file(content_length) or part_sizes.must_be_large_file(content_length):
            return self._large_file_uploader(request, content_length, part_sizes, cancellation).upload_large_file()
        return self.upload_small_file(request)

    def upload_large_file(
        self, request: UploadFileRequest, cancellation: Optional[CancellationToken] = None
    ) -> FileVersion:
        content_length = request.content_source.content_length()
        part_sizes = self.file_policy()
        return self._large_file_uploader(request, content_length, part_sizes, cancellation).upload_large_file()

    def finish_uploading_large_file(
        self,
        large_file: FileVersion,
        request: UploadFileRequest,
        cancellation: Optional[CancellationToken] = None,
    ) -> FileVersion:
        """Resume an unfinished large file, reusing whatever parts it already has."""
        if large_file.file_id is None:
            raise ValueError("large_file has no file_id")
        already_uploaded = list(self.parts(large_file.file_id))
        content_length = request.content_source.content_length()
        uploader = self._large_file_uploader(request, content_length, self.file_policy(), cancellation)
        return uploader.finish_uploading_large_file(large_file, already_uploaded)

    def _large_file_uploader(
        self,
        request: UploadFileRequest,
        content_length: int,
        part_sizes: PartSizes,
        cancellation: Optional[CancellationToken],
    ) -> LargeFileUploader:
        return LargeFileUploader(
            self._retryer,
            self._webifier,
            self._auth_cache,
            self._retry_policy_factory,
            self._executor,
            part_sizes,
            request,
            content_length,
            cancellation,
            self._progress_interval_seconds,
        )

    # Large files, one step at a time.

    def start_large_file(self, request: UploadFileRequest) -> FileVersion:
        return self._call(
            "b2_start_large_file",
            self._webifier.start_large_file,
            request.bucket_id,
            request.file_name,
            request.content_type,
            request.file_info,
        )

    def finish_large_file(self, file_id: str, part_sha1s: list[str]) -> FileVersion:
        return self._call("b2_finish_large_file", self._webifier.finish_large_file, file_id, part_sha1s)

    def cancel_large_file(self, file_id: str) -> FileVersion:
        return self._call("b2_cancel_large_file", self._webifier.cancel_large_file, file_id)

    # Listing.

    def file_names(self, request: ListFileNamesRequest) -> FileNamesIterable:
        return FileNamesIterable(
            request, lambda page: self._call("b2_list_file_names", self._webifier.list_file_names, page)
        )

    def file_versions(self, request: ListFileVersionsRequest) -> FileVersionsIterable:
        return FileVersionsIterable(
            request, lambda page: self._call("b2_list_file_versions", self._webifier.list_file_versions, page)
        )

    def unfinished_large_files(self, request: ListUnfinishedLargeFilesRequest) -> UnfinishedLargeFilesIterable:
        return UnfinishedLargeFilesIterable(
            request,
            lambda page: self._call(
                "b2_list_unfinished_large_files", self._webifier.list_unfinished_large_files, page
            ),
        )

    def parts(self, large_file_id: str) -> PartsIterable:
        return PartsIterable(
            ListPartsRequest(file_id=large_file_id),
            lambda page: self._call("b2_list_parts", self._webifier.list_parts, page),
        )

    # Downloads.

    def download_by_id(self, request: DownloadRequest, sink: ContentSink) -> None:
        self._call("b2_download_file_by_id", self._webifier.download_by_id, request, sink)

    def download_by_name(self, request: DownloadRequest, sink: ContentSink) -> None:
        self._call("b2_download_file_by_name", self._webifier.download_by_name, request, sink)

    def get_download_by_id_url(self, request: DownloadRequest) -> str:
        return self._webifier.get_download_by_id_url(self.account_authorization(), request)

    def get_download_by_name_url(self, request: DownloadRequest) -> str:
        return self._webifier.get_download_by_name_url(self.account_authorization(), request)

    # File info and deletion.

    def get_file_info(self, file_id: str) -> FileVersion:
        return self._call("b2_get_file_info", self._webifier.get_file_info, file_id)

    def get_file_info_by_name(self, bucket_name: str, file_name: str) -> FileVersion:
        return self._call("get_file_info_by_name", self._webifier.get_file_info_by_name, bucket_name, file_name)

    def hide_file(self, bucket_id: str, file_name: str) -> FileVersion:
        return self._call("b2_hide_file", self._webifier.hide_file, bucket_id, file_name)

    def delete_file_version(self, file_name: str, file_id: str) -> DeleteFileVersionResponse:
        return self._call("b2_delete_file_version", self._webifier.delete_file_version, file_name, file_id)

    def delete_all_file_versions_in_bucket(self, bucket_id: str) -> int:
        """
        Delete every file version in a bucket, hide markers and unfinished large files included.

        Returns:
            The number of versions deleted.
        """
        deleted = 0
        for version in self.file_versions(ListFileVersionsRequest(bucket_id=bucket_id)):
            if version.file_id is None:
                continue
            self.delete_file_version(version.file_name, version.file_id)
            deleted += 1
        _logger.info("Deleted all file versions", extra={"bucket_id": bucket_id, "deleted": deleted})
        return deleted

    def get_download_authorization(self, request: GetDownloadAuthorizationRequest) -> DownloadAuthorization:
        return self._call("b2_get_download_authorization", self._webifier.get_download_authorization, request)

    # Lifecycle.

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        self._webifier.close()

    def __enter__(self) -> "StorageClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def create_client(
    config: Optional[B2KitConfig],
    credentials: Credentials,
    session: Optional[requests.Session] = None,
) -> StorageClient:
    """
    Build a StorageClient from config and credentials.

    Sections missing from config fall back to their defaults.
    """
    client_config = config.client if config is not None else None
    retry_config = config.retry if config is not None else None
    upload_config = config.upload if config is not None else None

    web_api_client = (
        WebApiClient(
            session,
            client_config.connect_timeout_seconds,
            client_config.socket_timeout_seconds,
        )
        if client_config is not None
        else WebApiClient(session)
    )
    progress_interval = upload_config.progress_interval_seconds if upload_config is not None else 5.0
    webifier = Webifier(web_api_client, client_config, progress_interval)
    authorizer = SimpleAccountAuthorizer(credentials.application_key_id, credentials.application_key)

    _logger.debug("Created storage client", extra={"master_url": webifier.master_url})
    return StorageClient(webifier, authorizer, retry_policy_factory(retry_config), upload_config)
