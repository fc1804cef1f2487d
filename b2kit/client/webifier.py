# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Turns B2 API operations into HTTP requests.

Each method makes exactly one request: no retries, no caching. It builds the
URL from the account authorization (or the master URL, for authorization
itself), sets the headers and body the operation needs, and parses the
response model. Retrying is the storage client's job.

Two kinds of 401 are tagged here so the retryer can tell them apart: one
from b2_authorize_account means the credentials are bad, one from an upload
URL means the URL went stale.
"""

import base64
import logging
import re
from typing import Any, Mapping, Optional

from b2kit.client import headers as h
from b2kit.client.content import ContentDetailsForUpload, ContentSink, ContentSource
from b2kit.client.exceptions import BadRequestError, LocalError, RequestCategory, UnauthorizedError
from b2kit.client.headers import Headers
from b2kit.client.progress import (
    ByteProgressFilteringListener,
    UploadListener,
    UploadProgressAdapter,
    UploadState,
    report_single_file,
)
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
    ListBucketsResponse,
    ListFileNamesRequest,
    ListFileNamesResponse,
    ListFileVersionsRequest,
    ListFileVersionsResponse,
    ListKeysRequest,
    ListKeysResponse,
    ListPartsRequest,
    ListPartsResponse,
    ListUnfinishedLargeFilesRequest,
    ListUnfinishedLargeFilesResponse,
    Part,
    UploadFileRequest,
    UploadPartUrlResponse,
    UploadUrlResponse,
)
from b2kit.client.webapi import WebApiClient
from b2kit.config.schema import ClientConfig
from b2kit.logging.logger import get_logger
from b2kit.utils.byte_range import ByteRange
from b2kit.utils.strings import has_control_characters, percent_encode

_logger: logging.Logger = get_logger(__name__)

API_VERSION_PATH = "b2api/v2/"

# RFC 7230 token characters; file info names travel in header names.
_FILE_INFO_NAME = re.compile(r"[a-zA-Z0-9\-_.!#$%&'*+^`|~]+")

DEFAULT_PROGRESS_INTERVAL_SECONDS = 5.0


def validate_file_info_name(name: str) -> None:
    """
    Raises:
        BadRequestError: If name can't be sent as part of an HTTP header name.
    """
    if not _FILE_INFO_NAME.fullmatch(name):
        raise BadRequestError("bad_request", None, f"Illegal file info name: {name}")


def _drop_none(body: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in body.items() if value is not None}


class Webifier:
    def __init__(
        self,
        web_api_client: WebApiClient,
        config: Optional[ClientConfig] = None,
        progress_interval_seconds: float = DEFAULT_PROGRESS_INTERVAL_SECONDS,
    ) -> None:
        config = config if config is not None else ClientConfig()
        if has_control_characters(config.user_agent):
            raise ValueError("user_agent must not contain control characters")

        self._client = web_api_client
        self._master_url = config.master_url if config.master_url.endswith("/") else config.master_url + "/"
        self._user_agent = config.user_agent
        self._test_mode = config.test_mode
        self._progress_interval_seconds = progress_interval_seconds

    @property
    def master_url(self) -> str:
        return self._master_url

    # Building blocks.

    def _common_headers(self) -> dict[str, str]:
        headers = {h.USER_AGENT: self._user_agent}
        if self._test_mode is not None:
            headers[h.TEST_MODE] = self._test_mode
        return headers

    def _auth_headers(
        self, authorization: AccountAuthorization, extras: Optional[Mapping[str, str]] = None
    ) -> dict[str, str]:
        headers = self._common_headers()
        headers[h.AUTHORIZATION] = authorization.authorization_token
        if extras:
            headers.update(extras)
        return headers

    @staticmethod
    def _api_url(authorization: AccountAuthorization, api_name: str) -> str:
        base = authorization.api_url.rstrip("/")
        return f"{base}/{API_VERSION_PATH}{api_name}"

    def _call(
        self,
        authorization: AccountAuthorization,
        api_name: str,
        body: Mapping[str, Any],
        model: type,
    ) -> Any:
        return self._client.post_json_return_json(
            self._api_url(authorization, api_name),
            self._auth_headers(authorization),
            _drop_none(body),
            model,
        )

    # Account.

    def authorize_account(self, application_key_id: str, application_key: str) -> AccountAuthorization:
        credentials = f"{application_key_id}:{application_key}".encode("utf-8")
        headers = self._common_headers()
        headers[h.AUTHORIZATION] = "Basic " + base64.b64encode(credentials).decode("ascii")
        url = self._master_url + API_VERSION_PATH + "b2_authorize_account"
        try:
            return self._client.post_json_return_json(url, headers, {}, AccountAuthorization)
        except UnauthorizedError as err:
            err.request_category = RequestCategory.ACCOUNT_AUTHORIZATION
            raise

    # Buckets.

    def create_bucket(
        self,
        authorization: AccountAuthorization,
        bucket_name: str,
        bucket_type: str,
        bucket_info: Optional[Mapping[str, str]] = None,
        lifecycle_rules: Optional[list[dict[str, Any]]] = None,
    ) -> Bucket:
        body = {
            "accountId": authorization.account_id,
            "bucketName": bucket_name,
            "bucketType": bucket_type,
            "bucketInfo": dict(bucket_info) if bucket_info else None,
            "lifecycleRules": lifecycle_rules,
        }
        return self._call(authorization, "b2_create_bucket", body, Bucket)

    def list_buckets(
        self,
        authorization: AccountAuthorization,
        bucket_name: Optional[str] = None,
        bucket_id: Optional[str] = None,
    ) -> ListBucketsResponse:
        body = {
            "accountId": authorization.account_id,
            "bucketName": bucket_name,
            "bucketId": bucket_id,
        }
        return self._call(authorization, "b2_list_buckets", body, ListBucketsResponse)

    def update_bucket(
        self,
        authorization: AccountAuthorization,
        bucket_id: str,
        bucket_type: Optional[str] = None,
        bucket_info: Optional[Mapping[str, str]] = None,
        lifecycle_rules: Optional[list[dict[str, Any]]] = None,
        if_revision_is: Optional[int] = None,
    ) -> Bucket:
        body = {
            "accountId": authorization.account_id,
            "bucketId": bucket_id,
            "bucketType": bucket_type,
            "bucketInfo": dict(bucket_info) if bucket_info is not None else None,
            "lifecycleRules": lifecycle_rules,
            "ifRevisionIs": if_revision_is,
        }
        return self._call(authorization, "b2_update_bucket", body, Bucket)

    def delete_bucket(self, authorization: AccountAuthorization, bucket_id: str) -> Bucket:
        body = {"accountId": authorization.account_id, "bucketId": bucket_id}
        return self._call(authorization, "b2_delete_bucket", body, Bucket)

    # Application keys.

    def create_key(self, authorization: AccountAuthorization, request: CreateKeyRequest) -> CreatedApplicationKey:
        body = {
            "accountId": authorization.account_id,
            "keyName": request.key_name,
            "capabilities": list(request.capabilities),
            "validDurationInSeconds": request.valid_duration_in_seconds,
            "bucketId": request.bucket_id,
            "namePrefix": request.name_prefix,
        }
        return self._call(authorization, "b2_create_key", body, CreatedApplicationKey)

    def list_keys(self, authorization: AccountAuthorization, request: ListKeysRequest) -> ListKeysResponse:
        body = {
            "accountId": authorization.account_id,
            "maxKeyCount": request.max_key_count,
            "startApplicationKeyId": request.start_application_key_id,
        }
        return self._call(authorization, "b2_list_keys", body, ListKeysResponse)

    def delete_key(self, authorization: AccountAuthorization, application_key_id: str) -> ApplicationKey:
        body = {"applicationKeyId": application_key_id}
        return self._call(authorization, "b2_delete_key", body, ApplicationKey)

    # Upload URLs.

    def get_upload_url(self, authorization: AccountAuthorization, bucket_id: str) -> UploadUrlResponse:
        return self._call(authorization, "b2_get_upload_url", {"bucketId": bucket_id}, UploadUrlResponse)

    def get_upload_part_url(self, authorization: AccountAuthorization, large_file_id: str) -> UploadPartUrlResponse:
        return self._call(
            authorization, "b2_get_upload_part_url", {"fileId": large_file_id}, UploadPartUrlResponse
        )

    # Uploading.

    def upload_file(self, upload_url: UploadUrlResponse, request: UploadFileRequest) -> FileVersion:
        for name in request.file_info:
            validate_file_info_name(name)

        listener = request.listener
        details = ContentDetailsForUpload(request.content_source)
        content_length = details.content_length

        report_single_file(listener, content_length, 0, UploadState.WAITING_TO_START)
        report_single_file(listener, content_length, 0, UploadState.STARTING)

        headers = self._common_headers()
        headers.update(
            {
                "Expect": "100-continue",
                h.AUTHORIZATION: upload_url.authorization_token,
                h.FILE_NAME: percent_encode(request.file_name),
                h.CONTENT_TYPE: request.content_type,
                h.CONTENT_SHA1: details.content_sha1_header_value,
            }
        )
        if details.src_last_modified_millis_or_none is not None:
            headers[h.SRC_LAST_MODIFIED_MILLIS] = str(details.src_last_modified_millis_or_none)
        for name, value in request.file_info.items():
            headers[h.FILE_INFO_PREFIX + name] = percent_encode(value)

        byte_listener = ByteProgressFilteringListener(
            UploadProgressAdapter(listener, 0, 1, 0, content_length),
            self._progress_interval_seconds,
        )

        stream = details.open_stream(byte_listener)
        try:
            version = self._client.post_data_return_json(
                upload_url.upload_url,
                headers,
                stream,  # type: ignore[arg-type]
                details.length_including_sha1,
                FileVersion,
            )
        except UnauthorizedError as err:
            err.request_category = RequestCategory.UPLOADING
            report_single_file(listener, content_length, stream.bytes_so_far, UploadState.FAILED)
            raise
        except Exception:
            report_single_file(listener, content_length, stream.bytes_so_far, UploadState.FAILED)
            raise
        finally:
            stream.close()

        report_single_file(listener, content_length, content_length, UploadState.SUCCEEDED)
        return version

    def upload_part(
        self,
        upload_part_url: UploadPartUrlResponse,
        part_number: int,
        source: ContentSource,
        byte_listener: Optional[Any] = None,
        cancellation: Optional[Any] = None,
    ) -> Part:
        details = ContentDetailsForUpload(source)
        headers = self._common_headers()
        headers.update(
            {
                "Expect": "100-continue",
                h.AUTHORIZATION: upload_part_url.authorization_token,
                h.PART_NUMBER: str(part_number),
                h.CONTENT_SHA1: details.content_sha1_header_value,
            }
        )
        stream = details.open_stream(byte_listener, cancellation)
        try:
            return self._client.post_data_return_json(
                upload_part_url.upload_url,
                headers,
                stream,  # type: ignore[arg-type]
                details.length_including_sha1,
                Part,
            )
        except UnauthorizedError as err:
            err.request_category = RequestCategory.UPLOADING
            raise
        finally:
            stream.close()

    # Large files.

    def start_large_file(
        self,
        authorization: AccountAuthorization,
        bucket_id: str,
        file_name: str,
        content_type: str,
        file_info: Optional[Mapping[str, str]] = None,
    ) -> FileVersion:
        body = {
            "bucketId": bucket_id,
            "fileName": file_name,
            "contentType": content_type,
            "fileInfo": dict(file_info) if file_info else None,
        }
        return self._call(authorization, "b2_start_large_file", body, FileVersion)

    def finish_large_file(
        self, authorization: AccountAuthorization, file_id: str, part_sha1s: list[str]
    ) -> FileVersion:
        body = {"fileId": file_id, "partSha1Array": list(part_sha1s)}
        return self._call(authorization, "b2_finish_large_file", body, FileVersion)

    def cancel_large_file(self, authorization: AccountAuthorization, file_id: str) -> FileVersion:
        return self._call(authorization, "b2_cancel_large_file", {"fileId": file_id}, FileVersion)

    def list_parts(self, authorization: AccountAuthorization, request: ListPartsRequest) -> ListPartsResponse:
        body = {
            "fileId": request.file_id,
            "startPartNumber": request.start_part_number,
            "maxPartCount": request.max_part_count,
        }
        return self._call(authorization, "b2_list_parts", body, ListPartsResponse)

    # Listing files.

    def list_file_names(
        self, authorization: AccountAuthorization, request: ListFileNamesRequest
    ) -> ListFileNamesResponse:
        body = {
            "bucketId": request.bucket_id,
            "startFileName": request.start_file_name,
            "maxFileCount": request.max_file_count,
            "prefix": request.prefix,
            "delimiter": request.delimiter,
        }
        return self._call(authorization, "b2_list_file_names", body, ListFileNamesResponse)

    def list_file_versions(
        self, authorization: AccountAuthorization, request: ListFileVersionsRequest
    ) -> ListFileVersionsResponse:
        body = {
            "bucketId": request.bucket_id,
            "startFileName": request.start_file_name,
            "startFileId": request.start_file_id,
            "maxFileCount": request.max_file_count,
            "prefix": request.prefix,
            "delimiter": request.delimiter,
        }
        return self._call(authorization, "b2_list_file_versions", body, ListFileVersionsResponse)

    def list_unfinished_large_files(
        self, authorization: AccountAuthorization, request: ListUnfinishedLargeFilesRequest
    ) -> ListUnfinishedLargeFilesResponse:
        body = {
            "bucketId": request.bucket_id,
            "namePrefix": request.name_prefix,
            "startFileId": request.start_file_id,
            "maxFileCount": request.max_file_count,
        }
        return self._call(
            authorization, "b2_list_unfinished_large_files", body, ListUnfinishedLargeFilesResponse
        )

    # File operations.

    def get_file_info(self, authorization: AccountAuthorization, file_id: str) -> FileVersion:
        return self._call(authorization, "b2_get_file_info", {"fileId": file_id}, FileVersion)

    def get_file_info_by_name(
        self, authorization: AccountAuthorization, bucket_name: str, file_name: str
    ) -> FileVersion:
        """HEAD the download URL and build the FileVersion from the response headers."""
        url = self._download_by_name_base(authorization, bucket_name, file_name)
        response_headers = self._client.head(url, self._auth_headers(authorization))
        return file_version_from_headers(response_headers)

    def hide_file(self, authorization: AccountAuthorization, bucket_id: str, file_name: str) -> FileVersion:
        body = {"bucketId": bucket_id, "fileName": file_name}
        return self._call(authorization, "b2_hide_file", body, FileVersion)

    def delete_file_version(
        self, authorization: AccountAuthorization, file_name: str, file_id: str
    ) -> DeleteFileVersionResponse:
        body = {"fileName": file_name, "fileId": file_id}
        return self._call(authorization, "b2_delete_file_version", body, DeleteFileVersionResponse)

    def get_download_authorization(
        self, authorization: AccountAuthorization, request: GetDownloadAuthorizationRequest
    ) -> DownloadAuthorization:
        body = {
            "bucketId": request.bucket_id,
            "fileNamePrefix": request.file_name_prefix,
            "validDurationInSeconds": request.valid_duration_in_seconds,
            "b2ContentDisposition": request.b2_content_disposition,
        }
        return self._call(authorization, "b2_get_download_authorization", body, DownloadAuthorization)

    # Downloading.

    @staticmethod
    def _download_base(authorization: AccountAuthorization) -> str:
        return authorization.download_url.rstrip("/") + "/"

    def _download_by_name_base(
        self, authorization: AccountAuthorization, bucket_name: str, file_name: str
    ) -> str:
        return f"{self._download_base(authorization)}file/{bucket_name}/{percent_encode(file_name)}"

    @staticmethod
    def _append_overrides(url: str, request: DownloadRequest) -> str:
        for name, value in request.content_overrides():
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{name}={percent_encode(value)}"
        return url

    def get_download_by_id_url(self, authorization: AccountAuthorization, request: DownloadRequest) -> str:
        if not request.is_by_id:
            raise ValueError("download request is by name, not by id")
        url = (
            f"{self._download_base(authorization)}{API_VERSION_PATH}"
            f"b2_download_file_by_id?fileId={percent_encode(request.file_id or '')}"
        )
        return self._append_overrides(url, request)

    def get_download_by_name_url(self, authorization: AccountAuthorization, request: DownloadRequest) -> str:
        if request.is_by_id:
            raise ValueError("download request is by id, not by name")
        url = self._download_by_name_base(authorization, request.bucket_name or "", request.file_name or "")
        return self._append_overrides(url, request)

    def _download(self, authorization: AccountAuthorization, url: str, byte_range: Optional[ByteRange], sink: ContentSink) -> None:
        extras = {h.RANGE: str(byte_range)} if byte_range is not None else None
        self._client.get_content(url, self._auth_headers(authorization, extras), sink)

    def download_by_id(self, authorization: AccountAuthorization, request: DownloadRequest, sink: ContentSink) -> None:
        self._download(authorization, self.get_download_by_id_url(authorization, request), request.range, sink)

    def download_by_name(
        self, authorization: AccountAuthorization, request: DownloadRequest, sink: ContentSink
    ) -> None:
        self._download(authorization, self.get_download_by_name_url(authorization, request), request.range, sink)

    def close(self) -> None:
        self._client.close()


def file_version_from_headers(response_headers: Headers) -> FileVersion:
    """Build a FileVersion from the headers of a download or HEAD response."""
    file_name = response_headers.file_name()
    if file_name is None:
        raise LocalError("parsing_failed", "response has no X-Bz-File-Name header")
    return FileVersion(
        file_id=response_headers.file_id(),
        file_name=file_name,
        content_length=response_headers.content_length(),
        content_type=response_headers.content_type(),
        content_sha1=response_headers.content_sha1_even_if_unverified(),
        file_info=response_headers.file_info(),
        action="upload",
        upload_timestamp=response_headers.upload_timestamp() or 0,
    )
