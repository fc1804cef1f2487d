# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for the StorageClient: retries, URL pooling and routing uploads."""

import hashlib
from typing import Iterator
from unittest.mock import MagicMock

import pytest
from fakes import auth_wire, bucket_wire, make_response

from b2kit.client.content import BytesContentSource, MemorySink
from b2kit.client.exceptions import (
    B2Error,
    BadRequestError,
    ConnectionBrokenError,
    RequestCategory,
    ServiceUnavailableError,
    UnauthorizedError,
)
from b2kit.client.retry import Retryer
from b2kit.client.storage import StorageClient, create_client, retry_policy_factory
from b2kit.client.structures import (
    AccountAuthorization,
    Bucket,
    DownloadRequest,
    FileVersion,
    ListBucketsResponse,
    ListFileVersionsRequest,
    ListFileVersionsResponse,
    ListPartsResponse,
    Part,
    UploadFileRequest,
    UploadPartUrlResponse,
    UploadUrlResponse,
)
from b2kit.client.webifier import Webifier
from b2kit.config.credentials import Credentials
from b2kit.config.schema import B2KitConfig, RetryConfig, UploadConfig

SMALL = b"x" * 50
# recommendedPartSize is 100 in the fake authorization, so 200 bytes goes large.
LARGE = bytes(range(200))


def _upload_url(n: int) -> UploadUrlResponse:
    return UploadUrlResponse(bucket_id="b1", upload_url=f"https://pod/{n}", authorization_token=f"t{n}")


@pytest.fixture()
def webifier(authorization: AccountAuthorization) -> MagicMock:
    webifier = MagicMock(spec=Webifier)
    webifier.authorize_account.return_value = authorization
    webifier.get_upload_url.side_effect = [_upload_url(n) for n in range(1, 10)]
    webifier.upload_file.side_effect = lambda url, request: FileVersion(
        file_id="f-" + url.upload_url[-1], file_name=request.file_name
    )
    return webifier


@pytest.fixture()
def authorizer() -> MagicMock:
    authorizer = MagicMock()
    authorizer.authorize.side_effect = lambda webifier: webifier.authorize_account("kid", "key")
    return authorizer


@pytest.fixture()
def client(webifier: MagicMock, authorizer: MagicMock, sleeper) -> Iterator[StorageClient]:
    storage = StorageClient(
        webifier,
        authorizer,
        retry_policy_factory(RetryConfig(max_attempts=3)),
        UploadConfig(max_workers=2, progress_interval_seconds=0),
        Retryer(sleeper),
    )
    yield storage
    storage.close()


def _small_request() -> UploadFileRequest:
    return UploadFileRequest("b1", "small.txt", "text/plain", BytesContentSource(SMALL))


class TestAuthorization:
    def test_authorizes_once(self, client: StorageClient, webifier: MagicMock) -> None:
        client.list_buckets()
        client.list_buckets()
        assert webifier.authorize_account.call_count == 1

    def test_expired_token_reauthorizes_and_retries(
        self, client: StorageClient, webifier: MagicMock, sleeper
    ) -> None:
        webifier.list_buckets.side_effect = [
            UnauthorizedError("expired_auth_token"),
            ListBucketsResponse(buckets=[Bucket.model_validate(bucket_wire("bkt", "b1"))]),
        ]
        assert [b.bucket_name for b in client.list_buckets()] == ["bkt"]
        assert webifier.authorize_account.call_count == 2
        assert sleeper.slept == []

    def test_bad_credentials_are_not_retried(self, client: StorageClient, webifier: MagicMock) -> None:
        err = UnauthorizedError("bad_auth_token")
        err.request_category = RequestCategory.ACCOUNT_AUTHORIZATION
        webifier.authorize_account.side_effect = err
        with pytest.raises(UnauthorizedError):
            client.list_buckets()
        assert webifier.authorize_account.call_count == 1

    def test_account_id(self, client: StorageClient) -> None:
        assert client.account_id() == "acct-1"

    def test_file_policy_from_authorization(self, client: StorageClient) -> None:
        policy = client.file_policy()
        assert policy.recommended_part_size == 100
        assert policy.minimum_part_size == 5


class TestBuckets:
    def test_get_bucket_by_name(self, client: StorageClient, webifier: MagicMock, authorization) -> None:
        webifier.list_buckets.return_value = ListBucketsResponse(
            buckets=[Bucket.model_validate(bucket_wire("bkt", "b1"))]
        )
        bucket = client.get_bucket_or_none_by_name("bkt")
        assert bucket is not None and bucket.bucket_id == "b1"
        webifier.list_buckets.assert_called_with(authorization, "bkt")

    def test_missing_bucket_is_none(self, client: StorageClient, webifier: MagicMock) -> None:
        webifier.list_buckets.return_value = ListBucketsResponse(buckets=[])
        assert client.get_bucket_or_none_by_name("nope") is None


class TestSmallUploads:
    def test_upload_url_is_reused_after_success(self, client: StorageClient, webifier: MagicMock) -> None:
        first = client.upload_file(_small_request())
        second = client.upload_file(_small_request())
        assert first.file_id == second.file_id == "f-1"
        assert webifier.get_upload_url.call_count == 1

    def test_retry_after_503_gets_new_url(self, client: StorageClient, webifier: MagicMock, sleeper) -> None:
        webifier.upload_file.side_effect = [
            ServiceUnavailableError("service_unavailable"),
            FileVersion(file_id="ok", file_name="small.txt"),
        ]
        assert client.upload_file(_small_request()).file_id == "ok"
        urls = [c.args[0].upload_url for c in webifier.upload_file.call_args_list]
        assert urls == ["https://pod/1", "https://pod/2"]
        assert sleeper.slept == [1]

    def test_stale_upload_url_retried_immediately(
        self, client: StorageClient, webifier: MagicMock, sleeper
    ) -> None:
        err = UnauthorizedError("expired_auth_token")
        err.request_category = RequestCategory.UPLOADING
        webifier.upload_file.side_effect = [err, FileVersion(file_id="ok", file_name="small.txt")]
        client.upload_file(_small_request())
        assert sleeper.slept == []
        assert webifier.authorize_account.call_count == 1

    def test_gives_up_after_max_attempts(self, client: StorageClient, webifier: MagicMock, sleeper) -> None:
        webifier.upload_file.side_effect = ServiceUnavailableError("service_unavailable")
        with pytest.raises(ServiceUnavailableError):
            client.upload_file(_small_request())
        assert webifier.upload_file.call_count == 3
        assert sleeper.slept == [1, 2]

    def test_unexpected_errors_are_wrapped(self, client: StorageClient, webifier: MagicMock) -> None:
        webifier.upload_file.side_effect = RuntimeError("kaboom")
        with pytest.raises(B2Error) as excinfo:
            client.upload_file(_small_request())
        assert excinfo.value.code == "unexpected"
        assert excinfo.value.status == 500


def _part_from_source(url, part_number, source, *args) -> Part:  # type: ignore[no-untyped-def]
    with source.open() as stream:
        body = stream.read()
    return Part(
        file_id="lf1", part_number=part_number, content_length=len(body), content_sha1=hashlib.sha1(body).hexdigest()
    )


class TestLargeUploads:
    @pytest.fixture(autouse=True)
    def _large_file_calls(self, webifier: MagicMock) -> None:
        webifier.start_large_file.return_value = FileVersion(file_id="lf1", file_name="big.bin", action="start")
        webifier.get_upload_part_url.return_value = UploadPartUrlResponse(
            file_id="lf1", upload_url="https://pod/part", authorization_token="pt"
        )
        webifier.upload_part.side_effect = _part_from_source
        webifier.finish_large_file.return_value = FileVersion(
            file_id="lf1", file_name="big.bin", content_length=len(LARGE)
        )

    def test_big_content_goes_large(self, client: StorageClient, webifier: MagicMock) -> None:
        request = UploadFileRequest("b1", "big.bin", "application/octet-stream", BytesContentSource(LARGE))
        result = client.upload_file(request)

        assert result.file_id == "lf1"
        webifier.upload_file.assert_not_called()
        assert webifier.upload_part.call_count == 2
        assert len(webifier.finish_large_file.call_args.args[2]) == 2

    def test_resume_lists_existing_parts(self, client: StorageClient, webifier: MagicMock) -> None:
        first_half = LARGE[:100]
        webifier.list_parts.return_value = ListPartsResponse(
            parts=[
                Part(
                    file_id="lf1",
                    part_number=1,
                    content_length=100,
                    content_sha1=hashlib.sha1(first_half).hexdigest(),
                )
            ]
        )
        large_file = FileVersion(
            file_id="lf1",
            file_name="big.bin",
            content_type="application/octet-stream",
            file_info={"large_file_sha1": hashlib.sha1(LARGE).hexdigest()},
            action="start",
        )
        request = UploadFileRequest("b1", "big.bin", "application/octet-stream", BytesContentSource(LARGE))

        client.finish_uploading_large_file(large_file, request)

        assert [c.args[1] for c in webifier.upload_part.call_args_list] == [2]
        webifier.start_large_file.assert_not_called()


class TestFiles:
    def test_download_by_name(self, client: StorageClient, webifier: MagicMock, authorization) -> None:
        request = DownloadRequest(bucket_name="bkt", file_name="a.txt")
        sink = MemorySink()
        client.download_by_name(request, sink)
        webifier.download_by_name.assert_called_once_with(authorization, request, sink)

    def test_download_retries_network_errors(self, client: StorageClient, webifier: MagicMock, sleeper) -> None:
        webifier.download_by_id.side_effect = [ConnectionBrokenError("connection_broken"), None]
        client.download_by_id(DownloadRequest(file_id="f1"), MemorySink())
        assert webifier.download_by_id.call_count == 2
        assert sleeper.slept == [1]

    def test_delete_all_file_versions(self, client: StorageClient, webifier: MagicMock) -> None:
        webifier.list_file_versions.side_effect = [
            ListFileVersionsResponse(
                files=[
                    FileVersion(file_id="v2", file_name="a"),
                    FileVersion(file_id="v1", file_name="a"),
                ],
                next_file_name="b",
                next_file_id="v3",
            ),
            ListFileVersionsResponse(files=[FileVersion(file_id="v3", file_name="b", action="hide")]),
        ]
        assert client.delete_all_file_versions_in_bucket("b1") == 3
        deleted = [c.args[1:] for c in webifier.delete_file_version.call_args_list]
        assert deleted == [("a", "v2"), ("a", "v1"), ("b", "v3")]

    def test_file_versions_pass_request_through(self, client: StorageClient, webifier: MagicMock) -> None:
        webifier.list_file_versions.return_value = ListFileVersionsResponse(files=[])
        list(client.file_versions(ListFileVersionsRequest(bucket_id="b1", prefix="logs/")))
        assert webifier.list_file_versions.call_args.args[1].prefix == "logs/"

    def test_non_retryable_error_raised_once(self, client: StorageClient, webifier: MagicMock) -> None:
        webifier.hide_file.side_effect = BadRequestError("bad_request")
        with pytest.raises(BadRequestError):
            client.hide_file("b1", "a")
        assert webifier.hide_file.call_count == 1


def test_close_is_idempotent(webifier: MagicMock, authorizer: MagicMock) -> None:
    client = StorageClient(webifier, authorizer)
    client.close()
    client.close()
    webifier.close.assert_called_once()


def test_context_manager_closes(webifier: MagicMock, authorizer: MagicMock) -> None:
    with StorageClient(webifier, authorizer):
        pass
    webifier.close.assert_called_once()


def test_create_client_uses_config_and_session() -> None:
    session = MagicMock()
    session.request.return_value = make_response(200, auth_wire())
    config = B2KitConfig.model_validate(
        {
            "global": {"config_version": "1.0.0"},
            "client": {"master_url": "https://master.example.com/", "user_agent": "tests/1"},
        }
    )
    with create_client(config, Credentials(application_key_id="kid", application_key="key"), session) as client:
        assert client.account_id() == "acct-1"

    args, kwargs = session.request.call_args
    assert args == ("POST", "https://master.example.com/b2api/v2/b2_authorize_account")
    assert kwargs["headers"]["User-Agent"] == "tests/1"
    session.close.assert_called_once()
