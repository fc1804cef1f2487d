# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for request building in the webifier."""

import base64
import hashlib
import io
from unittest.mock import MagicMock

import pytest

from b2kit.client.content import BytesContentSource, MemorySink, PartOfContentSource
from b2kit.client.exceptions import BadRequestError, LocalError, RequestCategory, UnauthorizedError
from b2kit.client.headers import Headers
from b2kit.client.progress import UploadProgress, UploadState, no_op_listener
from b2kit.client.structures import (
    AccountAuthorization,
    DownloadRequest,
    FileVersion,
    ListFileNamesRequest,
    UploadFileRequest,
    UploadPartUrlResponse,
    UploadUrlResponse,
)
from b2kit.client.webapi import WebApiClient
from b2kit.client.webifier import Webifier, file_version_from_headers, validate_file_info_name
from b2kit.config.schema import ClientConfig
from b2kit.utils.byte_range import ByteRange

DATA = b"file content"
DATA_SHA1 = hashlib.sha1(DATA).hexdigest()


@pytest.fixture()
def api() -> MagicMock:
    return MagicMock(spec=WebApiClient)


@pytest.fixture()
def webifier(api: MagicMock) -> Webifier:
    return Webifier(api, ClientConfig(master_url="https://master.example.com", user_agent="ua/1"), 0.0)


@pytest.fixture()
def upload_url() -> UploadUrlResponse:
    return UploadUrlResponse(bucket_id="b1", upload_url="https://pod.example.com/upload", authorization_token="up-tok")


def _uploaded(name: str = "a b.txt") -> FileVersion:
    return FileVersion(file_id="f1", file_name=name, content_length=len(DATA))


class TestAuthorizeAccount:
    def test_uses_basic_auth_against_master_url(self, webifier: Webifier, api: MagicMock, authorization) -> None:
        api.post_json_return_json.return_value = authorization
        webifier.authorize_account("kid", "key")

        url, headers, body, model = api.post_json_return_json.call_args.args
        assert url == "https://master.example.com/b2api/v2/b2_authorize_account"
        assert headers["Authorization"] == "Basic " + base64.b64encode(b"kid:key").decode("ascii")
        assert headers["User-Agent"] == "ua/1"
        assert body == {}
        assert model is AccountAuthorization

    def test_unauthorized_is_tagged(self, webifier: Webifier, api: MagicMock) -> None:
        api.post_json_return_json.side_effect = UnauthorizedError("bad_auth_token")
        with pytest.raises(UnauthorizedError) as excinfo:
            webifier.authorize_account("kid", "key")
        assert excinfo.value.request_category is RequestCategory.ACCOUNT_AUTHORIZATION


def test_test_mode_header_sent(api: MagicMock, authorization) -> None:
    webifier = Webifier(api, ClientConfig(test_mode="fail_some_uploads"))
    api.post_json_return_json.return_value = authorization
    webifier.authorize_account("kid", "key")
    headers = api.post_json_return_json.call_args.args[1]
    assert headers["X-Bz-Test-Mode"] == "fail_some_uploads"


def test_api_calls_drop_absent_fields(webifier: Webifier, api: MagicMock, authorization) -> None:
    webifier.list_file_names(authorization, ListFileNamesRequest(bucket_id="b1", prefix="logs/"))
    url, headers, body, _ = api.post_json_return_json.call_args.args
    assert url == "https://api001.example.com/b2api/v2/b2_list_file_names"
    assert headers["Authorization"] == "token-1"
    assert body == {"bucketId": "b1", "prefix": "logs/"}


class TestUploadFile:
    def test_headers_and_body(self, webifier: Webifier, api: MagicMock, upload_url: UploadUrlResponse) -> None:
        captured: dict = {}

        def post(url, headers, data, length, model):  # type: ignore[no-untyped-def]
            captured.update(url=url, headers=headers, body=b"".join(data), length=length)
            return _uploaded()

        api.post_data_return_json.side_effect = post
        request = UploadFileRequest(
            bucket_id="b1",
            file_name="a b.txt",
            content_type="text/plain",
            content_source=BytesContentSource(DATA, src_last_modified_millis=1234),
            file_info={"color": "dark blue"},
        )

        result = webifier.upload_file(upload_url, request)

        assert result.file_id == "f1"
        assert captured["url"] == "https://pod.example.com/upload"
        headers = captured["headers"]
        assert headers["Authorization"] == "up-tok"
        assert headers["X-Bz-File-Name"] == "a+b.txt"
        assert headers["X-Bz-Content-Sha1"] == DATA_SHA1
        assert headers["X-Bz-Info-src_last_modified_millis"] == "1234"
        assert headers["X-Bz-Info-color"] == "dark+blue"
        assert captured["body"] == DATA
        assert captured["length"] == len(DATA)

    def test_progress_reported(self, webifier: Webifier, api: MagicMock, upload_url: UploadUrlResponse) -> None:
        api.post_data_return_json.return_value = _uploaded()
        seen: list[UploadProgress] = []
        request = UploadFileRequest("b1", "a b.txt", "text/plain", BytesContentSource(DATA), listener=seen.append)

        webifier.upload_file(upload_url, request)

        states = [p.state for p in seen]
        assert states[:2] == [UploadState.WAITING_TO_START, UploadState.STARTING]
        assert states[-1] is UploadState.SUCCEEDED

    def test_listener_defaults_to_no_op(
        self, webifier: Webifier, api: MagicMock, upload_url: UploadUrlResponse
    ) -> None:
        captured: dict = {}

        def post(url, headers, data, length, model):  # type: ignore[no-untyped-def]
            captured["body"] = b"".join(data)
            return _uploaded()

        api.post_data_return_json.side_effect = post
        request = UploadFileRequest("b1", "a b.txt", "text/plain", BytesContentSource(DATA))

        assert request.listener is no_op_listener
        assert webifier.upload_file(upload_url, request).file_id == "f1"
        assert captured["body"] == DATA

    def test_unauthorized_upload_is_tagged(
        self, webifier: Webifier, api: MagicMock, upload_url: UploadUrlResponse
    ) -> None:
        api.post_data_return_json.side_effect = UnauthorizedError("expired_auth_token")
        seen: list[UploadProgress] = []
        request = UploadFileRequest("b1", "x", "text/plain", BytesContentSource(DATA), listener=seen.append)

        with pytest.raises(UnauthorizedError) as excinfo:
            webifier.upload_file(upload_url, request)

        assert excinfo.value.request_category is RequestCategory.UPLOADING
        assert seen[-1].state is UploadState.FAILED

    def test_bad_info_name_rejected_before_sending(
        self, webifier: Webifier, api: MagicMock, upload_url: UploadUrlResponse
    ) -> None:
        request = UploadFileRequest("b1", "x", "text/plain", BytesContentSource(DATA), file_info={"bad name": "v"})
        with pytest.raises(BadRequestError):
            webifier.upload_file(upload_url, request)
        api.post_data_return_json.assert_not_called()


def test_upload_part_sends_trailing_sha1_when_unknown(webifier: Webifier, api: MagicMock) -> None:
    captured: dict = {}

    def post(url, headers, data, length, model):  # type: ignore[no-untyped-def]
        captured.update(headers=headers, body=b"".join(data), length=length)
        return MagicMock()

    api.post_data_return_json.side_effect = post
    part_url = UploadPartUrlResponse(file_id="lf1", upload_url="https://pod/part", authorization_token="pt")
    source = PartOfContentSource(BytesContentSource(DATA), 0, 4)

    webifier.upload_part(part_url, 3, source)

    assert captured["headers"]["X-Bz-Part-Number"] == "3"
    assert captured["headers"]["X-Bz-Content-Sha1"] == "hex_digits_at_end"
    assert captured["length"] == 44
    assert captured["body"] == DATA[:4] + hashlib.sha1(DATA[:4]).hexdigest().encode("ascii")


class TestDownloadUrls:
    def test_by_id_with_overrides(self, webifier: Webifier, authorization) -> None:
        request = DownloadRequest(file_id="4_z1", b2_content_disposition="attachment; filename=x.txt")
        url = webifier.get_download_by_id_url(authorization, request)
        assert url == (
            "https://f001.example.com/b2api/v2/b2_download_file_by_id?fileId=4_z1"
            "&b2ContentDisposition=attachment%3B+filename%3Dx.txt"
        )

    def test_by_name_encodes_name_but_keeps_slashes(self, webifier: Webifier, authorization) -> None:
        request = DownloadRequest(bucket_name="bkt", file_name="dir/a b.txt", b2_content_type="text/csv")
        url = webifier.get_download_by_name_url(authorization, request)
        assert url == "https://f001.example.com/file/bkt/dir/a+b.txt?b2ContentType=text/csv"

    def test_wrong_kind_rejected(self, webifier: Webifier, authorization) -> None:
        with pytest.raises(ValueError):
            webifier.get_download_by_id_url(authorization, DownloadRequest(bucket_name="b", file_name="f"))

    def test_range_header_sent(self, webifier: Webifier, api: MagicMock, authorization) -> None:
        request = DownloadRequest(bucket_name="bkt", file_name="f", range=ByteRange.between(0, 9))
        webifier.download_by_name(authorization, request, MemorySink())
        headers = api.get_content.call_args.args[1]
        assert headers["Range"] == "bytes=0-9"
        assert headers["Authorization"] == "token-1"


def test_get_file_info_by_name_uses_head(webifier: Webifier, api: MagicMock, authorization) -> None:
    api.head.return_value = Headers(
        {
            "X-Bz-File-Id": "f9",
            "X-Bz-File-Name": "dir/a+b.txt",
            "Content-Length": "12",
            "Content-Type": "text/plain",
            "X-Bz-Content-Sha1": DATA_SHA1,
            "X-Bz-Upload-Timestamp": "1700000000000",
            "X-Bz-Info-color": "dark+blue",
        }
    )
    version = webifier.get_file_info_by_name(authorization, "bkt", "dir/a b.txt")

    assert api.head.call_args.args[0] == "https://f001.example.com/file/bkt/dir/a+b.txt"
    assert version.file_id == "f9"
    assert version.file_name == "dir/a b.txt"
    assert version.content_length == 12
    assert version.file_info == {"color": "dark blue"}
    assert version.upload_timestamp == 1700000000000


def test_file_version_from_headers_needs_name() -> None:
    with pytest.raises(LocalError):
        file_version_from_headers(Headers({"Content-Length": "1"}))


@pytest.mark.parametrize("name", ["color", "src_last_modified_millis", "a.b-c~d"])
def test_valid_info_names(name: str) -> None:
    validate_file_info_name(name)


@pytest.mark.parametrize("name", ["", "has space", "semi;colon", "ünïcode"])
def test_invalid_info_names(name: str) -> None:
    with pytest.raises(BadRequestError):
        validate_file_info_name(name)


def test_control_characters_in_user_agent_rejected(api: MagicMock) -> None:
    with pytest.raises(ValueError):
        Webifier(api, ClientConfig.model_construct(user_agent="bad\nagent", master_url="https://x/", test_mode=None))


def test_body_stream_is_closed(webifier: Webifier, api: MagicMock, upload_url: UploadUrlResponse) -> None:
    streams: list[io.IOBase] = []

    class _Source(BytesContentSource):
        def open(self):  # type: ignore[no-untyped-def]
            stream = super().open()
            streams.append(stream)
            return stream

    api.post_data_return_json.return_value = _uploaded()
    webifier.upload_file(upload_url, UploadFileRequest("b1", "x", "text/plain", _Source(DATA)))
    assert streams[0].closed
