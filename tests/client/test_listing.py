# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for lazy paginated listings."""

import pytest

from b2kit.client.exceptions import InternalError
from b2kit.client.listing import (
    FileNamesIterable,
    FileVersionsIterable,
    KeysIterable,
    PartsIterable,
    UnfinishedLargeFilesIterable,
    _PagedIterable,
)
from b2kit.client.structures import (
    ApplicationKey,
    FileVersion,
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
)


def _files(*names: str) -> list[FileVersion]:
    return [FileVersion(file_id=f"id-{name}", file_name=name) for name in names]


class _Pages:
    """Serves canned responses and records the requests that asked for them."""

    def __init__(self, *responses) -> None:  # type: ignore[no-untyped-def]
        self.responses = list(responses)
        self.requests: list = []

    def __call__(self, request):  # type: ignore[no-untyped-def]
        self.requests.append(request)
        return self.responses[len(self.requests) - 1]


def test_file_names_follow_next_file_name() -> None:
    pages = _Pages(
        ListFileNamesResponse(files=_files("a", "b"), next_file_name="c"),
        ListFileNamesResponse(files=_files("c")),
    )
    iterable = FileNamesIterable(ListFileNamesRequest(bucket_id="b1", prefix="p"), pages)

    assert [f.file_name for f in iterable] == ["a", "b", "c"]
    assert pages.requests[0].start_file_name is None
    assert pages.requests[1].start_file_name == "c"
    assert pages.requests[1].prefix == "p"


def test_listing_is_lazy() -> None:
    pages = _Pages(
        ListFileNamesResponse(files=_files("a"), next_file_name="b"),
        ListFileNamesResponse(files=_files("b")),
    )
    iterator = iter(FileNamesIterable(ListFileNamesRequest(bucket_id="b1"), pages))
    assert pages.requests == []
    next(iterator)
    assert len(pages.requests) == 1


def test_empty_pages_are_skipped() -> None:
    pages = _Pages(
        ListFileNamesResponse(files=[], next_file_name="m"),
        ListFileNamesResponse(files=_files("m")),
    )
    assert [f.file_name for f in FileNamesIterable(ListFileNamesRequest(bucket_id="b1"), pages)] == ["m"]


def test_iterable_restarts_from_first_request() -> None:
    response = ListFileNamesResponse(files=_files("a"))
    pages = _Pages(response, response)
    iterable = FileNamesIterable(ListFileNamesRequest(bucket_id="b1"), pages)
    assert len(list(iterable)) == 1
    assert len(list(iterable)) == 1
    assert pages.requests[0] == pages.requests[1]


def test_file_versions_carry_both_start_fields() -> None:
    pages = _Pages(
        ListFileVersionsResponse(files=_files("a"), next_file_name="a", next_file_id="id-old"),
        ListFileVersionsResponse(files=_files("a")),
    )
    versions = list(FileVersionsIterable(ListFileVersionsRequest(bucket_id="b1"), pages))
    assert len(versions) == 2
    assert pages.requests[1].start_file_name == "a"
    assert pages.requests[1].start_file_id == "id-old"


def test_unfinished_large_files_follow_next_file_id() -> None:
    pages = _Pages(
        ListUnfinishedLargeFilesResponse(files=_files("x"), next_file_id="id-y"),
        ListUnfinishedLargeFilesResponse(files=_files("y")),
    )
    iterable = UnfinishedLargeFilesIterable(ListUnfinishedLargeFilesRequest(bucket_id="b1"), pages)
    assert [f.file_name for f in iterable] == ["x", "y"]
    assert pages.requests[1].start_file_id == "id-y"


def test_parts_follow_next_part_number() -> None:
    def part(n: int) -> Part:
        return Part(file_id="lf", part_number=n, content_length=5, content_sha1="0" * 40)

    pages = _Pages(
        ListPartsResponse(parts=[part(1), part(2)], next_part_number=3),
        ListPartsResponse(parts=[part(3)]),
    )
    assert [p.part_number for p in PartsIterable(ListPartsRequest(file_id="lf"), pages)] == [1, 2, 3]
    assert pages.requests[1].start_part_number == 3


def test_keys_follow_next_key_id() -> None:
    def key(key_id: str) -> ApplicationKey:
        return ApplicationKey(account_id="acct-1", application_key_id=key_id, key_name=key_id)

    pages = _Pages(
        ListKeysResponse(keys=[key("k1")], next_application_key_id="k2"),
        ListKeysResponse(keys=[key("k2")]),
    )
    assert [k.application_key_id for k in KeysIterable(ListKeysRequest(), pages)] == ["k1", "k2"]
    assert pages.requests[1].start_application_key_id == "k2"


def test_page_errors_propagate() -> None:
    def failing(request):  # type: ignore[no-untyped-def]
        raise InternalError("internal_error")

    with pytest.raises(InternalError):
        list(FileNamesIterable(ListFileNamesRequest(bucket_id="b1"), failing))


def test_paging_hooks_must_be_overridden() -> None:
    class ItemsOnly(_PagedIterable[ListFileNamesRequest, ListFileNamesResponse, FileVersion]):
        def _items(self, response: ListFileNamesResponse) -> list[FileVersion]:
            return response.files

    with pytest.raises(TypeError):
        _PagedIterable(ListFileNamesRequest(bucket_id="b1"), _Pages())  # type: ignore[abstract]
    with pytest.raises(TypeError):
        ItemsOnly(ListFileNamesRequest(bucket_id="b1"), _Pages())  # type: ignore[abstract]
