# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Lazy, paginated listings.

Each iterable holds a first request and a function that fetches one page
(the storage client passes in its retried API call). Iterating fetches pages
on demand and follows the continuation token the service returns until there
is none. Every call to iter() starts again from the first request, so an
iterable can be walked more than once.

Pages fetched with an error raise from inside the iteration; nothing is
wrapped or hidden.
"""

import dataclasses
from abc import ABC, abstractmethod
from typing import Callable, Generic, Iterator, Optional, TypeVar

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

RequestT = TypeVar("RequestT")
ResponseT = TypeVar("ResponseT")
ItemT = TypeVar("ItemT")


class _PagedIterable(ABC, Generic[RequestT, ResponseT, ItemT]):
    def __init__(self, first_request: RequestT, fetch_page: Callable[[RequestT], ResponseT]) -> None:
        self._first_request = first_request
        self._fetch_page = fetch_page

    @abstractmethod
    def _items(self, response: ResponseT) -> list[ItemT]: ...

    @abstractmethod
    def _next_request(self, request: RequestT, response: ResponseT) -> Optional[RequestT]:
        """The request for the following page, or None at the end."""

    def __iter__(self) -> Iterator[ItemT]:
        request: Optional[RequestT] = self._first_request
        while request is not None:
            response = self._fetch_page(request)
            yield from self._items(response)
            request = self._next_request(request, response)


class FileNamesIterable(_PagedIterable[ListFileNamesRequest, ListFileNamesResponse, FileVersion]):
    """The latest version of every file, in name order."""

    def _items(self, response: ListFileNamesResponse) -> list[FileVersion]:
        return response.files

    def _next_request(
        self, request: ListFileNamesRequest, response: ListFileNamesResponse
    ) -> Optional[ListFileNamesRequest]:
        if response.next_file_name is None:
            return None
        return dataclasses.replace(request, start_file_name=response.next_file_name)


class FileVersionsIterable(_PagedIterable[ListFileVersionsRequest, ListFileVersionsResponse, FileVersion]):
    """Every version of every file, by name and then newest first."""

    def _items(self, response: ListFileVersionsResponse) -> list[FileVersion]:
        return response.files

    def _next_request(
        self, request: ListFileVersionsRequest, response: ListFileVersionsResponse
    ) -> Optional[ListFileVersionsRequest]:
        if response.next_file_name is None:
            return None
        return dataclasses.replace(
            request,
            start_file_name=response.next_file_name,
            start_file_id=response.next_file_id,
        )


class UnfinishedLargeFilesIterable(
    _PagedIterable[ListUnfinishedLargeFilesRequest, ListUnfinishedLargeFilesResponse, FileVersion]
):
    def _items(self, response: ListUnfinishedLargeFilesResponse) -> list[FileVersion]:
        return response.files

    def _next_request(
        self, request: ListUnfinishedLargeFilesRequest, response: ListUnfinishedLargeFilesResponse
    ) -> Optional[ListUnfinishedLargeFilesRequest]:
        if response.next_file_id is None:
            return None
        return dataclasses.replace(request, start_file_id=response.next_file_id)


class PartsIterable(_PagedIterable[ListPartsRequest, ListPartsResponse, Part]):
    def _items(self, response: ListPartsResponse) -> list[Part]:
        return response.parts

    def _next_request(self, request: ListPartsRequest, response: ListPartsResponse) -> Optional[ListPartsRequest]:
        if response.next_part_number is None:
            return None
        return dataclasses.replace(request, start_part_number=response.next_part_number)


class KeysIterable(_PagedIterable[ListKeysRequest, ListKeysResponse, ApplicationKey]):
    def _items(self, response: ListKeysResponse) -> list[ApplicationKey]:
        return response.keys

    def _next_request(self, request: ListKeysRequest, response: ListKeysResponse) -> Optional[ListKeysRequest]:
        if response.next_application_key_id is None:
            return None
        return dataclasses.replace(request, start_application_key_id=response.next_application_key_id)
