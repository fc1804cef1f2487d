# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Pools of upload URLs.

An upload URL can only carry one upload at a time, but can be reused after
that upload succeeds. The caches hand out pooled URLs first-in first-out and
ask the server for a new one when the pool is empty.

A retry never gets a pooled URL. Many pooled URLs can go stale at once, and
burning every retry on stale URLs would fail uploads that a fresh URL would
have carried. A URL whose upload failed is never returned to the pool.

Fetching a URL happens outside the lock, so threads that each need one ask
the server in parallel.
"""

import threading
from collections import OrderedDict, deque
from typing import TYPE_CHECKING

from b2kit.client.structures import UploadPartUrlResponse, UploadUrlResponse

if TYPE_CHECKING:
    from b2kit.client.auth import AccountAuthorizationCache
    from b2kit.client.webifier import Webifier

MAX_BUCKETS = 100


class UploadUrlCache:
    """Upload URLs for small files, pooled per bucket, for at most MAX_BUCKETS buckets."""

    def __init__(
        self,
        webifier: "Webifier",
        auth_cache: "AccountAuthorizationCache",
        max_buckets: int = MAX_BUCKETS,
    ) -> None:
        self._webifier = webifier
        self._auth_cache = auth_cache
        self._max_buckets = max_buckets
        self._lock = threading.Lock()
        self._by_bucket: "OrderedDict[str, deque[UploadUrlResponse]]" = OrderedDict()

    def get(self, bucket_id: str, is_retry: bool) -> UploadUrlResponse:
        if not is_retry:
            with self._lock:
                pool = self._by_bucket.get(bucket_id)
                if pool:
                    self._by_bucket.move_to_end(bucket_id)
                    return pool.popleft()

        return self._webifier.get_upload_url(self._auth_cache.get(), bucket_id)

    def unget(self, response: UploadUrlResponse) -> None:
        """Offer a URL back after a successful upload. Don't use it again afterwards."""
        with self._lock:
            pool = self._by_bucket.get(response.bucket_id)
            if pool is None:
                pool = deque()
                self._by_bucket[response.bucket_id] = pool
            self._by_bucket.move_to_end(response.bucket_id)
            pool.append(response)
            while len(self._by_bucket) > self._max_buckets:
                self._by_bucket.popitem(last=False)

    def pooled_count(self, bucket_id: str) -> int:
        with self._lock:
            return len(self._by_bucket.get(bucket_id, ()))


class UploadPartUrlCache:
    """Upload URLs for the parts of one large file."""

    def __init__(
        self,
        webifier: "Webifier",
        auth_cache: "AccountAuthorizationCache",
        large_file_id: str,
    ) -> None:
        self._webifier = webifier
        self._auth_cache = auth_cache
        self._large_file_id = large_file_id
        self._lock = threading.Lock()
        self._pool: "deque[UploadPartUrlResponse]" = deque()

    def get(self, is_retry: bool) -> UploadPartUrlResponse:
        if not is_retry:
            with self._lock:
                if self._pool:
                    return self._pool.popleft()

        return self._webifier.get_upload_part_url(self._auth_cache.get(), self._large_file_id)

    def unget(self, response: UploadPartUrlResponse) -> None:
        with self._lock:
            self._pool.append(response)
