# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Client for the Backblaze B2 native API.

Most callers only need create_client() and the request types.
"""

from b2kit.client.content import (
    BytesContentSource,
    FileContentSource,
    FileSink,
    MemorySink,
    StreamSink,
)
from b2kit.client.exceptions import B2Error, LocalError, NetworkError
from b2kit.client.large_file import CancellationToken
from b2kit.client.storage import StorageClient, create_client
from b2kit.client.structures import DownloadRequest, UploadFileRequest

__all__ = [
    "B2Error",
    "BytesContentSource",
    "CancellationToken",
    "DownloadRequest",
    "FileContentSource",
    "FileSink",
    "LocalError",
    "MemorySink",
    "NetworkError",
    "StorageClient",
    "StreamSink",
    "UploadFileRequest",
    "create_client",
]
