# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Builders for fake B2 traffic used across the test suite.

HTTP is faked at the requests.Session boundary with real requests.Response
objects, so the code under test parses exactly what it would get from the
network.
"""

import json
from typing import Any, Optional

import requests
from requests.structures import CaseInsensitiveDict

ACCOUNT_ID = "acct-1"
API_URL = "https://api001.example.com"
DOWNLOAD_URL = "https://f001.example.com"


def make_response(
    status: int = 200,
    body: Any = None,
    headers: Optional[dict[str, str]] = None,
    content: Optional[bytes] = None,
    url: str = "https://api001.example.com/b2api/v2/test",
) -> requests.Response:
    """A real requests.Response, filled in without a network round trip."""
    response = requests.Response()
    response.status_code = status
    response.url = url
    response.headers = CaseInsensitiveDict(headers or {})
    if content is None:
        content = json.dumps(body).encode("utf-8") if body is not None else b""
        if body is not None:
            response.headers.setdefault("Content-Type", "application/json")
    response._content = content
    response._content_consumed = True
    response.encoding = "utf-8"
    return response


def auth_wire(**overrides: Any) -> dict[str, Any]:
    wire = {
        "accountId": ACCOUNT_ID,
        "authorizationToken": "token-1",
        "apiUrl": API_URL,
        "downloadUrl": DOWNLOAD_URL,
        "recommendedPartSize": 100,
        "absoluteMinimumPartSize": 5,
        "allowed": {"capabilities": ["listBuckets", "writeFiles"]},
    }
    wire.update(overrides)
    return wire


def error_wire(status: int, code: str, message: str = "") -> dict[str, Any]:
    return {"status": status, "code": code, "message": message}


def file_version_wire(file_name: str, file_id: str, **overrides: Any) -> dict[str, Any]:
    wire = {
        "fileId": file_id,
        "fileName": file_name,
        "contentLength": 3,
        "contentType": "text/plain",
        "contentSha1": "a9993e364706816aba3e25717850c26c9cd0d89d",
        "fileInfo": {},
        "action": "upload",
        "uploadTimestamp": 1700000000000,
    }
    wire.update(overrides)
    return wire


def bucket_wire(bucket_name: str, bucket_id: str) -> dict[str, Any]:
    return {
        "accountId": ACCOUNT_ID,
        "bucketId": bucket_id,
        "bucketName": bucket_name,
        "bucketType": "allPrivate",
        "revision": 1,
    }
