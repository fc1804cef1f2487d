# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
The HTTP transport under the webifier.

WebApiClient knows nothing about individual B2 operations. It sends JSON or
a byte stream, and turns every way a request can fail into a B2Error:

  - an error response from the service becomes B2Error.create(...) built
    from the {status, code, message} JSON body plus the Retry-After header
  - an error response that isn't B2 error JSON becomes B2Error("unknown")
  - a transport failure becomes one of the NetworkError subclasses
  - a success response that doesn't match the expected model becomes
    LocalError("parsing_failed")

Responses are never transparently decompressed: B2 SHA1s are over the stored
bytes, so every request asks for "Accept-Encoding: identity".
"""

import io
import logging
from typing import Any, BinaryIO, Mapping, Optional, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from b2kit.client import headers as h
from b2kit.client.content import ContentSink
from b2kit.client.exceptions import (
    B2Error,
    ConnectFailedError,
    ConnectionBrokenError,
    LocalError,
    NetworkError,
    NetworkTimeoutError,
)
from b2kit.client.headers import Headers
from b2kit.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0
DEFAULT_SOCKET_TIMEOUT_SECONDS = 20.0


def _retry_after_seconds(response: requests.Response) -> Optional[int]:
    value = response.headers.get(h.RETRY_AFTER)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def error_from_response(response: requests.Response) -> B2Error:
    """Build the B2Error for a non-2xx response."""
    retry_after = _retry_after_seconds(response)
    text = response.text
    try:
        body = response.json()
        return B2Error.create(
            str(body["code"]),
            int(body["status"]),
            retry_after,
            str(body.get("message", "")),
        )
    except (ValueError, KeyError, TypeError):
        return B2Error("unknown", response.status_code, retry_after, text)


def translate_request_exception(err: requests.RequestException, url: str) -> B2Error:
    """Map a requests exception onto the network error taxonomy."""
    if isinstance(err, requests.exceptions.ConnectTimeout):
        return ConnectFailedError("connect_timed_out", f"connect timed out for {url}")
    if isinstance(err, requests.exceptions.Timeout):
        return NetworkTimeoutError("socket_timeout", f"socket timed out talking to {url}")
    if isinstance(err, requests.exceptions.ChunkedEncodingError):
        return ConnectionBrokenError("connection_broken", f"connection broken talking to {url}: {err}")
    if isinstance(err, requests.exceptions.ConnectionError):
        return ConnectFailedError("connect_failed", f"failed to connect for {url}: {err}")
    return NetworkError("io_exception", f"{err} talking to {url}")


class _ResponseBodyStream(io.RawIOBase):
    """
    A file-like view of a streamed response body.

    Reads go through iter_content so that transport failures mid-body
    surface as requests exceptions rather than urllib3 ones.
    """

    def __init__(self, response: requests.Response, chunk_size: int = 65536) -> None:
        self._chunks = response.iter_content(chunk_size=chunk_size)
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        if not self._pending:
            self._pending = next(self._chunks, b"")
        size = min(len(buffer), len(self._pending))
        buffer[:size] = self._pending[:size]
        self._pending = self._pending[size:]
        return size


class WebApiClient:
    """
    Thin wrapper around a requests.Session.

    The session can be injected, which is how tests drive this class without
    a network.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        socket_timeout_seconds: float = DEFAULT_SOCKET_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session if session is not None else requests.Session()
        self._timeout = (connect_timeout_seconds, socket_timeout_seconds)
        self._closed = False

    def _headers(self, headers: Mapping[str, str]) -> dict[str, str]:
        merged = dict(headers)
        merged["Accept-Encoding"] = "identity"
        return merged

    def _send(self, method: str, url: str, headers: Mapping[str, str], **kwargs: Any) -> requests.Response:
        try:
            response = self._session.request(
                method,
                url,
                headers=self._headers(headers),
                timeout=self._timeout,
                **kwargs,
            )
        except requests.RequestException as err:
            raise translate_request_exception(err, url) from err

        _logger.debug(
            "HTTP response",
            extra={"method": method, "url": url, "status": response.status_code},
        )
        return response

    @staticmethod
    def _parse(response: requests.Response, model: type[ModelT]) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as err:
            raise LocalError(
                "parsing_failed",
                f"can't convert response to {model.__name__}: {err}",
            ) from err

    def post_json_return_json(
        self,
        url: str,
        headers: Mapping[str, str],
        body: Mapping[str, Any],
        model: type[ModelT],
    ) -> ModelT:
        response = self._send("POST", url, headers, json=dict(body))
        if not response.ok:
            raise error_from_response(response)
        return self._parse(response, model)

    def post_data_return_json(
        self,
        url: str,
        headers: Mapping[str, str],
        data: BinaryIO,
        content_length: int,
        model: type[ModelT],
    ) -> ModelT:
        send_headers = dict(headers)
        send_headers[h.CONTENT_LENGTH] = str(content_length)
        response = self._send("POST", url, send_headers, data=data)
        if not response.ok:
            raise error_from_response(response)
        return self._parse(response, model)

    def get_content(self, url: str, headers: Mapping[str, str], sink: ContentSink) -> None:
        """
        GET url and hand the headers and body stream to sink.

        Only 200 and 206 count as success. The body is streamed; the sink
        decides whether to buffer it.
        """
        response = self._send("GET", url, headers, stream=True)
        try:
            if response.status_code not in (200, 206):
                raise error_from_response(response)
            try:
                body = io.BufferedReader(_ResponseBodyStream(response))
                sink.write(Headers(response.headers), body)
            except requests.RequestException as err:
                raise translate_request_exception(err, url) from err
            except OSError as err:
                raise LocalError("write_failed", f"failed writing download from {url}: {err}") from err
        finally:
            response.close()

    def head(self, url: str, headers: Mapping[str, str]) -> Headers:
        response = self._send("HEAD", url, headers)
        if not response.ok:
            raise B2Error.create("unknown", response.status_code, _retry_after_seconds(response), "")
        return Headers(response.headers)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._session.close()
