# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Error taxonomy for the storage client.

Every failure the client reports is a B2Error carrying the service's error
code, the HTTP status, an optional Retry-After and a message. Server errors
map onto a subclass per status (B2Error.create does the mapping), which is
what the retryer dispatches on. Failures detected on this side of the wire
use status 999: LocalError for bad arguments, parse failures and mismatches,
NetworkError and its subclasses for transport failures.
"""

import enum
from typing import Optional

LOCAL_STATUS = 999


class B2Error(Exception):
    """Base class of every error raised by the storage client."""

    STATUS: Optional[int] = None

    def __init__(
        self,
        code: str,
        status: int,
        retry_after_seconds: Optional[int] = None,
        message: str = "",
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status = status
        self.retry_after_seconds = retry_after_seconds
        self.message = message

    def __str__(self) -> str:
        return f"<{type(self).__name__} {self.status} {self.code}: {self.message}>"

    def __repr__(self) -> str:
        return str(self)

    @staticmethod
    def create(
        code: str,
        status: int,
        retry_after_seconds: Optional[int] = None,
        message: str = "",
    ) -> "B2Error":
        """Build the subclass that matches the HTTP status."""
        error_class = _BY_STATUS.get(status)
        if error_class is None:
            return B2Error(code, status, retry_after_seconds, message)
        return error_class(code, retry_after_seconds, message)


class _StatusError(B2Error):
    STATUS: int

    def __init__(
        self,
        code: str,
        retry_after_seconds: Optional[int] = None,
        message: str = "",
    ) -> None:
        super().__init__(code, self.STATUS, retry_after_seconds, message)


class BadRequestError(_StatusError):
    STATUS = 400


class RequestCategory(enum.Enum):
    """What kind of request earned a 401. The retryer reacts differently to each."""

    ACCOUNT_AUTHORIZATION = "account_authorization"
    UPLOADING = "uploading"
    OTHER = "other"


class UnauthorizedError(_StatusError):
    STATUS = 401

    def __init__(
        self,
        code: str,
        retry_after_seconds: Optional[int] = None,
        message: str = "",
    ) -> None:
        super().__init__(code, retry_after_seconds, message)
        self.request_category = RequestCategory.OTHER


class ForbiddenError(_StatusError):
    STATUS = 403


class NotFoundError(_StatusError):
    STATUS = 404


class RequestTimeoutError(_StatusError):
    STATUS = 408


class TooManyRequestsError(_StatusError):
    STATUS = 429


class InternalError(_StatusError):
    STATUS = 500


class ServiceUnavailableError(_StatusError):
    STATUS = 503


class LocalError(B2Error):
    """A failure detected by the client itself, not reported by the service."""

    STATUS = LOCAL_STATUS

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(code, LOCAL_STATUS, None, message)


class NetworkError(B2Error):
    """The request never got a usable HTTP response. Always worth retrying."""

    STATUS = LOCAL_STATUS

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(code, LOCAL_STATUS, None, message)


class ConnectFailedError(NetworkError):
    """Could not connect, including DNS failures ("unknown_host")."""


class NetworkTimeoutError(NetworkError):
    """Connected, but the server stopped answering."""


class ConnectionBrokenError(NetworkError):
    """The connection dropped partway through a request or response body."""


_BY_STATUS: dict[int, type[_StatusError]] = {
    cls.STATUS: cls
    for cls in (
        BadRequestError,
        UnauthorizedError,
        ForbiddenError,
        NotFoundError,
        RequestTimeoutError,
        TooManyRequestsError,
        InternalError,
        ServiceUnavailableError,
    )
}


def is_retryable_after_delay(error: B2Error) -> bool:
    """True for errors the retryer handles by sleeping and trying again."""
    return isinstance(
        error,
        (
            TooManyRequestsError,
            ServiceUnavailableError,
            InternalError,
            RequestTimeoutError,
            NetworkError,
        ),
    )
