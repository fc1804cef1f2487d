# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Account authorization and its cache.

Every API call needs the auth token and URLs from b2_authorize_account. The
cache fetches them lazily and keeps them until the retryer clears it after a
401. Authorization holds a lock while it talks to the server: if one thread
is already authorizing, the others wait for its answer instead of asking in
parallel.
"""

import logging
import threading
from typing import TYPE_CHECKING, Optional, Protocol

from b2kit.client.exceptions import LocalError
from b2kit.client.structures import AccountAuthorization
from b2kit.logging.logger import get_logger

if TYPE_CHECKING:
    from b2kit.client.webifier import Webifier

_logger: logging.Logger = get_logger(__name__)


class AccountAuthorizer(Protocol):
    def authorize(self, webifier: "Webifier") -> AccountAuthorization: ...


class SimpleAccountAuthorizer:
    """Authorizes with a fixed application key id and key."""

    def __init__(self, application_key_id: str, application_key: str) -> None:
        self._application_key_id = application_key_id
        self._application_key = application_key

    def authorize(self, webifier: "Webifier") -> AccountAuthorization:
        return webifier.authorize_account(self._application_key_id, self._application_key)

    def __repr__(self) -> str:
        return f"SimpleAccountAuthorizer(application_key_id={self._application_key_id!r})"


class AccountAuthorizationCache:
    """
    Lazily authorized, thread-safe holder of the current AccountAuthorization.

    get() does not retry on its own; callers run it inside the retryer.
    The first successful authorization pins the account id. A later
    authorization for a different account is an error.
    """

    def __init__(self, webifier: "Webifier", authorizer: AccountAuthorizer) -> None:
        self._webifier = webifier
        self._authorizer = authorizer
        self._lock = threading.Lock()
        self._authorization: Optional[AccountAuthorization] = None
        self._account_id: Optional[str] = None

    def get(self) -> AccountAuthorization:
        with self._lock:
            return self._get_locked()

    def _get_locked(self) -> AccountAuthorization:
        if self._authorization is not None:
            return self._authorization

        authorization = self._authorizer.authorize(self._webifier)
        if self._account_id is None:
            self._account_id = authorization.account_id
        elif self._account_id != authorization.account_id:
            raise LocalError(
                "unauthorized",
                f"authorized as {authorization.account_id} but previously authorized "
                f"as accountId {self._account_id}",
            )

        self._authorization = authorization
        _logger.info(
            "Account authorized",
            extra={"account_id": authorization.account_id, "api_url": authorization.api_url},
        )
        return authorization

    def account_id(self) -> str:
        with self._lock:
            if self._account_id is None:
                self._get_locked()
            assert self._account_id is not None
            return self._account_id

    def clear(self) -> None:
        with self._lock:
            self._authorization = None
