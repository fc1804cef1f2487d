# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""Tests for the account authorization cache."""

from unittest.mock import MagicMock

import pytest
from fakes import auth_wire

from b2kit.client.auth import AccountAuthorizationCache, SimpleAccountAuthorizer
from b2kit.client.exceptions import LocalError
from b2kit.client.structures import AccountAuthorization
from b2kit.client.webifier import Webifier


@pytest.fixture()
def webifier() -> MagicMock:
    return MagicMock(spec=Webifier)


def test_simple_authorizer_passes_credentials(webifier: MagicMock, authorization: AccountAuthorization) -> None:
    webifier.authorize_account.return_value = authorization
    assert SimpleAccountAuthorizer("kid", "secret").authorize(webifier) is authorization
    webifier.authorize_account.assert_called_once_with("kid", "secret")


def test_authorizer_repr_hides_key() -> None:
    assert "secret" not in repr(SimpleAccountAuthorizer("kid", "secret"))


def test_authorizes_lazily_and_caches(webifier: MagicMock, authorization: AccountAuthorization) -> None:
    webifier.authorize_account.return_value = authorization
    cache = AccountAuthorizationCache(webifier, SimpleAccountAuthorizer("kid", "key"))

    webifier.authorize_account.assert_not_called()
    assert cache.get() is authorization
    assert cache.get() is authorization
    assert webifier.authorize_account.call_count == 1


def test_clear_forces_reauthorization(webifier: MagicMock) -> None:
    first = AccountAuthorization.model_validate(auth_wire())
    second = AccountAuthorization.model_validate(auth_wire(authorizationToken="token-2"))
    webifier.authorize_account.side_effect = [first, second]
    cache = AccountAuthorizationCache(webifier, SimpleAccountAuthorizer("kid", "key"))

    assert cache.get().authorization_token == "token-1"
    cache.clear()
    assert cache.get().authorization_token == "token-2"


def test_account_change_is_rejected(webifier: MagicMock) -> None:
    webifier.authorize_account.side_effect = [
        AccountAuthorization.model_validate(auth_wire()),
        AccountAuthorization.model_validate(auth_wire(accountId="someone-else")),
    ]
    cache = AccountAuthorizationCache(webifier, SimpleAccountAuthorizer("kid", "key"))
    cache.get()
    cache.clear()

    with pytest.raises(LocalError) as excinfo:
        cache.get()
    assert excinfo.value.code == "unauthorized"


def test_account_id_authorizes_when_needed(webifier: MagicMock, authorization: AccountAuthorization) -> None:
    webifier.authorize_account.return_value = authorization
    cache = AccountAuthorizationCache(webifier, SimpleAccountAuthorizer("kid", "key"))
    assert cache.account_id() == "acct-1"
    cache.clear()
    assert cache.account_id() == "acct-1"
    assert webifier.authorize_account.call_count == 1


def test_failed_authorization_is_not_cached(webifier: MagicMock, authorization: AccountAuthorization) -> None:
    webifier.authorize_account.side_effect = [LocalError("boom"), authorization]
    cache = AccountAuthorizationCache(webifier, SimpleAccountAuthorizer("kid", "key"))
    with pytest.raises(LocalError):
        cache.get()
    assert cache.get() is authorization
