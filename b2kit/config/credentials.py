# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
B2 credentials from environment variables.

B2_APPLICATION_KEY_ID is the current name for the key id. Older setups used
B2_ACCOUNT_ID, which is still read when the new name is absent.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from b2kit.config.exceptions import CredentialsError

APPLICATION_KEY_ID_ENV = "B2_APPLICATION_KEY_ID"
LEGACY_ACCOUNT_ID_ENV = "B2_ACCOUNT_ID"
APPLICATION_KEY_ENV = "B2_APPLICATION_KEY"


@dataclass(frozen=True)
class Credentials:
    application_key_id: str
    application_key: str

    def __repr__(self) -> str:
        return f"Credentials(application_key_id={self.application_key_id!r}, application_key='***')"


def _require(env: Mapping[str, str], name: str) -> str:
    value = env.get(name)
    if value is None:
        raise CredentialsError(f"{name} must be set in the environment")
    if not value:
        raise CredentialsError(f"{name} must be non-empty.")
    return value


def _application_key_id(env: Mapping[str, str]) -> str:
    if APPLICATION_KEY_ID_ENV in env:
        return _require(env, APPLICATION_KEY_ID_ENV)

    legacy = env.get(LEGACY_ACCOUNT_ID_ENV)
    if legacy is None:
        raise CredentialsError(f"{APPLICATION_KEY_ID_ENV} must be set in the environment")
    if not legacy:
        raise CredentialsError(
            f"{LEGACY_ACCOUNT_ID_ENV} is set but empty. "
            f"Set {APPLICATION_KEY_ID_ENV} to a non-empty value instead."
        )
    return legacy


def credentials_from_environment(env: Optional[Mapping[str, str]] = None) -> Credentials:
    """
    Read the application key id and key from the environment.

    Args:
        env: Mapping to read from. Defaults to os.environ.

    Returns:
        Credentials with both values non-empty.

    Raises:
        CredentialsError: If either value is unset or empty.
    """
    if env is None:
        env = os.environ
    key_id = _application_key_id(env)
    key = _require(env, APPLICATION_KEY_ENV)
    return Credentials(application_key_id=key_id, application_key=key)


def can_get_credentials(env: Optional[Mapping[str, str]] = None) -> bool:
    try:
        credentials_from_environment(env)
    except CredentialsError:
        return False
    return True
