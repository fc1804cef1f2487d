# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
b2kit: a client library and release toolkit for Backblaze B2 cloud storage.

The storage client lives in b2kit.client, the release pipeline in
b2kit.release, and the command line in b2kit.cli.
"""

__version__ = "0.3.0"

SDK_NAME = "b2kit"


def sdk_name() -> str:
    return SDK_NAME


def sdk_version() -> str:
    return __version__


def default_user_agent() -> str:
    """The User-Agent sent when the caller doesn't configure one."""
    return f"{SDK_NAME}/{__version__}"
