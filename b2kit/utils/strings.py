# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""String helpers shared by the webifier and the headers code."""

from urllib.parse import quote_plus, unquote_plus


def percent_encode(value: str) -> str:
    """
    Encode a string the way B2 expects file names and info values.

    This is form encoding (spaces become '+') of the UTF-8 bytes, except that
    '/' is left alone so file names keep their path structure. The unreserved
    set is the HTML form one: '*' passes through and '~' is escaped.
    """
    return quote_plus(value, safe="/*").replace("~", "%7E")


def percent_decode(value: str) -> str:
    return unquote_plus(value)


def has_control_characters(value: str) -> bool:
    return any(ord(ch) < 32 for ch in value)
