# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
HTTP header names used by the B2 API and a read-only view of response headers.
"""

from typing import Iterator, Mapping, Optional

from requests.structures import CaseInsensitiveDict

from b2kit.utils.strings import percent_decode

FILE_ID = "X-Bz-File-Id"
FILE_NAME = "X-Bz-File-Name"
CONTENT_SHA1 = "X-Bz-Content-Sha1"
TEST_MODE = "X-Bz-Test-Mode"
PART_NUMBER = "X-Bz-Part-Number"
UPLOAD_TIMESTAMP = "X-Bz-Upload-Timestamp"
FILE_INFO_PREFIX = "X-Bz-Info-"

# X-Bz-Content-Sha1 value meaning "the 40 hex digits follow the content".
HEX_DIGITS_AT_END = "hex_digits_at_end"
UNVERIFIED_PREFIX = "unverified:"

SRC_LAST_MODIFIED_MILLIS = FILE_INFO_PREFIX + "src_last_modified_millis"
LARGE_FILE_SHA1 = FILE_INFO_PREFIX + "large_file_sha1"

AUTHORIZATION = "Authorization"
CONTENT_LENGTH = "Content-Length"
CONTENT_TYPE = "Content-Type"
RANGE = "Range"
CONTENT_RANGE = "Content-Range"
RETRY_AFTER = "Retry-After"
USER_AGENT = "User-Agent"

APPLICATION_OCTET = "application/octet-stream"


class Headers(Mapping[str, str]):
    """Case-insensitive, read-only response headers with B2-aware accessors."""

    def __init__(self, values: Optional[Mapping[str, str]] = None) -> None:
        self._values: CaseInsensitiveDict = CaseInsensitiveDict(values or {})

    def __getitem__(self, name: str) -> str:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Headers({dict(self._values)!r})"

    def content_type(self) -> str:
        return self._values.get(CONTENT_TYPE) or APPLICATION_OCTET

    def content_length(self) -> int:
        """
        Raises:
            ValueError: If there is no Content-Length or it isn't an integer.
        """
        value = self._values.get(CONTENT_LENGTH)
        if value is None:
            raise ValueError("response has no Content-Length")
        return int(value)

    def has_content_range(self) -> bool:
        return CONTENT_RANGE in self._values

    def content_sha1(self) -> Optional[str]:
        return self._values.get(CONTENT_SHA1)

    def content_sha1_even_if_unverified(self) -> Optional[str]:
        sha1 = self.content_sha1()
        if sha1 is not None and sha1.startswith(UNVERIFIED_PREFIX):
            return sha1[len(UNVERIFIED_PREFIX):]
        return sha1

    def large_file_sha1(self) -> Optional[str]:
        return self._values.get(LARGE_FILE_SHA1)

    def file_id(self) -> Optional[str]:
        return self._values.get(FILE_ID)

    def file_name(self) -> Optional[str]:
        value = self._values.get(FILE_NAME)
        return percent_decode(value) if value is not None else None

    def upload_timestamp(self) -> Optional[int]:
        value = self._values.get(UPLOAD_TIMESTAMP)
        return int(value) if value is not None and value.isdigit() else None

    def src_last_modified_millis(self) -> Optional[int]:
        value = self._values.get(SRC_LAST_MODIFIED_MILLIS)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def file_info(self) -> dict[str, str]:
        """The X-Bz-Info-* headers, keyed by info name, values decoded."""
        prefix = FILE_INFO_PREFIX.lower()
        info: dict[str, str] = {}
        for name, value in self._values.items():
            if name.lower().startswith(prefix):
                info[name[len(prefix):]] = percent_decode(value)
        return dict(sorted(info.items()))
