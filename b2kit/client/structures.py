# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Typed views of the JSON the B2 API sends and receives.

Responses are frozen pydantic models. Fields use snake_case in Python and
camelCase on the wire (the alias generator handles the mapping), and fields
the service adds later are ignored rather than rejected, so a newer server
never breaks an older client.

Requests that the client builds itself are plain dataclasses; the webifier
turns them into JSON bodies.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from b2kit.client.progress import UploadListener, no_op_listener
from b2kit.utils.byte_range import ByteRange

if TYPE_CHECKING:
    from b2kit.client.content import ContentSource

LARGE_FILE_SHA1_INFO_NAME = "large_file_sha1"
SRC_LAST_MODIFIED_MILLIS_INFO_NAME = "src_last_modified_millis"
AUTO_CONTENT_TYPE = "b2/x-auto"

BUCKET_TYPE_ALL_PUBLIC = "allPublic"
BUCKET_TYPE_ALL_PRIVATE = "allPrivate"


class B2Response(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Allowed(B2Response):
    """What the key used for authorization is allowed to do."""

    capabilities: list[str] = Field(default_factory=list)
    bucket_id: Optional[str] = None
    bucket_name: Optional[str] = None
    name_prefix: Optional[str] = None


class AccountAuthorization(B2Response):
    account_id: str
    authorization_token: str
    api_url: str
    download_url: str
    recommended_part_size: int
    absolute_minimum_part_size: int
    allowed: Optional[Allowed] = None

    def __repr__(self) -> str:
        return (
            f"AccountAuthorization(account_id={self.account_id!r}, api_url={self.api_url!r}, "
            f"download_url={self.download_url!r})"
        )


class Bucket(B2Response):
    account_id: str
    bucket_id: str
    bucket_name: str
    bucket_type: str
    bucket_info: dict[str, str] = Field(default_factory=dict)
    cors_rules: list[dict[str, Any]] = Field(default_factory=list)
    lifecycle_rules: list[dict[str, Any]] = Field(default_factory=list)
    options: list[str] = Field(default_factory=list)
    revision: int = 0


class ListBucketsResponse(B2Response):
    buckets: list[Bucket] = Field(default_factory=list)


class FileVersion(B2Response):
    """
    One version of a file, as returned by uploads, listings and file info.

    `action` is "upload" for a finished file, "start" for an unfinished large
    file, "hide" for a hide marker and "folder" for a virtual folder in a
    delimited listing.
    """

    file_id: Optional[str] = None
    file_name: str
    content_length: int = 0
    content_type: Optional[str] = None
    content_sha1: Optional[str] = None
    content_md5: Optional[str] = None
    file_info: dict[str, str] = Field(default_factory=dict)
    action: str = "upload"
    upload_timestamp: int = 0

    @property
    def large_file_sha1(self) -> Optional[str]:
        return self.file_info.get(LARGE_FILE_SHA1_INFO_NAME)


class ListFileNamesResponse(B2Response):
    files: list[FileVersion] = Field(default_factory=list)
    next_file_name: Optional[str] = None


class ListFileVersionsResponse(B2Response):
    files: list[FileVersion] = Field(default_factory=list)
    next_file_name: Optional[str] = None
    next_file_id: Optional[str] = None


class ListUnfinishedLargeFilesResponse(B2Response):
    files: list[FileVersion] = Field(default_factory=list)
    next_file_id: Optional[str] = None


class Part(B2Response):
    file_id: str
    part_number: int
    content_length: int
    content_sha1: str
    content_md5: Optional[str] = None
    upload_timestamp: int = 0


class ListPartsResponse(B2Response):
    parts: list[Part] = Field(default_factory=list)
    next_part_number: Optional[int] = None


class UploadUrlResponse(B2Response):
    bucket_id: str
    upload_url: str
    authorization_token: str


class UploadPartUrlResponse(B2Response):
    file_id: str
    upload_url: str
    authorization_token: str


class ApplicationKey(B2Response):
    account_id: str
    application_key_id: str
    key_name: str
    capabilities: list[str] = Field(default_factory=list)
    bucket_id: Optional[str] = None
    name_prefix: Optional[str] = None
    expiration_timestamp: Optional[int] = None
    options: list[str] = Field(default_factory=list)


class CreatedApplicationKey(ApplicationKey):
    """Only the create call ever returns the secret part of a key."""

    application_key: str

    def __repr__(self) -> str:
        return (
            f"CreatedApplicationKey(application_key_id={self.application_key_id!r}, "
            f"key_name={self.key_name!r})"
        )


class ListKeysResponse(B2Response):
    keys: list[ApplicationKey] = Field(default_factory=list)
    next_application_key_id: Optional[str] = None


class DownloadAuthorization(B2Response):
    bucket_id: str
    file_name_prefix: str
    authorization_token: str


class DeleteFileVersionResponse(B2Response):
    file_id: str
    file_name: str


# Requests the client builds.


@dataclass(frozen=True)
class UploadFileRequest:
    """
    Everything needed to upload one file, small or large.

    content_type may be AUTO_CONTENT_TYPE to let the service pick one from
    the file name extension.
    """

    bucket_id: str
    file_name: str
    content_type: str
    content_source: "ContentSource"
    file_info: dict[str, str] = field(default_factory=dict)
    listener: UploadListener = no_op_listener


@dataclass(frozen=True)
class DownloadRequest:
    """
    A download by file id or by bucket name and file name.

    The b2_* overrides ask the service to send different response headers,
    which is mostly useful for download URLs handed to browsers.
    """

    file_id: Optional[str] = None
    bucket_name: Optional[str] = None
    file_name: Optional[str] = None
    range: Optional[ByteRange] = None
    b2_content_disposition: Optional[str] = None
    b2_content_language: Optional[str] = None
    b2_expires: Optional[str] = None
    b2_cache_control: Optional[str] = None
    b2_content_encoding: Optional[str] = None
    b2_content_type: Optional[str] = None

    def __post_init__(self) -> None:
        by_id = self.file_id is not None
        by_name = self.bucket_name is not None and self.file_name is not None
        if by_id == by_name:
            raise ValueError("DownloadRequest needs either file_id or bucket_name and file_name")

    @property
    def is_by_id(self) -> bool:
        return self.file_id is not None

    def content_overrides(self) -> list[tuple[str, str]]:
        """The non-empty b2* query parameters, in a fixed order."""
        pairs = [
            ("b2ContentDisposition", self.b2_content_disposition),
            ("b2ContentLanguage", self.b2_content_language),
            ("b2Expires", self.b2_expires),
            ("b2CacheControl", self.b2_cache_control),
            ("b2ContentEncoding", self.b2_content_encoding),
            ("b2ContentType", self.b2_content_type),
        ]
        return [(name, value) for name, value in pairs if value is not None]


@dataclass(frozen=True)
class ListFileNamesRequest:
    bucket_id: str
    start_file_name: Optional[str] = None
    max_file_count: Optional[int] = None
    prefix: Optional[str] = None
    delimiter: Optional[str] = None


@dataclass(frozen=True)
class ListFileVersionsRequest:
    bucket_id: str
    start_file_name: Optional[str] = None
    start_file_id: Optional[str] = None
    max_file_count: Optional[int] = None
    prefix: Optional[str] = None
    delimiter: Optional[str] = None


@dataclass(frozen=True)
class ListUnfinishedLargeFilesRequest:
    bucket_id: str
    name_prefix: Optional[str] = None
    start_file_id: Optional[str] = None
    max_file_count: Optional[int] = None


@dataclass(frozen=True)
class ListPartsRequest:
    file_id: str
    start_part_number: Optional[int] = None
    max_part_count: Optional[int] = None


@dataclass(frozen=True)
class ListKeysRequest:
    max_key_count: Optional[int] = None
    start_application_key_id: Optional[str] = None


@dataclass(frozen=True)
class CreateKeyRequest:
    key_name: str
    capabilities: tuple[str, ...]
    valid_duration_in_seconds: Optional[int] = None
    bucket_id: Optional[str] = None
    name_prefix: Optional[str] = None


@dataclass(frozen=True)
class GetDownloadAuthorizationRequest:
    bucket_id: str
    file_name_prefix: str
    valid_duration_in_seconds: int
    b2_content_disposition: Optional[str] = None
