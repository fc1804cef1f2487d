# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for b2kit.

Each config section gets its own frozen pydantic model:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

A YAML file only needs the `global:` section. Everything else is optional and
commands fall back to the section defaults when it is absent.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from b2kit import default_user_agent

DEFAULT_MASTER_URL = "https://api.backblazeb2.com/"

# Values the B2 service accepts in the X-Bz-Test-Mode header.
TEST_MODES: frozenset[str] = frozenset(
    {
        "fail_some_uploads",
        "expire_some_account_authorization_tokens",
        "force_cap_exceeded",
    }
)


class GlobalConfig(BaseModel):
    """Cross-cutting settings: schema version and logging."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )


class ClientConfig(BaseModel):
    """
    How the storage client talks to the B2 service.

    The user agent ends up in an HTTP header, so control characters are
    rejected here rather than at request time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    master_url: str = Field(
        default=DEFAULT_MASTER_URL,
        description="URL used for b2_authorize_account; other URLs come from the authorization",
    )
    user_agent: str = Field(
        default_factory=default_user_agent,
        description="Value of the User-Agent header on every request",
    )
    test_mode: Optional[str] = Field(
        default=None,
        description="Optional X-Bz-Test-Mode value for exercising server-side failures",
    )
    connect_timeout_seconds: float = Field(default=5.0, gt=0)
    socket_timeout_seconds: float = Field(default=20.0, gt=0)

    @field_validator("master_url")
    @classmethod
    def _master_url_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("master_url must be non-empty")
        return value

    @field_validator("user_agent")
    @classmethod
    def _user_agent_is_header_safe(cls, value: str) -> str:
        if not value:
            raise ValueError("user_agent must be non-empty")
        if any(ord(ch) < 32 for ch in value):
            raise ValueError("user_agent must not contain control characters")
        return value

    @field_validator("test_mode")
    @classmethod
    def _known_test_mode(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in TEST_MODES:
            raise ValueError(f"test_mode must be one of: {', '.join(sorted(TEST_MODES))}")
        return value


class RetryConfig(BaseModel):
    """Backoff settings applied to every API call."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    max_attempts: int = Field(default=8, ge=1)
    initial_delay_seconds: int = Field(default=1, ge=0)
    max_delay_seconds: int = Field(default=64, ge=1)


class UploadConfig(BaseModel):
    """Large-file upload settings."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    max_workers: int = Field(
        default=4,
        ge=1,
        description="Number of parts uploaded concurrently",
    )
    progress_interval_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Minimum time between byte-progress reports for one part",
    )


class ReleaseConfig(BaseModel):
    """
    Inputs of the release pipeline.

    The *_env fields name environment variables rather than holding values,
    so that secrets stay out of config files.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    project_name: str = Field(default="b2kit")
    project_version: Optional[str] = Field(
        default=None,
        description="Project version; defaults to the installed b2kit version",
    )
    release_flag_env: str = Field(default="RELEASE_BUILD")
    build_number_env: str = Field(default="BUILD_NUMBER")
    signing_key_env: str = Field(default="SIGNING_KEY")
    signing_passphrase_env: str = Field(default="SIGNING_PASSPHRASE")
    signing_key_id: Optional[str] = Field(
        default=None,
        description="Key id passed to the external signing tool as --local-user",
    )
    gpg_binary: str = Field(default="gpg")
    sign: bool = Field(default=False, description="Produce detached .asc signatures")
    dist_directory: str = Field(default="dist")
    output_directory: str = Field(default="release")
    descriptors: list[str] = Field(
        default_factory=list,
        description="Generated descriptor files stamped with the publish version",
    )
    bundle: bool = Field(default=True, description="Assemble a single zip bundle")
    registry_bucket: Optional[str] = Field(
        default=None,
        description="B2 bucket that acts as the package registry",
    )


class B2KitConfig(BaseModel):
    """
    Top-level config container.

    Sections not present in the YAML stay None; consumers substitute the
    section defaults.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    client: Optional[ClientConfig] = Field(default=None)
    retry: Optional[RetryConfig] = Field(default=None)
    upload: Optional[UploadConfig] = Field(default=None)
    release: Optional[ReleaseConfig] = Field(default=None)
