# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Publishing a release bundle to a B2 bucket acting as the package registry.

Bundles land at "releases/<publish_version>/<bundle file name>".
"""

import logging
from pathlib import Path

from b2kit.client.content import FileContentSource
from b2kit.client.exceptions import LocalError
from b2kit.client.progress import UploadListener, no_op_listener
from b2kit.client.storage import StorageClient
from b2kit.client.structures import FileVersion, UploadFileRequest
from b2kit.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)

RELEASES_PREFIX = "releases"
BUNDLE_CONTENT_TYPE = "application/zip"


def registry_file_name(publish_version: str, bundle_path: Path) -> str:
    return f"{RELEASES_PREFIX}/{publish_version}/{bundle_path.name}"


def publish_bundle(
    client: StorageClient,
    bucket_name: str,
    bundle_path: Path,
    publish_version: str,
    listener: UploadListener = no_op_listener,
) -> FileVersion:
    """
    Upload bundle_path into bucket_name.

    Raises:
        FileNotFoundError: If bundle_path doesn't exist.
        LocalError: code "bucket_not_found" when the bucket doesn't exist.
        B2Error: If the upload fails.
    """
    if not bundle_path.is_file():
        raise FileNotFoundError(f"Bundle not found: {bundle_path}")

    bucket = client.get_bucket_or_none_by_name(bucket_name)
    if bucket is None:
        raise LocalError("bucket_not_found", f"no bucket named {bucket_name}")

    file_name = registry_file_name(publish_version, bundle_path)
    request = UploadFileRequest(
        bucket_id=bucket.bucket_id,
        file_name=file_name,
        content_type=BUNDLE_CONTENT_TYPE,
        content_source=FileContentSource(bundle_path),
        file_info={"publish_version": publish_version},
        listener=listener,
    )
    version = client.upload_file(request)
    _logger.info(
        "Published bundle",
        extra={"bucket": bucket_name, "file_name": file_name, "file_id": version.file_id},
    )
    return version
