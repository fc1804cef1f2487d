# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the b2kit CLI.

Each function takes the parsed arguments and returns an exit code. Command
results are written to stdout as one JSON object per line; diagnostics go
through the structured logger, never print().

Error mapping at this boundary:
    ConfigError / CredentialsError  -> CONFIG_ERROR
    bad arguments, missing inputs   -> USER_ERROR
    B2Error and anything unexpected -> RUNTIME_ERROR
    failed release verification     -> VALIDATION_ERROR
"""

import argparse
import json
import logging
import platform
import sys
from pathlib import Path
from typing import Any, Callable, Optional

from b2kit.cli.exit_codes import CONFIG_ERROR, RUNTIME_ERROR, SUCCESS, USER_ERROR, VALIDATION_ERROR
from b2kit.client.content import FileContentSource, FileSink
from b2kit.client.exceptions import B2Error
from b2kit.client.storage import StorageClient, create_client
from b2kit.client.structures import (
    Bucket,
    DownloadRequest,
    ListFileNamesRequest,
    ListFileVersionsRequest,
    UploadFileRequest,
)
from b2kit.config.credentials import can_get_credentials, credentials_from_environment
from b2kit.config.exceptions import ConfigError
from b2kit.config.loader import load_config
from b2kit.config.schema import B2KitConfig, ClientConfig, ReleaseConfig
from b2kit.logging.logger import get_logger
from b2kit.release.manifest import MANIFEST_FILE_NAME, load_manifest
from b2kit.release.signing import SigningError
from b2kit.utils.byte_range import ByteRange

_Handler = Callable[[Optional[B2KitConfig], logging.Logger], int]


def _emit(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, sort_keys=True, default=str) + "\n")
    sys.stdout.flush()


def _load_config(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[B2KitConfig], logging.Logger]:
    """
    Load the config named by --config, if any, and set up the command logger.

    Returns (exit_code, config, logger). A non-SUCCESS exit code means the
    caller should return it straight away.
    """
    logger = get_logger(f"b2kit.cli.{command_name}", log_level=args.log_level)

    if args.config is None:
        logger.debug("No config provided, running with defaults", extra={"command": command_name})
        return SUCCESS, None, logger

    try:
        config = load_config(Path(args.config))
    except ConfigError as err:
        logger.error("Configuration error", extra={"command": command_name, "error": str(err)})
        return CONFIG_ERROR, None, logger

    log_file = config.global_config.log_file
    if log_file is not None:
        logger = get_logger(
            f"b2kit.cli.{command_name}",
            log_level=args.log_level,
            log_file=Path(log_file),
        )
    return SUCCESS, config, logger


def _run(args: argparse.Namespace, command_name: str, body: _Handler) -> int:
    exit_code, config, logger = _load_config(args, command_name)
    if exit_code != SUCCESS:
        return exit_code

    try:
        return body(config, logger)
    except ConfigError as err:
        logger.error("Configuration error", extra={"command": command_name, "error": str(err)})
        return CONFIG_ERROR
    except B2Error as err:
        logger.error(
            "B2 request failed",
            extra={"command": command_name, "status": err.status, "code": err.code, "error": str(err)},
            exc_info=True,
        )
        return RUNTIME_ERROR
    except Exception as err:
        logger.error(
            "Runtime error",
            extra={"command": command_name, "error": str(err)},
            exc_info=True,
        )
        return RUNTIME_ERROR


def _open_client(config: Optional[B2KitConfig]) -> StorageClient:
    """
    Raises:
        CredentialsError: If the key id or key isn't in the environment.
    """
    return create_client(config, credentials_from_environment())


def _release_config(config: Optional[B2KitConfig]) -> ReleaseConfig:
    if config is not None and config.release is not None:
        return config.release
    return ReleaseConfig()


def _find_bucket(client: StorageClient, bucket_name: str, logger: logging.Logger) -> Optional[Bucket]:
    bucket = client.get_bucket_or_none_by_name(bucket_name)
    if bucket is None:
        logger.error("Bucket not found", extra={"bucket": bucket_name})
    return bucket


def handle_authorize(args: argparse.Namespace) -> int:
    """Authorize with the environment's credentials and show what the account allows."""

    def body(config: Optional[B2KitConfig], logger: logging.Logger) -> int:
        with _open_client(config) as client:
            authorization = client.account_authorization()
        _emit(authorization.to_wire() | {"authorizationToken": "***"})
        logger.info("Authorized", extra={"account_id": authorization.account_id})
        return SUCCESS

    return _run(args, "authorize", body)


def handle_buckets(args: argparse.Namespace) -> int:
    def body(config: Optional[B2KitConfig], logger: logging.Logger) -> int:
        with _open_client(config) as client:
            buckets = client.list_buckets()
        for bucket in sorted(buckets, key=lambda b: b.bucket_name):
            _emit(
                {
                    "bucketName": bucket.bucket_name,
                    "bucketId": bucket.bucket_id,
                    "bucketType": bucket.bucket_type,
                }
            )
        logger.info("Listed buckets", extra={"count": len(buckets)})
        return SUCCESS

    return _run(args, "buckets", body)


def handle_ls(args: argparse.Namespace) -> int:
    def body(config: Optional[B2KitConfig], logger: logging.Logger) -> int:
        with _open_client(config) as client:
            bucket = _find_bucket(client, args.bucket, logger)
            if bucket is None:
                return USER_ERROR

            if args.versions:
                files = client.file_versions(ListFileVersionsRequest(bucket.bucket_id, prefix=args.prefix))
            else:
                files = client.file_names(ListFileNamesRequest(bucket.bucket_id, prefix=args.prefix))

            count = 0
            for version in files:
                _emit(version.to_wire())
                count += 1
        logger.info("Listed files", extra={"bucket": args.bucket, "count": count})
        return SUCCESS

    return _run(args, "ls", body)


def handle_upload(args: argparse.Namespace) -> int:
    def body(config: Optional[B2KitConfig], logger: logging.Logger) -> int:
        local = Path(args.local)
        if not local.is_file():
            logger.error("Local file not found", extra={"path": str(local)})
            return USER_ERROR

        if args.dry_run:
            logger.info(
                "Dry run: would upload",
                extra={"path": str(local), "bucket": args.bucket, "file_name": args.name},
            )
            return SUCCESS

        with _open_client(config) as client:
            bucket = _find_bucket(client, args.bucket, logger)
            if bucket is None:
                return USER_ERROR
            version = client.upload_file(
                UploadFileRequest(
                    bucket_id=bucket.bucket_id,
                    file_name=args.name,
                    content_type=args.content_type,
                    content_source=FileContentSource(local),
                )
            )
        _emit(version.to_wire())
        return SUCCESS

    return _run(args, "upload", body)


def handle_download(args: argparse.Namespace) -> int:
    def body(config: Optional[B2KitConfig], logger: logging.Logger) -> int:
        byte_range: Optional[ByteRange] = None
        if args.byte_range is not None:
            byte_range = ByteRange.parse(args.byte_range)
            if byte_range is None:
                logger.error("Invalid byte range", extra={"range": args.byte_range})
                return USER_ERROR

        if args.dry_run:
            logger.info(
                "Dry run: would download",
                extra={"bucket": args.bucket, "file_name": args.name, "path": args.local},
            )
            return SUCCESS

        sink = FileSink(Path(args.local))
        with _open_client(config) as client:
            client.download_by_name(
                DownloadRequest(bucket_name=args.bucket, file_name=args.name, range=byte_range),
                sink,
            )
        _emit({"fileName": args.name, "path": args.local, "bytesWritten": sink.bytes_written})
        return SUCCESS

    return _run(args, "download", body)


def handle_rm(args: argparse.Namespace) -> int:
    """Delete every version of one file name."""

    def body(config: Optional[B2KitConfig], logger: logging.Logger) -> int:
        with _open_client(config) as client:
            bucket = _find_bucket(client, args.bucket, logger)
            if bucket is None:
                return USER_ERROR

            request = ListFileVersionsRequest(bucket.bucket_id, start_file_name=args.name, prefix=args.name)
            deleted = 0
            for version in client.file_versions(request):
                if version.file_name != args.name:
                    break
                if version.file_id is None:
                    continue
                if args.dry_run:
                    logger.info("Dry run: would delete", extra={"file_id": version.file_id})
                else:
                    client.delete_file_version(version.file_name, version.file_id)
                deleted += 1
        _emit({"fileName": args.name, "versionsDeleted": deleted, "dryRun": args.dry_run})
        return SUCCESS

    return _run(args, "rm", body)


def handle_release_version(args: argparse.Namespace) -> int:
    """Print the publish version for the current environment."""

    def body(config: Optional[B2KitConfig], logger: logging.Logger) -> int:
        from b2kit import sdk_version
        from b2kit.release.versioning import publish_version

        release = _release_config(config)
        version = publish_version(
            release.project_version or sdk_version(),
            release_flag_env=release.release_flag_env,
            build_number_env=release.build_number_env,
        )
        sys.stdout.write(version + "\n")
        return SUCCESS

    return _run(args, "release-version", body)


def handle_release(args: argparse.Namespace) -> int:
    def body(config: Optional[B2KitConfig], logger: logging.Logger) -> int:
        from b2kit import sdk_version
        from b2kit.release.packager import create_release
        from b2kit.release.versioning import publish_version

        release = _release_config(config)
        if args.dry_run:
            version = publish_version(
                release.project_version or sdk_version(),
                release_flag_env=release.release_flag_env,
                build_number_env=release.build_number_env,
            )
            logger.info(
                "Dry run: would create release",
                extra={"publish_version": version, "output": release.output_directory},
            )
            return SUCCESS

        try:
            result = create_release(release, project_root=Path.cwd())
        except (FileNotFoundError, FileExistsError) as err:
            logger.error("Cannot create release", extra={"error": str(err)})
            return USER_ERROR
        except SigningError as err:
            logger.error("Signing failed", extra={"error": str(err)}, exc_info=True)
            return RUNTIME_ERROR

        _emit(
            {
                "publishVersion": result.publish_version,
                "releaseDir": result.release_dir,
                "artifacts": result.artifacts,
                "signatures": result.signatures,
                "bundle": result.bundle_path,
            }
        )
        return SUCCESS

    return _run(args, "release", body)


def handle_verify(args: argparse.Namespace) -> int:
    def body(config: Optional[B2KitConfig], logger: logging.Logger) -> int:
        from b2kit.release.verifier import verify_release

        report = verify_release(Path(args.release_dir))
        _emit(
            {
                "releaseDir": report.release_dir,
                "valid": report.is_valid,
                "checksPassed": report.checks_passed,
                "checksFailed": report.checks_failed,
                "errors": report.errors,
            }
        )
        return SUCCESS if report.is_valid else VALIDATION_ERROR

    return _run(args, "verify", body)


def handle_publish(args: argparse.Namespace) -> int:
    def body(config: Optional[B2KitConfig], logger: logging.Logger) -> int:
        from b2kit import sdk_version
        from b2kit.release.publisher import publish_bundle, registry_file_name
        from b2kit.release.versioning import publish_version

        release = _release_config(config)
        bucket_name = args.bucket or release.registry_bucket
        if not bucket_name:
            logger.error("No registry bucket: pass --bucket or set release.registry_bucket")
            return CONFIG_ERROR

        bundle = Path(args.bundle)
        if not bundle.is_file():
            logger.error("Bundle not found", extra={"path": str(bundle)})
            return USER_ERROR

        manifest_path = bundle.parent / MANIFEST_FILE_NAME
        if manifest_path.is_file():
            version = load_manifest(manifest_path).publish_version
        else:
            version = publish_version(
                release.project_version or sdk_version(),
                release_flag_env=release.release_flag_env,
                build_number_env=release.build_number_env,
            )

        if args.dry_run:
            logger.info(
                "Dry run: would publish",
                extra={"bucket": bucket_name, "file_name": registry_file_name(version, bundle)},
            )
            return SUCCESS

        with _open_client(config) as client:
            published = publish_bundle(client, bucket_name, bundle, version)
        _emit(published.to_wire())
        return SUCCESS

    return _run(args, "publish", body)


def handle_info(args: argparse.Namespace) -> int:
    """Display environment and configuration information."""

    def body(config: Optional[B2KitConfig], logger: logging.Logger) -> int:
        from b2kit import __version__

        client_config = config.client if config is not None and config.client is not None else ClientConfig()
        logger.info(
            "System information",
            extra={
                "b2kit_version": __version__,
                "python_version": platform.python_version(),
                "platform": platform.system(),
                "architecture": platform.machine(),
                "master_url": client_config.master_url,
                "user_agent": client_config.user_agent,
                "credentials_available": can_get_credentials(),
                "config": args.config,
            },
        )
        return SUCCESS

    return _run(args, "info", body)
