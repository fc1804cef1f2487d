# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for b2kit.

One root command; every operation is a subcommand. The global options
(--config, --log-level, --dry-run) are inherited by every subcommand through
a parent parser.

Usage:
    b2kit <subcommand> [options]
    b2kit buckets
    b2kit upload my-bucket ./report.pdf reports/2024/report.pdf
    b2kit release --config configs/release.yaml
    b2kit verify release/1.2.0
"""

import argparse
import sys
from typing import Optional, Sequence

from b2kit.cli.commands import (
    handle_authorize,
    handle_buckets,
    handle_download,
    handle_info,
    handle_ls,
    handle_publish,
    handle_release,
    handle_release_version,
    handle_rm,
    handle_upload,
    handle_verify,
)
from b2kit.cli.exit_codes import USER_ERROR


def _build_global_parser(subcommand_copy: bool = False) -> argparse.ArgumentParser:
    """
    Parser holding --config, --log-level and --dry-run.

    The root parser and every subparser both accept these options. argparse
    writes a subparser's results over the root namespace, so the subparser
    copy uses SUPPRESS defaults: an option left off after the subcommand
    keeps whatever was given before it.
    """

    def default(value: object) -> object:
        return argparse.SUPPRESS if subcommand_copy else value

    # add_help=False so -h belongs to the subcommand parsers.
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=default(None),
        help="Path to YAML configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default=default("INFO"),
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level.",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=default(False),
        dest="dry_run",
        help="Report what would happen without changing anything.",
    )
    return parent


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    commands = [
        ("authorize", "Check credentials and show the account authorization.", handle_authorize),
        ("buckets", "List buckets.", handle_buckets),
        ("ls", "List files in a bucket.", handle_ls),
        ("upload", "Upload a local file.", handle_upload),
        ("download", "Download a file to a local path.", handle_download),
        ("rm", "Delete every version of a file.", handle_rm),
        ("release-version", "Print the version a release would publish.", handle_release_version),
        ("release", "Create a release directory from dist/.", handle_release),
        ("verify", "Validate a release directory.", handle_verify),
        ("publish", "Upload a release bundle to the registry bucket.", handle_publish),
        ("info", "Display environment and config info.", handle_info),
    ]

    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.set_defaults(func=handler)

    ls_parser = subparsers.choices["ls"]
    ls_parser.add_argument("bucket", help="Bucket name.")
    ls_parser.add_argument("--prefix", default=None, help="Only list names starting with this.")
    ls_parser.add_argument(
        "--versions",
        action="store_true",
        default=False,
        help="List every version, not just the latest.",
    )

    upload_parser = subparsers.choices["upload"]
    upload_parser.add_argument("bucket", help="Bucket name.")
    upload_parser.add_argument("local", help="Local file to upload.")
    upload_parser.add_argument("name", help="File name in the bucket.")
    upload_parser.add_argument(
        "--content-type",
        default="b2/x-auto",
        dest="content_type",
        help="Content type; b2/x-auto lets the service pick one.",
    )

    download_parser = subparsers.choices["download"]
    download_parser.add_argument("bucket", help="Bucket name.")
    download_parser.add_argument("name", help="File name in the bucket.")
    download_parser.add_argument("local", help="Local path to write.")
    download_parser.add_argument(
        "--range",
        default=None,
        dest="byte_range",
        help="Byte range to fetch, e.g. bytes=0-99.",
    )

    rm_parser = subparsers.choices["rm"]
    rm_parser.add_argument("bucket", help="Bucket name.")
    rm_parser.add_argument("name", help="File name in the bucket.")

    verify_parser = subparsers.choices["verify"]
    verify_parser.add_argument("release_dir", help="Release directory to verify.")

    publish_parser = subparsers.choices["publish"]
    publish_parser.add_argument("bundle", help="Bundle zip to upload.")
    publish_parser.add_argument(
        "--bucket",
        default=None,
        help="Registry bucket; defaults to release.registry_bucket from the config.",
    )


def build_parser() -> argparse.ArgumentParser:
    root_parser = argparse.ArgumentParser(
        prog="b2kit",
        description="b2kit: Backblaze B2 client and release tooling.",
        parents=[_build_global_parser()],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, _build_global_parser(subcommand_copy=True))
    return root_parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Entry point behind the `b2kit` console script.

    With no subcommand, prints help and exits with USER_ERROR.
    """
    root_parser = build_parser()
    args = root_parser.parse_args(argv)

    if not hasattr(args, "func") or args.func is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
