# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Detached signatures for release artifacts.

Signing shells out to gpg. Which keyring it uses depends on the environment:

  - IN_MEMORY: the armoured secret key and its passphrase come from
    environment variables (the CI case). The key is imported into a
    throw-away GNUPGHOME that is deleted afterwards, and the passphrase is
    fed on stdin.
  - EXTERNAL: the user's own keyring and agent do the work, optionally with
    a specific key id.

Each artifact gets "<name>.asc" next to it.
"""

import enum
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Mapping, Optional, Sequence

from b2kit.logging.logger import get_logger

_logger: logging.Logger = get_logger(__name__)

SIGNATURE_SUFFIX = ".asc"


class SigningError(Exception):
    """gpg is missing or refused to sign."""


class SigningMode(enum.Enum):
    IN_MEMORY = "in_memory"
    EXTERNAL = "external"


def select_signing_mode(
    env: Optional[Mapping[str, str]] = None,
    key_env: str = "SIGNING_KEY",
    passphrase_env: str = "SIGNING_PASSPHRASE",
) -> SigningMode:
    """IN_MEMORY when both key and passphrase are set and non-empty, otherwise EXTERNAL."""
    env = env if env is not None else os.environ
    key = env.get(key_env, "")
    passphrase = env.get(passphrase_env, "")
    if key.strip() and passphrase:
        return SigningMode.IN_MEMORY
    return SigningMode.EXTERNAL


def signature_path(artifact: Path) -> Path:
    return artifact.with_name(artifact.name + SIGNATURE_SUFFIX)


def _run_gpg(args: list[str], stdin: Optional[str], env: Mapping[str, str]) -> None:
    try:
        result = subprocess.run(
            args,
            input=stdin,
            capture_output=True,
            text=True,
            env=dict(env),
            check=False,
        )
    except FileNotFoundError as err:
        raise SigningError(f"Signing tool not found: {args[0]}") from err

    if result.returncode != 0:
        raise SigningError(
            f"{args[0]} exited with status {result.returncode}: {result.stderr.strip()}"
        )


def _sign_one(
    artifact: Path,
    gpg_binary: str,
    gpg_args: list[str],
    stdin: Optional[str],
    env: Mapping[str, str],
) -> Path:
    output = signature_path(artifact)
    args = [
        gpg_binary,
        "--batch",
        "--yes",
        *gpg_args,
        "--armor",
        "--output",
        str(output),
        "--detach-sign",
        str(artifact),
    ]
    _run_gpg(args, stdin, env)
    _logger.info("Signed artifact", extra={"artifact": artifact.name, "signature": output.name})
    return output


def sign_artifacts(
    artifacts: Sequence[Path],
    mode: SigningMode,
    env: Optional[Mapping[str, str]] = None,
    key_env: str = "SIGNING_KEY",
    passphrase_env: str = "SIGNING_PASSPHRASE",
    key_id: Optional[str] = None,
    gpg_binary: str = "gpg",
) -> list[Path]:
    """
    Write a detached, ASCII-armoured signature for every artifact.

    Args:
        artifacts: Files to sign.
        mode: Where the signing key lives; see select_signing_mode().
        env: Environment holding the key material. Defaults to os.environ.
        key_env: Variable holding the armoured secret key (IN_MEMORY).
        passphrase_env: Variable holding the key passphrase (IN_MEMORY).
        key_id: Key to sign with; passed as --local-user.
        gpg_binary: gpg executable.

    Returns:
        Paths of the written signatures, in artifact order.

    Raises:
        SigningError: If gpg is missing, the key can't be imported or a
            signature can't be made.
    """
    env = env if env is not None else os.environ
    if not artifacts:
        return []

    common_args: list[str] = []
    if key_id:
        common_args.extend(["--local-user", key_id])

    if mode is SigningMode.EXTERNAL:
        _logger.info("Signing with external keyring", extra={"artifact_count": len(artifacts)})
        return [_sign_one(path, gpg_binary, common_args, None, env) for path in artifacts]

    key = env.get(key_env, "")
    passphrase = env.get(passphrase_env, "")
    if not key.strip() or not passphrase:
        raise SigningError(f"{key_env} and {passphrase_env} must both be set for in-memory signing")

    with tempfile.TemporaryDirectory(prefix="b2kit_gnupg_") as home:
        gpg_env = dict(env)
        gpg_env["GNUPGHOME"] = home
        os.chmod(home, 0o700)

        _run_gpg([gpg_binary, "--batch", "--import"], key, gpg_env)
        _logger.info("Imported signing key", extra={"artifact_count": len(artifacts)})

        loopback_args = [*common_args, "--pinentry-mode", "loopback", "--passphrase-fd", "0"]
        return [_sign_one(path, gpg_binary, loopback_args, passphrase, gpg_env) for path in artifacts]
