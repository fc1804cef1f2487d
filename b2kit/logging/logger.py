# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logging for b2kit.

One log record becomes one line of JSON:

  {"ts": "2026-...", "level": "INFO", "module": "b2kit.client.storage", "msg": "Uploaded file", "bucket_id": ...}

Call sites pass bucket ids, file names, part numbers and the like through
`extra=`; they end up as top-level fields of the object. Auth tokens,
application keys and signing material pass through this library, so a fixed
set of field names is masked before serialization.

Loggers come from get_logger() only. Modules call it once at import time and
keep the result in `_logger`.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

REDACTED = "***"

_SECRET_FIELDS: frozenset[str] = frozenset(
    {"authorization", "authorization_token", "application_key", "signing_key", "passphrase"}
)

# Attributes every LogRecord carries; whatever else is on a record came from `extra=`.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

_LEVELS: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _context_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: REDACTED if key.lower() in _SECRET_FIELDS else value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """
    Renders a record as `ts`, `level`, `module`, `msg`, the caller's context
    fields and, for records logged with exc_info, the traceback under `exc`.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }
        entry.update(_context_fields(record))
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _level_from_name(level_name: str) -> int:
    try:
        return _LEVELS[level_name.upper()]
    except KeyError:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_LEVELS))}"
        ) from None


def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)


def _has_file_handler(logger: logging.Logger, log_file: Path) -> bool:
    target = os.path.abspath(log_file)
    return any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == target
        for handler in logger.handlers
    )


def get_logger(
    name: str,
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Return the named logger, configured for JSON output.

    The first call for a name attaches a stdout handler. Later calls only
    adjust the level, and attach a file handler when a log_file not seen
    before is given, so calling this repeatedly never duplicates output.

    Args:
        name: Logger name, normally the caller's __name__.
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (any case).
        log_file: Also write to this file; parent directories are created.

    Raises:
        ValueError: If log_level is not a known level name.
    """
    level = _level_from_name(log_level)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    if not logger.handlers:
        _attach(logger, logging.StreamHandler(stream=sys.stdout), level)
    else:
        for handler in logger.handlers:
            handler.setLevel(level)

    if log_file is not None and not _has_file_handler(logger, log_file):
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _attach(logger, logging.FileHandler(str(log_file), encoding="utf-8"), level)

    return logger
