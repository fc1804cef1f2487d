# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
HTTP byte ranges of the form "bytes=start-end".

`end` is inclusive, so "bytes=0-0" is the first byte. Either side may be
missing: "bytes=100-" is everything from offset 100 and "bytes=-100" is the
last 100 bytes.
"""

import re
from dataclasses import dataclass
from typing import Optional

_RANGE_PATTERN = re.compile(r"bytes=(\d*)-(\d*)")


def _int_or_none(text: str) -> Optional[int]:
    return int(text) if text else None


@dataclass(frozen=True)
class ByteRange:
    start: Optional[int]
    end: Optional[int]

    @classmethod
    def start_at(cls, start: int) -> "ByteRange":
        return cls(start, None)

    @classmethod
    def between(cls, start: int, end: int) -> "ByteRange":
        return cls(start, end)

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["ByteRange"]:
        """Parse "bytes=a-b". Returns None for anything malformed or empty."""
        if text is None:
            return None
        match = _RANGE_PATTERN.fullmatch(text)
        if match is None:
            return None
        start = _int_or_none(match.group(1))
        end = _int_or_none(match.group(2))
        if start is None and end is None:
            return None
        if start is not None and end is not None and end < start:
            return None
        return cls(start, end)

    def is_satisfied(self, entity_size: int) -> bool:
        """Can this range be served from an entity of entity_size bytes."""
        if self.start is None:
            return self.end != 0
        return self.start < entity_size

    def effective_range(self, entity_size: int) -> "ByteRange":
        """
        The equivalent range with both ends set to valid indexes.

        Raises:
            ValueError: If the range is not satisfiable for entity_size.
        """
        if not self.is_satisfied(entity_size):
            raise ValueError(f"{self} is not satisfiable for {entity_size} bytes")
        if self.start is None:
            assert self.end is not None
            return ByteRange(max(0, entity_size - self.end), entity_size - 1)
        if self.end is None:
            return ByteRange(self.start, entity_size - 1)
        return ByteRange(self.start, min(self.end, entity_size - 1))

    def number_of_bytes(self) -> int:
        if self.start is None or self.end is None:
            raise ValueError(f"{self} is open-ended; use effective_range() first")
        return self.end - self.start + 1

    def __str__(self) -> str:
        start = "" if self.start is None else str(self.start)
        end = "" if self.end is None else str(self.end)
        return f"bytes={start}-{end}"
