# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Splitting a large file into parts.

B2 requires at least two parts, every part but the last at least the
account's absolute minimum part size, and no more than 10000 parts. Within
those limits parts are sized close to the recommended part size, which the
service tunes for throughput.
"""

from dataclasses import dataclass

from b2kit.client.structures import AccountAuthorization

MAX_PARTS_PER_LARGE_FILE = 10000
MAX_SMALL_FILE_SIZE = 5_000_000_000


@dataclass(frozen=True)
class PartSpec:
    """One part of a large file. part_number starts at 1."""

    part_number: int
    start: int
    length: int

    @property
    def end(self) -> int:
        """Offset one past the last byte of the part."""
        return self.start + self.length


class PartSizes:
    def __init__(self, minimum_part_size: int, recommended_part_size: int) -> None:
        if minimum_part_size < 1:
            raise ValueError(f"minimum_part_size must be positive, got {minimum_part_size}")
        if recommended_part_size < minimum_part_size:
            raise ValueError(
                f"recommended_part_size ({recommended_part_size}) must be at least "
                f"minimum_part_size ({minimum_part_size})"
            )
        self.minimum_part_size = minimum_part_size
        self.recommended_part_size = recommended_part_size

    @classmethod
    def from_authorization(cls, authorization: AccountAuthorization) -> "PartSizes":
        return cls(authorization.absolute_minimum_part_size, authorization.recommended_part_size)

    def is_big_enough_to_be_large_file(self, content_length: int) -> bool:
        # One minimum-sized part plus at least one byte.
        return content_length > self.minimum_part_size

    def should_treat_as_large_file(self, content_length: int) -> bool:
        return content_length >= 2 * self.recommended_part_size

    def must_be_large_file(self, content_length: int) -> bool:
        return content_length > MAX_SMALL_FILE_SIZE

    def pick_parts(self, content_length: int) -> list[PartSpec]:
        """
        Split content_length bytes into contiguous parts.

        Raises:
            ValueError: If content_length is too small for two parts.
        """
        if not self.is_big_enough_to_be_large_file(content_length):
            raise ValueError(
                f"content_length={content_length} is too small to make at least two parts. "
                f"minimum_part_size={self.minimum_part_size}"
            )

        if content_length < 2 * self.minimum_part_size:
            part_count = 2
            part_size = self.minimum_part_size
            last_part_size = content_length - self.minimum_part_size
        elif content_length < 2 * self.recommended_part_size:
            part_count = 2
            part_size = (content_length + 1) // part_count
            last_part_size = content_length - part_size
        else:
            part_count = min(MAX_PARTS_PER_LARGE_FILE, content_length // self.recommended_part_size)
            # Equal parts; the remainder lands in the last one.
            part_size = content_length // part_count
            last_part_size = content_length - (part_count - 1) * part_size

        assert part_count >= 2
        assert part_size >= self.minimum_part_size
        assert last_part_size >= 1

        parts = [PartSpec(i + 1, i * part_size, part_size) for i in range(part_count - 1)]
        parts.append(PartSpec(part_count, content_length - last_part_size, last_part_size))
        return parts
