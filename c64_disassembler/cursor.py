"""
Sequential reader over a C64 program image.

The first two bytes of a .prg file hold the little-endian load address.
They are not part of the program, so the address of the byte under the
cursor is load_address + position - 2.
"""

from __future__ import annotations
from typing import Optional

from .errors import CursorOverrunError

__all__ = ['ByteCursor']

HEADER_SIZE = 2


class ByteCursor:
    """Read-only cursor over the image bytes."""

    def __init__(self, image: bytes):
        self.image = bytes(image)
        self.position: int = 0
        self.load_address: Optional[int] = None

    @property
    def current_address(self) -> int:
        """Address of the next byte to be read."""
        if self.load_address is None:
            raise CursorOverrunError("Load address has not been read yet")
        return (self.load_address + self.position - HEADER_SIZE) & 0xFFFF

    @property
    def remaining(self) -> int:
        return len(self.image) - self.position

    @property
    def at_end(self) -> bool:
        return self.position >= len(self.image)

    def read_byte(self) -> int:
        if self.position >= len(self.image):
            address = self.current_address if self.load_address is not None else None
            raise CursorOverrunError(
                f"Read past end of image ({len(self.image)} bytes)", address)
        value = self.image[self.position]
        self.position += 1
        return value

    def read_word(self) -> int:
        low = self.read_byte()
        high = self.read_byte()
        return low | (high << 8)

    def read_load_address(self) -> int:
        """Consume the two-byte header and return the load address."""
        self.position = 0
        self.load_address = self.read_word()
        return self.load_address

    def save(self) -> int:
        return self.position

    def restore(self, position: int):
        self.position = position
