"""
BASIC startup stub detection.

Most C64 machine-code programs load at $0801 and start with a one-line
BASIC program such as `10 SYS 2064` so they can be RUN. The stub is not
code, so the disassembler dumps it as bytes with an explanatory comment.

Layout of a BASIC line in memory:
  +0  word  pointer to the next line
  +2  word  line number
  +4  byte  first token ($9E = SYS)
  +5  ...   argument as PETSCII digits, terminated by $00
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from .cursor import ByteCursor

__all__ = ['BasicStub', 'SYS_TOKEN', 'detect_basic_stub']

SYS_TOKEN = 0x9E


@dataclass
class BasicStub:
    line_number: int
    sys_argument: str
    length: int     # bytes from the load address up to the next-line pointer

    @property
    def comment(self) -> str:
        return f"Basic Startup: {self.line_number} SYS {self.sys_argument}"


def detect_basic_stub(cursor: ByteCursor) -> Optional[BasicStub]:
    """Probe for a SYS stub at the cursor. The cursor is left where it was."""
    start = cursor.save()
    load_address = cursor.current_address
    try:
        if cursor.remaining < 5:
            return None
        next_line = cursor.read_word()
        line_number = cursor.read_word()
        if cursor.read_byte() != SYS_TOKEN:
            return None

        argument = []
        while not cursor.at_end:
            byte = cursor.read_byte()
            if byte == 0:
                break
            argument.append(chr(byte))
        else:
            return None   # unterminated line

        length = next_line - load_address
        if length <= 0 or length > len(cursor.image) - start:
            return None
        return BasicStub(line_number, ''.join(argument).strip(), length)
    finally:
        cursor.restore(start)
