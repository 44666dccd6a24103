"""
Error taxonomy for the C64 disassembler.

Every failure carries the address it happened at (when one is known) so the
CLI can report it. Only UnknownOpcodeError is recoverable; the driver turns
it into a `.byte` line. Everything else aborts the run.
"""

from __future__ import annotations
from typing import Optional

__all__ = [
    'DisassemblerError', 'CursorOverrunError', 'UnknownOpcodeError',
    'UnknownAddressingModeError', 'UnknownCharacterError',
    'SelfRelativeReferenceError', 'DuplicateLabelNameError', 'ConfigError',
]


class DisassemblerError(Exception):
    """Raised on disassembly errors."""
    def __init__(self, message: str, address: Optional[int] = None):
        self.address = address
        super().__init__(f"${address:04x}: {message}" if address is not None else message)


class CursorOverrunError(DisassemblerError):
    """Read past the end of the binary image."""


class UnknownOpcodeError(DisassemblerError):
    """Opcode table cell does not hold a MNEMONIC/mode pair."""
    def __init__(self, opcode: int, cell: str, address: Optional[int] = None):
        self.opcode = opcode
        self.cell = cell
        super().__init__(f"Unknown opcode ${opcode:02x} ({cell!r})", address)


class UnknownAddressingModeError(DisassemblerError):
    """Opcode table names an addressing mode the decoder has no rule for."""


class UnknownCharacterError(DisassemblerError):
    """Text segment byte has no entry in the character table."""


class SelfRelativeReferenceError(DisassemblerError):
    """Local label referenced from its own address."""


class DuplicateLabelNameError(DisassemblerError):
    """A closer local label shares the rendered name of the target."""


class ConfigError(DisassemblerError):
    """Malformed segment/label/constant configuration."""
