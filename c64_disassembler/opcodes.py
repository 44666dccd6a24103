"""
6502 Opcode Decoder.

The instruction set comes from a 16x16 grid (row = high nibble, column =
low nibble) of "MNEMONIC mode" strings, loaded from data/opcodes.json.
Undocumented opcodes sit in the grid as cells that do not parse; decoding
one raises UnknownOpcodeError and the driver falls back to a `.byte` line.

Addressing modes:
  imp / akk  Implied / accumulator (no operand)    e.g. RTS, ASL
  imm        Immediate                             e.g. LDA #$05
  zp         Zero page                             e.g. LDA $fb
  zpx / zpy  Zero page indexed                     e.g. LDA $fb,x
  abs        Absolute                              e.g. STA $d020
  abx / aby  Absolute indexed                      e.g. STA $0400,x
  ind        Indirect (JMP only)                   e.g. JMP ($0314)
  inx        Indexed indirect                      e.g. LDA ($fb,x)
  iny        Indirect indexed                      e.g. LDA ($fb),y
  rel        Relative branch (signed 8-bit)        e.g. BNE label
"""

from __future__ import annotations
import enum
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from .cursor import ByteCursor
from .errors import ConfigError, UnknownAddressingModeError, UnknownOpcodeError

__all__ = [
    'AddressingMode', 'Opcode', 'Operand', 'OpcodeTable',
    'OPCODE_TABLE_PATH', 'ZERO_PAGE_TWINS', 'decode_operand',
]

OPCODE_TABLE_PATH = Path(__file__).parent / "data" / "opcodes.json"

_CELL_RE = re.compile(r'([A-Z]+)[\s\n]+(\w+)')


# ──────────────────────────────────────────────
# Addressing modes
# ──────────────────────────────────────────────

class AddressingMode(enum.Enum):
    IMP = 'imp'
    AKK = 'akk'
    IMM = 'imm'
    ZP = 'zp'
    ZPX = 'zpx'
    ZPY = 'zpy'
    ABS = 'abs'
    ABX = 'abx'
    ABY = 'aby'
    IND = 'ind'
    INX = 'inx'
    INY = 'iny'
    REL = 'rel'


# mode -> (operand bytes, operand template, hex width of a raw address)
# Template '{}' is replaced by the resolved address text.
MODE_FORMATS: Dict[AddressingMode, tuple] = {
    AddressingMode.IMP: (0, '', 0),
    AddressingMode.AKK: (0, '', 0),
    AddressingMode.IMM: (1, '#{}', 2),
    AddressingMode.ZP:  (1, '{}', 2),
    AddressingMode.ZPX: (1, '{},x', 2),
    AddressingMode.ZPY: (1, '{},y', 2),
    AddressingMode.ABS: (2, '{}', 4),
    AddressingMode.ABX: (2, '{},x', 4),
    AddressingMode.ABY: (2, '{},y', 4),
    AddressingMode.IND: (2, '({})', 4),
    AddressingMode.INX: (1, '({},x)', 2),
    AddressingMode.INY: (1, '({}),y', 2),
    AddressingMode.REL: (1, '{}', 4),
}

# Modes the assembler shortens to zero page when the operand fits in a byte
ZERO_PAGE_TWINS = (AddressingMode.ABS, AddressingMode.ABX, AddressingMode.ABY)


@dataclass(frozen=True)
class Opcode:
    """Decoded opcode table entry."""
    opcode: int
    mnemonic: str          # lowercase, as emitted
    mode: AddressingMode

    @property
    def operand_size(self) -> int:
        return MODE_FORMATS[self.mode][0]

    @property
    def length(self) -> int:
        return 1 + self.operand_size

    def __str__(self):
        return f"{self.mnemonic} {self.mode.value}"


@dataclass
class Operand:
    """Operand text plus the raw facts it was rendered from."""
    text: str = ""
    target: Optional[int] = None   # memory address referenced, if any
    value: Optional[int] = None    # immediate value, if any
    force_absolute: bool = False   # named target below $0100 in an absolute mode


# Resolves and registers an address: (address, hex_width) -> display text
Reference = Callable[[int, int], str]


# ──────────────────────────────────────────────
# Opcode table
# ──────────────────────────────────────────────

class OpcodeTable:
    """16x16 opcode grid, parsed once up front.

    Usage:
        table = OpcodeTable.load()
        op = table.decode(0xA9)     # Opcode(0xA9, 'lda', AddressingMode.IMM)
    """

    def __init__(self, grid: Sequence[Sequence[str]]):
        if len(grid) != 16 or any(len(row) != 16 for row in grid):
            raise ConfigError("Opcode table must be a 16x16 grid")
        self.cells: List[str] = [str(cell) for row in grid for cell in row]
        self._entries: List[Optional[Opcode]] = [
            self._parse_cell(opcode, cell) for opcode, cell in enumerate(self.cells)
        ]

    @classmethod
    def load(cls, path: Union[str, Path, None] = None) -> "OpcodeTable":
        """Load the grid from a JSON file (defaults to the bundled table)."""
        path = Path(path) if path else OPCODE_TABLE_PATH
        try:
            with open(path, 'r', encoding='utf-8') as f:
                grid = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot load opcode table {path}: {e}")
        return cls(grid)

    @staticmethod
    def _parse_cell(opcode: int, cell: str) -> Optional[Opcode]:
        match = _CELL_RE.match(cell)
        if not match:
            return None
        mnemonic, mode_token = match.group(1), match.group(2)
        try:
            mode = AddressingMode(mode_token)
        except ValueError:
            raise UnknownAddressingModeError(
                f"Unknown addressing mode '{mode_token}' for opcode ${opcode:02x}")
        return Opcode(opcode, mnemonic.lower(), mode)

    def decode(self, opcode: int, address: Optional[int] = None) -> Opcode:
        """Look up an opcode byte; raises UnknownOpcodeError for unusable cells."""
        row, column = opcode // 16, opcode % 16
        entry = self._entries[row * 16 + column]
        if entry is None:
            raise UnknownOpcodeError(opcode, self.cells[row * 16 + column], address)
        return entry

    def __iter__(self):
        return (entry for entry in self._entries if entry is not None)


# ──────────────────────────────────────────────
# Operand decoding
# ──────────────────────────────────────────────

def decode_operand(op: Opcode, cursor: ByteCursor, reference: Reference) -> Operand:
    """Consume the operand bytes of `op` and render them.

    Every operand that denotes a memory address goes through `reference`,
    which registers it as a label and returns its display text.
    """
    size, template, width = MODE_FORMATS[op.mode]
    if size == 0:
        return Operand()

    if op.mode is AddressingMode.IMM:
        value = cursor.read_byte()
        return Operand(template.format(f"${value:02x}"), value=value)

    if op.mode is AddressingMode.REL:
        offset = cursor.read_byte()
        if offset >= 0x80:
            offset -= 0x100
        # Branch offsets count from the address after the operand byte
        target = (cursor.current_address + offset) & 0xFFFF
        return Operand(template.format(reference(target, width)), target=target)

    target = cursor.read_byte() if size == 1 else cursor.read_word()
    text = reference(target, width)
    # A hex literal keeps its 4 digits; a name below $0100 needs `.abs`
    force_absolute = (op.mode in ZERO_PAGE_TWINS and target < 0x100
                      and not text.startswith('$'))
    return Operand(template.format(text), target=target, force_absolute=force_absolute)
