"""
Peripheral Annotator: explains writes to VIC-II / CIA registers.

Recognises the pattern

        lda #$1b
        sta VIC_SCREEN_CONTROL_REGISTER_1

and decodes the immediate value bit by bit using the register's layout.
Registers are matched by the name the operand resolved to, so a register
is only annotated when a constant names it.

Reference: C64 Programmer's Reference Guide, Appendix G (VIC-II, CIA).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .opcodes import AddressingMode, Opcode, Operand

__all__ = ['BitField', 'RegisterLayout', 'REGISTER_LAYOUTS', 'PeripheralAnnotator']


@dataclass(frozen=True)
class BitField:
    """One field of a register: decode(field_value, register_value) -> text."""
    name: str
    offset: int
    width: int
    decode: Callable[[int, int], Optional[str]]

    def extract(self, register: int) -> int:
        return (register >> self.offset) & ((1 << self.width) - 1)


@dataclass
class RegisterLayout:
    name: str
    fields: List[BitField] = field(default_factory=list)
    title: str = ""

    def describe(self, register: int) -> str:
        parts = []
        for bits in self.fields:
            text = bits.decode(bits.extract(register), register)
            if text:
                parts.append(text)
        if not parts:
            return ""
        return self.title + ", ".join(parts)


def _on_off(label: str) -> Callable[[int, int], str]:
    return lambda v, _: f"{label} {'on' if v else 'off'}"


def _enabled(label: str) -> Callable[[int, int], str]:
    return lambda v, _: f"{label} {'enabled' if v else 'disabled'}"


def _base(label: str, unit: int) -> Callable[[int, int], str]:
    return lambda v, _: f"{label}=${v * unit:04x}"


def _cia_source(label: str) -> Callable[[int, int], Optional[str]]:
    # Bit 7 selects whether the written 1-bits set or clear their mask bit
    def decode(v: int, register: int) -> Optional[str]:
        if not v:
            return None
        return f"{'Enable' if register & 0x80 else 'Disable'} {label}"
    return decode


def _cia_layout(name: str) -> RegisterLayout:
    return RegisterLayout(name, [
        BitField('timer_a', 0, 1, _cia_source('timer A underflow interrupt')),
        BitField('timer_b', 1, 1, _cia_source('timer B underflow interrupt')),
        BitField('tod', 2, 1, _cia_source('TOD alarm interrupt')),
        BitField('serial', 3, 1, _cia_source('byte received/sent via serial shift interrupt')),
        BitField('flag', 4, 1, _cia_source('FLAG pin interrupt')),
    ])


_LAYOUTS: Tuple[RegisterLayout, ...] = (
    RegisterLayout('VIC_MEMORY_SETUP_REGISTER', [
        BitField('screenmem', 4, 4, _base('screenmem', 0x400)),
        BitField('bitmap', 3, 1, _base('bitmap', 0x2000)),
        BitField('charmem', 1, 3, _base('charmem', 0x800)),
    ], title="Set screen addresses: "),
    RegisterLayout('VIC_SCREEN_CONTROL_REGISTER_1', [
        BitField('yscroll', 0, 3, lambda v, _: f"vertical scroll {v}"),
        BitField('rsel', 3, 1, lambda v, _: f"screen height {24 + v}"),
        BitField('den', 4, 1, _on_off('screen')),
        BitField('bmm', 5, 1, lambda v, _: 'bitmap mode' if v else 'text mode'),
        BitField('ecm', 6, 1, _on_off('extended background mode')),
        BitField('rst8', 7, 1, lambda v, _: f"raster line interrupt bit 8 {v}"),
    ]),
    RegisterLayout('VIC_SCREEN_CONTROL_REGISTER_2', [
        BitField('xscroll', 0, 3, lambda v, _: f"horizontal scroll {v}"),
        BitField('csel', 3, 1, lambda v, _: f"screen width {38 + 2 * v}"),
        BitField('mcm', 4, 1, _on_off('multicolor mode')),
    ]),
    RegisterLayout('VIC_RASTER_INTERRUPT_CONTROL', [
        BitField('raster', 0, 1, _enabled('Raster interrupt')),
        BitField('sprite_background', 1, 1, _enabled('Sprite-background collision interrupt')),
        BitField('sprite_sprite', 2, 1, _enabled('Sprite-sprite collision interrupt')),
        BitField('light_pen', 3, 1, _enabled('Light pen interrupt')),
    ]),
    _cia_layout('INTERRUPT_CONTROL_AND_STATUS_REGISTER'),
    _cia_layout('CIA2_INTERRUPT_CONTROL_REGISTER'),
)

REGISTER_LAYOUTS: Dict[str, RegisterLayout] = {layout.name: layout for layout in _LAYOUTS}


class PeripheralAnnotator:
    """Tracks `lda #imm` and explains the `sta` that follows it."""

    def __init__(self, layouts: Optional[Dict[str, RegisterLayout]] = None):
        self.layouts = REGISTER_LAYOUTS if layouts is None else layouts
        self.accumulator: Optional[int] = None

    def reset(self):
        self.accumulator = None

    def annotate(self, op: Opcode, operand: Operand) -> str:
        """Comment for this instruction; updates the register snapshot."""
        comment = ""
        if op.mnemonic == 'sta' and op.mode is AddressingMode.ABS and self.accumulator is not None:
            layout = self.layouts.get(operand.text)
            if layout is not None:
                comment = layout.describe(self.accumulator)

        # The snapshot only survives until the next instruction
        if op.mnemonic == 'lda' and op.mode is AddressingMode.IMM:
            self.accumulator = operand.value
        else:
            self.accumulator = None
        return comment
