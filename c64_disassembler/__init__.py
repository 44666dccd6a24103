"""
C64 6502 Disassembler
=====================
Turns a Commodore 64 program image (.prg) into KickAssembler source that
re-assembles to the same bytes, with symbolic labels, data/text segments
and comments on VIC-II / CIA register writes.

Architecture:
    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌──────────┐    ┌───────────┐
    │  .prg    │───>│  Cursor  │───>│ Segments │───>│ Decoder  │───>│ Resolver  │──> listing
    │ (bytes)  │    │ (bytes)  │    │ data/txt │    │ (opcode) │    │ (labels)  │
    └──────────┘    └──────────┘    └──────────┘    └──────────┘    └───────────┘

    - cursor.py:       byte reader, tracks the load address
    - opcodes.py:      16x16 opcode grid + addressing-mode operand rules
    - labels.py:       address -> label table
    - resolver.py:     address -> label name or hex literal, local-label checks
    - segments.py:     data/text range classification, screen-code table
    - peripherals.py:  bit-field comments for hardware register writes
    - basic.py:        BASIC `SYS` startup stub detection
    - config.py:       segments/labels/constants JSON ingestion
    - disassembler.py: the three-pass driver
"""

__version__ = "0.2.0"

import dataclasses

from .errors import (DisassemblerError, CursorOverrunError, UnknownOpcodeError,
                     UnknownAddressingModeError, UnknownCharacterError,
                     SelfRelativeReferenceError, DuplicateLabelNameError, ConfigError)
from .cursor import ByteCursor
from .opcodes import AddressingMode, Opcode, OpcodeTable
from .labels import Label, LabelTable
from .resolver import AddressResolver
from .segments import Segment, SegmentKind, SegmentClassifier, CharacterTable
from .peripherals import PeripheralAnnotator, REGISTER_LAYOUTS
from .config import DisassemblerConfig, parse_address
from .disassembler import Disassembler, Pass


def disassemble(image: bytes, config: DisassemblerConfig = None, *,
                address_comments: bool = False) -> str:
    """Disassemble a program image with the given (or default) configuration.

    Args:
        image: Full .prg contents, load address header included.
        config: Segments, labels and constants. Defaults to the bundled
            C64 register constants and no segments.
        address_comments: Emit a `// $xxxx` line before every listing line.

    Returns:
        The listing as text.
    """
    if config is None:
        config = DisassemblerConfig.load()
    if address_comments:
        config = dataclasses.replace(config, address_comments=True)
    return Disassembler(config).disassemble(image)
