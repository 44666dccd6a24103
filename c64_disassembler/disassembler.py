"""
Three-pass 6502 disassembler for C64 program images.

How the three passes work:
  Pass 1 (DISCOVER_LABELS):  Seed the constants, then walk the whole image.
           Every address an operand refers to gets a label, so after this
           pass the label table has its final membership.
  Pass 2 (MARK_USED_LABELS): Walk the image again. Every label the cursor
           lands on is marked visible: something refers to it AND it is the
           start of an instruction or data line, so it can be defined.
  Pass 3 (EMIT_FINAL):       Declare the constants that were referenced,
           then walk the image a third time and produce the listing.

  Only visible labels are printed by name; references to anything else stay
  hex literals, so the listing always re-assembles to the same bytes. A
  named absolute operand below $0100 is written with `.abs` so it keeps its
  3-byte encoding.

Each pass gets a fresh DisassemblyContext (cursor, register snapshot,
output buffer). The label table is shared by the passes of one run.
"""

from __future__ import annotations
import enum
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import List, Optional

from .basic import detect_basic_stub
from .config import DisassemblerConfig
from .cursor import ByteCursor
from .errors import UnknownOpcodeError
from .labels import LabelTable
from .opcodes import OpcodeTable, decode_operand
from .peripherals import PeripheralAnnotator
from .resolver import AddressResolver
from .segments import CharacterTable, SegmentClassifier, SegmentKind

__all__ = ['Pass', 'DisassemblyContext', 'Disassembler']

logger = logging.getLogger(__name__)

TEXT_ENCODING = "screencode_upper"


class Pass(enum.Enum):
    DISCOVER_LABELS = 1
    MARK_USED_LABELS = 2
    EMIT_FINAL = 3


@dataclass
class DisassemblyContext:
    """Per-pass state. Never reused across passes."""
    cursor: ByteCursor
    resolver: AddressResolver
    emit: bool = False
    annotator: PeripheralAnnotator = field(default_factory=PeripheralAnnotator)
    lines: List[str] = field(default_factory=list)

    def output(self, line: str):
        if self.emit:
            self.lines.append(line)


class Disassembler:
    """Table-driven 6502 disassembler producing KickAssembler source.

    Usage:
        dis = Disassembler(DisassemblerConfig.load("segments.json"))
        listing = dis.disassemble(Path("game.prg").read_bytes())
    """

    def __init__(self, config: Optional[DisassemblerConfig] = None,
                 opcodes: Optional[OpcodeTable] = None,
                 charset: Optional[CharacterTable] = None):
        self.config = config if config is not None else DisassemblerConfig.load()
        self.opcodes = opcodes if opcodes is not None else OpcodeTable.load()
        self.charset = charset if charset is not None else CharacterTable.load()
        self.classifier = SegmentClassifier(self.config.segments)
        self.labels = LabelTable()

    def disassemble(self, image: bytes) -> str:
        """Run all three passes over `image` and return the listing text."""
        self.labels = LabelTable()
        for address, name in self.config.labels.items():
            self.labels.ensure(address, name, definition_only=True)

        context = None
        for phase in Pass:
            context = self._run_pass(phase, bytes(image))
        return '\n'.join(context.lines)

    # ──────────────────────────────────────────────
    # Passes
    # ──────────────────────────────────────────────

    def _run_pass(self, phase: Pass, image: bytes) -> DisassemblyContext:
        cursor = ByteCursor(image)
        context = DisassemblyContext(
            cursor=cursor,
            resolver=AddressResolver(self.labels, lambda: cursor.current_address),
            emit=phase is Pass.EMIT_FINAL,
        )
        logger.debug(f"{phase.name}: start ({len(self.labels)} labels)")

        if phase is Pass.DISCOVER_LABELS:
            self._seed_constants(context, declare=False)
        elif phase is Pass.EMIT_FINAL:
            self._seed_constants(context, declare=True)
        self._scan(context)

        logger.debug(f"{phase.name}: done ({len(self.labels)} labels, "
                     f"{sum(1 for l in self.labels if l.visible)} visible)")
        return context

    def _seed_constants(self, context: DisassemblyContext, declare: bool):
        for address, name in self.config.constants.items():
            label = self.labels.get(address)
            if declare and label is not None and label.uses and label.name == name:
                context.output(f".label {name} = ${address:04x}")
            self.labels.ensure(address, name, visible=True, definition_only=True)

    def _scan(self, context: DisassemblyContext):
        cursor = context.cursor
        load_address = cursor.read_load_address()
        context.output(f"* = ${load_address:04x}")

        stub = detect_basic_stub(cursor)
        if stub is not None:
            context.output(f"// {stub.comment}")
            self._write_bytes(context, stub.length)

        while not cursor.at_end:
            address = cursor.current_address
            label = self.labels.mark_visible(address)
            if label is not None:
                context.output(f"{label.name}:  // ${address:04x}")
            if self.config.address_comments:
                context.output(f"// ${address:04x}")

            segment = self.classifier.classify(address)
            if segment is None:
                self._write_instruction(context)
            elif segment.kind is SegmentKind.TEXT:
                context.output(f'.encoding "{TEXT_ENCODING}"')
                self._write_text(context, segment.length)
            else:
                self._write_bytes(context, segment.length)

    # ──────────────────────────────────────────────
    # Line writers
    # ──────────────────────────────────────────────

    def _write_bytes(self, context: DisassemblyContext, count: int):
        data = [context.cursor.read_byte() for _ in range(count)]
        context.annotator.reset()
        context.output('.byte ' + ', '.join(f"${b:02x}" for b in data))

    def _write_text(self, context: DisassemblyContext, count: int):
        address = context.cursor.current_address
        data = bytes(context.cursor.read_byte() for _ in range(count))
        context.annotator.reset()
        context.output(f'.text "{self.charset.decode(data, address)}"')

    def _write_instruction(self, context: DisassemblyContext):
        cursor = context.cursor
        address = cursor.current_address
        opcode = cursor.read_byte()
        try:
            op = self.opcodes.decode(opcode, address)
        except UnknownOpcodeError as e:
            if context.emit:
                logger.warning(f"Unknown opcode ${opcode:02x} ({e.cell}) at ${address:04x}, "
                               f"emitting as data")
            context.annotator.reset()
            context.output(f".byte ${opcode:02x}")
            return

        operand_address = cursor.current_address
        operand = decode_operand(op, cursor, partial(self._reference, context))
        comment = context.annotator.annotate(op, operand)

        line = f"\t{op.mnemonic}"
        if operand.force_absolute:
            line += ".abs"
        if operand.text:
            text = operand.text
            # Label on the operand byte itself (self-modifying code)
            inline = self.labels.mark_visible(operand_address)
            if inline is not None:
                text = f"{inline.name}: {text}"
            line += f" {text}"
        if comment:
            line += f" // {comment}"
        context.output(line)

    def _reference(self, context: DisassemblyContext, address: int, width: int) -> str:
        self.labels.ensure(address)
        return context.resolver.resolve(address, width)
