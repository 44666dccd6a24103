"""
End-to-end tests for the three-pass disassembler.

Each image is a hand-assembled .prg: two header bytes with the load
address, followed by the program bytes.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from c64_disassembler import disassemble
from c64_disassembler.config import DisassemblerConfig
from c64_disassembler.disassembler import Disassembler
from c64_disassembler.errors import (CursorOverrunError, DuplicateLabelNameError,
                                     UnknownCharacterError)
from c64_disassembler.segments import Segment, SegmentKind

import c64dis


def _prg(load: int, *code: int) -> bytes:
    return bytes([load & 0xFF, load >> 8, *code])


def _dis(image: bytes, **config) -> list:
    """Disassemble with an explicit (default-free) config; return listing lines."""
    return Disassembler(DisassemblerConfig(**config)).disassemble(image).split('\n')


class TestBasicListing:

    def test_origin_and_instructions(self):
        assert _dis(_prg(0x1000, 0xEA, 0x60)) == ["* = $1000", "\tnop", "\trts"]

    def test_unknown_opcode_becomes_byte(self):
        lines = _dis(_prg(0x1000, 0x02, 0xEA))
        assert lines == ["* = $1000", ".byte $02", "\tnop"]

    def test_address_comments(self):
        lines = _dis(_prg(0x1000, 0xEA, 0x60), address_comments=True)
        assert lines == ["* = $1000", "// $1000", "\tnop", "// $1001", "\trts"]

    def test_truncated_instruction_is_fatal(self):
        with pytest.raises(CursorOverrunError) as exc:
            _dis(_prg(0x1000, 0x8D, 0x00))
        assert exc.value.address == 0x1002

    def test_output_is_deterministic(self):
        image = _prg(0xC000, 0xA2, 0x00, 0xBD, 0x00, 0xC0, 0xE8, 0xD0, 0xFA, 0x60)
        dis = Disassembler(DisassemblerConfig())
        first = dis.disassemble(image)
        assert dis.disassemble(image) == first
        assert Disassembler(DisassemblerConfig()).disassemble(image) == first


class TestLabels:

    def test_backward_branch_gets_label(self):
        # $1000 LDX #0 / $1002 INX / $1003 BNE $1002
        lines = _dis(_prg(0x1000, 0xA2, 0x00, 0xE8, 0xD0, 0xFD))
        assert lines == [
            "* = $1000",
            "\tldx #$00",
            "label1:  // $1002",
            "\tinx",
            "\tbne label1",
        ]

    def test_forward_jump_gets_label(self):
        # $1000 JMP $1004 / $1003 NOP / $1004 RTS
        lines = _dis(_prg(0x1000, 0x4C, 0x04, 0x10, 0xEA, 0x60))
        assert lines == [
            "* = $1000",
            "\tjmp label1",
            "\tnop",
            "label1:  // $1004",
            "\trts",
        ]

    def test_unreached_target_stays_hex(self):
        # JSR into the middle of the next instruction and to the KERNAL
        lines = _dis(_prg(0x1000, 0x20, 0x05, 0x10, 0xAD, 0xD2, 0xFF))
        assert lines == ["* = $1000", "\tjsr $1005", "\tlda $ffd2"]
        assert not any(line.endswith(':') or ':  //' in line for line in lines)

    def test_operand_label_for_self_modifying_code(self):
        # $1000 LDA #$00 / $1002 STA $1001
        lines = _dis(_prg(0x1000, 0xA9, 0x00, 0x8D, 0x01, 0x10))
        assert lines == ["* = $1000", "\tlda label1: #$00", "\tsta label1"]

    def test_configured_local_label(self):
        # $c000 LDY #0 / $c002 INY / $c003 BNE $c002 / $c005 RTS
        lines = _dis(_prg(0xC000, 0xA0, 0x00, 0xC8, 0xD0, 0xFD, 0x60),
                     labels={0xC002: "!loop"})
        assert lines == [
            "* = $c000",
            "\tldy #$00",
            "!loop:  // $c002",
            "\tiny",
            "\tbne !loop-",
            "\trts",
        ]

    def test_ambiguous_local_label_aborts(self):
        # $c000 NOP / $c001 NOP / $c002 BNE $c000, both NOPs named !loop
        with pytest.raises(DuplicateLabelNameError):
            _dis(_prg(0xC000, 0xEA, 0xEA, 0xD0, 0xFC),
                 labels={0xC000: "!loop", 0xC001: "!loop"})


class TestConstants:

    def test_only_referenced_constants_declared(self):
        lines = _dis(_prg(0x1000, 0x8D, 0x20, 0xD0),
                     constants={0xD020: "BORDER", 0xD021: "BACKGROUND"})
        assert lines == [".label BORDER = $d020", "* = $1000", "\tsta BORDER"]

    def test_vic_memory_setup_comment(self):
        # LDA #$05 / STA $D000 with $D000 named as the memory setup register.
        # Fields follow the VIC-II layout: bits 4-7 screen, bit 3 bitmap,
        # bits 1-3 charset. So $05 is charmem=$1000, not screenmem=$1400.
        lines = _dis(_prg(0x0800, 0xA9, 0x05, 0x8D, 0x00, 0xD0),
                     constants={0xD000: "VIC_MEMORY_SETUP_REGISTER"})
        assert lines == [
            ".label VIC_MEMORY_SETUP_REGISTER = $d000",
            "* = $0800",
            "\tlda #$05",
            "\tsta VIC_MEMORY_SETUP_REGISTER // Set screen addresses: "
            "screenmem=$0000, bitmap=$0000, charmem=$1000",
        ]

    def test_default_constants(self):
        listing = disassemble(_prg(0xC000, 0xA9, 0x1B, 0x8D, 0x11, 0xD0, 0x6C, 0x14, 0x03))
        lines = listing.split('\n')
        assert lines[:2] == [".label IRQ_VECTOR = $0314",
                             ".label VIC_SCREEN_CONTROL_REGISTER_1 = $d011"]
        assert "\tsta VIC_SCREEN_CONTROL_REGISTER_1 // vertical scroll 3, screen height 25, " \
               "screen on, text mode, extended background mode off, " \
               "raster line interrupt bit 8 0" in lines
        assert "\tjmp (IRQ_VECTOR)" in lines

    def test_named_zero_page_target_keeps_absolute_encoding(self):
        # STA $0001 (8D 01 00) must not re-assemble as STA $01 (85 01)
        lines = disassemble(_prg(0xC000, 0x8D, 0x01, 0x00)).split('\n')
        assert lines == [".label PROCESSOR_PORT = $0001", "* = $c000",
                         "\tsta.abs PROCESSOR_PORT"]

    def test_named_zero_page_target_indexed(self):
        # LDA $0010,X / STA $10 with $0010 named
        lines = _dis(_prg(0xC000, 0xBD, 0x10, 0x00, 0x85, 0x10),
                     constants={0x0010: "POINTER"})
        assert lines == [".label POINTER = $0010", "* = $c000",
                         "\tlda.abs POINTER,x", "\tsta POINTER"]

    def test_data_line_clears_register_snapshot(self):
        # LDA #$05 / .byte $00 / STA $D000
        lines = _dis(_prg(0x0800, 0xA9, 0x05, 0x00, 0x8D, 0x00, 0xD0),
                     segments=[Segment(0x0802, 0x0802, SegmentKind.ALL_BYTES)],
                     constants={0xD000: "VIC_MEMORY_SETUP_REGISTER"})
        assert lines[-2:] == [".byte $00", "\tsta VIC_MEMORY_SETUP_REGISTER"]

    def test_text_line_clears_register_snapshot(self):
        # LDA #$05 / .text "a" / STA $D000
        lines = _dis(_prg(0x0800, 0xA9, 0x05, 0x01, 0x8D, 0x00, 0xD0),
                     segments=[Segment(0x0802, 0x0802, SegmentKind.TEXT)],
                     constants={0xD000: "VIC_MEMORY_SETUP_REGISTER"})
        assert lines[-2:] == ['.text "a"', "\tsta VIC_MEMORY_SETUP_REGISTER"]


class TestConvenienceFunction:

    def test_address_comments_leave_caller_config_alone(self):
        config = DisassemblerConfig()
        listing = disassemble(_prg(0x1000, 0xEA), config, address_comments=True)
        assert listing.split('\n') == ["* = $1000", "// $1000", "\tnop"]
        assert config.address_comments is False
        assert disassemble(_prg(0x1000, 0xEA), config).split('\n') == ["* = $1000", "\tnop"]


class TestSegments:

    def test_text_block_and_bytes(self):
        image = _prg(0x2000, 0x60, 0x08, 0x09, 0x21, 0x01, 0x02, 0xFF, 0xEE)
        lines = _dis(image, segments=[
            Segment(0x2001, 0x2003, SegmentKind.TEXT),
            Segment(0x2004, 0x2005, SegmentKind.ALL_BYTES),
            Segment(0x2006, 0x2007, SegmentKind.SINGLE_BYTES),
        ])
        assert lines == [
            "* = $2000",
            "\trts",
            '.encoding "screencode_upper"',
            '.text "hi!"',
            ".byte $01, $02",
            ".byte $ff",
            ".byte $ee",
        ]

    def test_landing_inside_block_goes_byte_by_byte(self):
        # LDA $0000 swallows $2001-$2002, so the block is entered at $2003
        image = _prg(0x2000, 0xAD, 0x00, 0x00, 0x11, 0x22, 0x60)
        lines = _dis(image, segments=[Segment(0x2002, 0x2004, SegmentKind.ALL_BYTES)])
        assert lines == ["* = $2000", "\tlda $0000", ".byte $11", ".byte $22", "\trts"]

    def test_unknown_character_aborts(self):
        image = _prg(0x2000, 0x01, 0xA0)
        with pytest.raises(UnknownCharacterError) as exc:
            _dis(image, segments=[Segment(0x2000, 0x2001, SegmentKind.TEXT)])
        assert exc.value.address == 0x2001


class TestBasicStartup:

    def test_sys_stub_dumped_as_bytes(self):
        # 10 SYS 2061, end-of-program marker, then RTS at $080d
        image = _prg(0x0801,
                     0x0B, 0x08, 0x0A, 0x00, 0x9E, 0x32, 0x30, 0x36, 0x31, 0x00,
                     0x00, 0x00,
                     0x60)
        lines = _dis(image)
        assert lines == [
            "* = $0801",
            "// Basic Startup: 10 SYS 2061",
            ".byte $0b, $08, $0a, $00, $9e, $32, $30, $36, $31, $00",
            "\tbrk",
            "\tbrk",
            "\trts",
        ]

    def test_no_stub_without_sys_token(self):
        image = _prg(0x0801, 0x0B, 0x08, 0x0A, 0x00, 0x99, 0x22, 0x00)
        assert "Basic Startup" not in "\n".join(_dis(image))


class TestCommandLine:

    def test_listing_to_stdout(self, tmp_path, capsys):
        prg = tmp_path / "prog.prg"
        prg.write_bytes(_prg(0x1000, 0xEA, 0x60))
        assert c64dis.main([str(prg)]) == 0
        out = capsys.readouterr().out
        assert out.splitlines() == ["* = $1000", "\tnop", "\trts"]

    def test_listing_to_file_with_segments(self, tmp_path):
        prg = tmp_path / "prog.prg"
        prg.write_bytes(_prg(0x1000, 0x60, 0x01, 0x02))
        segments = tmp_path / "segments.json"
        segments.write_text('{"data": [{"from": "$1001", "to": "$1002", "type": "all"}]}',
                            encoding="utf-8")
        out = tmp_path / "prog.asm"
        assert c64dis.main([str(prg), "--segments", str(segments),
                            "-o", str(out), "--addresses"]) == 0
        assert out.read_text(encoding="utf-8").splitlines() == [
            "* = $1000", "// $1000", "\trts", "// $1001", ".byte $01, $02"]

    def test_fatal_error_exit_status(self, tmp_path, capsys):
        prg = tmp_path / "broken.prg"
        prg.write_bytes(_prg(0x1000, 0x8D, 0x00))
        assert c64dis.main([str(prg)]) == 1
        assert "$1002" in capsys.readouterr().err

    def test_bad_segments_file(self, tmp_path, capsys):
        prg = tmp_path / "prog.prg"
        prg.write_bytes(_prg(0x1000, 0x60))
        segments = tmp_path / "segments.json"
        segments.write_text('{"data": [{"from": 1, "to": 2, "type": "code"}]}',
                            encoding="utf-8")
        assert c64dis.main([str(prg), "--segments", str(segments)]) == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_missing_input(self, tmp_path, capsys):
        assert c64dis.main([str(tmp_path / "nope.prg")]) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
