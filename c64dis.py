#!/usr/bin/env python3
"""
c64dis: C64 6502 Disassembler CLI

Usage:
    python c64dis.py <input.prg> [--segments segments.json] [--addresses]
                                 [-o output.asm] [--verbose] [--log-file FILE]

The listing is KickAssembler source. It goes to stdout unless -o is given;
log messages always go to stderr.

Examples:
    python c64dis.py game.prg > game.asm
    python c64dis.py game.prg --segments game.json -o game.asm
    python c64dis.py intro.prg --addresses -v
"""

import argparse
import logging
import sys
from pathlib import Path

from c64_disassembler import __version__
from c64_disassembler.config import DisassemblerConfig
from c64_disassembler.disassembler import Disassembler
from c64_disassembler.errors import ConfigError, DisassemblerError

logger = logging.getLogger("c64dis")


def setup_logging(verbose: int = 0, log_file: str = None):
    """Console logging on stderr, optional file log with timestamps."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers = []

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    handlers.append(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        handlers.append(file_handler)

    logging.basicConfig(level=logging.DEBUG if log_file else level,
                        handlers=handlers, force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="c64dis",
        description="C64 6502 disassembler producing KickAssembler source",
    )
    parser.add_argument("input", help="Input program image (.prg)")
    parser.add_argument("-o", "--output", help="Output assembly file (default: stdout)")
    parser.add_argument("--segments",
                        help="JSON file with data segments, labels and constants")
    parser.add_argument("--addresses", action="store_true",
                        help="Emit an address comment before every line")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Log pass details to stderr")
    parser.add_argument("--log-file", help="Write log to file")
    parser.add_argument("--version", action="version",
                        version=f"c64dis {__version__}")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        image = Path(args.input).read_bytes()
    except OSError as e:
        print(f"Error reading {args.input}: {e}", file=sys.stderr)
        return 1

    try:
        config = DisassemblerConfig.load(args.segments)
        config.address_comments = args.addresses
        logger.debug(f"Input: {args.input} ({len(image)} bytes)")

        listing = Disassembler(config).disassemble(image)

        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(listing)
                if not listing.endswith('\n'):
                    f.write("\n")
            logger.debug(f"Output: {args.output}")
        else:
            print(listing)

    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except DisassemblerError as e:
        print(f"Disassembly error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Internal disassembler error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
