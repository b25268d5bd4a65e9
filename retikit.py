#!/usr/bin/env python3
"""
retikit — ReTI Toolkit
======================

One CLI for the ReTI toolchain:
    retikit asm      — Assemble ReTI assembly to binary code words
    retikit disasm   — Disassemble binary code words to an annotated report
    retikit emu      — Run code (and optional initial data) and dump data memory

Usage:
    python retikit.py <command> [options]
    python retikit.py <command> --help

Examples:
    python retikit.py asm prog.s -o prog.bin
    python retikit.py asm prog.s --listing
    python retikit.py disasm prog.bin
    python retikit.py emu prog.bin data.bin --verbose
    python retikit.py emu prog.bin --step --steps 100 --strict

Exit status is 0 on success and 1 on malformed input or a fatal emulator
fault; the reason is printed to stderr as 'retikit: <kind> error: ...'.
"""

import argparse
import logging
import sys
from pathlib import Path

from reti_asm import __version__
from reti_asm.assembler import Assembler, AssemblerError, decode_source
from reti_asm.disassembler import disassemble_words
from reti_asm.wordio import WordFormatError, unpack_words, write_word_file
from reti_emulator.emu import ReTIEmulator, EmulatorConfig, ReadPolicy
from reti_emulator.errors import EmulatorError
from reti_emulator.log_setup import setup_logging

MIN_LOG_CAPACITY = 10
MAX_LOG_CAPACITY = 32


def _log_capacity(text):
    """argparse type: word capacity given as a power of two."""
    try:
        value = int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid capacity exponent '{text}'")
    if not MIN_LOG_CAPACITY <= value <= MAX_LOG_CAPACITY:
        raise argparse.ArgumentTypeError(
            f"capacity exponent {value} outside {MIN_LOG_CAPACITY}..{MAX_LOG_CAPACITY}")
    return value


def build_parser():
    parser = argparse.ArgumentParser(
        prog="retikit",
        description="ReTI Toolkit — assemble, disassemble, emulate",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""commands:
  asm        Assemble ReTI source to little-endian code words
  disasm     Disassemble code words to 'TEXT ; INDEX WORD' report lines
  emu        Execute code on data and dump the final data memory
""",
    )
    parser.add_argument("--version", action="version", version=f"retikit {__version__}")
    sub = parser.add_subparsers(dest="command", metavar="command")

    # ── asm ──────────────────────────────────────────────────────────────
    p_asm = sub.add_parser("asm", help="Assemble ReTI source to binary code")
    p_asm.add_argument("input", nargs="?", help="Input assembly file (default: stdin)")
    p_asm.add_argument("-o", "--output", help="Output binary file (default: stdout)")
    p_asm.add_argument("--listing", action="store_true",
                       help="Print index/word/source listing to stdout")

    # ── disasm ───────────────────────────────────────────────────────────
    p_dis = sub.add_parser("disasm", help="Disassemble binary code")
    p_dis.add_argument("input", nargs="?", help="Input binary file (default: stdin)")
    p_dis.add_argument("-o", "--output", help="Output report file (default: stdout)")

    # ── emu ──────────────────────────────────────────────────────────────
    p_emu = sub.add_parser("emu", help="Emulate code on data")
    p_emu.add_argument("code", help="Binary code file")
    p_emu.add_argument("data", nargs="?", help="Binary initial data file")
    p_emu.add_argument("-s", "--step", action="store_true",
                       help="Trace every executed instruction on stderr")
    p_emu.add_argument("--steps", type=int, default=None,
                       help="Stop after this many instructions")
    p_emu.add_argument("--strict", action="store_true",
                       help="Reading uninitialized data is a fatal error")
    p_emu.add_argument("--quiet-reads", action="store_true",
                       help="Do not warn on reads of uninitialized data")
    p_emu.add_argument("--log-capacity", type=_log_capacity, default=MAX_LOG_CAPACITY,
                       help="Code and data capacity as a power of two, "
                            f"{MIN_LOG_CAPACITY}..{MAX_LOG_CAPACITY} (default: 32)")
    p_emu.add_argument("--dump-binary", metavar="PATH",
                       help="Also write final data memory as binary words")
    p_emu.add_argument("-v", "--verbose", action="store_true",
                       help="Add unsigned and signed decimal columns to the dump")
    p_emu.add_argument("--log-dir", help="Write a DEBUG log file into this directory")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    handler = COMMANDS[args.command]
    try:
        return handler(args)
    except AssemblerError as e:
        name = args.input or "<stdin>"
        return _error("parse", f"at line {e.line_num} in '{name}': {e.message}")
    except WordFormatError as e:
        return _error("format", str(e))
    except EmulatorError as e:
        return _error("emulator", str(e))
    except OSError as e:
        return _error("io", str(e))


def _error(kind, message):
    print(f"retikit: {kind} error: {message}", file=sys.stderr)
    return 1


# ═════════════════════════════════════════════════════════════════════════════
# COMMAND IMPLEMENTATIONS
# ═════════════════════════════════════════════════════════════════════════════

def _read_input(path):
    if path is None:
        return sys.stdin.buffer.read()
    return Path(path).read_bytes()


# ── asm ──────────────────────────────────────────────────────────────────
def cmd_asm(args):
    source = decode_source(_read_input(args.input))

    asm = Assembler(source_name=args.input or "<stdin>")
    asm.assemble(source)

    if args.listing:
        print(asm.get_listing())
        if not args.output:
            return 0

    if args.output:
        size = write_word_file(args.output, asm.words)
        print(f"Assembled {len(asm.words)} words ({size} bytes) -> {args.output}",
              file=sys.stderr)
        return 0

    if sys.stdout.isatty():
        return _error("io", "will not write binary code to a terminal")
    sys.stdout.buffer.write(asm.to_bytes())
    sys.stdout.flush()
    return 0


# ── disasm ───────────────────────────────────────────────────────────────
def cmd_disasm(args):
    words = unpack_words(_read_input(args.input), args.input or "<stdin>")
    report = disassemble_words(words)

    if args.output:
        Path(args.output).write_text("".join(line + "\n" for line in report),
                                     encoding="utf-8")
    else:
        for line in report:
            print(line)
    return 0


# ── emu ──────────────────────────────────────────────────────────────────
def cmd_emu(args):
    console_level = logging.DEBUG if args.step else logging.WARNING
    setup_logging("reti", console_level=console_level, log_dir=args.log_dir)

    if args.strict:
        policy = ReadPolicy.STOP
    elif args.quiet_reads:
        policy = ReadPolicy.IGNORE
    else:
        policy = ReadPolicy.WARN

    capacity = 1 << args.log_capacity
    config = EmulatorConfig(
        max_steps=args.steps,
        code_capacity=capacity,
        data_capacity=capacity,
        read_policy=policy,
        trace=args.step,
    )

    emu = ReTIEmulator(config)
    emu.load_code(args.code)
    if args.data:
        emu.load_data(args.data)

    reason = emu.run()
    if reason.is_fatal:
        return _error("emulator", str(emu.fault))

    image = emu.mem.to_words() if args.dump_binary else None
    for line in emu.dump(verbose=args.verbose):
        print(line)
    if image is not None:
        write_word_file(args.dump_binary, image)
    return 0


# ═════════════════════════════════════════════════════════════════════════════
# COMMAND DISPATCH TABLE
# ═════════════════════════════════════════════════════════════════════════════

COMMANDS = {
    "asm": cmd_asm,
    "disasm": cmd_disasm,
    "emu": cmd_emu,
}


if __name__ == "__main__":
    sys.exit(main())
