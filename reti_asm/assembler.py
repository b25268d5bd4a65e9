"""
ReTI Single-Pass Assembler.

Assembles ReTI assembly text (one instruction per line) into 32-bit words,
written as 4 little-endian bytes each.

Input:  Assembly text
Output: List of words, raw bytes, or a listing

Instruction forms:
  MOVE S D                                    e.g. MOVE ACC IN1
  LOAD|LOADIN1|LOADIN2|LOADI D i              e.g. LOADI ACC 0x2A
  SUBI|ADDI|OPLUSI|ORI|ANDI D i               e.g. SUBI ACC 1
  SUB|ADD|OPLUS|OR|AND D i                    e.g. ADD ACC 100
  STORE|STOREIN1|STOREIN2 i                   e.g. STORE 0
  NOP
  JUMP|JUMPGT|JUMPEQ|JUMPGE|JUMPLT|JUMPNE|JUMPLE i   e.g. JUMPNE -3

  Registers: PC, IN1, IN2, ACC. Immediates are decimal or 0x-hexadecimal;
  a leading '-' is only accepted by signed opcodes (SUBI, ADDI, SUB, ADD
  and the jumps). Comparator spellings JUMP>, JUMP=, JUMP>=, JUMP<, JUMP!=
  and JUMP<= are aliases for the named conditional jumps.

Line rules:
  ';' starts a comment that runs to the end of the line. A line holding only
  a comment is skipped. An empty or whitespace-only line is an error, so a
  stray blank line in a program is caught. CRLF line ends are accepted, a
  bare CR is not.

There are no labels, so no second pass is needed: each line is tokenized,
dispatched once on its opcode table entry, and encoded through the shared
codec. The first bad line aborts the assembly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union
import logging
import re

from .codec import (
    Instruction, OpcodeInfo, Opcode, Register, encode, lookup,
    immediate_from_field, UNSIGNED_MAX, SIGNED_MIN,
)
from .wordio import pack_words

__all__ = [
    'Assembler', 'AssemblerError', 'UnknownMnemonicError', 'RegisterError',
    'ImmediateError', 'LineFormatError', 'AsmLine',
    'assemble', 'assemble_words', 'assemble_file', 'decode_source',
    'parse_immediate',
]

log = logging.getLogger('reti.asm')


class AssemblerError(Exception):
    """Raised on assembly errors."""
    def __init__(self, message: str, line_num: int = 0, token: str = "",
                 line_text: str = ""):
        self.message = message
        self.line_num = line_num
        self.token = token
        self.line_text = line_text
        super().__init__(f"Line {line_num}: {message}" if line_num else message)


class UnknownMnemonicError(AssemblerError):
    """The first token of a line is not an instruction."""


class RegisterError(AssemblerError):
    """A register operand is not PC, IN1, IN2 or ACC."""


class ImmediateError(AssemblerError):
    """An immediate is malformed or out of range."""


class LineFormatError(AssemblerError):
    """Missing operands, trailing tokens, empty lines, bad line endings."""


# ──────────────────────────────────────────────
# Mnemonic table
# ──────────────────────────────────────────────

# Comparator spellings of the conditional jumps.
JUMP_ALIASES = {
    'JUMP>':  Opcode.JUMPGT,
    'JUMP=':  Opcode.JUMPEQ,
    'JUMP>=': Opcode.JUMPGE,
    'JUMP<':  Opcode.JUMPLT,
    'JUMP!=': Opcode.JUMPNE,
    'JUMP<=': Opcode.JUMPLE,
}


def _resolve_mnemonic(mnemonic: str) -> Optional[OpcodeInfo]:
    if mnemonic in JUMP_ALIASES:
        return lookup(JUMP_ALIASES[mnemonic].value)
    return lookup(mnemonic)


# ──────────────────────────────────────────────
# Line Parser
# ──────────────────────────────────────────────

@dataclass
class AsmLine:
    """Tokenized assembly source line."""
    mnemonic: Optional[str] = None
    operands: List[str] = field(default_factory=list)
    comment: Optional[str] = None
    line_num: int = 0
    raw: str = ""


def _split_lines(source: str) -> List[Tuple[int, str]]:
    """Split source into (line_num, text) pairs, checking line endings."""
    segments = source.split('\n')
    last = len(segments)
    lines = []
    for line_num, text in enumerate(segments, 1):
        if line_num == last and text == '':
            break  # end of input, not an empty line
        if line_num != last and text.endswith('\r'):
            text = text[:-1]
        if '\r' in text:
            raise LineFormatError("missing new-line after carriage-return",
                                  line_num, '\\r', text)
        lines.append((line_num, text))
    return lines


def _parse_line(text: str, line_num: int) -> AsmLine:
    """Split one line into mnemonic, operand tokens and comment."""
    result = AsmLine(line_num=line_num, raw=text)

    code, semi, comment = text.partition(';')
    if semi:
        result.comment = comment.strip()

    tokens = code.split()
    if not tokens:
        if not semi:
            raise LineFormatError("unexpected empty line", line_num, "", text)
        return result

    for tok in tokens:
        for ch in tok:
            if not ch.isprintable():
                raise LineFormatError(
                    f"unexpected character code '0x{ord(ch):02x}'",
                    line_num, tok, text)

    result.mnemonic = tokens[0]
    result.operands = tokens[1:]
    return result


# ──────────────────────────────────────────────
# Operand Analysis
# ──────────────────────────────────────────────

_IMMEDIATE_RE = re.compile(r'^(-?)(0[xX][0-9a-fA-F]+|[0-9]+)$')


def parse_immediate(text: str, signed: bool, line_num: int = 0) -> int:
    """Parse an immediate literal into its raw 24-bit field.

    Accepted: decimal, 0x hexadecimal, and (signed opcodes only) a leading
    '-'. Range is [-0x800000, 0xffffff].
    """
    m = _IMMEDIATE_RE.match(text)
    if not m:
        raise ImmediateError(f"invalid immediate '{text}'", line_num, text)
    negative, digits = m.group(1), m.group(2)
    value = int(digits, 16) if digits[:2] in ('0x', '0X') else int(digits)

    if negative:
        if not signed:
            raise ImmediateError(
                f"negative immediate '{text}' not allowed here", line_num, text)
        if value == 0:
            raise ImmediateError(f"invalid immediate '{text}'", line_num, text)
        if -value < SIGNED_MIN:
            raise ImmediateError(
                f"immediate '{text}' out of range (minimum {SIGNED_MIN})",
                line_num, text)
        return -value & UNSIGNED_MAX

    if value > UNSIGNED_MAX:
        raise ImmediateError(
            f"immediate '{text}' out of range (maximum 0x{UNSIGNED_MAX:x})",
            line_num, text)
    return value


def _parse_register(text: str, role: str, line_num: int) -> Register:
    reg = Register.parse(text)
    if reg is None:
        raise RegisterError(f"invalid {role} register '{text}'", line_num, text)
    return reg


def _classify_operands(info: OpcodeInfo, line: AsmLine) -> Instruction:
    """Check operand count and build the instruction for one line."""
    expected = []
    if info.has_source:
        expected.append('source')
    if info.has_destination:
        expected.append('destination')
    if info.has_immediate:
        expected.append('immediate')

    ops = line.operands
    if len(ops) < len(expected):
        missing = expected[len(ops)]
        if missing != 'immediate':
            missing += ' register'
        raise LineFormatError(f"{info.mnemonic}: missing {missing}",
                              line.line_num, line.mnemonic, line.raw)
    if len(ops) > len(expected):
        extra = ops[len(expected)]
        raise LineFormatError(f"unexpected '{extra}' after instruction",
                              line.line_num, extra, line.raw)

    source = destination = immediate = None
    pos = 0
    if info.has_source:
        source = _parse_register(ops[pos], 'source', line.line_num)
        pos += 1
    if info.has_destination:
        destination = _parse_register(ops[pos], 'destination', line.line_num)
        pos += 1
    if info.has_immediate:
        raw_field = parse_immediate(ops[pos], info.signed, line.line_num)
        immediate = immediate_from_field(info.opcode, raw_field)

    return Instruction(info.opcode, source, destination, immediate)


# ──────────────────────────────────────────────
# The Assembler
# ──────────────────────────────────────────────

class Assembler:
    """ReTI assembler.

    Usage:
        asm = Assembler()
        words = asm.assemble(source_text)
        data = asm.to_bytes()
    """

    def __init__(self, source_name: str = "<input>"):
        self.source_name = source_name
        self.words: List[int] = []                     # Assembled code words
        self._lines: List[AsmLine] = []                # Parsed source lines
        self._emitted: List[Tuple[AsmLine, int]] = []  # (line, word) per instruction

    def assemble(self, source: str) -> List[int]:
        """Assemble source text into words.

        Raises AssemblerError at the first malformed line; nothing is kept
        from a failed run.
        """
        self.words = []
        self._lines = []
        self._emitted = []

        words = []
        emitted = []
        lines = []
        for line_num, text in _split_lines(source):
            line = _parse_line(text, line_num)
            lines.append(line)
            if line.mnemonic is None:
                continue
            word = self._encode_line(line)
            words.append(word)
            emitted.append((line, word))

        self.words = words
        self._lines = lines
        self._emitted = emitted
        log.debug("assembled %d instructions from %s", len(words), self.source_name)
        return self.words

    def _encode_line(self, line: AsmLine) -> int:
        info = _resolve_mnemonic(line.mnemonic)
        if info is None:
            raise UnknownMnemonicError(f"invalid instruction '{line.mnemonic}'",
                                       line.line_num, line.mnemonic, line.raw)
        instruction = _classify_operands(info, line)
        return encode(instruction)

    def to_bytes(self) -> bytes:
        return pack_words(self.words)

    def get_listing(self) -> str:
        """Return a listing showing index, word, and source."""
        lines = [f"{'INDEX':>8}  {'WORD':<8}  SOURCE", "-" * 60]
        index = 0
        emitted = iter(self._emitted)
        for asmline in self._lines:
            raw = asmline.raw.strip()
            if asmline.mnemonic is None:
                lines.append(f"{'':8}  {'':8}  {raw}")
                continue
            _, word = next(emitted)
            lines.append(f"{index:08x}  {word:08x}  {raw}")
            index += 1
        return '\n'.join(lines)


# ──────────────────────────────────────────────
# Convenience functions
# ──────────────────────────────────────────────

def assemble_words(source: str) -> List[int]:
    """Assemble source text, return the list of words."""
    return Assembler().assemble(source)


def assemble(source: str) -> bytes:
    """Assemble source text, return the little-endian binary image."""
    asm = Assembler()
    asm.assemble(source)
    return asm.to_bytes()


def decode_source(data: bytes) -> str:
    """Decode raw source bytes as UTF-8.

    Undecodable input raises LineFormatError at the line holding the
    first bad byte.
    """
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError as e:
        line_num = data[:e.start].count(b'\n') + 1
        bad = data[e.start:e.start + 1]
        raise LineFormatError(
            f"unexpected character code '0x{bad[0]:02x}'",
            line_num, f"\\x{bad[0]:02x}") from e


def assemble_file(path: Union[str, Path]) -> List[int]:
    """Assemble a file from disk.

    Read as bytes so CR characters reach the line checks untranslated.
    """
    path = Path(path)
    asm = Assembler(source_name=str(path))
    return asm.assemble(decode_source(path.read_bytes()))
