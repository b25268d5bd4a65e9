"""
ReTI Disassembler.

Renders words through the codec's decode direction:

    disassemble(0x0f000005)      -> 'ADDI ACC 5'
    disassemble(0x00000000)      -> None             (illegal)
    report_line(3, 0x0f000005)   -> 'ADDI ACC 5            ; 00000003 0f000005'

Immediates follow the opcode's numeral convention: signed decimal for
SUBI/ADDI/SUB/ADD and the jumps, 0x-hexadecimal for the logical opcodes,
unsigned decimal for load/store addresses and LOADI literals. Every rendered
text is reassemblable and reproduces the same canonical word.
"""

from __future__ import annotations
from typing import Iterable, List, Optional

from .codec import Instruction, decode, HEX
from .wordio import unpack_words

__all__ = [
    'disassemble', 'format_instruction', 'report_line',
    'disassemble_words', 'disassemble_bytes', 'MAX_TEXT_LENGTH',
]

# Longest possible text is 'STOREIN1 16777215' or 'OPLUSI ACC 0xffffff';
# the bound must still hold when opcodes are added.
MAX_TEXT_LENGTH = 32

REPORT_WIDTH = 21
ILLEGAL_TEXT = '; ILLEGAL'


def format_instruction(instruction: Instruction) -> str:
    """Canonical text for a decoded instruction."""
    parts = [instruction.info.mnemonic]
    if instruction.source is not None:
        parts.append(instruction.source.name)
    if instruction.destination is not None:
        parts.append(instruction.destination.name)
    if instruction.immediate is not None:
        if instruction.info.numeral == HEX:
            parts.append(f"0x{instruction.immediate:x}")
        else:
            parts.append(str(instruction.immediate))
    text = ' '.join(parts)
    assert len(text) < MAX_TEXT_LENGTH, text
    return text


def disassemble(word: int) -> Optional[str]:
    """Text for one word, or None if the word is illegal."""
    instruction = decode(word)
    if instruction is None:
        return None
    return format_instruction(instruction)


def report_line(index: int, word: int) -> str:
    """One annotated line: text, then code index and raw word in hex."""
    text = disassemble(word)
    if text is None:
        text = ILLEGAL_TEXT
    return f"{text:<{REPORT_WIDTH}} ; {index:08x} {word & 0xFFFFFFFF:08x}"


def disassemble_words(words: Iterable[int], base_index: int = 0) -> List[str]:
    return [report_line(base_index + i, w) for i, w in enumerate(words)]


def disassemble_bytes(data: bytes, source: str = "") -> List[str]:
    """Disassemble a little-endian binary image (raises WordFormatError)."""
    return disassemble_words(unpack_words(data, source))
