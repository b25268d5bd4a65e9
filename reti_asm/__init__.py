"""
ReTI Assembler Toolkit
======================
Assembler, disassembler and instruction codec for the ReTI machine:
32-bit words, four registers (PC, ACC, IN1, IN2), word-addressed data memory.

Architecture:
    ┌──────────┐    ┌───────────┐    ┌──────────┐    ┌──────────────┐
    │ asm text │───>│ Assembler │───>│  Codec   │───>│ words (.bin) │
    └──────────┘    └───────────┘    │ encode / │    └──────┬───────┘
                                     │  decode  │           │
    ┌──────────┐    ┌──────────────┐ │          │<──────────┘
    │ listing  │<───│ Disassembler │<│          │───> reti_emulator
    └──────────┘    └──────────────┘ └──────────┘

    - codec.py:        the single bit layout, shared by every direction
    - assembler.py:    line tokenizer + table dispatch on mnemonic
    - disassembler.py: canonical text and annotated report lines
    - wordio.py:       4-byte little-endian word streams
"""

__version__ = "1.0.0"

from .codec import Instruction, Opcode, Register, OPCODES, encode, decode
from .assembler import (
    Assembler, AssemblerError, UnknownMnemonicError, RegisterError,
    ImmediateError, LineFormatError, assemble, assemble_words, assemble_file,
    decode_source,
)
from .disassembler import disassemble, format_instruction, report_line, disassemble_words
from .wordio import WordFormatError, pack_words, unpack_words, read_word_file, write_word_file
