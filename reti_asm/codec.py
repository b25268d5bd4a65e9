"""
ReTI Instruction Codec — the one bit layout shared by assembler, disassembler
and emulator.

Word layout (32 bits):

    31 30 | 29 28 27 26 | 25 24 | 23 ............................ 0
    family| sub-opcode  |  D    | immediate (24 bits)
          |       S S   |       |

  Family (bits 31..30):
    00  Compute — sub-opcode in bits 29..26 (4 bits)
    01  Load    — sub-opcode in bits 29..28 (2 bits)
    10  Store   — sub-opcode in bits 29..28 (2 bits), MOVE keeps S in 27..26
    11  Jump    — sub-opcode in bits 29..27 (3 bits)

  Registers (source S and destination D use the same mapping):
    0 PC   1 IN1   2 IN2   3 ACC

Immediate numeral conventions:
  SIGNED    two's-complement 24-bit (SUBI, ADDI, SUB, ADD, all jumps)
  HEX       unsigned, rendered as 0x.. (OPLUSI, ORI, ANDI, OPLUS, OR, AND)
  UNSIGNED  address or literal (LOAD*, STORE*, LOADI)

decode() is total: every 32-bit input yields an Instruction or None
(the Illegal variant). encode() normalizes fields the opcode does not use
to zero, and decode() ignores them.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, Optional

__all__ = [
    'Register', 'Opcode', 'OpcodeInfo', 'Instruction', 'OPCODES',
    'encode', 'decode', 'lookup', 'immediate_from_field',
    'WORD_MASK', 'IMMEDIATE_MASK', 'SIGNED_MIN', 'SIGNED_MAX', 'UNSIGNED_MAX',
]

WORD_MASK = 0xFFFFFFFF
IMMEDIATE_MASK = 0xFFFFFF
SIGNED_MIN = -0x800000
SIGNED_MAX = 0x7FFFFF
UNSIGNED_MAX = 0xFFFFFF

# Field positions
FAMILY_SHIFT = 30
PREFIX_SHIFT = 26
SOURCE_SHIFT = 26
DESTINATION_SHIFT = 24


class Register(IntEnum):
    """Register codes as encoded in the S and D fields."""
    PC = 0
    IN1 = 1
    IN2 = 2
    ACC = 3

    @classmethod
    def parse(cls, name: str) -> Optional['Register']:
        """Map an exact register name to its code, or None."""
        return cls.__members__.get(name)


# ──────────────────────────────────────────────
# Operand forms and numeral conventions
# ──────────────────────────────────────────────

NONE = 'NONE'          # NOP
SRC_DST = 'SRC_DST'    # MOVE S D
DST_IMM = 'DST_IMM'    # D i
IMM = 'IMM'            # i

UNSIGNED = 'UNSIGNED'
SIGNED = 'SIGNED'
HEX = 'HEX'


class Opcode(Enum):
    LOAD = 'LOAD'
    LOADIN1 = 'LOADIN1'
    LOADIN2 = 'LOADIN2'
    LOADI = 'LOADI'
    STORE = 'STORE'
    STOREIN1 = 'STOREIN1'
    STOREIN2 = 'STOREIN2'
    MOVE = 'MOVE'
    SUBI = 'SUBI'
    ADDI = 'ADDI'
    OPLUSI = 'OPLUSI'
    ORI = 'ORI'
    ANDI = 'ANDI'
    SUB = 'SUB'
    ADD = 'ADD'
    OPLUS = 'OPLUS'
    OR = 'OR'
    AND = 'AND'
    NOP = 'NOP'
    JUMPGT = 'JUMPGT'
    JUMPEQ = 'JUMPEQ'
    JUMPGE = 'JUMPGE'
    JUMPLT = 'JUMPLT'
    JUMPNE = 'JUMPNE'
    JUMPLE = 'JUMPLE'
    JUMP = 'JUMP'


@dataclass(frozen=True)
class OpcodeInfo:
    """Static encoding data for one opcode."""
    opcode: Opcode
    prefix: int        # 6-bit pattern of bits 31..26 (S bits zero for MOVE)
    operands: str      # NONE, SRC_DST, DST_IMM or IMM
    numeral: Optional[str]

    @property
    def mnemonic(self) -> str:
        return self.opcode.value

    @property
    def has_source(self) -> bool:
        return self.operands == SRC_DST

    @property
    def has_destination(self) -> bool:
        return self.operands in (SRC_DST, DST_IMM)

    @property
    def has_immediate(self) -> bool:
        return self.operands in (DST_IMM, IMM)

    @property
    def signed(self) -> bool:
        return self.numeral == SIGNED


# ──────────────────────────────────────────────
# Opcode table
# ──────────────────────────────────────────────
# Format: Opcode -> OpcodeInfo(prefix, operands, numeral)
#
# The family-specific mask selects which prefix bits take part in decoding:
# Load/Store look at bits 31..28, Compute at 31..26, Jump at 31..27.

OPCODES: Dict[Opcode, OpcodeInfo] = {}

_FAMILY_MASK = {
    0b00: 0b111111,   # Compute
    0b01: 0b111100,   # Load
    0b10: 0b111100,   # Store
    0b11: 0b111110,   # Jump
}

_BY_PREFIX: Dict[int, OpcodeInfo] = {}


def _op(opcode: Opcode, prefix: int, operands: str, numeral: Optional[str] = None):
    """Register an opcode entry."""
    info = OpcodeInfo(opcode, prefix, operands, numeral)
    OPCODES[opcode] = info
    _BY_PREFIX[prefix] = info


# ── Load family (01) ──
_op(Opcode.LOAD,     0b010000, DST_IMM, UNSIGNED)
_op(Opcode.LOADIN1,  0b010100, DST_IMM, UNSIGNED)
_op(Opcode.LOADIN2,  0b011000, DST_IMM, UNSIGNED)
_op(Opcode.LOADI,    0b011100, DST_IMM, UNSIGNED)

# ── Store family (10) ──
_op(Opcode.STORE,    0b100000, IMM,     UNSIGNED)
_op(Opcode.STOREIN1, 0b100100, IMM,     UNSIGNED)
_op(Opcode.STOREIN2, 0b101000, IMM,     UNSIGNED)
_op(Opcode.MOVE,     0b101100, SRC_DST)

# ── Compute family (00) ──
# Sub-opcodes 0000, 0001, 0111, 1000, 1001 and 1111 are reserved.
_op(Opcode.SUBI,     0b000010, DST_IMM, SIGNED)
_op(Opcode.ADDI,     0b000011, DST_IMM, SIGNED)
_op(Opcode.OPLUSI,   0b000100, DST_IMM, HEX)
_op(Opcode.ORI,      0b000101, DST_IMM, HEX)
_op(Opcode.ANDI,     0b000110, DST_IMM, HEX)
_op(Opcode.SUB,      0b001010, DST_IMM, SIGNED)
_op(Opcode.ADD,      0b001011, DST_IMM, SIGNED)
_op(Opcode.OPLUS,    0b001100, DST_IMM, HEX)
_op(Opcode.OR,       0b001101, DST_IMM, HEX)
_op(Opcode.AND,      0b001110, DST_IMM, HEX)

# ── Jump family (11) ──
_op(Opcode.NOP,      0b110000, NONE)
_op(Opcode.JUMPGT,   0b110010, IMM,     SIGNED)
_op(Opcode.JUMPEQ,   0b110100, IMM,     SIGNED)
_op(Opcode.JUMPGE,   0b110110, IMM,     SIGNED)
_op(Opcode.JUMPLT,   0b111000, IMM,     SIGNED)
_op(Opcode.JUMPNE,   0b111010, IMM,     SIGNED)
_op(Opcode.JUMPLE,   0b111100, IMM,     SIGNED)
_op(Opcode.JUMP,     0b111110, IMM,     SIGNED)


def lookup(mnemonic: str) -> Optional[OpcodeInfo]:
    """Opcode table entry for an exact mnemonic, or None."""
    opcode = Opcode.__members__.get(mnemonic)
    if opcode is None:
        return None
    return OPCODES[opcode]


def immediate_from_field(opcode: Opcode, field: int) -> int:
    """Interpret a raw 24-bit field under the opcode's numeral convention."""
    field &= IMMEDIATE_MASK
    if OPCODES[opcode].signed and field & 0x800000:
        return field - 0x1000000
    return field


# ──────────────────────────────────────────────
# Decoded instruction
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Instruction:
    """A legal decoded instruction.

    Only the operand fields the opcode uses are set; the rest stay None.
    """
    opcode: Opcode
    source: Optional[Register] = None
    destination: Optional[Register] = None
    immediate: Optional[int] = None

    def __post_init__(self):
        info = OPCODES[self.opcode]
        if info.has_source != (self.source is not None):
            raise ValueError(f"{info.mnemonic}: source register "
                             f"{'required' if info.has_source else 'not allowed'}")
        if info.has_destination != (self.destination is not None):
            raise ValueError(f"{info.mnemonic}: destination register "
                             f"{'required' if info.has_destination else 'not allowed'}")
        if info.has_immediate != (self.immediate is not None):
            raise ValueError(f"{info.mnemonic}: immediate "
                             f"{'required' if info.has_immediate else 'not allowed'}")
        if self.immediate is not None:
            if info.signed:
                low, high = SIGNED_MIN, SIGNED_MAX
            else:
                low, high = 0, UNSIGNED_MAX
            if not low <= self.immediate <= high:
                raise ValueError(f"{info.mnemonic}: immediate {self.immediate} "
                                 f"outside [{low}, {high}]")

    @property
    def info(self) -> OpcodeInfo:
        return OPCODES[self.opcode]

    @property
    def field(self) -> int:
        """The immediate as its raw 24-bit field (0 when unused)."""
        if self.immediate is None:
            return 0
        return self.immediate & IMMEDIATE_MASK


# ──────────────────────────────────────────────
# Encode / decode
# ──────────────────────────────────────────────

def encode(instruction: Instruction) -> int:
    """Encode a legal instruction into its 32-bit word."""
    word = instruction.info.prefix << PREFIX_SHIFT
    if instruction.source is not None:
        word |= int(instruction.source) << SOURCE_SHIFT
    if instruction.destination is not None:
        word |= int(instruction.destination) << DESTINATION_SHIFT
    word |= instruction.field
    return word & WORD_MASK


def decode(word: int) -> Optional[Instruction]:
    """Decode any 32-bit word. Returns None for illegal patterns."""
    word &= WORD_MASK
    family = word >> FAMILY_SHIFT
    prefix = (word >> PREFIX_SHIFT) & _FAMILY_MASK[family]
    info = _BY_PREFIX.get(prefix)
    if info is None:
        return None

    source = destination = immediate = None
    if info.has_source:
        source = Register((word >> SOURCE_SHIFT) & 3)
    if info.has_destination:
        destination = Register((word >> DESTINATION_SHIFT) & 3)
    if info.has_immediate:
        immediate = immediate_from_field(info.opcode, word)
    return Instruction(info.opcode, source, destination, immediate)
