"""
Instruction codec tests: bit layout, decode totality, round trips.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import random

import pytest
from reti_asm.codec import (
    Instruction, Opcode, Register, OPCODES, encode, decode, lookup,
    immediate_from_field,
)


def canonical_sample(info):
    """One legal instruction per opcode with every used field non-zero."""
    source = Register.IN2 if info.has_source else None
    destination = Register.ACC if info.has_destination else None
    immediate = None
    if info.has_immediate:
        immediate = -5 if info.signed else 0xABCDEF
    return Instruction(info.opcode, source, destination, immediate)


class TestOpcodeTable:

    def test_all_opcodes_present(self):
        assert len(OPCODES) == 26
        assert set(OPCODES) == set(Opcode)

    def test_prefixes_unique(self):
        prefixes = [info.prefix for info in OPCODES.values()]
        assert len(prefixes) == len(set(prefixes))

    def test_lookup(self):
        assert lookup("LOADI").prefix == 0b011100
        assert lookup("JUMPLT").opcode is Opcode.JUMPLT
        assert lookup("loadi") is None
        assert lookup("JUMP<") is None

    def test_register_codes(self):
        assert [int(r) for r in (Register.PC, Register.IN1, Register.IN2, Register.ACC)] == [0, 1, 2, 3]
        assert Register.parse("IN1") is Register.IN1
        assert Register.parse("in1") is None

    def test_operand_shapes(self):
        assert OPCODES[Opcode.MOVE].has_source
        assert not OPCODES[Opcode.STORE].has_destination
        assert not OPCODES[Opcode.NOP].has_immediate
        assert OPCODES[Opcode.SUB].signed
        assert not OPCODES[Opcode.OR].signed


class TestEncode:

    def test_known_words(self):
        assert encode(Instruction(Opcode.LOADI, destination=Register.ACC, immediate=0x2A)) == 0x7300002A
        assert encode(Instruction(Opcode.STORE, immediate=0)) == 0x80000000
        assert encode(Instruction(Opcode.MOVE, Register.ACC, Register.IN1)) == 0xBD000000
        assert encode(Instruction(Opcode.SUBI, destination=Register.ACC, immediate=-1)) == 0x0BFFFFFF
        assert encode(Instruction(Opcode.NOP)) == 0xC0000000

    def test_inconsistent_fields_rejected(self):
        with pytest.raises(ValueError):
            Instruction(Opcode.STORE, destination=Register.ACC, immediate=1)
        with pytest.raises(ValueError):
            Instruction(Opcode.MOVE, destination=Register.ACC)
        with pytest.raises(ValueError):
            Instruction(Opcode.NOP, immediate=0)
        with pytest.raises(ValueError):
            Instruction(Opcode.LOADI, destination=Register.ACC)

    def test_immediate_ranges(self):
        with pytest.raises(ValueError):
            Instruction(Opcode.LOADI, destination=Register.ACC, immediate=-1)
        with pytest.raises(ValueError):
            Instruction(Opcode.LOADI, destination=Register.ACC, immediate=0x1000000)
        with pytest.raises(ValueError):
            Instruction(Opcode.ADDI, destination=Register.ACC, immediate=0x800000)
        Instruction(Opcode.ADDI, destination=Register.ACC, immediate=-0x800000)


class TestDecode:

    @pytest.mark.parametrize("word", [
        0x00000000, 0x04000000, 0x1C000000, 0x20000000, 0x24000000, 0x3C000000,
        0x03FFFFFF, 0x3FFFFFFF,
    ])
    def test_reserved_compute_is_illegal(self, word):
        assert decode(word) is None

    def test_known_words(self):
        assert decode(0x7300002A) == Instruction(Opcode.LOADI, destination=Register.ACC, immediate=42)
        assert decode(0xF8FFFFFF) == Instruction(Opcode.JUMP, immediate=-1)
        assert decode(0x110000FF) == Instruction(Opcode.OPLUSI, destination=Register.IN1, immediate=0xFF)

    def test_irrelevant_bits_ignored(self):
        assert decode(0xC7FFFFFF) == Instruction(Opcode.NOP)
        assert decode(0x83000005) == Instruction(Opcode.STORE, immediate=5)
        assert decode(0xBD123456) == Instruction(Opcode.MOVE, Register.ACC, Register.IN1)
        assert decode(0xCC000001) == Instruction(Opcode.JUMPGT, immediate=1)

    def test_decode_is_total(self):
        rng = random.Random(1)
        for _ in range(5000):
            word = rng.getrandbits(32)
            result = decode(word)
            assert result is None or isinstance(result, Instruction)

    def test_signed_field(self):
        assert immediate_from_field(Opcode.ADD, 0x800000) == -0x800000
        assert immediate_from_field(Opcode.ADD, 0x7FFFFF) == 0x7FFFFF
        assert immediate_from_field(Opcode.LOAD, 0x800000) == 0x800000


class TestRoundTrip:

    def test_decode_encode_per_opcode(self):
        for info in OPCODES.values():
            instruction = canonical_sample(info)
            assert decode(encode(instruction)) == instruction, info.mnemonic

    def test_canonical_words_survive(self):
        rng = random.Random(7)
        for _ in range(5000):
            instruction = decode(rng.getrandbits(32))
            if instruction is None:
                continue
            word = encode(instruction)
            assert encode(decode(word)) == word
            assert decode(word) == instruction


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
