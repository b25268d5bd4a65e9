"""
ReTI Emulator — fault types.

Fatal faults stop a run: the emulator records the exception in `emu.fault`
and returns a fatal StopReason. UninitializedRead is an advisory anomaly
record, not an exception; it only becomes UninitializedReadError when the
caller selects the stop-on-first-read policy.
"""

from dataclasses import dataclass


class EmulatorError(Exception):
    """Base class for fatal emulator conditions."""


class IllegalInstructionError(EmulatorError):
    """The word at code[index] does not decode to a legal instruction."""
    def __init__(self, index: int, word: int):
        self.index = index
        self.word = word
        super().__init__(f"illegal instruction 0x{word:08x} at 'code[0x{index:08x}]'")


class CapacityError(EmulatorError):
    """An address, code size or data size exceeds the configured capacity."""


class UninitializedReadError(EmulatorError):
    """Raised under ReadPolicy.STOP on the first read of an invalid word."""
    def __init__(self, pc: int, address: int):
        self.pc = pc
        self.address = address
        super().__init__(f"read uninitialized 'data[0x{address:x}]' at 'code[0x{pc:08x}]'")


@dataclass(frozen=True)
class UninitializedRead:
    """A read of a data word that was never loaded or written."""
    pc: int
    address: int

    def __str__(self) -> str:
        return f"read uninitialized 'data[0x{self.address:x}]'"
