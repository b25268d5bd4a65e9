"""
ReTI Emulator — CPU Register Set

Register model:
  PC   — 32-bit program counter (index into code memory)
  IN1  — 32-bit index register 1
  IN2  — 32-bit index register 2
  ACC  — 32-bit accumulator

All registers start at 0 and wrap modulo 2^32 on write. Register codes in
instruction words (0 PC, 1 IN1, 2 IN2, 3 ACC) come from reti_asm.codec.
"""

from reti_asm.codec import Register, WORD_MASK


class Registers:
    """ReTI register file."""

    __slots__ = ('PC', 'IN1', 'IN2', 'ACC')

    def __init__(self):
        self.PC: int = 0
        self.IN1: int = 0
        self.IN2: int = 0
        self.ACC: int = 0

    # --- Access by register code ---

    def read(self, register: Register) -> int:
        return getattr(self, register.name)

    def write(self, register: Register, value: int):
        setattr(self, register.name, value & WORD_MASK)

    @property
    def acc_signed(self) -> int:
        """ACC as a signed 32-bit value (jump conditions)."""
        return self.ACC - 0x100000000 if self.ACC & 0x80000000 else self.ACC

    # --- Display ---

    def display(self) -> str:
        """Format register state for the step trace."""
        return (f"PC=0x{self.PC:08x} IN1=0x{self.IN1:08x} "
                f"IN2=0x{self.IN2:08x} ACC=0x{self.ACC:08x}")

    def reset(self):
        self.PC = 0
        self.IN1 = 0
        self.IN2 = 0
        self.ACC = 0
