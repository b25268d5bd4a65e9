"""
ReTI Emulator — Main Emulator Class

Integrates:
  - CPU registers (cpu/regs.py)
  - Sparse data memory (mem/memory.py)
  - Instruction codec (reti_asm.codec, shared with the assembler)

Execution model, one step:
  1. Fetch the word at code[PC]
  2. Decode it once into an Instruction (or stop on an illegal word)
  3. Execute the handler for its opcode
  4. Commit: at most one register write or one memory write;
     a register write to PC replaces the next PC
  5. Halt check: next PC == PC means the program jumps to itself

Stop reasons:
  - HALT:           a step left PC unchanged (e.g. JUMP 0)
  - END_OF_CODE:    PC reached the first index past the code
  - UNDEFINED_CODE: PC jumped further past the code (warned)
  - STEP_LIMIT:     the step budget ran out
  - ILLEGAL:        undecodable word                     (fatal)
  - CAPACITY:       write above the data capacity        (fatal)
  - UNINITIALIZED:  invalid read under ReadPolicy.STOP   (fatal)
"""

from __future__ import annotations
import logging
import operator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from reti_asm.codec import Instruction, Opcode, Register, WORD_MASK, decode
from reti_asm.disassembler import format_instruction
from reti_asm.wordio import read_word_file, unpack_words

from .cpu.regs import Registers
from .mem.memory import DataMemory, DEFAULT_CAPACITY
from .errors import (
    EmulatorError, IllegalInstructionError, CapacityError,
    UninitializedReadError, UninitializedRead,
)

log = logging.getLogger('reti.emu')

WordSource = Union[str, Path, bytes, bytearray, Sequence[int]]


class StopReason(Enum):
    HALT = 'HALT'
    END_OF_CODE = 'END_OF_CODE'
    UNDEFINED_CODE = 'UNDEFINED_CODE'
    STEP_LIMIT = 'STEP_LIMIT'
    ILLEGAL = 'ILLEGAL'
    CAPACITY = 'CAPACITY'
    UNINITIALIZED = 'UNINITIALIZED'

    @property
    def is_fatal(self) -> bool:
        return self in (StopReason.ILLEGAL, StopReason.CAPACITY,
                        StopReason.UNINITIALIZED)


class ReadPolicy(Enum):
    """What a read of a never-written data word does."""
    WARN = 'WARN'        # log a warning, continue with 0
    STOP = 'STOP'        # fatal UNINITIALIZED stop
    IGNORE = 'IGNORE'    # record the anomaly only


@dataclass
class EmulatorConfig:
    """Run-time settings; the CLI flags map onto these fields."""
    max_steps: Optional[int] = None
    code_capacity: int = DEFAULT_CAPACITY
    data_capacity: int = DEFAULT_CAPACITY
    read_policy: ReadPolicy = ReadPolicy.WARN
    trace: bool = False


# Condition symbol and test on signed ACC for each jump
_JUMP_CONDITIONS: Dict[Opcode, Tuple[str, Callable[[int, int], bool]]] = {
    Opcode.JUMPGT: ('>', operator.gt),
    Opcode.JUMPEQ: ('=', operator.eq),
    Opcode.JUMPGE: ('>=', operator.ge),
    Opcode.JUMPLT: ('<', operator.lt),
    Opcode.JUMPNE: ('!=', operator.ne),
    Opcode.JUMPLE: ('<=', operator.le),
}


def _signed(value: int) -> int:
    return value - 0x100000000 if value & 0x80000000 else value


class ReTIEmulator:
    """ReTI machine emulator.

    Usage:
        emu = ReTIEmulator()
        emu.load_code('prog.bin')
        emu.load_data('data.bin')      # optional
        reason = emu.run()
        if reason.is_fatal:
            print(emu.fault)
        print('\\n'.join(emu.dump()))
    """

    def __init__(self, config: Optional[EmulatorConfig] = None):
        self.config = config if config is not None else EmulatorConfig()

        # Core components
        self.regs = Registers()
        self.mem = DataMemory(self.config.data_capacity)
        self.code: Tuple[int, ...] = ()
        self._data_image: Tuple[int, ...] = ()

        # Run state
        self.steps = 0
        self.stop_reason: Optional[StopReason] = None
        self.fault: Optional[EmulatorError] = None
        self.anomalies: List[UninitializedRead] = []

        # Per-step scratch: PC of the executing instruction and its successor
        self._pc = 0
        self._next_pc = 0

        # Trace output
        self._trace = self.config.trace
        self._trace_output: List[str] = []

        # Instruction dispatch table (built in _build_dispatch)
        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    @staticmethod
    def _read_source(source: WordSource) -> List[int]:
        """Words from a file path, a little-endian byte image or a word list."""
        if isinstance(source, (str, Path)):
            return read_word_file(source)
        if isinstance(source, (bytes, bytearray)):
            return unpack_words(bytes(source))
        return [w & WORD_MASK for w in source]

    def load_code(self, source: WordSource) -> int:
        """Load the program at code index 0. Returns the word count."""
        words = self._read_source(source)
        if len(words) > self.config.code_capacity:
            raise CapacityError(
                f"capacity of code area reached ({len(words)} words, "
                f"capacity {self.config.code_capacity})")
        self.code = tuple(words)
        log.info("loaded %d code words", len(words))
        return len(words)

    def load_data(self, source: WordSource) -> int:
        """Load initial data at address 0; every loaded word is valid."""
        words = self._read_source(source)
        if len(words) > self.config.data_capacity:
            raise CapacityError(
                f"capacity of data area reached ({len(words)} words, "
                f"capacity {self.config.data_capacity})")
        self._data_image = tuple(words)
        self.mem.load_words(words)
        log.info("loaded %d data words", len(words))
        return len(words)

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns StopReason if stopped, else None.

        Once stopped the machine stays stopped until reset().
        """
        if self.stop_reason is not None:
            return self.stop_reason

        pc = self.regs.PC
        code_size = len(self.code)

        # Fetch
        if pc >= code_size:
            if pc == code_size:
                return self._stop(StopReason.END_OF_CODE)
            log.warning("stopping at undefined 'code[0x%08x]' above 0x%08x",
                        pc, code_size - 1)
            return self._stop(StopReason.UNDEFINED_CODE)
        word = self.code[pc]

        # Decode
        instruction = decode(word)
        if instruction is None:
            return self._fail(StopReason.ILLEGAL, IllegalInstructionError(pc, word))

        # Execute + commit
        before = self.regs.display() if self._trace else ''
        self._pc = pc
        self._next_pc = (pc + 1) & WORD_MASK
        handler = self._dispatch[instruction.opcode]
        try:
            action = handler(instruction)
        except CapacityError as e:
            return self._fail(StopReason.CAPACITY, e)
        except UninitializedReadError as e:
            return self._fail(StopReason.UNINITIALIZED, e)

        self.steps += 1
        if self._trace:
            line = f"{before}  {format_instruction(instruction):<18} : {action}"
            self._trace_output.append(line)
            log.debug(line)

        # Halt check
        if self._next_pc == pc:
            return self._stop(StopReason.HALT)
        self.regs.PC = self._next_pc
        return None

    def run(self, max_steps: Optional[int] = None) -> StopReason:
        """Run until the machine stops or the step budget is spent.

        Args:
            max_steps: budget for this call; defaults to config.max_steps,
                None means unlimited

        Returns:
            StopReason indicating why execution stopped
        """
        if max_steps is None:
            max_steps = self.config.max_steps

        executed = 0
        while max_steps is None or executed < max_steps:
            reason = self.step()
            if reason is not None:
                return reason
            executed += 1

        log.warning("step limit %d reached at 'code[0x%08x]'", max_steps, self.regs.PC)
        return StopReason.STEP_LIMIT

    def _stop(self, reason: StopReason) -> StopReason:
        self.stop_reason = reason
        log.info("stopped: %s after %d steps", reason.value, self.steps)
        return reason

    def _fail(self, reason: StopReason, fault: EmulatorError) -> StopReason:
        self.fault = fault
        if self._trace:
            self._trace_output.append(f"  FAULT: {fault}")
        return self._stop(reason)

    # ══════════════════════════════════════════════
    # Register and memory access
    # ══════════════════════════════════════════════

    def _set(self, register: Register, value: int) -> int:
        """Commit a register write; PC writes redirect the next PC."""
        value &= WORD_MASK
        if register is Register.PC:
            self._next_pc = value
        else:
            self.regs.write(register, value)
        return value

    def _load(self, address: int) -> int:
        """Read a data word, reporting reads of never-written words."""
        address &= WORD_MASK
        if not self.mem.is_valid(address):
            anomaly = UninitializedRead(self._pc, address)
            self.anomalies.append(anomaly)
            policy = self.config.read_policy
            if policy is ReadPolicy.STOP:
                raise UninitializedReadError(self._pc, address)
            if policy is ReadPolicy.WARN:
                log.warning("%s at 'code[0x%08x]'", anomaly, self._pc)
        return self.mem.read(address)

    def _store(self, address: int) -> str:
        address &= WORD_MASK
        self.mem.write(address, self.regs.ACC)
        return f"M(0x{address:x}) = ACC = 0x{self.regs.ACC:x}"

    def _build_dispatch(self) -> Dict[Opcode, Callable[[Instruction], str]]:
        """Build opcode -> handler dispatch table.

        Every handler takes the decoded Instruction and returns the action
        text for the step trace.
        """
        table = {
            # ── Load ──
            Opcode.LOAD:     self._op_load,
            Opcode.LOADIN1:  self._op_loadin1,
            Opcode.LOADIN2:  self._op_loadin2,
            Opcode.LOADI:    self._op_loadi,

            # ── Store / move ──
            Opcode.STORE:    self._op_store,
            Opcode.STOREIN1: self._op_storein1,
            Opcode.STOREIN2: self._op_storein2,
            Opcode.MOVE:     self._op_move,

            # ── Compute, immediate operand ──
            Opcode.SUBI:     self._op_subi,
            Opcode.ADDI:     self._op_addi,
            Opcode.OPLUSI:   self._op_oplusi,
            Opcode.ORI:      self._op_ori,
            Opcode.ANDI:     self._op_andi,

            # ── Compute, memory operand ──
            Opcode.SUB:      self._op_sub,
            Opcode.ADD:      self._op_add,
            Opcode.OPLUS:    self._op_oplus,
            Opcode.OR:       self._op_or,
            Opcode.AND:      self._op_and,

            # ── Control ──
            Opcode.NOP:      self._op_nop,
            Opcode.JUMP:     self._op_jump,
        }
        for opcode in _JUMP_CONDITIONS:
            table[opcode] = self._op_jump
        return table

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════

    # ── Load ──

    def _op_load(self, ins: Instruction) -> str:
        value = self._load(ins.immediate)
        self._set(ins.destination, value)
        return f"{ins.destination.name} = M(0x{ins.immediate:x}) = 0x{value:x}"

    def _load_indexed(self, ins: Instruction, index: Register) -> str:
        base = self.regs.read(index)
        address = (base + ins.immediate) & WORD_MASK
        value = self._load(address)
        self._set(ins.destination, value)
        return (f"{ins.destination.name} = M({index.name} + {ins.immediate}) "
                f"= M(0x{address:x}) = 0x{value:x}")

    def _op_loadin1(self, ins: Instruction) -> str:
        return self._load_indexed(ins, Register.IN1)

    def _op_loadin2(self, ins: Instruction) -> str:
        return self._load_indexed(ins, Register.IN2)

    def _op_loadi(self, ins: Instruction) -> str:
        self._set(ins.destination, ins.immediate)
        return f"{ins.destination.name} = 0x{ins.immediate:x}"

    # ── Store / move ──

    def _op_store(self, ins: Instruction) -> str:
        return self._store(ins.immediate)

    def _op_storein1(self, ins: Instruction) -> str:
        return self._store(self.regs.IN1 + ins.immediate)

    def _op_storein2(self, ins: Instruction) -> str:
        return self._store(self.regs.IN2 + ins.immediate)

    def _op_move(self, ins: Instruction) -> str:
        value = self.regs.read(ins.source)
        self._set(ins.destination, value)
        return f"{ins.destination.name} = {ins.source.name} = 0x{value:x}"

    # ── Compute ──

    def _arith(self, ins: Instruction, operand: int, label: str, symbol: str,
               fn: Callable[[int, int], int]) -> str:
        """D = D <op> operand, modulo 2^32; trace shows signed decimals."""
        d = ins.destination
        old = self.regs.read(d)
        result = self._set(d, fn(old, operand))
        return (f"{d.name} = {d.name} {symbol} {label} = {_signed(old)} {symbol} "
                f"{_signed(operand & WORD_MASK)} = {_signed(result)} = [0x{result:08x}]")

    def _logic(self, ins: Instruction, operand: int, label: str, symbol: str,
               fn: Callable[[int, int], int]) -> str:
        """D = D <op> operand, bitwise; trace shows hexadecimal."""
        d = ins.destination
        old = self.regs.read(d)
        result = self._set(d, fn(old, operand))
        return (f"{d.name} = {d.name} {symbol} {label} = 0x{old:x} {symbol} "
                f"0x{operand:x} = 0x{result:x}")

    def _memory_operand(self, ins: Instruction) -> Tuple[int, str]:
        address = ins.field
        return self._load(address), f"M(0x{address:x})"

    def _op_subi(self, ins: Instruction) -> str:
        return self._arith(ins, ins.immediate, str(ins.immediate), '-', operator.sub)

    def _op_addi(self, ins: Instruction) -> str:
        return self._arith(ins, ins.immediate, str(ins.immediate), '+', operator.add)

    def _op_oplusi(self, ins: Instruction) -> str:
        return self._logic(ins, ins.immediate, f"0x{ins.immediate:x}", '^', operator.xor)

    def _op_ori(self, ins: Instruction) -> str:
        return self._logic(ins, ins.immediate, f"0x{ins.immediate:x}", '|', operator.or_)

    def _op_andi(self, ins: Instruction) -> str:
        return self._logic(ins, ins.immediate, f"0x{ins.immediate:x}", '&', operator.and_)

    def _op_sub(self, ins: Instruction) -> str:
        value, label = self._memory_operand(ins)
        return self._arith(ins, value, label, '-', operator.sub)

    def _op_add(self, ins: Instruction) -> str:
        value, label = self._memory_operand(ins)
        return self._arith(ins, value, label, '+', operator.add)

    def _op_oplus(self, ins: Instruction) -> str:
        value, label = self._memory_operand(ins)
        return self._logic(ins, value, label, '^', operator.xor)

    def _op_or(self, ins: Instruction) -> str:
        value, label = self._memory_operand(ins)
        return self._logic(ins, value, label, '|', operator.or_)

    def _op_and(self, ins: Instruction) -> str:
        value, label = self._memory_operand(ins)
        return self._logic(ins, value, label, '&', operator.and_)

    # ── Control ──

    def _op_nop(self, ins: Instruction) -> str:
        return ""

    def _op_jump(self, ins: Instruction) -> str:
        target = (self._pc + ins.immediate) & WORD_MASK
        if ins.opcode is Opcode.JUMP:
            self._next_pc = target
            return f"PC = PC + {ins.immediate} = 0x{target:08x}"
        symbol, test = _JUMP_CONDITIONS[ins.opcode]
        acc = self.regs.acc_signed
        if test(acc, 0):
            self._next_pc = target
            return f"ACC {symbol} 0 ({acc}): PC = PC + {ins.immediate} = 0x{target:08x}"
        return f"ACC {symbol} 0 ({acc}) not taken"

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Enable the per-step trace (also logged at DEBUG on 'reti.emu')."""
        self._trace = enable

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def clear_trace(self):
        self._trace_output.clear()

    def dump(self, verbose: bool = False) -> List[str]:
        """Data memory dump, one line per valid word."""
        return self.mem.dump(verbose)

    def reset(self):
        """Registers, counters and data back to the state right after loading."""
        self.regs.reset()
        self.mem = DataMemory(self.config.data_capacity)
        self.mem.load_words(self._data_image)
        self.steps = 0
        self.stop_reason = None
        self.fault = None
        self.anomalies.clear()
        self._trace_output.clear()
