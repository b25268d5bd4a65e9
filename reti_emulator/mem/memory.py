"""
ReTI Emulator — Sparse Data Memory with Validity Map

Data memory is word-addressed over the full 32-bit address range. Only
touched words are stored: a dict maps address -> word, and a parallel set
records which addresses hold a valid (loaded or written) word.

  - A word becomes valid when loaded from the data file or written by a
    STORE-class instruction, and stays valid for the rest of the run.
  - Reading an address that was never written returns 0. The caller
    decides how to report that; memory only answers is_valid().
  - Writes at or above `capacity` raise CapacityError.
"""

from typing import Dict, Iterable, List, Optional, Set

from reti_asm.codec import WORD_MASK
from reti_asm.wordio import pack_words

from reti_emulator.errors import CapacityError

DEFAULT_CAPACITY = 1 << 32
MAX_IMAGE_WORDS = 1 << 20


class DataMemory:
    """Word-addressed data memory with a shadow validity map."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self.capacity = capacity
        self._words: Dict[int, int] = {}
        self._valid: Set[int] = set()

    # --- Core read/write ---

    def read(self, addr: int) -> int:
        """Read the word at addr; 0 if never written."""
        return self._words.get(addr & WORD_MASK, 0)

    def write(self, addr: int, value: int):
        """Write a word and mark the address valid."""
        addr &= WORD_MASK
        if addr >= self.capacity:
            raise CapacityError(
                f"can not write 'data[0x{addr:x}]' above address "
                f"0x{self.capacity - 1:x}")
        self._words[addr] = value & WORD_MASK
        self._valid.add(addr)

    def is_valid(self, addr: int) -> bool:
        return (addr & WORD_MASK) in self._valid

    # --- Bulk load ---

    def load_words(self, words: Iterable[int], base_addr: int = 0) -> int:
        """Load consecutive words from base_addr; returns the count."""
        count = 0
        for word in words:
            addr = base_addr + count
            if addr >= self.capacity:
                raise CapacityError("capacity of data area reached")
            self._words[addr] = word & WORD_MASK
            self._valid.add(addr)
            count += 1
        return count

    # --- Inspection ---

    def valid_addresses(self) -> List[int]:
        return sorted(self._valid)

    def __len__(self) -> int:
        return len(self._valid)

    def to_words(self, limit: Optional[int] = MAX_IMAGE_WORDS) -> List[int]:
        """Contiguous image from address 0 to the highest valid address.

        Gaps are filled with 0. An image longer than `limit` words raises
        CapacityError; None lifts the bound.
        """
        if not self._valid:
            return []
        top = max(self._valid)
        if limit is not None and top >= limit:
            raise CapacityError(
                f"data image up to 'data[0x{top:x}]' exceeds {limit} words")
        return [self._words.get(a, 0) for a in range(top + 1)]

    def to_bytes(self) -> bytes:
        return pack_words(self.to_words())

    def snapshot(self) -> Dict[int, int]:
        """Copy of all valid words, for before/after comparisons."""
        return {a: self._words[a] for a in self._valid}

    @staticmethod
    def diff_snapshots(snap_a: Dict[int, int], snap_b: Dict[int, int]) -> Dict[int, tuple]:
        """Return {addr: (old, new)} for every address that changed.

        An address missing from a snapshot shows as None on that side.
        """
        changes = {}
        for addr in sorted(set(snap_a) | set(snap_b)):
            old, new = snap_a.get(addr), snap_b.get(addr)
            if old != new:
                changes[addr] = (old, new)
        return changes

    # --- Dump ---

    def dump(self, verbose: bool = False) -> List[str]:
        """One line per valid word: address, bytes (little-endian), ASCII.

        verbose adds the word as unsigned and signed decimal.
        """
        lines = []
        for addr in self.valid_addresses():
            word = self._words[addr]
            raw = [(word >> shift) & 0xFF for shift in (0, 8, 16, 24)]
            hex_bytes = ''.join(f' {b:02x}' for b in raw)
            ascii_bytes = ''.join(chr(b) if 0x20 <= b < 0x7F else '.' for b in raw)
            line = f'{addr:08x} {hex_bytes}  {ascii_bytes}'
            if verbose:
                signed = word - 0x100000000 if word & 0x80000000 else word
                line += f'  {word:10d}  {signed:11d}'
            lines.append(line)
        return lines
