"""
ReTI binary word format.

Every artifact (assembled code, data memory images, disassembler input) is a
plain sequence of 32-bit words, 4 bytes each, little-endian. There is no
header. A stream whose length is not a multiple of 4 ends in a truncated
word, which is a format error.
"""

from __future__ import annotations
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Union
import struct

__all__ = [
    'WordFormatError', 'WORD_SIZE',
    'pack_words', 'unpack_words', 'iter_words',
    'read_words', 'write_words', 'read_word_file', 'write_word_file',
]

WORD_SIZE = 4
_WORD = struct.Struct('<I')


class WordFormatError(Exception):
    """Raised when a binary stream ends in the middle of a word."""
    def __init__(self, message: str, word_index: int = 0, byte_offset: int = 0,
                 source: str = ""):
        self.word_index = word_index
        self.byte_offset = byte_offset
        self.source = source
        where = f" in '{source}'" if source else ""
        super().__init__(f"at word {word_index} byte {byte_offset}{where}: {message}")


def pack_words(words: Iterable[int]) -> bytes:
    """Serialize words as little-endian 32-bit values."""
    return b''.join(_WORD.pack(w & 0xFFFFFFFF) for w in words)


def iter_words(data: bytes, source: str = "") -> Iterator[int]:
    """Yield words from raw bytes, failing on a truncated tail."""
    full = len(data) - len(data) % WORD_SIZE
    for offset in range(0, full, WORD_SIZE):
        yield _WORD.unpack_from(data, offset)[0]
    if full != len(data):
        raise WordFormatError(
            f"incomplete word ({len(data) - full} trailing bytes)",
            word_index=full // WORD_SIZE, byte_offset=len(data), source=source)


def unpack_words(data: bytes, source: str = "") -> List[int]:
    return list(iter_words(data, source))


def read_words(stream: BinaryIO, source: str = "") -> List[int]:
    """Read all words from a binary stream."""
    return unpack_words(stream.read(), source or getattr(stream, 'name', ''))


def write_words(stream: BinaryIO, words: Iterable[int]) -> int:
    """Write words to a binary stream. Returns the number of bytes written."""
    data = pack_words(words)
    stream.write(data)
    return len(data)


def read_word_file(path: Union[str, Path]) -> List[int]:
    path = Path(path)
    return unpack_words(path.read_bytes(), str(path))


def write_word_file(path: Union[str, Path], words: Iterable[int]) -> int:
    data = pack_words(words)
    Path(path).write_bytes(data)
    return len(data)
