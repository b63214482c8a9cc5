"""Content hashing (BLAKE3, 32-byte digest) with base58 encoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

_MASK = 0xFFFFFFFF
_IV = (
    0x6A09E667, 0xBB67AE85, 0x3C6EF372, 0xA54FF53A,
    0x510E527F, 0x9B05688C, 0x1F83D9AB, 0x5BE0CD19,
)
_PERMUTATION = (2, 6, 3, 10, 7, 0, 4, 13, 1, 11, 12, 5, 9, 14, 15, 8)
_CHUNK_START = 1
_CHUNK_END = 2
_PARENT = 4
_ROOT = 8
_BLOCK_LEN = 64
_CHUNK_LEN = 1024
_DIGEST_SIZE = 32

_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def _rotr(x: int, n: int) -> int:
    return ((x >> n) | (x << (32 - n))) & _MASK


def _g(s: list[int], a: int, b: int, c: int, d: int, mx: int, my: int) -> None:
    s[a] = (s[a] + s[b] + mx) & _MASK
    s[d] = _rotr(s[d] ^ s[a], 16)
    s[c] = (s[c] + s[d]) & _MASK
    s[b] = _rotr(s[b] ^ s[c], 12)
    s[a] = (s[a] + s[b] + my) & _MASK
    s[d] = _rotr(s[d] ^ s[a], 8)
    s[c] = (s[c] + s[d]) & _MASK
    s[b] = _rotr(s[b] ^ s[c], 7)


def _round(s: list[int], m: list[int]) -> None:
    _g(s, 0, 4, 8, 12, m[0], m[1])
    _g(s, 1, 5, 9, 13, m[2], m[3])
    _g(s, 2, 6, 10, 14, m[4], m[5])
    _g(s, 3, 7, 11, 15, m[6], m[7])
    _g(s, 0, 5, 10, 15, m[8], m[9])
    _g(s, 1, 6, 11, 12, m[10], m[11])
    _g(s, 2, 7, 8, 13, m[12], m[13])
    _g(s, 3, 4, 9, 14, m[14], m[15])


def _compress(cv, block_words, counter: int, block_len: int, flags: int) -> list[int]:
    state = [*cv, *_IV[:4], counter & _MASK, (counter >> 32) & _MASK, block_len, flags]
    message = list(block_words)
    for _ in range(7):
        _round(state, message)
        message = [message[i] for i in _PERMUTATION]
    low = [a ^ b for a, b in zip(state[:8], state[8:])]
    high = [b ^ c for b, c in zip(state[8:], cv)]
    return low + high


def _words(block: bytes) -> tuple[int, ...]:
    return struct.unpack("<16I", bytes(block).ljust(_BLOCK_LEN, b"\0"))


@dataclass
class _Output:
    input_cv: tuple[int, ...] | list[int]
    block_words: tuple[int, ...]
    counter: int
    block_len: int
    flags: int

    def chaining_value(self) -> list[int]:
        return _compress(self.input_cv, self.block_words, self.counter, self.block_len, self.flags)[:8]

    def root_bytes(self, length: int) -> bytes:
        out = bytearray()
        counter = 0
        while len(out) < length:
            words = _compress(
                self.input_cv, self.block_words, counter, self.block_len, self.flags | _ROOT
            )
            out += struct.pack("<16I", *words)
            counter += 1
        return bytes(out[:length])


class _ChunkState:
    def __init__(self, key_words, chunk_counter: int, flags: int) -> None:
        self.cv = list(key_words)
        self.chunk_counter = chunk_counter
        self.block = bytearray()
        self.blocks_compressed = 0
        self.flags = flags

    def __len__(self) -> int:
        return _BLOCK_LEN * self.blocks_compressed + len(self.block)

    def _start_flag(self) -> int:
        return _CHUNK_START if self.blocks_compressed == 0 else 0

    def update(self, data: memoryview) -> None:
        while data:
            if len(self.block) == _BLOCK_LEN:
                self.cv = _compress(
                    self.cv,
                    _words(self.block),
                    self.chunk_counter,
                    _BLOCK_LEN,
                    self.flags | self._start_flag(),
                )[:8]
                self.blocks_compressed += 1
                self.block.clear()
            take = min(_BLOCK_LEN - len(self.block), len(data))
            self.block += data[:take]
            data = data[take:]

    def output(self) -> _Output:
        return _Output(
            self.cv,
            _words(self.block),
            self.chunk_counter,
            len(self.block),
            self.flags | self._start_flag() | _CHUNK_END,
        )


def _parent_output(left: list[int], right: list[int]) -> _Output:
    return _Output(_IV, tuple(left + right), 0, _BLOCK_LEN, _PARENT)


class _Blake3:
    def __init__(self) -> None:
        self._chunk = _ChunkState(_IV, 0, 0)
        self._cv_stack: list[list[int]] = []

    def _push_chunk(self, new_cv: list[int], total_chunks: int) -> None:
        while total_chunks & 1 == 0:
            new_cv = _parent_output(self._cv_stack.pop(), new_cv).chaining_value()
            total_chunks >>= 1
        self._cv_stack.append(new_cv)

    def update(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            if len(self._chunk) == _CHUNK_LEN:
                chunk_cv = self._chunk.output().chaining_value()
                total_chunks = self._chunk.chunk_counter + 1
                self._push_chunk(chunk_cv, total_chunks)
                self._chunk = _ChunkState(_IV, total_chunks, 0)
            take = min(_CHUNK_LEN - len(self._chunk), len(view))
            self._chunk.update(view[:take])
            view = view[take:]

    def digest(self, length: int) -> bytes:
        output = self._chunk.output()
        for left in reversed(self._cv_stack):
            output = _parent_output(left, output.chaining_value())
        return output.root_bytes(length)


@runtime_checkable
class Hashable(Protocol):
    """Anything that can feed its identifying content into a Hash."""

    def marshal_hash(self, h: "Hash") -> None: ...


class Hash:
    """Incremental 32-byte BLAKE3 hash."""

    size = _DIGEST_SIZE

    def __init__(self) -> None:
        self._state = _Blake3()

    def write(self, data: bytes | str) -> int:
        if isinstance(data, str):
            data = data.encode()
        self._state.update(data)
        return len(data)

    def digest(self) -> bytes:
        return self._state.digest(self.size)


def encode_b58(data: bytes) -> str:
    """Encode bytes with the Bitcoin base58 alphabet."""
    number = int.from_bytes(data, "big")
    encoded = []
    while number:
        number, rem = divmod(number, 58)
        encoded.append(_B58_ALPHABET[rem])
    zeros = len(data) - len(data.lstrip(b"\0"))
    return _B58_ALPHABET[0] * zeros + "".join(reversed(encoded))


def marshal_hashable(obj: Hashable) -> bytes:
    h = Hash()
    obj.marshal_hash(h)
    return h.digest()


def marshal_hashable_b58(obj: Hashable) -> str:
    return encode_b58(marshal_hashable(obj))