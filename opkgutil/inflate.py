"""Decoder for raw deflate streams (stored, fixed and dynamic blocks)."""

from __future__ import annotations

import zlib
from typing import IO, Callable, List, NamedTuple, Optional, Sequence, Tuple

WSIZE = 0x8000
_FLUSH_AT = 2 * WSIZE
_READ_CHUNK = 0x2000
_MAX_BITS = 15

# Copy lengths and extra bits for literal/length codes 257..285.
_CPLENS = (
    3, 4, 5, 6, 7, 8, 9, 10, 11, 13, 15, 17, 19, 23, 27, 31,
    35, 43, 51, 59, 67, 83, 99, 115, 131, 163, 195, 227, 258,
)
_CPLEXT = (
    0, 0, 0, 0, 0, 0, 0, 0, 1, 1, 1, 1, 2, 2, 2, 2,
    3, 3, 3, 3, 4, 4, 4, 4, 5, 5, 5, 5, 0,
)
# Copy offsets and extra bits for distance codes 0..29.
_CPDIST = (
    1, 2, 3, 4, 5, 7, 9, 13, 17, 25, 33, 49, 65, 97, 129, 193,
    257, 385, 513, 769, 1025, 1537, 2049, 3073, 4097, 6145,
    8193, 12289, 16385, 24577,
)
_CPDEXT = (
    0, 0, 0, 0, 1, 1, 2, 2, 3, 3, 4, 4, 5, 5, 6, 6,
    7, 7, 8, 8, 9, 9, 10, 10, 11, 11, 12, 12, 13, 13,
)
# Order in which code length code lengths are transmitted.
_BORDER = (16, 17, 18, 0, 8, 7, 9, 6, 10, 5, 11, 4, 12, 3, 13, 2, 14, 1, 15)

_CRC_POLY_TERMS = (0, 1, 2, 4, 5, 7, 8, 10, 11, 12, 16, 22, 23, 26)


class InflateError(ValueError):
    """Raised when compressed data is malformed or truncated."""


class InflateResult(NamedTuple):
    """Outcome of :func:`inflate`.

    ``unused`` holds the bytes read from the stream beyond the end of the
    deflate data (for example a gzip trailer).
    """

    size: int
    crc: int
    unused: bytes


def make_crc_table() -> List[int]:
    """Return the 256-entry table for the reflected CRC-32 (0xedb88320)."""
    poly = 0
    for term in _CRC_POLY_TERMS:
        poly |= 1 << (31 - term)
    table = []
    for value in range(256):
        for _ in range(8):
            value = (value >> 1) ^ poly if value & 1 else value >> 1
        table.append(value)
    return table


class _BitReader:
    """Least-significant-bit-first reader over a binary stream."""

    def __init__(self, stream: IO[bytes]) -> None:
        self._stream = stream
        self._buf = b""
        self._pos = 0
        self.bits = 0
        self.count = 0

    def _refill(self) -> bool:
        self._buf = self._stream.read(_READ_CHUNK) or b""
        self._pos = 0
        return bool(self._buf)

    def fill(self, n: int) -> int:
        """Try to hold ``n`` bits; return how many are held."""
        while self.count < n:
            if self._pos >= len(self._buf) and not self._refill():
                break
            self.bits |= self._buf[self._pos] << self.count
            self._pos += 1
            self.count += 8
        return self.count

    def take(self, n: int) -> int:
        if self.fill(n) < n:
            raise InflateError("unexpected end of compressed data")
        value = self.bits & ((1 << n) - 1)
        self.bits >>= n
        self.count -= n
        return value

    def drop(self, n: int) -> None:
        self.bits >>= n
        self.count -= n

    def align(self) -> None:
        self.drop(self.count & 7)

    def read_bytes(self, n: int) -> bytes:
        """Read ``n`` whole bytes; the reader must be byte aligned."""
        out = bytearray()
        while n and self.count >= 8:
            out.append(self.bits & 0xFF)
            self.drop(8)
            n -= 1
        while n:
            if self._pos >= len(self._buf) and not self._refill():
                raise InflateError("unexpected end of compressed data")
            piece = self._buf[self._pos:self._pos + n]
            out += piece
            self._pos += len(piece)
            n -= len(piece)
        return bytes(out)

    def unused(self) -> bytes:
        whole = self.count // 8
        spare = (self.bits >> (self.count & 7)).to_bytes(whole, "little")
        return spare + self._buf[self._pos:]


class _Decoder:
    """Canonical Huffman decoder built from a list of code lengths."""

    __slots__ = ("table", "max_bits", "incomplete")

    def __init__(self, lengths: Sequence[int]) -> None:
        counts = [0] * (_MAX_BITS + 1)
        for length in lengths:
            counts[length] += 1

        self.table: Optional[List[Optional[int]]] = None
        self.max_bits = 0
        self.incomplete = False
        if counts[0] == len(lengths):
            return

        min_bits = next(b for b in range(1, _MAX_BITS + 1) if counts[b])
        max_bits = next(b for b in range(_MAX_BITS, 0, -1) if counts[b])
        left = 1 << min_bits
        for bits in range(min_bits, max_bits):
            left -= counts[bits]
            if left < 0:
                raise InflateError("oversubscribed Huffman code")
            left <<= 1
        left -= counts[max_bits]
        if left < 0:
            raise InflateError("oversubscribed Huffman code")
        self.incomplete = left != 0 and max_bits != 1

        next_code = [0] * (_MAX_BITS + 2)
        code = 0
        for bits in range(1, _MAX_BITS + 1):
            code = (code + counts[bits - 1]) << 1 if bits > 1 else 0
            next_code[bits] = code

        size = 1 << max_bits
        table: List[Optional[int]] = [None] * size
        for symbol, length in enumerate(lengths):
            if not length:
                continue
            code = next_code[length]
            next_code[length] += 1
            reversed_code = int(format(code, f"0{length}b")[::-1], 2)
            entry = (symbol << 4) | length
            for index in range(reversed_code, size, 1 << length):
                table[index] = entry
        self.table = table
        self.max_bits = max_bits

    def decode(self, reader: _BitReader) -> int:
        if self.table is None:
            raise InflateError("invalid code: empty Huffman table")
        available = reader.fill(self.max_bits)
        entry = self.table[reader.bits & ((1 << self.max_bits) - 1)]
        if entry is None:
            raise InflateError("invalid Huffman code")
        length = entry & 0xF
        if length > available:
            raise InflateError("unexpected end of compressed data")
        reader.drop(length)
        return entry >> 4


class _Window:
    """Sliding output window that hands finished data to ``write``."""

    def __init__(self, write: Callable[[bytes], object]) -> None:
        self.data = bytearray()
        self._start = 0
        self._write = write
        self.crc = 0
        self.size = 0

    def maybe_flush(self) -> None:
        if len(self.data) >= _FLUSH_AT:
            self.flush()

    def flush(self) -> None:
        chunk = bytes(self.data[self._start:])
        if chunk:
            self._write(chunk)
            self.crc = zlib.crc32(chunk, self.crc)
            self.size += len(chunk)
        if len(self.data) > WSIZE:
            del self.data[:-WSIZE]
        self._start = len(self.data)

    def copy(self, distance: int, length: int) -> None:
        data = self.data
        if distance > len(data):
            raise InflateError("invalid distance: too far back")
        start = len(data) - distance
        if distance >= length:
            data += data[start:start + length]
        else:
            pattern = bytes(data[start:])
            data += (pattern * (length // distance + 1))[:length]


def _fixed_decoders() -> Tuple[_Decoder, _Decoder]:
    lengths = [8] * 144 + [9] * 112 + [7] * 24 + [8] * 8
    literal = _Decoder(lengths)
    if literal.incomplete:
        raise InflateError("incomplete fixed literal code")
    distance = _Decoder([5] * 30)
    return literal, distance


def _inflate_codes(reader: _BitReader, window: _Window,
                   literal: _Decoder, distance: _Decoder) -> None:
    data = window.data
    while True:
        symbol = literal.decode(reader)
        if symbol < 256:
            data.append(symbol)
            window.maybe_flush()
            data = window.data
            continue
        if symbol == 256:
            return
        index = symbol - 257
        if index >= len(_CPLENS):
            raise InflateError("invalid literal/length code")
        length = _CPLENS[index] + reader.take(_CPLEXT[index])
        dsym = distance.decode(reader)
        if dsym >= len(_CPDIST):
            raise InflateError("invalid distance code")
        dist = _CPDIST[dsym] + reader.take(_CPDEXT[dsym])
        window.copy(dist, length)
        window.maybe_flush()
        data = window.data


def _inflate_stored(reader: _BitReader, window: _Window) -> None:
    reader.align()
    length = reader.take(16)
    complement = reader.take(16)
    if length != (~complement & 0xFFFF):
        raise InflateError("stored block length does not match its complement")
    window.data += reader.read_bytes(length)
    window.maybe_flush()


def _dynamic_decoders(reader: _BitReader) -> Tuple[_Decoder, _Decoder]:
    nl = 257 + reader.take(5)
    nd = 1 + reader.take(5)
    nb = 4 + reader.take(4)
    if nl > 286 or nd > 30:
        raise InflateError("too many length or distance codes")

    code_lengths = [0] * 19
    for position in _BORDER[:nb]:
        code_lengths[position] = reader.take(3)
    tree = _Decoder(code_lengths)
    if tree.incomplete:
        raise InflateError("incomplete code length code")

    total = nl + nd
    lengths: List[int] = []
    last = 0
    while len(lengths) < total:
        symbol = tree.decode(reader)
        if symbol < 16:
            last = symbol
            lengths.append(symbol)
            continue
        if symbol == 16:
            repeat, value = 3 + reader.take(2), last
        elif symbol == 17:
            repeat, value = 3 + reader.take(3), 0
        else:
            repeat, value = 11 + reader.take(7), 0
        if len(lengths) + repeat > total:
            raise InflateError("code lengths overflow the table")
        lengths.extend([value] * repeat)
        if symbol != 16:
            last = 0

    literal = _Decoder(lengths[:nl])
    if literal.incomplete:
        raise InflateError("incomplete literal tree")
    distance = _Decoder(lengths[nl:])
    if distance.incomplete:
        raise InflateError("incomplete distance tree")
    return literal, distance


def inflate(stream: IO[bytes], write: Callable[[bytes], object]) -> InflateResult:
    """Decompress raw deflate data from ``stream``, passing output to ``write``.

    Output is handed over in chunks as the window fills. Returns the total
    size, the CRC-32 of the output and any bytes read past the end of the
    compressed data. Raises :class:`InflateError` on malformed input.
    """
    reader = _BitReader(stream)
    window = _Window(write)
    while True:
        last = reader.take(1)
        block_type = reader.take(2)
        if block_type == 0:
            _inflate_stored(reader, window)
        elif block_type == 1:
            _inflate_codes(reader, window, *_fixed_decoders())
        elif block_type == 2:
            _inflate_codes(reader, window, *_dynamic_decoders(reader))
        else:
            raise InflateError("invalid block type")
        if last:
            break
    window.flush()
    return InflateResult(size=window.size, crc=window.crc,
                         unused=reader.unused())