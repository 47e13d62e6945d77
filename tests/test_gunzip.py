import gzip
import io
import random
import struct
import zlib

import pytest

from opkgutil.gunzip import GunzipError, gz_open, unzip

DATA = b"".join(bytes([i % 251]) * (i % 7 + 1) for i in range(3000))


def _raw_deflate(data: bytes) -> bytes:
    comp = zlib.compressobj(6, zlib.DEFLATED, -15)
    return comp.compress(data) + comp.flush()


def _member(data: bytes, flags: int = 0, extra: bytes = b"",
            name: bytes = b"", comment: bytes = b"") -> bytes:
    header = b"\x1f\x8b\x08" + bytes([flags]) + b"\0" * 6
    if flags & 0x04:
        header += struct.pack("<H", len(extra)) + extra
    if flags & 0x08:
        header += name + b"\0"
    if flags & 0x10:
        header += comment + b"\0"
    trailer = struct.pack("<II", zlib.crc32(data), len(data) & 0xFFFFFFFF)
    return header + _raw_deflate(data) + trailer


@pytest.mark.parametrize("level", [0, 1, 6, 9])
def test_unzip_round_trip(level):
    out = io.BytesIO()
    size = unzip(io.BytesIO(gzip.compress(DATA, compresslevel=level)), out)
    assert size == len(DATA)
    assert out.getvalue() == DATA


def test_unzip_empty_member():
    out = io.BytesIO()
    assert unzip(io.BytesIO(gzip.compress(b"")), out) == 0
    assert out.getvalue() == b""


def test_unzip_skips_optional_header_fields():
    member = _member(DATA, flags=0x1C, extra=b"xyz",
                     name=b"file.txt", comment=b"a comment")
    out = io.BytesIO()
    unzip(io.BytesIO(member), out)
    assert out.getvalue() == DATA


def test_unzip_leaves_stream_after_member():
    stream = io.BytesIO(gzip.compress(b"first") + b"TAIL")
    out = io.BytesIO()
    unzip(stream, out)
    assert out.getvalue() == b"first"
    assert stream.read() == b"TAIL"


def test_unzip_concatenated_members():
    stream = io.BytesIO(gzip.compress(b"one") + gzip.compress(b"two"))
    first, second = io.BytesIO(), io.BytesIO()
    unzip(stream, first)
    unzip(stream, second)
    assert (first.getvalue(), second.getvalue()) == (b"one", b"two")


def test_bad_magic():
    with pytest.raises(GunzipError, match="magic"):
        unzip(io.BytesIO(b"PK\x03\x04rest"), io.BytesIO())


def test_unknown_method():
    member = bytearray(gzip.compress(DATA))
    member[2] = 7
    with pytest.raises(GunzipError, match="unknown method 7"):
        unzip(io.BytesIO(bytes(member)), io.BytesIO())


def test_crc_error():
    member = bytearray(gzip.compress(DATA))
    member[-8] ^= 0xFF
    with pytest.raises(GunzipError, match="crc error"):
        unzip(io.BytesIO(bytes(member)), io.BytesIO())


def test_length_error():
    member = bytearray(gzip.compress(DATA))
    member[-1] ^= 0x01
    with pytest.raises(GunzipError, match="length error"):
        unzip(io.BytesIO(bytes(member)), io.BytesIO())


def test_truncated_member():
    member = gzip.compress(DATA)
    with pytest.raises(GunzipError):
        unzip(io.BytesIO(member[: len(member) // 2]), io.BytesIO())


def test_gz_open_reads_everything(monkeypatch):
    monkeypatch.delenv("OPKG_USE_VFORK", raising=False)
    with gz_open(io.BytesIO(gzip.compress(DATA))) as reader:
        assert reader.read() == DATA


def test_gz_open_partial_read_then_close(monkeypatch):
    monkeypatch.delenv("OPKG_USE_VFORK", raising=False)
    big = random.Random(3).randbytes(300_000)
    reader = gz_open(io.BytesIO(gzip.compress(big)))
    assert reader.read(10) == big[:10]
    reader.close()
    with pytest.raises(ValueError):
        reader.read(1)


def test_gz_open_reports_failure_on_close(monkeypatch):
    monkeypatch.delenv("OPKG_USE_VFORK", raising=False)
    reader = gz_open(io.BytesIO(b"this is not gzip data"))
    assert reader.read() == b""
    with pytest.raises(GunzipError, match="magic"):
        reader.close()