"""Decoding of gzip members, directly or through a background decoder."""

from __future__ import annotations

import io
import os
import struct
import subprocess
import threading
from typing import IO, Optional

from opkgutil.inflate import InflateError, inflate

_MAGIC = b"\x1f\x8b"
_DEFLATED = 8

_FEXTRA = 0x04
_FNAME = 0x08
_FCOMMENT = 0x10


class GunzipError(ValueError):
    """Raised when a gzip member cannot be decoded."""


def _read_byte(stream: IO[bytes]) -> int:
    data = stream.read(1)
    return data[0] if data else -1


def _skip_string(stream: IO[bytes]) -> None:
    while True:
        data = stream.read(1)
        if not data or data == b"\0":
            return


def _unread(stream: IO[bytes], count: int) -> None:
    seekable = getattr(stream, "seekable", None)
    if seekable is not None and seekable():
        stream.seek(-count, io.SEEK_CUR)


def unzip(in_file: IO[bytes], out_file: IO[bytes]) -> int:
    """Decode one gzip member from ``in_file`` into ``out_file``.

    Returns the number of bytes written. Raises :class:`GunzipError` if the
    header, the compressed data or the trailer is invalid. When ``in_file``
    is seekable it is left positioned just after the member.
    """
    if in_file.read(2) != _MAGIC:
        raise GunzipError("Invalid gzip magic")

    method = _read_byte(in_file)
    if method != _DEFLATED:
        raise GunzipError(
            f"unknown method {method} -- get newer version of gzip")

    flags = _read_byte(in_file)
    if flags < 0:
        raise GunzipError("invalid compressed data--truncated header")

    # Time stamp, extra flags and OS type are not needed.
    in_file.read(6)

    if flags & _FEXTRA:
        extra = in_file.read(2)
        in_file.read(int.from_bytes(extra, "little"))
    if flags & _FNAME:
        _skip_string(in_file)
    if flags & _FCOMMENT:
        _skip_string(in_file)

    try:
        result = inflate(in_file, out_file.write)
    except InflateError as exc:
        raise GunzipError(
            f"invalid compressed data--format violated: {exc}") from exc

    trailer = result.unused[:8]
    leftover = result.unused[8:]
    if len(trailer) < 8:
        trailer += in_file.read(8 - len(trailer)) or b""
    elif leftover:
        _unread(in_file, len(leftover))
    if len(trailer) < 8:
        raise GunzipError("invalid compressed data--missing trailer")

    crc, size = struct.unpack("<II", trailer)
    if crc != result.crc:
        raise GunzipError("invalid compressed data--crc error")
    if size != result.size & 0xFFFFFFFF:
        raise GunzipError("invalid compressed data--length error")
    return result.size


class GzReader:
    """Readable end of a gzip decoder running in the background."""

    def __init__(self, stream: IO[bytes],
                 process: Optional[subprocess.Popen] = None) -> None:
        self._stream = stream
        self._process = process
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[Exception] = None
        self._closed = False

    def _decode(self, compressed_file: IO[bytes], wfd: int) -> None:
        try:
            with open(wfd, "wb") as out:
                unzip(compressed_file, out)
        except BrokenPipeError:
            # The reader stopped early; that is not a failure.
            pass
        except (GunzipError, OSError) as exc:
            self._error = exc

    def _start(self, compressed_file: IO[bytes], wfd: int) -> None:
        self._thread = threading.Thread(
            target=self._decode, args=(compressed_file, wfd), daemon=True)
        self._thread.start()

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` decoded bytes (all remaining if negative)."""
        return self._stream.read(size)

    def close(self) -> None:
        """Stop the decoder; raise :class:`GunzipError` if it failed."""
        if self._closed:
            return
        self._closed = True
        self._stream.close()

        if self._process is not None:
            # An external gunzip keeps running; stop it outright.
            self._process.terminate()
            self._process.wait()
            return

        if self._thread is not None:
            self._thread.join()
        if self._error is not None:
            if isinstance(self._error, GunzipError):
                raise GunzipError(str(self._error)) from self._error
            raise GunzipError(
                f"Unzip process failed: {self._error}") from self._error

    def __enter__(self) -> "GzReader":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def _open_process(compressed_file: IO[bytes]) -> GzReader:
    fd = os.dup(compressed_file.fileno())
    try:
        os.lseek(fd, compressed_file.tell(), os.SEEK_SET)
        env = dict(os.environ)
        env.setdefault("GZIP", "--quiet")
        try:
            process = subprocess.Popen(["gunzip"], stdin=fd,
                                       stdout=subprocess.PIPE, env=env)
        except OSError as exc:
            raise GunzipError(f"cannot start gunzip: {exc}") from exc
    finally:
        os.close(fd)
    return GzReader(process.stdout, process=process)


def gz_open(compressed_file: IO[bytes]) -> GzReader:
    """Return a reader yielding the decoded contents of ``compressed_file``.

    Decoding happens in the background. If ``OPKG_USE_VFORK`` is set in the
    environment an external ``gunzip`` is used instead; ``compressed_file``
    must then be backed by a real file descriptor.
    """
    if os.environ.get("OPKG_USE_VFORK") is not None:
        return _open_process(compressed_file)

    rfd, wfd = os.pipe()
    reader = GzReader(open(rfd, "rb"))
    reader._start(compressed_file, wfd)
    return reader