"""Small path, string and I/O helpers."""

from __future__ import annotations

import logging
import os
from typing import IO, Optional, Union

log = logging.getLogger(__name__)

Readable = Union[int, IO[bytes]]


class ShortReadError(OSError):
    """Raised when fewer bytes than required could be read."""

    def __init__(self, expected: int, got: int) -> None:
        super().__init__(f"Short read: expected {expected} bytes, got {got}")
        self.expected = expected
        self.got = got


def last_char_is(s: Optional[str], c: str) -> bool:
    """Return True if the last character of ``s`` is ``c``."""
    return bool(s) and s[-1] == c


def concat_path_file(path: Optional[str], filename: str) -> str:
    """Join a directory and a file name with exactly one '/' between them."""
    path = path or ""
    filename = filename.lstrip("/")
    separator = "" if last_char_is(path, "/") else "/"
    return f"{path}{separator}{filename}"


def safe_strncpy(src: str, size: int) -> str:
    """Return at most ``size - 1`` characters of ``src``, stopping at a NUL."""
    if size < 1:
        raise ValueError("size must be at least 1")
    return src.split("\0", 1)[0][: size - 1]


def read_link(path: Union[str, os.PathLike]) -> str:
    """Return the target of the symbolic link at ``path``."""
    try:
        return os.readlink(path)
    except OSError as exc:
        log.error("%s: %s", path, exc.strerror or exc)
        raise


def open_or_warn(path: Union[str, os.PathLike], mode: str = "r") -> Optional[IO]:
    """Open ``path``; on failure log the error and return None."""
    try:
        return open(path, mode)
    except OSError as exc:
        log.error("%s: %s", path, exc.strerror or exc)
        return None


def _read_chunk(stream: Readable, size: int) -> bytes:
    if isinstance(stream, int):
        return os.read(stream, size)
    return stream.read(size) or b""


def full_read(stream: Readable, length: int) -> bytes:
    """Read up to ``length`` bytes, issuing as many reads as needed.

    Fewer bytes are returned only when end of file is reached first.
    ``stream`` may be a binary file object or a file descriptor.
    """
    parts = []
    remaining = length
    while remaining > 0:
        chunk = _read_chunk(stream, remaining)
        if not chunk:
            break
        parts.append(chunk)
        remaining -= len(chunk)
    return b"".join(parts)


def read_all(stream: Readable, count: int) -> bytes:
    """Read exactly ``count`` bytes or raise :class:`ShortReadError`."""
    data = full_read(stream, count)
    if len(data) != count:
        raise ShortReadError(count, len(data))
    return data