"""Convenience routines for common file operations and checksums."""

from __future__ import annotations

import contextlib
import errno
import hashlib
import logging
import os
import re
from typing import IO, AnyStr, Optional, Union

from opkgutil.fileops import FileOpError, FileUtilsFlags, copy_file, make_directory

log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

_CHUNK = 0x8000
_MAX_CHECKSUM_BYTES = 32
_HEX_PAIRS = re.compile(r"(?:[0-9A-Fa-f]{2})+")
_PERCENT_ESCAPE = re.compile(rb"%([0-9A-Fa-f]{2})")
_URL_SPECIAL = frozenset(b":?#[]@!$&'()*+,;=%")


def file_exists(file_name: PathLike) -> bool:
    """Return True if ``file_name`` can be stat'ed."""
    try:
        os.stat(file_name)
    except OSError:
        return False
    return True


def file_is_dir(file_name: PathLike) -> bool:
    """Return True if ``file_name`` is a directory (following links)."""
    try:
        return os.path.isdir(file_name) and file_exists(file_name)
    except OSError:
        return False


def file_read_line(fp: IO[AnyStr]) -> Optional[AnyStr]:
    """Read one line from ``fp`` without its newline; None at end of file."""
    line = fp.readline()
    if not line:
        return None
    newline = b"\n" if isinstance(line, bytes) else "\n"
    if line.endswith(newline):
        line = line[:-1]
    return line


def file_copy(src: PathLike, dest: PathLike) -> None:
    """Copy ``src`` to ``dest``, replacing it and keeping status."""
    try:
        copy_file(src, dest,
                  FileUtilsFlags.FORCE | FileUtilsFlags.PRESERVE_STATUS)
    except FileOpError:
        log.error("Failed to copy file %s to %s.", src, dest)
        raise


def file_move(src: PathLike, dest: PathLike) -> None:
    """Rename ``src`` to ``dest``, copying across file systems if needed."""
    try:
        os.rename(src, dest)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            log.error("Failed to rename %s to %s: %s", src, dest,
                      exc.strerror or exc)
            raise
        file_copy(src, dest)
        with contextlib.suppress(OSError):
            os.unlink(src)


def file_mkdir_hier(path: PathLike, mode: int = -1) -> None:
    """Create ``path`` and any missing parents."""
    make_directory(path, mode, FileUtilsFlags.RECUR)


def _file_digest(file_name: PathLike, algorithm: str) -> str:
    digest = hashlib.new(algorithm)
    try:
        with open(file_name, "rb") as fp:
            for chunk in iter(lambda: fp.read(_CHUNK), b""):
                digest.update(chunk)
    except OSError as exc:
        log.error("Couldn't compute %ssum for %s: %s", algorithm, file_name,
                  exc.strerror or exc)
        raise
    return digest.hexdigest()


def file_md5sum(file_name: PathLike) -> str:
    """Return the lower-case hex MD5 digest of a file's contents."""
    return _file_digest(file_name, "md5")


def file_sha256sum(file_name: PathLike) -> str:
    """Return the lower-case hex SHA-256 digest of a file's contents."""
    return _file_digest(file_name, "sha256")


def checksum_bin2hex(src: bytes) -> str:
    """Return ``src`` (at most 32 bytes) as lower-case hex."""
    if src is None or len(src) > _MAX_CHECKSUM_BYTES:
        raise ValueError("checksum must be at most 32 bytes")
    return bytes(src).hex()


def checksum_hex2bin(src: str) -> bytes:
    """Decode a hex checksum of at most 32 bytes.

    Leading white space is ignored. Raises ValueError if the text is empty,
    too long or not a whole number of hex digit pairs.
    """
    if src is None:
        raise ValueError("no checksum given")
    text = src.lstrip()
    if len(text) > 2 * _MAX_CHECKSUM_BYTES:
        raise ValueError("checksum is too long")
    if not _HEX_PAIRS.fullmatch(text):
        raise ValueError(f"invalid hex checksum: {src!r}")
    return bytes.fromhex(text)


def rm_r(path: PathLike) -> None:
    """Remove the directory ``path`` and everything below it.

    Symbolic links are removed, never followed.
    """
    if path is None:
        raise ValueError("Missing directory parameter")
    try:
        with os.scandir(path) as it:
            entries = list(it)
    except OSError as exc:
        log.error("Failed to open dir %s: %s", path, exc.strerror or exc)
        raise

    for entry in entries:
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError as exc:
            log.error("Failed to lstat %s: %s", entry.path, exc.strerror or exc)
            raise
        if is_dir:
            rm_r(entry.path)
            continue
        try:
            os.unlink(entry.path)
        except OSError as exc:
            log.error("Failed to unlink %s: %s", entry.path, exc.strerror or exc)
            raise

    try:
        os.rmdir(path)
    except OSError as exc:
        log.error("Failed to remove dir %s: %s", path, exc.strerror or exc)
        raise


def urlencode_path(filename: str) -> str:
    """Percent-encode the URL-special characters of a path."""
    out = bytearray()
    for byte in filename.encode("utf-8", "surrogateescape"):
        if byte in _URL_SPECIAL:
            out += b"%%%02x" % byte
        else:
            out.append(byte)
    return out.decode("utf-8", "surrogateescape")


def urldecode_path(filename: str) -> str:
    """Replace every ``%XX`` escape in a path with the byte it stands for."""
    raw = filename.encode("utf-8", "surrogateescape")
    decoded = _PERCENT_ESCAPE.sub(lambda m: bytes([int(m.group(1), 16)]), raw)
    return decoded.decode("utf-8", "surrogateescape")