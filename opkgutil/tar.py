"""Reading tar archives and extracting their entries."""

from __future__ import annotations

import enum
import io
import logging
import os
import re
import stat
from dataclasses import dataclass
from typing import IO, Iterable, Iterator, Optional

from opkgutil.fileops import FileOpError, FileUtilsFlags, make_directory
from opkgutil.modes import mode_string, time_string
from opkgutil.paths import concat_path_file, full_read, open_or_warn

log = logging.getLogger(__name__)

BLOCK_SIZE = 512
_CHUNK = 4096

_OCTAL_FIELD = re.compile(rb"[ \t\n\x0b\f\r]*([+-]?)([0-7]*)")

_TYPE_MODES = {
    b"1": stat.S_IFREG,
    b"2": stat.S_IFLNK,
    b"3": stat.S_IFCHR,
    b"4": stat.S_IFBLK,
    b"5": stat.S_IFDIR,
    b"6": stat.S_IFIFO,
}
_IGNORED_GNU_TYPES = (b"D", b"M", b"N", b"S", b"V")


class ExtractFunction(enum.IntFlag):
    """What to do with the entries of an archive."""

    NONE = 0
    VERBOSE_LIST = 1
    LIST = 2
    ONE_TO_BUFFER = 4
    TO_STREAM = 8
    ALL_TO_FS = 16
    PRESERVE_DATE = 32
    DATA_TAR_GZ = 64
    CONTROL_TAR_GZ = 128
    UNZIP_ONLY = 256
    UNCONDITIONAL = 512
    CREATE_LEADING_DIRS = 1024
    QUIET = 2048
    EXCLUDE_LIST = 4096


@dataclass
class FileHeader:
    """One archive entry's metadata."""

    name: str
    link_name: Optional[str] = None
    size: int = 0
    uid: int = 0
    gid: int = 0
    mode: int = 0
    mtime: int = 0
    device: int = 0


def _octal(field: bytes) -> int:
    match = _OCTAL_FIELD.match(field)
    digits = match.group(2)
    if not digits:
        return 0
    value = int(digits, 8)
    return -value if match.group(1) == b"-" else value


def _cstr(data: bytes) -> str:
    return data.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")


class TarReader:
    """Reads tar headers and data from a sequential binary stream."""

    def __init__(self, stream: IO[bytes]) -> None:
        self._stream = stream
        self.offset = 0
        self._longname: Optional[str] = None
        self._linkname: Optional[str] = None

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes; fewer only at end of data."""
        data = full_read(self._stream, size)
        self.offset += len(data)
        return data

    def skip(self, length: int) -> int:
        """Discard up to ``length`` bytes; return how many were discarded."""
        skipped = 0
        while skipped < length:
            chunk = self._stream.read(min(_CHUNK, length - skipped))
            if not chunk:
                break
            skipped += len(chunk)
        self.offset += skipped
        return skipped

    def next_header(self) -> Optional[FileHeader]:
        """Return the next entry's header, or None at the end of the archive."""
        while True:
            remainder = self.offset % BLOCK_SIZE
            if remainder:
                self.skip(BLOCK_SIZE - remainder)

            raw = self.read(BLOCK_SIZE)
            if len(raw) != BLOCK_SIZE:
                # Trailing garbage is common; end quietly.
                return None

            magic = raw[257:262]
            if magic != b"ustar" and magic != b"\0" * 5:
                return None

            checksum = _octal(raw[148:156])
            total = sum(raw[:148]) + ord(" ") * 8 + sum(raw[156:])
            if total != checksum:
                if checksum:
                    log.error("Invalid tar header checksum")
                return None

            size = _octal(raw[124:136])
            typeflag = raw[156:157]

            if typeflag in (b"L", b"K"):
                data = self.read(size)
                if len(data) != size:
                    return None
                if typeflag == b"L":
                    self._longname = _cstr(data)
                else:
                    self._linkname = _cstr(data)
                continue

            return self._build_header(raw, size, typeflag)

    def _build_header(self, raw: bytes, size: int,
                      typeflag: bytes) -> FileHeader:
        if self._longname is not None:
            name = self._longname
            self._longname = None
        else:
            name = _cstr(raw[0:100])
            prefix = _cstr(raw[345:500])
            if prefix:
                name = concat_path_file(prefix, name)

        if self._linkname is not None:
            link_name: Optional[str] = self._linkname
            self._linkname = None
        else:
            link_name = _cstr(raw[157:257]) or None

        mode = 0o7777 & _octal(raw[100:108])
        if typeflag in (b"\0", b"0"):
            mode |= stat.S_IFDIR if name.endswith("/") else stat.S_IFREG
        elif typeflag in _TYPE_MODES:
            mode |= _TYPE_MODES[typeflag]
        else:
            if typeflag in _IGNORED_GNU_TYPES:
                log.error("Ignoring GNU extension type %s",
                          typeflag.decode("latin-1"))
            log.error("Unknown typeflag: 0x%x", typeflag[0])

        return FileHeader(
            name=name,
            link_name=link_name,
            size=size,
            uid=_octal(raw[108:116]),
            gid=_octal(raw[116:124]),
            mode=mode,
            mtime=_octal(raw[136:148]),
            device=(_octal(raw[329:337]) << 8) + _octal(raw[337:345]),
        )

    def __iter__(self) -> Iterator[FileHeader]:
        while True:
            header = self.next_header()
            if header is None:
                return
            yield header


def _copy(reader: TarReader, out: Optional[IO[bytes]], length: int) -> int:
    total = 0
    while length > 0:
        chunk = reader.read(min(length, _CHUNK))
        if not chunk:
            break
        if out is not None:
            out.write(chunk)
        length -= len(chunk)
        total += len(chunk)
    return total


def _write_text(out, text: str) -> None:
    if isinstance(out, io.TextIOBase):
        out.write(text)
    else:
        out.write(text.encode("utf-8", "surrogateescape"))


def _dirname(path: str) -> str:
    stripped = path.rstrip("/")
    if not stripped:
        return "/" if path else "."
    head, sep, _ = stripped.rpartition("/")
    if not sep:
        return "."
    return head.rstrip("/") or "/"


def _extract_to_fs(reader: TarReader, header: FileHeader,
                   function: ExtractFunction, full_name: str,
                   full_link_name: Optional[str]) -> bool:
    """Create the entry on disk; return False if listing should be skipped."""
    quiet = bool(function & ExtractFunction.QUIET)

    try:
        old: Optional[os.stat_result] = os.lstat(full_name)
    except OSError:
        old = None

    if old is not None:
        if (function & ExtractFunction.UNCONDITIONAL
                or int(old.st_mtime) < header.mtime):
            if not stat.S_ISDIR(old.st_mode):
                try:
                    os.unlink(full_name)
                except OSError:
                    pass
        else:
            if not quiet:
                log.error("%s not created: newer or same age file exists",
                          header.name)
            reader.skip(header.size)
            return False

    if function & ExtractFunction.CREATE_LEADING_DIRS:
        try:
            make_directory(_dirname(full_name), -1, FileUtilsFlags.RECUR)
        except FileOpError:
            if not quiet:
                log.error("couldn't create leading directories")

    kind = stat.S_IFMT(header.mode)
    if kind == stat.S_IFREG:
        if header.link_name:
            try:
                os.link(full_link_name, full_name)
            except OSError as exc:
                if not quiet:
                    log.error("Cannot link from %s to '%s': %s",
                              header.name, header.link_name, exc)
        else:
            dst = open_or_warn(full_name, "wb")
            if dst is None:
                reader.skip(header.size)
                return False
            with dst:
                _copy(reader, dst, header.size)
    elif kind == stat.S_IFDIR:
        if old is None:
            try:
                os.mkdir(full_name, stat.S_IMODE(header.mode))
            except OSError as exc:
                if not quiet:
                    log.error("Cannot make dir %s: %s", full_name, exc)
    elif kind == stat.S_IFLNK:
        try:
            os.symlink(header.link_name, full_name)
        except OSError as exc:
            if not quiet:
                log.error("Cannot create symlink from %s to '%s': %s",
                          header.name, header.link_name, exc)
            return False
    elif kind in (stat.S_IFSOCK, stat.S_IFBLK, stat.S_IFCHR, stat.S_IFIFO):
        try:
            os.mknod(full_name, header.mode, header.device)
        except OSError as exc:
            if not quiet:
                log.error("Cannot create node %s: %s", header.name, exc)
            return False
    else:
        log.error("Don't know how to handle %s", full_name)

    # A symlink's own attributes are left alone.
    if kind != stat.S_IFLNK:
        if function & ExtractFunction.PRESERVE_DATE:
            try:
                os.utime(full_name, (header.mtime, header.mtime))
            except OSError:
                pass
        try:
            os.chown(full_name, header.uid, header.gid)
        except OSError:
            pass
        try:
            os.chmod(full_name, stat.S_IMODE(header.mode))
        except OSError:
            pass
    return True


def extract_archive(reader: TarReader, out_stream, header: FileHeader,
                    function, prefix: Optional[str] = None) -> Optional[bytes]:
    """Handle one entry whose data is next in ``reader``.

    ``prefix`` is prepended to the entry name as a plain string, so it may be
    a directory (ending in '/') or a file-name prefix. Returns the entry's
    data when extracting to a buffer, otherwise None. Failures are logged.
    """
    function = ExtractFunction(function)

    if prefix is not None:
        path = header.name
        if path.startswith("./"):
            path = path[2:]
            if not path:
                # The current directory already exists.
                return None
        full_name = prefix + path
        full_link_name = prefix + header.link_name if header.link_name else None
    else:
        full_name = header.name
        full_link_name = header.link_name

    is_regular = stat.S_ISREG(header.mode)
    if function & ExtractFunction.TO_STREAM:
        if is_regular:
            _copy(reader, out_stream, header.size)
    elif function & ExtractFunction.ONE_TO_BUFFER:
        if is_regular:
            return reader.read(header.size)
    elif function & ExtractFunction.ALL_TO_FS:
        if not _extract_to_fs(reader, header, function,
                              full_name, full_link_name):
            return None
    else:
        reader.skip(header.size)

    if function & ExtractFunction.VERBOSE_LIST:
        _write_text(out_stream,
                    f"{mode_string(header.mode)} {header.uid}/{header.gid} "
                    f"{header.size:8d} {time_string(header.mtime)} ")
    if function & (ExtractFunction.LIST | ExtractFunction.VERBOSE_LIST):
        _write_text(out_stream, f"{header.name}\n")
    return None


def unarchive(reader: TarReader, out_stream, function,
              prefix: Optional[str] = None,
              extract_names: Optional[Iterable[str]] = None) -> Optional[bytes]:
    """Process every entry of the archive in ``reader``.

    With ``extract_names`` only the named entries are handled, or with
    ``EXCLUDE_LIST`` all but those. A leading "./" is ignored when matching.
    Returns what the last handled entry returned from :func:`extract_archive`.
    """
    function = ExtractFunction(function)
    names = set(extract_names) if extract_names is not None else None
    buffer: Optional[bytes] = None

    for header in reader:
        wanted = True
        if names is not None:
            name = header.name[2:] if header.name.startswith("./") else header.name
            found = name in names
            if function & ExtractFunction.EXCLUDE_LIST:
                wanted = not found
            else:
                wanted = found

        if wanted:
            buffer = extract_archive(reader, out_stream, header,
                                     function, prefix)
        else:
            reader.skip(header.size)
    return buffer