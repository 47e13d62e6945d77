"""File copying and directory creation helpers."""

from __future__ import annotations

import enum
import errno
import io
import logging
import os
import stat
from typing import IO, List, Optional, Union

from opkgutil.paths import concat_path_file, read_link

log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

_BUFSIZ = io.DEFAULT_BUFFER_SIZE


class FileUtilsFlags(enum.IntFlag):
    """Options for :func:`copy_file` and :func:`make_directory`."""

    NONE = 0
    PRESERVE_STATUS = 1
    PRESERVE_SYMLINKS = 2
    RECUR = 4
    FORCE = 8


class FileOpError(OSError):
    """Raised when a file operation cannot be completed."""


def _describe(exc: OSError) -> str:
    return exc.strerror or str(exc)


def copy_file_chunk(src: IO[bytes], dst: IO[bytes], chunksize: int = -1) -> int:
    """Copy ``chunksize`` bytes from ``src`` to ``dst``.

    A negative ``chunksize`` copies until end of file. Returns the number of
    bytes copied; raises :class:`FileOpError` if the source ends early or a
    read or write fails.
    """
    until_eof = chunksize < 0
    remaining = chunksize
    total = 0
    while until_eof or remaining > 0:
        size = _BUFSIZ if until_eof or remaining > _BUFSIZ else remaining
        try:
            data = src.read(size)
        except OSError as exc:
            raise FileOpError(f"read: {_describe(exc)}") from exc
        if not data:
            if not until_eof:
                raise FileOpError("Unable to read all data")
            return total
        try:
            written = dst.write(data)
        except OSError as exc:
            raise FileOpError(f"write: {_describe(exc)}") from exc
        if written is not None and written != len(data):
            raise FileOpError("Unable to write all data")
        total += len(data)
        if not until_eof:
            remaining -= len(data)
    return total


def _copy_directory(source: str, dest: str, src_st: os.stat_result,
                    dst_st: Optional[os.stat_result], flags: FileUtilsFlags,
                    errors: List[str]) -> None:
    if not flags & FileUtilsFlags.RECUR:
        raise FileOpError(f"{source}: omitting directory")

    saved_umask = 0
    if dst_st is not None:
        if not stat.S_ISDIR(dst_st.st_mode):
            raise FileOpError(f"`{dest}' is not a directory")
    else:
        saved_umask = os.umask(0)
        try:
            mode = src_st.st_mode
            if not flags & FileUtilsFlags.PRESERVE_STATUS:
                mode &= ~saved_umask
            mode |= stat.S_IRWXU
            os.mkdir(dest, stat.S_IMODE(mode))
        except OSError as exc:
            raise FileOpError(
                f"cannot create directory `{dest}': {_describe(exc)}") from exc
        finally:
            os.umask(saved_umask)

    try:
        names = os.listdir(source)
    except OSError as exc:
        errors.append(f"unable to open directory `{source}': {_describe(exc)}")
        return

    for name in names:
        try:
            copy_file(concat_path_file(source, name),
                      concat_path_file(dest, name), flags)
        except FileOpError as exc:
            log.error("%s", exc)
            errors.append(str(exc))

    if dst_st is None:
        try:
            os.chmod(dest, stat.S_IMODE(src_st.st_mode & ~saved_umask))
        except OSError as exc:
            errors.append(
                f"unable to change permissions of `{dest}': {_describe(exc)}")


def _copy_regular(source: str, dest: str, src_st: os.stat_result,
                  dest_exists: bool, flags: FileUtilsFlags,
                  errors: List[str]) -> None:
    dfp: Optional[IO[bytes]] = None
    if dest_exists:
        try:
            dfp = open(dest, "wb")
        except OSError as exc:
            if not flags & FileUtilsFlags.FORCE:
                raise FileOpError(
                    f"unable to open `{dest}': {_describe(exc)}") from exc
            try:
                os.unlink(dest)
            except OSError as unlink_exc:
                raise FileOpError(
                    f"unable to remove `{dest}': {_describe(unlink_exc)}"
                ) from unlink_exc

    if dfp is None:
        try:
            fd = os.open(dest, os.O_WRONLY | os.O_CREAT,
                         stat.S_IMODE(src_st.st_mode))
        except OSError as exc:
            raise FileOpError(
                f"unable to open `{dest}': {_describe(exc)}") from exc
        try:
            dfp = os.fdopen(fd, "wb")
        except OSError as exc:
            os.close(fd)
            raise FileOpError(
                f"unable to open `{dest}': {_describe(exc)}") from exc

    try:
        try:
            sfp = open(source, "rb")
        except OSError as exc:
            errors.append(f"unable to open `{source}': {_describe(exc)}")
            return
        try:
            copy_file_chunk(sfp, dfp, -1)
        except FileOpError as exc:
            errors.append(str(exc))
        finally:
            try:
                sfp.close()
            except OSError as exc:
                errors.append(f"unable to close `{source}': {_describe(exc)}")
    finally:
        try:
            dfp.close()
        except OSError as exc:
            errors.append(f"unable to close `{dest}': {_describe(exc)}")


def _preserve_status(dest: str, src_st: os.stat_result) -> None:
    mode = src_st.st_mode
    try:
        os.utime(dest, (int(src_st.st_atime), int(src_st.st_mtime)))
    except OSError as exc:
        log.error("unable to preserve times of `%s': %s", dest, _describe(exc))
    try:
        os.chown(dest, src_st.st_uid, src_st.st_gid)
    except OSError as exc:
        mode &= ~(stat.S_ISUID | stat.S_ISGID)
        log.error("unable to preserve ownership of `%s': %s",
                  dest, _describe(exc))
    try:
        os.chmod(dest, stat.S_IMODE(mode))
    except OSError as exc:
        log.error("unable to preserve permissions of `%s': %s",
                  dest, _describe(exc))


def copy_file(source: PathLike, dest: PathLike,
              flags: Union[int, FileUtilsFlags] = 0) -> None:
    """Copy ``source`` to ``dest``, handling every kind of file.

    Directories are copied only with ``RECUR``. Raises :class:`FileOpError`
    if anything could not be copied.
    """
    source = os.fspath(source)
    dest = os.fspath(dest)
    flags = FileUtilsFlags(flags)

    try:
        if flags & FileUtilsFlags.PRESERVE_SYMLINKS:
            src_st = os.lstat(source)
        else:
            src_st = os.stat(source)
    except OSError as exc:
        raise FileOpError(f"{source}: {_describe(exc)}") from exc

    try:
        dst_st: Optional[os.stat_result] = os.stat(dest)
    except OSError as exc:
        if exc.errno != errno.ENOENT:
            raise FileOpError(
                f"unable to stat `{dest}': {_describe(exc)}") from exc
        dst_st = None

    if (dst_st is not None and src_st.st_rdev == dst_st.st_rdev
            and src_st.st_ino == dst_st.st_ino):
        raise FileOpError(f"`{source}' and `{dest}' are the same file")

    mode = src_st.st_mode
    errors: List[str] = []

    if stat.S_ISDIR(mode):
        _copy_directory(source, dest, src_st, dst_st, flags, errors)
    elif stat.S_ISREG(mode):
        _copy_regular(source, dest, src_st, dst_st is not None, flags, errors)
    elif stat.S_ISBLK(mode) or stat.S_ISCHR(mode) or stat.S_ISSOCK(mode):
        try:
            os.mknod(dest, mode, src_st.st_rdev)
        except OSError as exc:
            raise FileOpError(
                f"unable to create `{dest}': {_describe(exc)}") from exc
    elif stat.S_ISFIFO(mode):
        try:
            os.mkfifo(dest, stat.S_IMODE(mode))
        except OSError as exc:
            raise FileOpError(
                f"cannot create fifo `{dest}': {_describe(exc)}") from exc
    elif stat.S_ISLNK(mode):
        target = read_link(source)
        try:
            os.symlink(target, dest)
        except OSError as exc:
            raise FileOpError(
                f"cannot create symlink `{dest}': {_describe(exc)}") from exc
        if flags & FileUtilsFlags.PRESERVE_STATUS:
            try:
                os.lchown(dest, src_st.st_uid, src_st.st_gid)
            except OSError as exc:
                log.error("unable to preserve ownership of `%s': %s",
                          dest, _describe(exc))
        return
    else:
        raise FileOpError("internal error: unrecognized file type")

    if flags & FileUtilsFlags.PRESERVE_STATUS:
        _preserve_status(dest, src_st)

    if errors:
        raise FileOpError("; ".join(errors))


def _dirname(path: str) -> str:
    stripped = path.rstrip("/")
    if not stripped:
        return "/" if path else "."
    head, sep, _ = stripped.rpartition("/")
    if not sep:
        return "."
    return head.rstrip("/") or "/"


def make_directory(path: PathLike, mode: int = -1,
                   flags: Union[int, FileUtilsFlags] = 0) -> None:
    """Create directory ``path``, with ``mode`` unless it is -1.

    With ``RECUR`` missing parents are created and an existing path is
    accepted. Raises :class:`FileOpError` on failure.
    """
    path = os.fspath(path)
    flags = FileUtilsFlags(flags)

    if not flags & FileUtilsFlags.RECUR:
        try:
            os.mkdir(path, 0o777)
        except OSError as exc:
            raise FileOpError(
                f"Cannot create directory `{path}': {_describe(exc)}") from exc
        if mode != -1:
            try:
                os.chmod(path, mode)
            except OSError as exc:
                raise FileOpError(
                    f"Cannot set permissions of directory `{path}': "
                    f"{_describe(exc)}") from exc
        return

    try:
        os.stat(path)
    except OSError as exc:
        if exc.errno != errno.ENOENT:
            return
        mask = os.umask(0)
        os.umask(mask)
        make_directory(_dirname(path), (0o777 & ~mask) | 0o300,
                       FileUtilsFlags.RECUR)
        make_directory(path, mode, 0)