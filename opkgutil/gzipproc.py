"""Decompression through an external ``gzip -d -c`` process."""

from __future__ import annotations

import os
import subprocess
import threading
from typing import IO, Optional, Union

_CHUNK = 4096

Source = Union[IO[bytes], "GzipHandle"]


class GzipHandle:
    """A running ``gzip -d -c`` whose output can be read.

    The input is either the file ``filename`` or, without a file name, the
    data read from ``source``: a binary file or another handle. The handle
    takes ownership of a file given as ``source`` and closes it on close.
    """

    def __init__(self, filename: Optional[Union[str, os.PathLike]] = None,
                 source: Optional[Source] = None) -> None:
        if filename is None and source is None:
            raise ValueError("a file name or a source is needed")
        self._source = source
        self._thread: Optional[threading.Thread] = None
        self._closed = False
        self._code: Optional[int] = None

        args = ["gzip", "-d", "-c"]
        if filename is not None:
            args.append(os.fspath(filename))
        stdin = subprocess.DEVNULL if filename is not None else subprocess.PIPE
        self._process = subprocess.Popen(
            args, stdin=stdin, stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL, close_fds=True)
        self._stdout = self._process.stdout

        if filename is None:
            self._thread = threading.Thread(
                target=self._feed, args=(self._process.stdin,), daemon=True)
            self._thread.start()

    def _feed(self, sink: IO[bytes]) -> None:
        try:
            while True:
                chunk = self._source.read(_CHUNK)
                if not chunk:
                    break
                sink.write(chunk)
        except (OSError, ValueError):
            # The consumer went away or the source was closed.
            pass
        finally:
            try:
                sink.close()
            except OSError:
                pass

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` decompressed bytes (all if negative)."""
        return self._stdout.read(size)

    def copy(self, out: Optional[IO[bytes]], length: int) -> int:
        """Move up to ``length`` bytes to ``out`` (discard if None).

        Returns the number of bytes moved; stops early at end of data or if
        writing fails.
        """
        total = 0
        while length > 0:
            chunk = self.read(min(length, _CHUNK))
            if not chunk:
                break
            if out is not None:
                try:
                    written = out.write(chunk)
                except OSError:
                    break
                if written is not None and written != len(chunk):
                    break
            length -= len(chunk)
            total += len(chunk)
        return total

    def seek(self, length: int) -> int:
        """Skip ``length`` bytes of output; return how many were skipped."""
        return self.copy(None, length)

    def close(self) -> int:
        """Stop the process and release everything.

        Returns gzip's exit status, or -1 if it did not exit normally.
        """
        if self._closed:
            return self._code
        self._closed = True
        self._stdout.close()
        self._process.kill()
        code = self._process.wait()
        if self._thread is not None:
            self._thread.join()
        if self._source is not None and not isinstance(self._source, GzipHandle):
            self._source.close()
        self._code = code if code >= 0 else -1
        return self._code

    def __enter__(self) -> "GzipHandle":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def gzip_open(filename: Optional[Union[str, os.PathLike]]) -> GzipHandle:
    """Start decompressing the file ``filename`` and return its handle."""
    if not filename:
        raise ValueError("a file name is needed")
    return GzipHandle(filename)