"""Extraction from opkg packages: a compressed tar holding compressed tars."""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

from opkgutil.gzipproc import GzipHandle
from opkgutil.tar import ExtractFunction, TarReader, unarchive

log = logging.getLogger(__name__)

_BUFFER_SIZE = 0x8000


def deb_extract(package_filename: Union[str, os.PathLike], out_stream,
                extract_function, prefix: Optional[str] = None,
                filename: Optional[str] = None) -> Optional[bytes]:
    """Process the control or data archive inside a package.

    ``extract_function`` must include ``CONTROL_TAR_GZ`` or ``DATA_TAR_GZ``
    to choose the inner archive; the rest is handled by
    :func:`opkgutil.tar.unarchive`, limited to ``filename`` when given.
    Returns what that returns, or None if the inner archive is missing.
    """
    function = ExtractFunction(extract_function)
    file_list = [filename] if filename is not None else None

    if function & ExtractFunction.CONTROL_TAR_GZ:
        member = "control.tar.gz"
    elif function & ExtractFunction.DATA_TAR_GZ:
        member = "data.tar.gz"
    else:
        raise ValueError(
            f"Internal error: extract_function={int(function):x}")

    try:
        deb_stream = open(package_filename, "rb", buffering=_BUFFER_SIZE)
    except OSError as exc:
        log.error("%s: %s", package_filename, exc.strerror or exc)
        raise

    try:
        outer = GzipHandle(source=deb_stream)
    except BaseException:
        deb_stream.close()
        raise

    with outer:
        reader = TarReader(outer)
        for header in reader:
            name = header.name[2:] if header.name.startswith("./") else header.name
            if name == member:
                with GzipHandle(source=outer) as inner:
                    return unarchive(TarReader(inner), out_stream, function,
                                     prefix, file_list)
            reader.skip(header.size)
    return None