"""ls-style mode and time strings, and chmod-style mode parsing."""

from __future__ import annotations

import re
import stat
import time
from typing import Optional

_TYPE_CHARS = "0pcCd?bB-?l?s???"

_SPECIAL_BITS = (0, 0, stat.S_ISUID, 0, 0, stat.S_ISGID, 0, 0, stat.S_ISVTX)
_MODE_BITS = (
    stat.S_IRUSR, stat.S_IWUSR, stat.S_IXUSR,
    stat.S_IRGRP, stat.S_IWGRP, stat.S_IXGRP,
    stat.S_IROTH, stat.S_IWOTH, stat.S_IXOTH,
)
_MODE_SET = "rwxrwxrwx"
_MODE_UNSET = "---------"
_SPECIAL_SET = "..s..s..t"
_SPECIAL_UNSET = "..S..S..T"

_ALL_BITS = (
    stat.S_ISUID | stat.S_ISGID | stat.S_ISVTX
    | stat.S_IRWXU | stat.S_IRWXG | stat.S_IRWXO
)

_GROUP_BITS = {
    "u": stat.S_ISUID | stat.S_IRWXU,
    "g": stat.S_ISGID | stat.S_IRWXG,
    "o": stat.S_IRWXO,
    "a": _ALL_BITS,
}

_PERM_BITS = {
    "r": stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH,
    "w": stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH,
    "x": stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH,
    "s": stat.S_ISUID | stat.S_ISGID,
    "t": stat.S_ISVTX,
}

_OCTAL = re.compile(r"[0-7]+")

_YEAR_SECONDS = 365 * 24 * 60 * 60


def mode_string(mode: int) -> str:
    """Return the ten-character ls-style string for a file mode."""
    chars = [_TYPE_CHARS[(mode >> 12) & 0x0F]]
    for i, (special, bit) in enumerate(zip(_SPECIAL_BITS, _MODE_BITS)):
        if mode & special:
            chars.append(_SPECIAL_SET[i] if mode & bit else _SPECIAL_UNSET[i])
        else:
            chars.append(_MODE_SET[i] if mode & bit else _MODE_UNSET[i])
    return "".join(chars)


def parse_mode(s: Optional[str], mode: int) -> int:
    """Apply a chmod-style specification to ``mode`` and return the result.

    ``s`` is either an octal number or clauses of the form
    ``[ugoa]*[=+-][rwxst]*`` separated by commas. Raises ValueError if the
    specification is malformed.
    """
    if s is None:
        raise ValueError("no mode given")

    and_mode = _ALL_BITS
    or_mode = 0
    pos = 0
    length = len(s)

    while True:
        bits = 0
        groups = 0
        while True:
            if pos >= length:
                raise ValueError(f"incomplete mode specification: {s!r}")
            c = s[pos]
            pos += 1
            if c not in _GROUP_BITS:
                break
            groups |= _GROUP_BITS[c]

        if c in "=+-":
            op = c
            if not groups:
                groups = _ALL_BITS
        elif "0" <= c <= "7" and not groups:
            return int(_OCTAL.match(s, pos - 1).group(), 8)
        else:
            raise ValueError(f"invalid mode specification: {s!r}")

        while True:
            c = s[pos] if pos < length else ""
            pos += 1
            if not c or c == ",":
                break
            if c not in _PERM_BITS:
                # An unknown permission letter ends parsing; the clause
                # it belongs to is not applied.
                return (mode & and_mode) | or_mode
            bits |= _PERM_BITS[c]

        if op == "=":
            and_mode &= ~groups
            or_mode |= bits & groups
        elif op == "+":
            or_mode |= bits & groups
        else:
            and_mode &= ~(bits & groups)
            or_mode &= ~(bits & groups)

        if c != ",":
            break

    return (mode & and_mode) | or_mode


def time_string(time_val: float, now: Optional[float] = None) -> str:
    """Return the ls-style time string for ``time_val`` in local time.

    Times within the past year show month, day and clock time; older or
    future times show month, day and year.
    """
    if now is None:
        now = time.time()
    text = time.ctime(time_val)
    if time_val > now or time_val < now - _YEAR_SECONDS:
        return text[4:11] + text[20:24]
    return text[4:16]