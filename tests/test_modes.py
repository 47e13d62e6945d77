import stat
import time

import pytest

from opkgutil.modes import mode_string, parse_mode, time_string


def test_mode_string_regular_file():
    assert mode_string(stat.S_IFREG | 0o755) == "-rwxr-xr-x"


def test_mode_string_directory_sticky():
    assert mode_string(stat.S_IFDIR | 0o1777) == "drwxrwxrwt"


def test_mode_string_all_and_none():
    assert mode_string(stat.S_IFREG | 0o777)[1:] == "rwxrwxrwx"
    assert mode_string(stat.S_IFREG)[1:] == "---------"


@pytest.mark.parametrize(
    "ftype, char",
    [
        (stat.S_IFDIR, "d"),
        (stat.S_IFREG, "-"),
        (stat.S_IFLNK, "l"),
        (stat.S_IFCHR, "c"),
        (stat.S_IFBLK, "b"),
        (stat.S_IFIFO, "p"),
        (stat.S_IFSOCK, "s"),
    ],
)
def test_mode_string_type_char(ftype, char):
    result = mode_string(ftype | 0o644)
    assert result[0] == char
    assert len(result) == 10


def test_mode_string_setuid_without_exec():
    result = mode_string(stat.S_IFREG | stat.S_ISUID | 0o644)
    assert result[3] == "S"
    result = mode_string(stat.S_IFREG | stat.S_ISUID | 0o744)
    assert result[3] == "s"


def test_mode_string_matches_stdlib_filemode():
    for mode in (stat.S_IFREG | 0o640, stat.S_IFDIR | 0o750, stat.S_IFREG | 0o2755):
        assert mode_string(mode) == stat.filemode(mode)


def test_parse_mode_octal():
    assert parse_mode("755", 0) == 0o755
    assert parse_mode("0644", 0o777) == 0o644


def test_parse_mode_octal_stops_at_non_digit():
    assert parse_mode("75x", 0) == 0o75


def test_parse_mode_user_add_exec():
    assert parse_mode("u+x", 0o644) == 0o644 | stat.S_IXUSR


def test_parse_mode_default_group_is_all():
    assert parse_mode("+x", 0o644) == 0o644 | 0o111


def test_parse_mode_remove_write():
    assert parse_mode("a-w", 0o666) == 0o666 & ~0o222


def test_parse_mode_assign_clears_groups():
    assert parse_mode("go=", 0o755) == 0o755 & ~(stat.S_IRWXG | stat.S_IRWXO)


def test_parse_mode_multiple_clauses():
    result = parse_mode("u=rw,g=r", 0o777)
    assert result == stat.S_IRWXO | stat.S_IRUSR | stat.S_IWUSR | stat.S_IRGRP


def test_parse_mode_setuid():
    assert parse_mode("u+s", 0o755) == 0o755 | stat.S_ISUID
    assert parse_mode("o+s", 0o755) == 0o755


def test_parse_mode_unknown_letter_stops():
    assert parse_mode("u+xq", 0o600) == 0o600
    assert parse_mode("u+x,g-q", 0o600) == 0o600 | stat.S_IXUSR


@pytest.mark.parametrize("spec", ["", "u", "u7", "x", "u+x,"])
def test_parse_mode_invalid(spec):
    with pytest.raises(ValueError):
        parse_mode(spec, 0o644)


def test_parse_mode_none():
    with pytest.raises(ValueError):
        parse_mode(None, 0o644)


def test_time_string_recent_shows_clock():
    now = time.time()
    t = now - 3600
    result = time_string(t, now)
    assert len(result) == 12
    assert result[9] == ":"
    assert result.startswith(time.strftime("%b", time.localtime(t)))


def test_time_string_old_shows_year():
    now = time.time()
    t = now - 2 * 365 * 24 * 60 * 60
    result = time_string(t, now)
    assert len(result) == 11
    assert result.endswith(str(time.localtime(t).tm_year))
    assert ":" not in result


def test_time_string_future_shows_year():
    now = time.time()
    t = now + 86400
    result = time_string(t, now)
    assert result.endswith(str(time.localtime(t).tm_year))


def test_time_string_default_now():
    t = time.time() - 60
    assert time_string(t) == time_string(t, time.time())