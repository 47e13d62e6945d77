# opkgutil

Building blocks for a small embedded package manager, written in plain
Python with no third-party dependencies. It targets POSIX systems.

## What is inside

- `opkgutil.paths`: path joining (`concat_path_file`), `last_char_is`,
  `safe_strncpy`, `read_link`, `open_or_warn` (logs and returns `None` when a
  file cannot be opened), `full_read` and `read_all` (raises
  `ShortReadError` on a short read). The read helpers accept a binary file
  object or a file descriptor.
- `opkgutil.modes`: `ls`-style `mode_string`, chmod-style `parse_mode`
  (`u+x`, `go-w`, `a=r,u+w`, `644`, ...; raises `ValueError` on a malformed
  specification) and `ls`-style `time_string`.
- `opkgutil.fileops`: `copy_file`, `copy_file_chunk` and `make_directory`,
  driven by `FileUtilsFlags` (`PRESERVE_STATUS`, `PRESERVE_SYMLINKS`,
  `RECUR`, `FORCE`) and raising `FileOpError`.
- `opkgutil.hashtable`: `HashTable`, a string-keyed table with a fixed
  number of buckets chosen by `djb2_hash`; it counts hits, misses,
  collisions and used buckets and can write them with `print_stats`.
- `opkgutil.inflate`: a pure-Python DEFLATE decoder (`inflate`, raising
  `InflateError`) and the CRC-32 table builder `make_crc_table`.
- `opkgutil.gunzip`: `unzip`, which decodes one gzip member from one binary
  file into another and checks its CRC and length (raising `GunzipError`),
  and `gz_open`, which decodes in a background thread and returns a
  `GzReader`. With `OPKG_USE_VFORK` set in the environment, `gz_open` runs
  the external `gunzip` instead.
- `opkgutil.gzipproc`: `GzipHandle` and `gzip_open`, which run the external
  `gzip -d -c` on a file, a binary stream or another handle's output and let
  you `read`, `copy` or `seek` through the result.
- `opkgutil.tar`: `TarReader` to walk ustar and GNU tar headers
  (`FileHeader`, including GNU long names and long link names), plus
  `extract_archive` and `unarchive`, driven by `ExtractFunction` (list,
  verbose list, extract to a stream, to a buffer or to the file system,
  include or exclude lists).
- `opkgutil.deb`: `deb_extract`, which finds `control.tar.gz` or
  `data.tar.gz` inside a gzip-compressed package archive and hands it to
  `unarchive`. It needs the external `gzip` program.
- `opkgutil.fileutil`: `file_exists`, `file_is_dir`, `file_read_line`,
  `file_move`, `file_copy`, `file_mkdir_hier`, `file_md5sum`,
  `file_sha256sum`, `checksum_bin2hex`, `checksum_hex2bin`, `rm_r`,
  `urlencode_path` and `urldecode_path`.
- `opkgutil.active_list`: `ActiveList`, a circular list in which a node
  added to a member is placed just before it, used to order work by
  dependency.

## Examples

```python
from opkgutil.modes import mode_string, parse_mode

mode_string(0o100755)        # '-rwxr-xr-x'
parse_mode("go-w", 0o666)    # 0o644
```

```python
import io
from opkgutil.deb import deb_extract
from opkgutil.tar import ExtractFunction

out = io.StringIO()
deb_extract(
    "example_1.0_all.ipk",
    out,
    ExtractFunction.CONTROL_TAR_GZ | ExtractFunction.LIST,
)
print(out.getvalue())
```

```python
from opkgutil.hashtable import HashTable

table = HashTable("packages", 64)
table.insert("busybox", "1.36")
table.get("busybox")         # '1.36'
len(table)                   # 1
```

## What it does not do

This is a library of parts, not a package manager. It has no command-line
tool, does not download package lists or packages, keeps no record of
installed packages, resolves no dependencies and runs no install or remove
scripts. There are no name/value list or configuration-file records: a
package's config files are not tracked or checked for local changes.

## Tests

```
pip install -e .[test]
pytest
```