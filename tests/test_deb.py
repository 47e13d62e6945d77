import io
import tarfile

import pytest

from opkgutil.deb import deb_extract
from opkgutil.tar import ExtractFunction


def tar_bytes(entries, compress):
    buf = io.BytesIO()
    mode = "w:gz" if compress else "w"
    with tarfile.open(fileobj=buf, mode=mode, format=tarfile.USTAR_FORMAT) as tf:
        for name, data in entries:
            info = tarfile.TarInfo(name)
            if data is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tf.addfile(info)
            else:
                info.size = len(data)
                info.mode = 0o644
                tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


CONTROL_TEXT = b"Package: demo\nVersion: 1.0\n"
TOOL_TEXT = b"#!/bin/sh\necho demo\n"


def make_package(path, with_control=True):
    data = tar_bytes([
        ("./usr/", None),
        ("./usr/bin/", None),
        ("./usr/bin/tool", TOOL_TEXT),
    ], compress=True)
    members = [("./debian-binary", b"2.0\n"), ("./data.tar.gz", data)]
    if with_control:
        control = tar_bytes([("./control", CONTROL_TEXT)], compress=True)
        members.append(("./control.tar.gz", control))
    path.write_bytes(tar_bytes(members, compress=True))
    return path


def test_control_file_to_buffer(tmp_path):
    package = make_package(tmp_path / "demo.ipk")
    result = deb_extract(
        package, None,
        ExtractFunction.ONE_TO_BUFFER | ExtractFunction.CONTROL_TAR_GZ,
        None, "control")
    assert result == CONTROL_TEXT


def test_list_data_archive(tmp_path):
    package = make_package(tmp_path / "demo.ipk")
    out = io.BytesIO()
    deb_extract(package, out,
                ExtractFunction.LIST | ExtractFunction.DATA_TAR_GZ)
    assert out.getvalue().decode().splitlines() == [
        "./usr/", "./usr/bin/", "./usr/bin/tool"]


def test_extract_data_to_filesystem(tmp_path):
    package = make_package(tmp_path / "demo.ipk")
    root = tmp_path / "root"
    root.mkdir()
    flags = (ExtractFunction.ALL_TO_FS | ExtractFunction.CREATE_LEADING_DIRS
             | ExtractFunction.DATA_TAR_GZ)
    deb_extract(package, None, flags, str(root) + "/")
    assert (root / "usr" / "bin" / "tool").read_bytes() == TOOL_TEXT


def test_missing_inner_archive_gives_nothing(tmp_path):
    package = make_package(tmp_path / "demo.ipk", with_control=False)
    out = io.BytesIO()
    result = deb_extract(package, out,
                         ExtractFunction.LIST | ExtractFunction.CONTROL_TAR_GZ)
    assert result is None
    assert out.getvalue() == b""


def test_requires_choice_of_inner_archive(tmp_path):
    package = make_package(tmp_path / "demo.ipk")
    with pytest.raises(ValueError):
        deb_extract(package, io.BytesIO(), ExtractFunction.LIST)


def test_missing_package_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        deb_extract(tmp_path / "absent.ipk", io.BytesIO(),
                    ExtractFunction.LIST | ExtractFunction.DATA_TAR_GZ)