import io
import os
import sys
import types

import pytest

from afina.fileio import cat_main, copy_stream, describe_flags, flags_main, list_directory, ls_main


class _ShortWriter:
    def write(self, data):
        return 0


class _BrokenReader:
    def read(self, size):
        raise OSError("broken")


def test_copy_stream_round_trip():
    data = bytes(range(256)) * 10
    target = io.BytesIO()
    count = copy_stream(io.BytesIO(data), target, bufsize=7)
    assert count == len(data)
    assert target.getvalue() == data


def test_copy_stream_empty():
    target = io.BytesIO()
    assert copy_stream(io.BytesIO(b""), target) == 0
    assert target.getvalue() == b""


def test_copy_stream_short_write_fails():
    with pytest.raises(OSError):
        copy_stream(io.BytesIO(b"abc"), _ShortWriter())


def test_copy_stream_read_failure():
    with pytest.raises(OSError):
        copy_stream(_BrokenReader(), io.BytesIO())


@pytest.mark.parametrize(
    "flags, expected",
    [
        (os.O_RDONLY, "read only"),
        (os.O_WRONLY | os.O_APPEND, "write only, append"),
        (os.O_RDWR | os.O_NONBLOCK, "read write, nonblocking"),
    ],
)
def test_describe_flags(tmp_path, flags, expected):
    path = tmp_path / "f"
    path.write_bytes(b"")
    fd = os.open(path, flags)
    try:
        assert describe_flags(fd) == expected
    finally:
        os.close(fd)


def test_describe_flags_bad_descriptor(tmp_path):
    fd = os.open(tmp_path, os.O_RDONLY)
    os.close(fd)
    with pytest.raises(OSError):
        describe_flags(fd)


def test_list_directory(tmp_path):
    (tmp_path / "a").write_text("")
    (tmp_path / "b").mkdir()
    assert sorted(list_directory(tmp_path)) == [".", "..", "a", "b"]


def test_list_directory_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        list_directory(tmp_path / "missing")


def test_ls_main_prints_entries(tmp_path, capsys):
    (tmp_path / "entry").write_text("")
    assert ls_main([str(tmp_path)]) == 0
    assert set(capsys.readouterr().out.split()) == {".", "..", "entry"}


def test_ls_main_missing_directory(tmp_path, capsys):
    assert ls_main([str(tmp_path / "missing")]) == 2
    assert "can't open" in capsys.readouterr().out


def test_ls_main_usage(capsys):
    assert ls_main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_flags_main(tmp_path, capsys):
    path = tmp_path / "f"
    path.write_bytes(b"")
    fd = os.open(path, os.O_RDONLY)
    try:
        assert flags_main([str(fd)]) == 0
    finally:
        os.close(fd)
    assert capsys.readouterr().out.strip() == "read only"


def test_flags_main_usage(capsys):
    assert flags_main(["not-a-number"]) == 1
    assert flags_main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_cat_main_copies(monkeypatch):
    stdout = types.SimpleNamespace(buffer=io.BytesIO(), flush=lambda: None)
    monkeypatch.setattr(sys, "stdin", types.SimpleNamespace(buffer=io.BytesIO(b"hello\n")))
    monkeypatch.setattr(sys, "stdout", stdout)
    assert cat_main([]) == 0
    assert stdout.buffer.getvalue() == b"hello\n"


def test_cat_main_read_error(monkeypatch, capsys):
    stdout = types.SimpleNamespace(buffer=io.BytesIO(), flush=lambda: None)
    monkeypatch.setattr(sys, "stdin", types.SimpleNamespace(buffer=_BrokenReader()))
    monkeypatch.setattr(sys, "stdout", stdout)
    assert cat_main([]) == 2
    assert "read error" in capsys.readouterr().err


def test_cat_main_write_error(monkeypatch, capsys):
    stdout = types.SimpleNamespace(buffer=_ShortWriter(), flush=lambda: None)
    monkeypatch.setattr(sys, "stdin", types.SimpleNamespace(buffer=io.BytesIO(b"x")))
    monkeypatch.setattr(sys, "stdout", stdout)
    assert cat_main([]) == 1
    assert "write error" in capsys.readouterr().err