"""Small file utilities: copying streams, describing descriptor flags, listing directories."""

from __future__ import annotations

import fcntl
import os
import sys
from typing import BinaryIO

BUFFSIZE = 4096

_ACCMODE = os.O_RDONLY | os.O_WRONLY | os.O_RDWR


class _ReadError(OSError):
    pass


class _WriteError(OSError):
    pass


def copy_stream(source: BinaryIO, target: BinaryIO, bufsize: int = BUFFSIZE) -> int:
    """Copy source to target until end of file and return the number of bytes copied."""
    total = 0
    while True:
        try:
            chunk = source.read(bufsize)
        except OSError as exc:
            raise _ReadError("read error") from exc
        if not chunk:
            return total
        try:
            written = target.write(chunk)
        except OSError as exc:
            raise _WriteError("write error") from exc
        if written is not None and written != len(chunk):
            raise _WriteError("write error")
        total += len(chunk)


def describe_flags(fd: int) -> str:
    """Describe the access mode and status flags of an open file descriptor."""
    flags = fcntl.fcntl(fd, fcntl.F_GETFL)
    modes = {
        os.O_RDONLY: "read only",
        os.O_WRONLY: "write only",
        os.O_RDWR: "read write",
    }
    try:
        parts = [modes[flags & _ACCMODE]]
    except KeyError:
        raise ValueError("unknown access mode") from None
    if flags & os.O_APPEND:
        parts.append("append")
    if flags & os.O_NONBLOCK:
        parts.append("nonblocking")
    if flags & os.O_SYNC:
        parts.append("synchronous writes")
    return ", ".join(parts)


def list_directory(path: str | os.PathLike[str]) -> list[str]:
    """Return every entry of a directory, including "." and ".."."""
    return [".", "..", *os.listdir(path)]


def cat_main(argv: list[str] | None = None) -> int:
    """Copy standard input to standard output."""
    sys.stdout.flush()
    try:
        copy_stream(sys.stdin.buffer, sys.stdout.buffer)
    except _WriteError:
        print("write error", file=sys.stderr)
        return 1
    except _ReadError:
        print("read error", file=sys.stderr)
        return 2
    sys.stdout.buffer.flush()
    return 0


def flags_main(argv: list[str] | None = None) -> int:
    """Print the flags of the descriptor given as the only argument."""
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("usage: flags <descriptor#>")
        return 1
    try:
        fd = int(args[0])
    except ValueError:
        print("usage: flags <descriptor#>")
        return 1
    try:
        description = describe_flags(fd)
    except OSError:
        print(f"fcntl error for fd {fd}")
        return 1
    except ValueError as exc:
        print(exc)
        return 1
    print(description)
    return 0


def ls_main(argv: list[str] | None = None) -> int:
    """Print the entries of the directory given as the only argument."""
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("usage: ls directory_name")
        return 1
    try:
        entries = list_directory(args[0])
    except OSError:
        print(f"can't open {args[0]}")
        return 2
    for name in entries:
        print(name)
    return 0