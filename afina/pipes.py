"""Pipe examples: passing a message to a forked child and chaining two programs."""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
import threading

BUF_SIZE = 10


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]


def _child_copy(source: int, target: int) -> None:
    while True:
        chunk = os.read(source, BUF_SIZE)
        if not chunk:
            break
        _write_all(target, chunk)
    _write_all(target, b"\n")


def pipe_through_child(message: str | bytes) -> bytes:
    """Send a message through a pipe to a forked child and return what the child prints.

    The child copies everything it reads in small chunks and ends with a newline.
    """
    data = message.encode("utf-8") if isinstance(message, str) else bytes(message)
    to_child_r, to_child_w = os.pipe()
    from_child_r, from_child_w = os.pipe()

    pid = os.fork()
    if pid == 0:
        status = 1
        try:
            os.close(to_child_w)
            os.close(from_child_r)
            _child_copy(to_child_r, from_child_w)
            os.close(to_child_r)
            os.close(from_child_w)
            status = 0
        finally:
            os._exit(status)

    os.close(to_child_r)
    os.close(from_child_w)

    write_error: list[BaseException] = []

    def feed() -> None:
        try:
            _write_all(to_child_w, data)
        except OSError as exc:
            write_error.append(exc)
        finally:
            os.close(to_child_w)

    writer = threading.Thread(target=feed)
    writer.start()

    chunks = []
    try:
        while True:
            chunk = os.read(from_child_r, 65536)
            if not chunk:
                break
            chunks.append(chunk)
    finally:
        os.close(from_child_r)
        writer.join()
        _, wait_status = os.waitpid(pid, 0)

    if write_error:
        raise write_error[0]
    exit_code = os.waitstatus_to_exitcode(wait_status)
    if exit_code != 0:
        raise ChildProcessError(f"child exited with status {exit_code}")
    return b"".join(chunks)


def count_directory_entries(directory: str | os.PathLike[str] = ".") -> int:
    """Count the entries ls lists in a directory by piping its output into wc -l."""
    with subprocess.Popen(["ls"], cwd=directory, stdout=subprocess.PIPE) as lister:
        assert lister.stdout is not None
        with subprocess.Popen(["wc", "-l"], stdin=lister.stdout, stdout=subprocess.PIPE) as counter:
            lister.stdout.close()
            output, _ = counter.communicate()
        lister.wait()
    if counter.returncode != 0:
        raise ChildProcessError(f"wc exited with status {counter.returncode}")
    return int(output.split()[0])


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Pipe examples")
    commands = parser.add_subparsers(dest="command", required=True)
    simple = commands.add_parser("simple", help="pass a message through a child process")
    simple.add_argument("message")
    ls_wc = commands.add_parser("ls-wc", help="count directory entries with ls | wc -l")
    ls_wc.add_argument("directory", nargs="?", default=".")
    options = parser.parse_args(argv)

    if options.command == "simple":
        output = pipe_through_child(options.message)
        sys.stdout.write(output.decode("utf-8", errors="replace"))
    else:
        print(count_directory_entries(options.directory))
    sys.stdout.flush()
    return 0