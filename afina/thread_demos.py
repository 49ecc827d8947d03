"""Thread demonstrations: identifiers, exit status, cleanup handlers and exit values."""

from __future__ import annotations

import argparse
import os
import threading
from dataclasses import astuple, dataclass
from typing import Any, Callable


class _ThreadExit(Exception):
    """Raised inside a thread to stop it with a value, running its cleanup handlers."""

    def __init__(self, value: Any) -> None:
        super().__init__(value)
        self.value = value


class _WorkerThread:
    """A thread with an exit value and a stack of cleanup handlers."""

    def __init__(self, target: Callable[[_WorkerThread, Any], Any], arg: Any = None) -> None:
        self._target = target
        self._arg = arg
        self._cleanups: list[tuple[Callable[[Any], None], Any]] = []
        self._result: Any = None
        self._error: BaseException | None = None
        self._thread = threading.Thread(target=self._run)

    def cleanup_push(self, handler: Callable[[Any], None], arg: Any) -> None:
        self._cleanups.append((handler, arg))

    def cleanup_pop(self, execute: bool) -> None:
        handler, arg = self._cleanups.pop()
        if execute:
            handler(arg)

    def _run(self) -> None:
        try:
            self._result = self._target(self, self._arg)
        except _ThreadExit as exit_:
            while self._cleanups:
                handler, arg = self._cleanups.pop()
                handler(arg)
            self._result = exit_.value
        except BaseException as exc:  # re-raised in join()
            self._error = exc

    def start(self) -> _WorkerThread:
        self._thread.start()
        return self

    def join(self) -> Any:
        self._thread.join()
        if self._error is not None:
            raise self._error
        return self._result


def format_ids(label: str) -> str:
    """Describe the calling thread: process id and thread id in decimal and hex."""
    tid = threading.get_ident()
    return f"{label} pid {os.getpid()} tid {tid} (0x{tid:x})"


def run_exit_status() -> tuple[int, int]:
    """Join a thread that returns 1 and one that exits with 2; return both codes."""

    def worker(thread: _WorkerThread, code: int) -> int:
        if code == 1:
            print("thread 1 returning")
            return code
        print(f"thread {code} exiting")
        raise _ThreadExit(code)

    t1 = _WorkerThread(worker, 1).start()
    t2 = _WorkerThread(worker, 2).start()
    code1 = t1.join()
    print(f"thread 1 exit code {code1}")
    code2 = t2.join()
    print(f"thread 2 exit code {code2}")
    return code1, code2


def run_cleanup(early_exit: bool = True) -> list[tuple[int, list[str]]]:
    """Run two threads with cleanup handlers.

    Returns each thread's exit code with the cleanup lines it produced. Only a thread
    that exits early runs its handlers; returning or popping does not.
    """
    records: dict[int, list[str]] = {1: [], 2: []}

    def cleanup_for(number: int) -> Callable[[str], None]:
        def cleanup(message: str) -> None:
            line = f"cleanup: {message}"
            print(line)
            records[number].append(line)

        return cleanup

    def first(thread: _WorkerThread, arg: Any) -> int:
        print("thread 1 start")
        thread.cleanup_push(cleanup_for(1), "thread 1 first handler")
        thread.cleanup_push(cleanup_for(1), "thread 1 second handler")
        print("thread 1 push complete")
        if arg:
            return 1
        thread.cleanup_pop(False)
        thread.cleanup_pop(False)
        return 1

    def second(thread: _WorkerThread, arg: Any) -> int:
        print("thread 2 start")
        thread.cleanup_push(cleanup_for(2), "thread 2 first handler")
        thread.cleanup_push(cleanup_for(2), "thread 2 second handler")
        print("thread 2 push complete")
        if arg:
            raise _ThreadExit(2)
        thread.cleanup_pop(False)
        thread.cleanup_pop(False)
        raise _ThreadExit(2)

    t1 = _WorkerThread(first, early_exit).start()
    t2 = _WorkerThread(second, early_exit).start()
    code1 = t1.join()
    print(f"thread 1 exit code {code1}")
    code2 = t2.join()
    print(f"thread 2 exit code {code2}")
    return [(code1, records[1]), (code2, records[2])]


@dataclass
class _Foo:
    a: int
    b: int
    c: int
    d: int


def _print_foo(label: str, foo: _Foo) -> None:
    print(label, end="")
    print(f"  structure at 0x{id(foo):x}")
    for name in ("a", "b", "c", "d"):
        print(f"  foo.{name} = {getattr(foo, name)}")


def run_bad_exit() -> tuple[int, int, int, int]:
    """Exit a thread with a structure it built and read it back from the parent."""

    def first(thread: _WorkerThread, arg: Any) -> Any:
        foo = _Foo(1, 2, 3, 4)
        _print_foo("thread 1:\n", foo)
        raise _ThreadExit(foo)

    def second(thread: _WorkerThread, code: int) -> Any:
        print(f"thread 2: ID is {threading.get_ident()}")
        raise _ThreadExit(code)

    foo = _WorkerThread(first).start().join()
    print("parent starting second thread")
    _WorkerThread(second, 0).start().join()
    _print_foo("parent:\n", foo)
    return astuple(foo)


def _run_ids() -> None:
    thread = threading.Thread(target=lambda: print(format_ids("new thread: ")))
    thread.start()
    print(format_ids("main thread:"))
    thread.join()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Thread demonstrations")
    parser.add_argument(
        "demo", nargs="?", choices=["id", "exitstatus", "cleanup", "badexit", "all"], default="all"
    )
    options = parser.parse_args(argv)
    if options.demo in ("id", "all"):
        _run_ids()
    if options.demo in ("exitstatus", "all"):
        run_exit_status()
    if options.demo in ("cleanup", "all"):
        run_cleanup(True)
    if options.demo in ("badexit", "all"):
        run_bad_exit()
    return 0