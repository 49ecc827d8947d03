"""A count-down latch and a small demonstration of it."""

from __future__ import annotations

import argparse
import threading
import time


class CountDownLatch:
    """Lets threads wait until a counter has been counted down to zero."""

    def __init__(self, count: int) -> None:
        if count < 0:
            raise ValueError("count must not be negative")
        self._count = count
        self._cond = threading.Condition()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the count is zero or the timeout runs out.

        Returns True when the count reached zero.
        """
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout)

    def count_down(self) -> None:
        """Decrement the count, releasing all waiters when it reaches zero."""
        with self._cond:
            if self._count == 0:
                return
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    def count(self) -> int:
        """Return the current count."""
        with self._cond:
            return self._count


def run_demo(waiters: int = 2, count: int = 10, interval: float = 1.0) -> list[str]:
    """Start waiting threads, count the latch down and return the printed lines."""
    latch = CountDownLatch(count)
    lines: list[str] = []
    lines_lock = threading.Lock()

    def record(line: str) -> None:
        with lines_lock:
            lines.append(line)
            print(line, flush=True)

    def waiter() -> None:
        ident = threading.get_ident()
        record(f"{ident} Wait... ")
        latch.wait()
        record(f"{ident} Wait is over ")

    threads = [threading.Thread(target=waiter) for _ in range(waiters)]
    for thread in threads:
        thread.start()

    ident = threading.get_ident()
    for step in range(1, count + 1):
        time.sleep(interval)
        record(f"{ident} [{step}] Decrement latch ")
        latch.count_down()

    for thread in threads:
        thread.join()
    return lines


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Count-down latch demonstration")
    parser.add_argument("--waiters", type=int, default=2)
    parser.add_argument("--count", type=int, default=10)
    parser.add_argument("--interval", type=float, default=1.0)
    options = parser.parse_args(argv)
    run_demo(options.waiters, options.count, options.interval)
    return 0