"""Small demonstrations of condition variables, ordered locking and mutex-guarded maps."""

from __future__ import annotations

import argparse
import threading
import time
from dataclasses import dataclass, field
from typing import Iterable


@dataclass
class _Handoff:
    data: str
    ready: bool = False
    processed: bool = False


def process_with_worker(data: str) -> str:
    """Hand data to a worker thread through a condition variable and return its result."""
    cond = threading.Condition()
    shared = _Handoff(data)

    def worker() -> None:
        with cond:
            cond.wait_for(lambda: shared.ready)
            print("Worker thread is processing data")
            shared.data += " after processing"
            shared.processed = True
            print("Worker thread signals data processing completed")
            cond.notify()

    thread = threading.Thread(target=worker)
    thread.start()

    with cond:
        shared.ready = True
        print("main() signals data ready for processing")
        cond.notify()

    with cond:
        cond.wait_for(lambda: shared.processed)
    print(f"Back in main(), data = {shared.data}")

    thread.join()
    return shared.data


@dataclass
class Box:
    """A count of things guarded by its own lock."""

    num_things: int
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


def transfer(source: Box, target: Box, num: int) -> None:
    """Move num things between boxes, taking both locks in a deadlock-free order."""
    if source is target:
        return
    first, second = sorted((source, target), key=id)
    with first.lock, second.lock:
        source.num_things -= num
        target.num_things += num


def save_pages(urls: Iterable[str], delay: float = 2.0) -> dict[str, str]:
    """Fetch pages concurrently (simulated) and return them ordered by URL."""
    pages: dict[str, str] = {}
    pages_lock = threading.Lock()

    def save_page(url: str) -> None:
        time.sleep(delay)
        result = "fake content"
        with pages_lock:
            pages[url] = result

    threads = [threading.Thread(target=save_page, args=(url,)) for url in urls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return dict(sorted(pages.items()))


def _lock_demo() -> None:
    acc1, acc2 = Box(100), Box(50)
    t1 = threading.Thread(target=transfer, args=(acc1, acc2, 10))
    t2 = threading.Thread(target=transfer, args=(acc2, acc1, 5))
    t1.start()
    t2.start()
    t1.join()
    t2.join()
    print(f"acc1 = {acc1.num_things}, acc2 = {acc2.num_things}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Synchronization primitive demonstrations")
    parser.add_argument("demo", nargs="?", choices=["cv", "lock", "mutex", "all"], default="all")
    parser.add_argument("--delay", type=float, default=2.0)
    options = parser.parse_args(argv)

    if options.demo in ("cv", "all"):
        process_with_worker("Example data")
    if options.demo in ("lock", "all"):
        _lock_demo()
    if options.demo in ("mutex", "all"):
        for url, content in save_pages(["http://foo", "http://bar"], options.delay).items():
            print(f"{url} => {content}")
    return 0