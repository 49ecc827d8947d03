"""A reader/writer mutex, a scoped shared lock over it and a counter using both."""

from __future__ import annotations

import argparse
import threading
from enum import Enum

_WRITE_ENTERED = 1 << 31
_N_READERS = _WRITE_ENTERED - 1


class SharedMutex:
    """Mutex with exclusive (write) and shared (read) ownership; writers take priority."""

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._gate1 = threading.Condition(self._mutex)
        self._gate2 = threading.Condition(self._mutex)
        self._state = 0

    def lock(self) -> None:
        with self._mutex:
            while self._state & _WRITE_ENTERED:
                self._gate1.wait()
            self._state |= _WRITE_ENTERED
            while self._state & _N_READERS:
                self._gate2.wait()

    def try_lock(self) -> bool:
        if not self._mutex.acquire(blocking=False):
            return False
        try:
            if self._state == 0:
                self._state = _WRITE_ENTERED
                return True
            return False
        finally:
            self._mutex.release()

    def unlock(self) -> None:
        with self._mutex:
            if not self._state & _WRITE_ENTERED:
                raise RuntimeError("mutex is not locked exclusively")
            self._state = 0
            self._gate1.notify_all()

    def lock_shared(self) -> None:
        with self._mutex:
            while (self._state & _WRITE_ENTERED) or (self._state & _N_READERS) == _N_READERS:
                self._gate1.wait()
            readers = (self._state & _N_READERS) + 1
            self._state = (self._state & ~_N_READERS) | readers

    def try_lock_shared(self) -> bool:
        if not self._mutex.acquire(blocking=False):
            return False
        try:
            readers = self._state & _N_READERS
            if not self._state & _WRITE_ENTERED and readers != _N_READERS:
                self._state = (self._state & ~_N_READERS) | (readers + 1)
                return True
            return False
        finally:
            self._mutex.release()

    def unlock_shared(self) -> None:
        with self._mutex:
            readers = self._state & _N_READERS
            if readers == 0:
                raise RuntimeError("mutex is not locked shared")
            readers -= 1
            self._state = (self._state & ~_N_READERS) | readers
            if self._state & _WRITE_ENTERED:
                if readers == 0:
                    self._gate2.notify()
            elif readers == _N_READERS - 1:
                self._gate1.notify()

    def __enter__(self) -> SharedMutex:
        self.lock()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unlock()


class Acquire(Enum):
    """How a SharedLock treats its mutex when created."""

    LOCK = "lock"
    DEFER = "defer"
    TRY = "try"
    ADOPT = "adopt"


class SharedLock:
    """Scoped shared ownership of a SharedMutex."""

    def __init__(self, mutex: SharedMutex | None = None, acquire: Acquire = Acquire.LOCK) -> None:
        self._mutex = mutex
        self._owns = False
        if mutex is None:
            return
        if acquire is Acquire.LOCK:
            mutex.lock_shared()
            self._owns = True
        elif acquire is Acquire.TRY:
            self._owns = mutex.try_lock_shared()
        elif acquire is Acquire.ADOPT:
            self._owns = True

    def _check_lockable(self) -> SharedMutex:
        if self._mutex is None:
            raise RuntimeError("No lock")
        if self._owns:
            raise RuntimeError("deadlock")
        return self._mutex

    def lock(self) -> None:
        self._check_lockable().lock_shared()
        self._owns = True

    def try_lock(self) -> bool:
        self._owns = self._check_lockable().try_lock_shared()
        return self._owns

    def unlock(self) -> None:
        if not self._owns or self._mutex is None:
            raise RuntimeError("Unlock not owned lock")
        self._mutex.unlock_shared()
        self._owns = False

    def release(self) -> SharedMutex | None:
        """Detach from the mutex without unlocking it and return it."""
        mutex, self._mutex = self._mutex, None
        self._owns = False
        return mutex

    def owns_lock(self) -> bool:
        return self._owns

    def mutex(self) -> SharedMutex | None:
        return self._mutex

    def __bool__(self) -> bool:
        return self._owns

    def __enter__(self) -> SharedLock:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._owns:
            self.unlock()


class ThreadSafeCounter:
    """Counter readable by many threads at once and written by one at a time."""

    def __init__(self) -> None:
        self._mutex = SharedMutex()
        self._value = 0

    def get(self) -> int:
        with SharedLock(self._mutex):
            return self._value

    def increment(self) -> None:
        with self._mutex:
            self._value += 1

    def reset(self) -> None:
        with self._mutex:
            self._value = 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Shared mutex demonstration")
    parser.add_argument("--threads", type=int, default=2)
    parser.add_argument("--iterations", type=int, default=10)
    options = parser.parse_args(argv)

    counter = ThreadSafeCounter()

    def increment_and_print() -> None:
        for _ in range(options.iterations):
            counter.increment()
            print(threading.get_ident(), counter.get())

    threads = [threading.Thread(target=increment_and_print) for _ in range(options.threads)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return 0