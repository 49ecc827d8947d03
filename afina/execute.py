"""Memcached-style commands executed against a key/value storage."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Protocol

_log = logging.getLogger(__name__)

STORED = "STORED"
NOT_STORED = "NOT_STORED"
END = "END"


class Storage(Protocol):
    """What a command needs from a storage backend."""

    def put(self, key: str, value: str) -> bool: ...

    def put_if_absent(self, key: str, value: str) -> bool: ...

    def set(self, key: str, value: str) -> bool: ...

    def get(self, key: str) -> str | None: ...


class Command(ABC):
    """A single protocol command."""

    @abstractmethod
    def execute(self, storage: Storage, args: str) -> str:
        """Run the command and return the response line(s) without the final CRLF."""


@dataclass
class _KeyedCommand(Command):
    key: str
    flags: int = 0
    expire: int = 0

    def execute(self, storage: Storage, args: str) -> str:  # pragma: no cover - abstract
        raise NotImplementedError


@dataclass
class Add(_KeyedCommand):
    """Store the data only if the key is not held yet."""

    def execute(self, storage: Storage, args: str) -> str:
        _log.debug("Add(%s)%s", self.key, args)
        return STORED if storage.put_if_absent(self.key, args) else NOT_STORED


@dataclass
class Append(_KeyedCommand):
    """Append the data after the value of an existing key."""

    def execute(self, storage: Storage, args: str) -> str:
        _log.debug("Append(%s)%s", self.key, args)
        value = storage.get(self.key)
        if value is None:
            return NOT_STORED
        storage.put(self.key, value + args)
        return STORED


@dataclass
class Replace(_KeyedCommand):
    """Store the data only if the key is already held."""

    def execute(self, storage: Storage, args: str) -> str:
        _log.debug("Replace(%s): %s", self.key, args)
        if storage.get(self.key) is None:
            return NOT_STORED
        storage.set(self.key, args)
        return STORED


@dataclass
class Set(_KeyedCommand):
    """Store the data unconditionally."""

    def execute(self, storage: Storage, args: str) -> str:
        _log.debug("Set(%s): %s", self.key, args)
        storage.put(self.key, args)
        return STORED


def _byte_size(value: str) -> int:
    return len(value.encode("utf-8"))


@dataclass
class Get(Command):
    """Fetch the values of several keys; missing keys are skipped."""

    keys: list[str] = field(default_factory=list)

    def execute(self, storage: Storage, args: str) -> str:
        _log.debug("Get(%s)", " ".join(self.keys))
        parts = []
        for key in self.keys:
            value = storage.get(key)
            if value is None:
                continue
            parts.append(f"VALUE {key} 0 {_byte_size(value)}\r\n{value}\r\n")
        parts.append(END)
        return "".join(parts)


@dataclass
class Stats(Command):
    """Report statistics; there are none to report."""

    def execute(self, storage: Storage, args: str) -> str:
        return END