"""Course toolkit: memcached-style commands, logging, synchronization and systems demos."""

__version__ = "0.1.0"

__all__ = [
    "echo",
    "execute",
    "fileio",
    "latch",
    "logservice",
    "pipes",
    "rwlock",
    "simple_servers",
    "sync_demos",
    "thread_demos",
]