# afina

afina is a collection of building blocks and runnable demonstrations for a
course on systems programming. It has no dependencies outside the standard
library. It contains:

- the command layer of a memcached-style cache;
- a configurable logging service;
- thread synchronization primitives;
- short programs about files, threads, sockets and pipes.

Some parts use `fork`, `fcntl` and external `ls`/`wc` programs, so they need a POSIX system.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Storage commands (`afina.execute`)

`Command` is the abstract base class. Each command implements
`execute(storage, args)`. It runs against a storage object and returns the
reply text without the final CRLF.

The storage object must provide these methods (the `Storage` protocol):

- `put(key, value)`
- `put_if_absent(key, value)`
- `set(key, value)`
- `get(key)`, which returns the value, or `None` when the key is missing.

The commands are:

| Command | What it does | Reply |
| --- | --- | --- |
| `Set(key, flags=0, expire=0)` | Always stores the data. | `STORED` |
| `Add(key, ...)` | Stores only when the key is absent. | `STORED` or `NOT_STORED` |
| `Replace(key, ...)` | Stores only when the key is present. | `STORED` or `NOT_STORED` |
| `Append(key, ...)` | Adds the data after the existing value. | `NOT_STORED` if the key is missing |
| `Get(keys=[...])` | Looks up each key and skips the missing ones. | One `VALUE <key> 0 <bytes>\r\n<data>\r\n` block per key found, then `END` |
| `Stats()` | Nothing. | `END` |

```python
from afina.execute import Get, Set

class DictStorage(dict):
    def put(self, key, value): self[key] = value; return True
    def put_if_absent(self, key, value): return self.setdefault(key, value) is value
    def set(self, key, value):
        if key not in self: return False
        self[key] = value; return True
    def get(self, key): return dict.get(self, key)

store = DictStorage()
Set("foo").execute(store, "bar")        # "STORED"
Get(["foo", "x"]).execute(store, "")    # "VALUE foo 0 3\r\nbar\r\nEND"
```

## Logging service (`afina.logservice`)

A `Config` holds two dictionaries, both keyed by name:

- `appenders`, whose values are `Appender` entries;
- `loggers`, whose values are `LoggerConfig` entries.

An `Appender` has an `AppenderType`:

- `STDOUT` or `STDERR`, optionally coloured;
- `FILE`, which uses a `ReopenableFileHandler`;
- `DAILY`, which rotates at a given hour and minute;
- `SIZED`, which rotates by size and keeps a number of old files;
- `SYSLOG`.

A `LoggerConfig` has three parts:

- a `LoggerLevel`: `TRACE`, `DEBUG`, `INFO`, `WARNING`, `ERROR` or `CRITICAL`;
- a list of appender names;
- a line pattern.

Patterns understand these placeholders:

| Placeholder | Meaning |
| --- | --- |
| `%v` | message |
| `%n` | logger name |
| `%l` | level name |
| `%L` | level initial |
| `%t` | thread id |
| `%P` | process id |
| `%e` | milliseconds |
| `%z` | UTC offset |
| `%Y %m %d %H %M %S %y %a %A %b %B %p` | the usual date and time fields |
| `%%` | a literal `%` |

`LoggingService(config)` has these methods:

- `start()` builds the handlers and loggers. It raises `RuntimeError` if there is no `root` logger, and `ValueError` if a logger names an unknown appender.
- `stop()` flushes and closes every handler.
- `select(name)` returns the logger of that name, or of its nearest dotted parent, or the `root` logger. It raises `RuntimeError` before `start()`.
- `create(name, mdc)` returns a new logger like `select(name)`. Each `%X{key}` in its pattern is replaced from the `mdc` mapping.
- `reopen_all()` reopens every `ReopenableFileHandler`, which is useful after external log rotation.

The service is also a context manager: it calls `start()` on entry and `stop()` on exit.

## Synchronization

### `afina.latch`

`CountDownLatch(count)` has three methods:

- `wait(timeout=None)` blocks until the count reaches zero. It returns `True` if the count reached zero, or `False` if the timeout ran out first.
- `count_down()` decrements the count.
- `count()` returns the current count.

`run_demo(waiters, count, interval)` starts waiting threads and counts the latch down.

```python
from afina.latch import CountDownLatch

latch = CountDownLatch(2)
latch.count_down()
latch.count_down()
assert latch.wait(1.0)
assert latch.count() == 0
```

### `afina.rwlock`

- `SharedMutex` is a reader/writer mutex in which writers take priority.
  - `lock`, `try_lock` and `unlock` handle exclusive ownership. The mutex is also a context manager for exclusive ownership.
  - `lock_shared`, `try_lock_shared` and `unlock_shared` handle shared ownership.
  - Unlocking a mutex that is not held raises `RuntimeError`.
- `SharedLock(mutex, acquire=Acquire.LOCK)` gives scoped shared ownership of a mutex.
  - `acquire` is one of `LOCK`, `DEFER`, `TRY` or `ADOPT`.
  - Its methods are `lock`, `try_lock`, `unlock`, `release`, `owns_lock` and `mutex`.
  - It is a context manager that unlocks on exit if it still owns the lock.
- `ThreadSafeCounter` has `get`, `increment` and `reset`.

### `afina.sync_demos`

- `process_with_worker(data)` hands data to a worker thread through a condition variable. It returns `data + " after processing"`.
- `Box(num_things)` and `transfer(source, target, num)` move things between boxes. Both locks are taken in a fixed order, so two opposite transfers cannot deadlock.
- `save_pages(urls, delay=2.0)` fills a mutex-guarded mapping from several threads. It returns the mapping sorted by URL.

## Files, threads, sockets and pipes

### `afina.fileio`

- `copy_stream(source, target, bufsize=4096)` copies one stream to another and returns the number of bytes copied.
- `describe_flags(fd)` returns a description such as `"read write, append"`.
- `list_directory(path)` returns the entries of a directory, including `.` and `..`.

### `afina.thread_demos`

- `format_ids(label)` describes the calling thread.
- `run_exit_status()` returns `(1, 2)`.
- `run_cleanup(early_exit=True)` returns each thread's exit code together with the cleanup lines it ran. Only the thread that exits early runs its handlers.
- `run_bad_exit()` returns `(1, 2, 3, 4)`, which is a structure passed back as a thread's exit value.

### `afina.echo`

Both servers are non-blocking, selector-driven and listen on port 8080 by default. Each has `address()`, `serve_forever()`, `shutdown()` and `close()`, and each is a context manager.

- `EchoServer` reads up to 255 bytes, writes them back, and then reads again.
- `FullDuplexEchoServer` queues 4096-byte chunks. It keeps reading while it writes, and pauses reading once 100 chunks are queued.

### `afina.simple_servers`

- `GreetingServer` sends each client `HELLO!\r\n` and then closes the connection. `fetch_greeting(host, port)` is its client.
- `ReaderServer` reads from each client in its own thread. It passes each chunk to `on_data` and reports disconnects through `on_disconnect`. By default both print.
- `StreamDumpServer(port, output=None)` copies everything that clients send to one binary stream, by default standard output.

### `afina.pipes`

- `pipe_through_child(message)` sends a message through a pipe to a forked child. It returns what the child wrote back, followed by a newline.
- `count_directory_entries(directory=".")` runs `ls | wc -l` and returns the count.

## Command-line tools

| Command | What it does |
| --- | --- |
| `afina-latch [--waiters N] [--count N] [--interval S]` | Threads wait on a latch while the main thread counts it down |
| `afina-rwlock [--threads N] [--iterations N]` | Threads increment and read a shared counter |
| `afina-sync [cv\|lock\|mutex\|all] [--delay S]` | Runs the synchronization demonstrations |
| `afina-cat` | Copies standard input to standard output |
| `afina-flags FD` | Describes the access mode and flags of a file descriptor |
| `afina-ls DIRECTORY` | Lists the entries of a directory |
| `afina-threads [id\|exitstatus\|cleanup\|badexit\|all]` | Runs the thread demonstrations |
| `afina-echo [--host H] [--port P] [--full-duplex]` | Starts an echo server |
| `afina-servers greeting-server [--port P]` | Starts the greeting server |
| `afina-servers client [--host H] [--port P]` | Prints the greeting |
| `afina-servers reader-server [--port P]` | Starts the per-client reader |
| `afina-servers dump-server PORT` | Starts the dump server |
| `afina-pipes simple MESSAGE` | Passes a message through a child process |
| `afina-pipes ls-wc [DIRECTORY]` | Counts directory entries |

For example:

```
afina-cat < notes.txt
afina-flags 0 < notes.txt
afina-ls .
```

## What the package does not do

The storage commands in `afina.execute` are not a complete caching server:

- It provides no storage backend, such as an LRU cache. You must supply an object with the `Storage` methods.
- It has no parser that turns protocol text into commands.
- It has no network server that accepts cache clients.