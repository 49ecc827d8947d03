"""Non-blocking echo servers driven by a readiness selector.

EchoServer alternates between reading a chunk and writing it back.
FullDuplexEchoServer queues what it reads and writes it back while it keeps reading.
It stops reading from a client whose queue has grown too long.
"""

from __future__ import annotations

import argparse
import logging
import selectors
import socket
from collections import deque
from dataclasses import dataclass, field

_log = logging.getLogger(__name__)

SERVERPORT = 8080
MAXCONN = 200
MAXLEN = 255
FULL_DUPLEX_CHUNK = 4096
MAX_QUEUED_CHUNKS = 100

_WAKEUP = object()
_LISTENER = object()


@dataclass(eq=False)
class _Connection:
    sock: socket.socket
    mask: int = selectors.EVENT_READ
    data: bytes = b""
    offset: int = 0
    head_offset: int = 0
    output: deque[bytes] = field(default_factory=deque)


class _SelectorServer:
    """Listening socket plus event loop shared by the echo servers."""

    def __init__(self, host: str = "", port: int = SERVERPORT, backlog: int = MAXCONN) -> None:
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._listener.bind((host, port))
            self._listener.listen(backlog)
            self._listener.setblocking(False)
        except OSError:
            self._listener.close()
            raise
        self._selector = selectors.DefaultSelector()
        self._selector.register(self._listener, selectors.EVENT_READ, _LISTENER)
        self._wake_reader, self._wake_writer = socket.socketpair()
        self._wake_reader.setblocking(False)
        self._selector.register(self._wake_reader, selectors.EVENT_READ, _WAKEUP)
        self._connections: set[_Connection] = set()
        self._shutdown_requested = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        raise NotImplementedError

    def _bound_address(self) -> tuple[str, int]:
        host, port = self._listener.getsockname()[:2]
        return host, port

    def _run_loop(self) -> None:
        try:
            while not self._shutdown_requested:
                for key, mask in self._selector.select():
                    if key.data is _LISTENER:
                        self._accept()
                    elif key.data is _WAKEUP:
                        self._drain_wakeup()
                    elif key.data in self._connections:
                        self._handle(key.data, mask)
        finally:
            self._shutdown_requested = False

    def _request_shutdown(self) -> None:
        self._shutdown_requested = True
        try:
            self._wake_writer.send(b"\0")
        except OSError:
            pass

    def _close_all(self) -> None:
        for conn in list(self._connections):
            self._close_connection(conn)
        self._selector.close()
        self._listener.close()
        self._wake_reader.close()
        self._wake_writer.close()

    def _drain_wakeup(self) -> None:
        try:
            while self._wake_reader.recv(512):
                pass
        except (BlockingIOError, InterruptedError):
            pass

    def _accept(self) -> None:
        try:
            sock, peer = self._listener.accept()
        except (BlockingIOError, InterruptedError):
            return
        _log.debug("Accepted connection from %s, adding a read event", peer)
        sock.setblocking(False)
        conn = _Connection(sock)
        self._connections.add(conn)
        self._selector.register(sock, conn.mask, conn)

    def _set_mask(self, conn: _Connection, mask: int) -> None:
        if mask != conn.mask:
            conn.mask = mask
            self._selector.modify(conn.sock, mask, conn)

    def _close_connection(self, conn: _Connection) -> None:
        if conn not in self._connections:
            return
        self._connections.discard(conn)
        try:
            self._selector.unregister(conn.sock)
        except (KeyError, ValueError):
            pass
        conn.sock.close()

    def _receive(self, conn: _Connection, size: int) -> bytes | None:
        """Read from a client; None means nothing is available, b"" that it is gone."""
        try:
            data = conn.sock.recv(size)
        except (BlockingIOError, InterruptedError):
            return None
        except OSError:
            return b""
        if not data:
            _log.debug("Client closed connection")
        return data

    def _handle(self, conn: _Connection, mask: int) -> None:
        raise NotImplementedError


class EchoServer(_SelectorServer):
    """Reads up to MAXLEN bytes, writes them back in full, then reads again."""

    def address(self) -> tuple[str, int]:
        """Return the host and port the server listens on."""
        return self._bound_address()

    def serve_forever(self) -> None:
        """Handle events until shutdown() is called."""
        self._run_loop()

    def shutdown(self) -> None:
        """Ask serve_forever() to return."""
        self._request_shutdown()

    def close(self) -> None:
        """Close every client connection and the listening socket."""
        self._close_all()

    def _handle(self, conn: _Connection, mask: int) -> None:
        if conn.mask == selectors.EVENT_READ and mask & selectors.EVENT_READ:
            data = self._receive(conn, MAXLEN)
            if data is None:
                return
            if not data:
                self._close_connection(conn)
                return
            conn.data, conn.offset = data, 0
            _log.debug("Read %d bytes, adding write event", len(data))
            self._set_mask(conn, selectors.EVENT_WRITE)
        elif conn.mask == selectors.EVENT_WRITE and mask & selectors.EVENT_WRITE:
            try:
                sent = conn.sock.send(memoryview(conn.data)[conn.offset:])
            except (BlockingIOError, InterruptedError):
                return
            except OSError:
                self._close_connection(conn)
                return
            conn.offset += sent
            if conn.offset >= len(conn.data):
                conn.data, conn.offset = b"", 0
                _log.debug("Adding read event")
                self._set_mask(conn, selectors.EVENT_READ)


class FullDuplexEchoServer(_SelectorServer):
    """Reads and writes at once, queueing chunks and pausing reads while the queue is long."""

    def address(self) -> tuple[str, int]:
        """Return the host and port the server listens on."""
        return self._bound_address()

    def serve_forever(self) -> None:
        """Handle events until shutdown() is called."""
        self._run_loop()

    def shutdown(self) -> None:
        """Ask serve_forever() to return."""
        self._request_shutdown()

    def close(self) -> None:
        """Close every client connection and the listening socket."""
        self._close_all()

    def _handle(self, conn: _Connection, mask: int) -> None:
        if mask & selectors.EVENT_READ and len(conn.output) < MAX_QUEUED_CHUNKS:
            data = self._receive(conn, FULL_DUPLEX_CHUNK)
            if data is not None:
                if not data:
                    self._close_connection(conn)
                    return
                conn.output.append(data)

        if mask & selectors.EVENT_WRITE:
            while conn.output:
                head = conn.output[0]
                try:
                    sent = conn.sock.send(memoryview(head)[conn.head_offset:])
                except (BlockingIOError, InterruptedError):
                    break
                except OSError:
                    self._close_connection(conn)
                    return
                conn.head_offset += sent
                if conn.head_offset >= len(head):
                    conn.output.popleft()
                    conn.head_offset = 0

        new_mask = 0
        if len(conn.output) < MAX_QUEUED_CHUNKS:
            new_mask |= selectors.EVENT_READ
        if conn.output:
            new_mask |= selectors.EVENT_WRITE
        self._set_mask(conn, new_mask)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Non-blocking echo server")
    parser.add_argument("--host", default="")
    parser.add_argument("--port", type=int, default=SERVERPORT)
    parser.add_argument("--full-duplex", action="store_true", help="keep reading while writing back")
    options = parser.parse_args(argv)

    server_class = FullDuplexEchoServer if options.full_duplex else EchoServer
    with server_class(options.host, options.port) as server:
        host, port = server.address()
        print(f"Echo server listening on {host or '0.0.0.0'}:{port}", flush=True)
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0