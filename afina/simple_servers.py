"""Small TCP examples: a greeting server and its client, a server that reads from each
client in its own thread, and a non-blocking server that dumps what clients send."""

from __future__ import annotations

import argparse
import logging
import selectors
import socket
import sys
import threading
from typing import BinaryIO, Callable

_log = logging.getLogger(__name__)

DEFAULT_PORT = 1234
GREETING = b"HELLO!\r\n\0"
BACKLOG = 10
CLIENT_READ_SIZE = 100
READER_CHUNK = 1024
DUMP_CHUNK = 512

_LISTENER = object()
_WAKEUP = object()


def _ipv4_listener(host: str, port: int, backlog: int) -> socket.socket:
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind((host, port))
        listener.listen(backlog)
    except OSError:
        listener.close()
        raise
    return listener


def _passive_listener(port: int) -> socket.socket:
    """Bind the first address that works among all local IPv4 and IPv6 ones."""
    candidates = socket.getaddrinfo(None, port, socket.AF_UNSPEC, socket.SOCK_STREAM, 0, socket.AI_PASSIVE)
    for family, socktype, proto, _, sockaddr in candidates:
        try:
            listener = socket.socket(family, socktype, proto)
        except OSError:
            continue
        try:
            listener.bind(sockaddr)
        except OSError:
            listener.close()
            continue
        try:
            listener.listen(socket.SOMAXCONN)
        except OSError:
            listener.close()
            raise
        return listener
    raise OSError("Could not bind")


class _ListeningServer:
    """A listening socket watched by a selector, with a way to stop the loop."""

    def __init__(self, listener: socket.socket) -> None:
        self._listener = listener
        self._listener.setblocking(False)
        self._selector = selectors.DefaultSelector()
        self._selector.register(self._listener, selectors.EVENT_READ, _LISTENER)
        self._wake_reader, self._wake_writer = socket.socketpair()
        self._wake_reader.setblocking(False)
        self._selector.register(self._wake_reader, selectors.EVENT_READ, _WAKEUP)
        self._shutdown_requested = False

    def address(self) -> tuple[str, int]:
        """Return the host and port the server listens on."""
        host, port = self._listener.getsockname()[:2]
        return host, port

    def serve_forever(self) -> None:
        """Handle connections until shutdown() is called."""
        try:
            while not self._shutdown_requested:
                for key, mask in self._selector.select():
                    if key.data is _LISTENER:
                        self._on_listener_ready()
                    elif key.data is _WAKEUP:
                        self._drain_wakeup()
                    else:
                        self._on_client_ready(key.data, mask)
        finally:
            self._shutdown_requested = False

    def shutdown(self) -> None:
        """Ask serve_forever() to return."""
        self._shutdown_requested = True
        try:
            self._wake_writer.send(b"\0")
        except OSError:
            pass

    def close(self) -> None:
        """Close the listening socket and release the selector."""
        self._selector.close()
        self._listener.close()
        self._wake_reader.close()
        self._wake_writer.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _drain_wakeup(self) -> None:
        try:
            while self._wake_reader.recv(512):
                pass
        except (BlockingIOError, InterruptedError):
            pass

    def _accept(self) -> tuple[socket.socket, object] | None:
        try:
            return self._listener.accept()
        except (BlockingIOError, InterruptedError):
            return None

    def _on_listener_ready(self) -> None:
        accepted = self._accept()
        if accepted is not None:
            accepted[0].close()

    def _on_client_ready(self, client: object, mask: int) -> None:
        if isinstance(client, socket.socket):
            try:
                self._selector.unregister(client)
            except (KeyError, ValueError):
                pass
            client.close()


class GreetingServer(_ListeningServer):
    """Sends every client a greeting and closes the connection."""

    def __init__(self, host: str = "", port: int = DEFAULT_PORT, greeting: bytes = GREETING) -> None:
        super().__init__(_ipv4_listener(host, port, BACKLOG))
        self._greeting = greeting

    def address(self) -> tuple[str, int]:
        """Return the host and port the server listens on."""
        return super().address()

    def serve_forever(self) -> None:
        """Greet clients until shutdown() is called."""
        super().serve_forever()

    def shutdown(self) -> None:
        """Ask serve_forever() to return."""
        super().shutdown()

    def _on_listener_ready(self) -> None:
        accepted = self._accept()
        if accepted is None:
            return
        conn, _ = accepted
        with conn:
            conn.setblocking(True)
            try:
                conn.sendall(self._greeting)
                conn.shutdown(socket.SHUT_RDWR)
            except OSError as exc:
                _log.warning("failed to greet client: %s", exc)


def fetch_greeting(host: str = "127.0.0.1", port: int = DEFAULT_PORT) -> str:
    """Connect, read once and return the text received up to the first NUL byte."""
    with socket.create_connection((host, port)) as conn:
        data = conn.recv(CLIENT_READ_SIZE)
    return data.split(b"\0", 1)[0].decode("utf-8", errors="replace")


def _print_data(data: bytes) -> None:
    print(f"-->{data.decode('utf-8', errors='replace')}", flush=True)


def _print_disconnect() -> None:
    print("client disconnected", flush=True)


class ReaderServer(_ListeningServer):
    """Reads from each client in its own thread until the client disconnects."""

    def __init__(
        self,
        host: str = "",
        port: int = DEFAULT_PORT,
        on_data: Callable[[bytes], None] = _print_data,
        on_disconnect: Callable[[], None] = _print_disconnect,
    ) -> None:
        super().__init__(_ipv4_listener(host, port, BACKLOG))
        self._on_data = on_data
        self._on_disconnect = on_disconnect
        self._clients: dict[socket.socket, threading.Thread] = {}
        self._clients_lock = threading.Lock()

    def address(self) -> tuple[str, int]:
        """Return the host and port the server listens on."""
        return super().address()

    def serve_forever(self) -> None:
        """Accept clients until shutdown() is called."""
        super().serve_forever()

    def shutdown(self) -> None:
        """Ask serve_forever() to return."""
        super().shutdown()

    def _on_listener_ready(self) -> None:
        try:
            accepted = self._accept()
        except OSError as exc:
            _log.error("accept: %s", exc)
            return
        if accepted is None:
            return
        conn, _ = accepted
        conn.setblocking(True)
        thread = threading.Thread(target=self._serve_client, args=(conn,), daemon=True)
        with self._clients_lock:
            self._clients[conn] = thread
        thread.start()

    def _serve_client(self, conn: socket.socket) -> None:
        try:
            while True:
                try:
                    data = conn.recv(READER_CHUNK)
                except OSError as exc:
                    _log.error("reading stream error: %s", exc)
                    break
                if not data:
                    self._on_disconnect()
                    break
                self._on_data(data)
        finally:
            with self._clients_lock:
                self._clients.pop(conn, None)
            conn.close()

    def close(self) -> None:
        """Stop reading from every client, then close the listening socket."""
        with self._clients_lock:
            clients = list(self._clients.items())
        for conn, _ in clients:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        for _, thread in clients:
            thread.join()
        super().close()


class StreamDumpServer(_ListeningServer):
    """Non-blocking server that copies everything its clients send to one output stream."""

    def __init__(self, port: int, output: BinaryIO | None = None) -> None:
        super().__init__(_passive_listener(port))
        self._output = output if output is not None else sys.stdout.buffer
        self._clients: set[socket.socket] = set()

    def address(self) -> tuple[str, int]:
        """Return the host and port the server listens on."""
        return super().address()

    def serve_forever(self) -> None:
        """Copy client data until shutdown() is called."""
        super().serve_forever()

    def shutdown(self) -> None:
        """Ask serve_forever() to return."""
        super().shutdown()

    def _on_listener_ready(self) -> None:
        while True:
            try:
                accepted = self._accept()
            except OSError as exc:
                _log.error("accept: %s", exc)
                return
            if accepted is None:
                return
            conn, peer = accepted
            host, port = peer[:2]
            print(f"Accepted connection on descriptor {conn.fileno()} (host={host}, port={port})", flush=True)
            conn.setblocking(False)
            self._clients.add(conn)
            self._selector.register(conn, selectors.EVENT_READ, conn)

    def _on_client_ready(self, client: object, mask: int) -> None:
        assert isinstance(client, socket.socket)
        if client not in self._clients:
            return
        done = False
        while True:
            try:
                data = client.recv(DUMP_CHUNK)
            except (BlockingIOError, InterruptedError):
                break
            except OSError as exc:
                _log.error("read: %s", exc)
                done = True
                break
            if not data:
                done = True
                break
            self._output.write(data)
        self._output.flush()
        if done:
            print(f"Closed connection on descriptor {client.fileno()}", flush=True)
            self._drop(client)

    def _drop(self, client: socket.socket) -> None:
        self._clients.discard(client)
        try:
            self._selector.unregister(client)
        except (KeyError, ValueError):
            pass
        client.close()

    def close(self) -> None:
        """Close every client connection and the listening socket."""
        for client in list(self._clients):
            self._drop(client)
        super().close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Simple TCP servers and client")
    commands = parser.add_subparsers(dest="command", required=True)

    greeting = commands.add_parser("greeting-server", help="greet every client and hang up")
    greeting.add_argument("--port", type=int, default=DEFAULT_PORT)

    client = commands.add_parser("client", help="read the greeting from a server")
    client.add_argument("--host", default="127.0.0.1")
    client.add_argument("--port", type=int, default=DEFAULT_PORT)

    reader = commands.add_parser("reader-server", help="print what each client sends")
    reader.add_argument("--port", type=int, default=DEFAULT_PORT)

    dump = commands.add_parser("dump-server", help="copy what clients send to standard output")
    dump.add_argument("port", type=int)

    options = parser.parse_args(argv)

    if options.command == "client":
        print(fetch_greeting(options.host, options.port), end="", flush=True)
        return 0

    server: _ListeningServer
    if options.command == "greeting-server":
        server = GreetingServer(port=options.port)
    elif options.command == "reader-server":
        server = ReaderServer(port=options.port)
    else:
        server = StreamDumpServer(options.port)
    with server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0