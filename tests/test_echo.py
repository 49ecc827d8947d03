import socket
import threading
from contextlib import contextmanager

import pytest

from afina.echo import EchoServer, FullDuplexEchoServer, MAXLEN


def _recv_exactly(sock, size):
    chunks = []
    remaining = size
    while remaining:
        chunk = sock.recv(min(remaining, 65536))
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


@contextmanager
def serving(server):
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        thread.join(5)
        server.close()


def _new_server(full_duplex):
    if full_duplex:
        return FullDuplexEchoServer("127.0.0.1", 0)
    return EchoServer("127.0.0.1", 0)


def test_address_reports_bound_interface():
    with EchoServer("127.0.0.1", 0) as server:
        host, port = server.address()
        assert host == "127.0.0.1"
        assert port > 0


def test_address_after_close_raises():
    server = FullDuplexEchoServer("127.0.0.1", 0)
    server.close()
    with pytest.raises(OSError):
        server.address()


def test_binding_taken_port_raises():
    with EchoServer("127.0.0.1", 0) as first:
        with pytest.raises(OSError):
            EchoServer("127.0.0.1", first.address()[1])


@pytest.mark.parametrize("full_duplex", [False, True], ids=["echo", "full_duplex"])
def test_short_message_is_echoed(full_duplex):
    server = _new_server(full_duplex)
    with serving(server):
        host, port = server.address()
        assert host == "127.0.0.1"
        with socket.create_connection((host, port), timeout=5) as client:
            client.sendall(b"hello")
            assert _recv_exactly(client, 5) == b"hello"


@pytest.mark.parametrize("full_duplex", [False, True], ids=["echo", "full_duplex"])
def test_message_longer_than_one_read_is_echoed(full_duplex):
    payload = bytes(range(256)) * 8
    assert len(payload) > MAXLEN
    server = _new_server(full_duplex)
    with serving(server):
        with socket.create_connection(server.address(), timeout=5) as client:
            client.sendall(payload)
            assert _recv_exactly(client, len(payload)) == payload


@pytest.mark.parametrize("full_duplex", [False, True], ids=["echo", "full_duplex"])
def test_several_exchanges_on_one_connection(full_duplex):
    server = _new_server(full_duplex)
    with serving(server):
        with socket.create_connection(server.address(), timeout=5) as client:
            for word in (b"one", b"two", b"three"):
                client.sendall(word)
                assert _recv_exactly(client, len(word)) == word


@pytest.mark.parametrize("full_duplex", [False, True], ids=["echo", "full_duplex"])
def test_clients_are_served_independently(full_duplex):
    server = _new_server(full_duplex)
    with serving(server):
        address = server.address()
        with socket.create_connection(address, timeout=5) as first, socket.create_connection(
            address, timeout=5
        ) as second:
            first.sendall(b"first")
            second.sendall(b"second")
            assert _recv_exactly(second, 6) == b"second"
            assert _recv_exactly(first, 5) == b"first"


@pytest.mark.parametrize("full_duplex", [False, True], ids=["echo", "full_duplex"])
def test_server_survives_client_disconnect(full_duplex):
    server = _new_server(full_duplex)
    with serving(server):
        gone = socket.create_connection(server.address(), timeout=5)
        gone.sendall(b"bye")
        assert _recv_exactly(gone, 3) == b"bye"
        gone.close()
        with socket.create_connection(server.address(), timeout=5) as client:
            client.sendall(b"still here")
            assert _recv_exactly(client, 10) == b"still here"


def test_closed_client_gets_end_of_stream_after_close():
    server = EchoServer("127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    client = socket.create_connection(server.address(), timeout=5)
    client.sendall(b"ping")
    assert _recv_exactly(client, 4) == b"ping"
    server.shutdown()
    thread.join(5)
    assert not thread.is_alive()
    server.close()
    assert client.recv(16) == b""
    client.close()


def test_large_stream_with_concurrent_reader():
    server = FullDuplexEchoServer("127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    payload = bytes(i % 251 for i in range(1 << 20))
    received = []
    try:
        with socket.create_connection(server.address(), timeout=5) as client:
            reader = threading.Thread(
                target=lambda: received.append(_recv_exactly(client, len(payload))), daemon=True
            )
            reader.start()
            client.sendall(payload)
            reader.join(30)
        assert received == [payload]
    finally:
        server.shutdown()
        thread.join(5)
        server.close()


@pytest.mark.parametrize("full_duplex", [False, True], ids=["echo", "full_duplex"])
def test_shutdown_before_serving_returns_immediately(full_duplex):
    server = _new_server(full_duplex)
    with server:
        assert server.address()[1] > 0
        server.shutdown()
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        thread.join(5)
        assert not thread.is_alive()


@pytest.mark.parametrize("full_duplex", [False, True], ids=["echo", "full_duplex"])
def test_server_can_serve_again_after_shutdown(full_duplex):
    server = _new_server(full_duplex)
    with server:
        for _ in range(2):
            thread = threading.Thread(target=server.serve_forever, daemon=True)
            thread.start()
            with socket.create_connection(server.address(), timeout=5) as client:
                client.sendall(b"again")
                assert _recv_exactly(client, 5) == b"again"
            server.shutdown()
            thread.join(5)
            assert not thread.is_alive()


@pytest.mark.parametrize("full_duplex", [False, True], ids=["echo", "full_duplex"])
def test_new_server_helper_builds_requested_kind(full_duplex):
    with _new_server(full_duplex) as server:
        expected = FullDuplexEchoServer if full_duplex else EchoServer
        assert type(server) is expected
        assert server.address()[0] == "127.0.0.1"