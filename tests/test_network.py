import socket
import threading
import time

import pytest

from tinyws.network import (
    SecureTcpClient,
    SocketTcpClient,
    SocketTcpServer,
    TcpClient,
    TcpServer,
)


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def read_exact(client, length):
    data = b""
    while len(data) < length:
        chunk = client.read(length - len(data))
        if not chunk:
            break
        data += chunk
    return data


def unused_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def server():
    srv = SocketTcpServer()
    assert srv.listen(0)
    yield srv
    srv.close()


@pytest.fixture
def pair(server):
    client = SocketTcpClient()
    assert client.connect("127.0.0.1", server.port)
    peer = server.accept()
    yield client, peer
    client.close()
    peer.close()


def test_abstract_bases_cannot_be_instantiated():
    with pytest.raises(TypeError):
        TcpClient()
    with pytest.raises(TypeError):
        TcpServer()


def test_server_not_available_before_listen():
    srv = SocketTcpServer()
    assert srv.available() is False
    assert srv.poll() is False
    assert srv.port is None


def test_accept_without_listening_gives_unavailable_client():
    srv = SocketTcpServer()
    client = srv.accept()
    assert client.available() is False


def test_server_poll_sees_pending_connection(server):
    assert server.poll() is False
    client = SocketTcpClient()
    assert client.connect("127.0.0.1", server.port)
    assert wait_for(server.poll)
    peer = server.accept()
    assert peer.available()
    client.close()
    peer.close()


def test_send_and_read_roundtrip(pair):
    client, peer = pair
    client.send(b"\x00\x01binary\xff")
    assert read_exact(peer, 9) == b"\x00\x01binary\xff"


def test_send_str_is_utf8(pair):
    client, peer = pair
    client.send("héllo")
    expected = "héllo".encode("utf-8")
    assert read_exact(peer, len(expected)) == expected


def test_read_line_includes_newline(pair):
    client, peer = pair
    client.send(b"GET / HTTP/1.1\r\nHost: example.com\r\n\r\n")
    assert peer.read_line() == "GET / HTTP/1.1\r\n"
    assert peer.read_line() == "Host: example.com\r\n"
    assert peer.read_line() == "\r\n"


def test_read_line_then_read_keeps_remaining_bytes(pair):
    client, peer = pair
    client.send(b"line\nrest")
    assert peer.read_line() == "line\n"
    assert read_exact(peer, 4) == b"rest"


def test_poll_reports_pending_data(pair):
    client, peer = pair
    assert peer.poll() is False
    client.send(b"x")
    assert wait_for(peer.poll)
    assert peer.read(1) == b"x"


def test_peer_close_makes_read_return_empty_and_close(pair):
    client, peer = pair
    client.close()
    assert client.available() is False
    assert peer.read(1) == b""
    assert peer.available() is False


def test_read_line_at_eof_returns_partial_line(pair):
    client, peer = pair
    client.send(b"partial")
    client.close()
    assert peer.read_line() == "partial"
    assert peer.available() is False


def test_operations_on_closed_client_are_harmless():
    client = SocketTcpClient()
    client.send(b"ignored")
    assert client.available() is False
    assert client.poll() is False
    assert client.read(4) == b""
    assert client.read_line() == ""


def test_connect_refused_returns_false():
    client = SocketTcpClient()
    assert client.connect("127.0.0.1", unused_port()) is False
    assert client.available() is False


def test_listen_on_busy_port_fails(server):
    other = SocketTcpServer()
    assert other.listen(server.port) is False
    assert other.available() is False


def test_server_close(server):
    server.close()
    assert server.available() is False
    assert server.accept().available() is False


def test_client_context_manager_closes(server):
    with SocketTcpClient() as client:
        assert client.connect("127.0.0.1", server.port)
    assert client.available() is False


def test_server_context_manager_closes():
    with SocketTcpServer() as srv:
        assert srv.listen(0)
        assert srv.available()
    assert srv.available() is False


def test_secure_client_fails_against_plain_server(server):
    def accept_and_drop():
        peer = server.accept()
        peer.close()

    thread = threading.Thread(target=accept_and_drop)
    thread.start()
    client = SecureTcpClient()
    connected = client.connect("127.0.0.1", server.port)
    thread.join(5)
    assert connected is False
    assert client.available() is False


def test_secure_client_connect_refused():
    client = SecureTcpClient()
    assert client.connect("127.0.0.1", unused_port()) is False
    assert client.poll() is False