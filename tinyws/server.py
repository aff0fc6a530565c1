"""WebSocket server: accepts TCP clients and completes the opening handshake."""

from __future__ import annotations

from typing import NamedTuple

from tinyws.client import WebsocketsClient
from tinyws.crypto import websockets_handshake_encode_key
from tinyws.network import SocketTcpServer, TcpClient, TcpServer

__all__ = ["HandshakeRequestParams", "recv_handshake_request", "WebsocketsServer"]


class HandshakeRequestParams(NamedTuple):
    """The request line and the headers of a client's opening handshake."""

    head: str
    headers: dict[str, str]


def _parse_header_line(line: str) -> tuple[str, str]:
    key, _, rest = line.partition(":")
    value = rest.lstrip(" \t").split("\r", 1)[0]
    return key, value


def recv_handshake_request(client: TcpClient) -> HandshakeRequestParams:
    """Read the request line and headers up to the blank line ending them.

    Header names keep their case; a later header replaces an earlier one with
    the same name. Reading also stops when the connection ends.
    """
    head = client.read_line()
    headers: dict[str, str] = {}
    line = client.read_line()
    while True:
        key, value = _parse_header_line(line)
        headers[key] = value
        line = client.read_line()
        if not client.available() or line == "\r\n":
            break
    return HandshakeRequestParams(head, headers)


class WebsocketsServer:
    """Listens for TCP clients and upgrades them to WebSocket connections."""

    def __init__(self, server: TcpServer | None = None) -> None:
        self._server: TcpServer = server if server is not None else SocketTcpServer()

    def __enter__(self) -> "WebsocketsServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def port(self) -> int | None:
        """The port being listened on, when the transport can tell."""
        return getattr(self._server, "port", None)

    def available(self) -> bool:
        return self._server.available()

    def listen(self, port: int) -> bool:
        """Start listening on ``port``; return whether it succeeded."""
        return self._server.listen(port)

    def poll(self) -> bool:
        """Return whether a client is waiting to be accepted."""
        return self._server.poll()

    def accept(self) -> WebsocketsClient:
        """Accept a client and answer its handshake.

        The returned client is unavailable when accepting failed or when the
        request was not a valid WebSocket upgrade.
        """
        tcp_client = self._server.accept()
        if not tcp_client.available():
            return WebsocketsClient()

        headers = recv_handshake_request(tcp_client).headers
        key = headers.get("Sec-WebSocket-Key", "")
        if (
            "Upgrade" not in headers.get("Connection", "")
            or headers.get("Upgrade") != "websocket"
            or headers.get("Sec-WebSocket-Version") != "13"
            or not key
        ):
            tcp_client.close()
            return WebsocketsClient()

        server_accept = websockets_handshake_encode_key(key)
        tcp_client.send(
            "HTTP/1.1 101 Switching Protocols\r\n"
            "Connection: Upgrade\r\n"
            "Upgrade: websocket\r\n"
            "Sec-WebSocket-Version: 13\r\n"
            f"Sec-WebSocket-Accept: {server_accept}\r\n"
            "\r\n"
        )

        ws_client = WebsocketsClient(tcp_client)
        # Frames from server to client are never masked.
        ws_client.use_masking = False
        return ws_client

    def close(self) -> None:
        """Stop listening."""
        self._server.close()