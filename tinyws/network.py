"""TCP transports: plain and TLS clients, and a listening server."""

from __future__ import annotations

import abc
import os
import select
import socket
import ssl

__all__ = [
    "DEFAULT_BACKLOG_SIZE",
    "TcpClient",
    "TcpServer",
    "SocketTcpClient",
    "SecureTcpClient",
    "SocketTcpServer",
]

DEFAULT_BACKLOG_SIZE = 5


def _readable_now(sock: socket.socket) -> bool:
    try:
        readable, _, _ = select.select([sock], [], [], 0)
    except (OSError, ValueError):
        return False
    return bool(readable)


class TcpClient(abc.ABC):
    """A stream connection as seen by the WebSocket layer."""

    @abc.abstractmethod
    def connect(self, host: str, port: int) -> bool:
        """Open a connection; return whether it succeeded."""

    @abc.abstractmethod
    def poll(self) -> bool:
        """Return whether data can be read without blocking."""

    @abc.abstractmethod
    def available(self) -> bool:
        """Return whether the connection is open."""

    @abc.abstractmethod
    def send(self, data: str | bytes | bytearray) -> None:
        """Send all of ``data``; the connection is closed on failure."""

    @abc.abstractmethod
    def read_line(self) -> str:
        """Read up to and including the next newline."""

    @abc.abstractmethod
    def read(self, length: int) -> bytes:
        """Read at most ``length`` bytes; an empty result means the connection ended."""

    @abc.abstractmethod
    def close(self) -> None:
        """Close the connection."""

    def __enter__(self) -> "TcpClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self.available():
            self.close()


class TcpServer(abc.ABC):
    """A listening endpoint that hands out connected clients."""

    @abc.abstractmethod
    def listen(self, port: int) -> bool:
        """Start listening; return whether it succeeded."""

    @abc.abstractmethod
    def poll(self) -> bool:
        """Return whether a client is waiting to be accepted."""

    @abc.abstractmethod
    def accept(self) -> TcpClient:
        """Accept a client; the result is unavailable if accepting failed."""

    @abc.abstractmethod
    def available(self) -> bool:
        """Return whether the server is listening."""

    @abc.abstractmethod
    def close(self) -> None:
        """Stop listening."""

    def __enter__(self) -> "TcpServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class SocketTcpClient(TcpClient):
    """TCP client on top of a standard socket."""

    def __init__(self, sock: socket.socket | None = None) -> None:
        self._sock = sock

    def connect(self, host: str, port: int) -> bool:
        if self._sock is not None:
            self.close()
        try:
            self._sock = socket.create_connection((host, port))
        except OSError:
            self._sock = None
        return self.available()

    def poll(self) -> bool:
        if self._sock is None:
            return False
        return _readable_now(self._sock)

    def available(self) -> bool:
        return self._sock is not None

    def send(self, data: str | bytes | bytearray) -> None:
        if self._sock is None:
            return
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        try:
            self._sock.sendall(payload)
        except OSError:
            self.close()

    def read_line(self) -> str:
        """Read one line, decoded as Latin-1 so every byte survives."""
        line = bytearray()
        while True:
            byte = self.read(1)
            if not byte:
                break
            line += byte
            if byte == b"\n":
                break
        return line.decode("latin-1")

    def read(self, length: int) -> bytes:
        if self._sock is None or length <= 0:
            return b""
        try:
            chunk = self._sock.recv(length)
        except OSError:
            chunk = b""
        if not chunk:
            self.close()
        return chunk

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass


class SecureTcpClient(SocketTcpClient):
    """TLS client; the TCP connection is wrapped right after it is opened."""

    def __init__(
        self,
        sock: socket.socket | None = None,
        context: ssl.SSLContext | None = None,
    ) -> None:
        super().__init__(sock)
        self._context = context

    def connect(self, host: str, port: int) -> bool:
        if not super().connect(host, port):
            return False
        context = self._context or ssl.create_default_context()
        try:
            self._sock = context.wrap_socket(self._sock, server_hostname=host)
        except (OSError, ValueError):
            self.close()
            return False
        return True

    def poll(self) -> bool:
        if self._sock is None:
            return False
        pending = getattr(self._sock, "pending", None)
        if pending is not None:
            try:
                if pending() > 0:
                    return True
            except (OSError, ValueError):
                return False
        return super().poll()


class SocketTcpServer(TcpServer):
    """IPv4 TCP server listening on all interfaces."""

    def __init__(self, backlog: int = DEFAULT_BACKLOG_SIZE) -> None:
        self._backlog = backlog
        self._sock: socket.socket | None = None

    @property
    def port(self) -> int | None:
        """The bound port, or ``None`` when not listening."""
        if self._sock is None:
            return None
        return self._sock.getsockname()[1]

    def listen(self, port: int) -> bool:
        self.close()
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError:
            return False
        try:
            if os.name != "nt":
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("", port))
            sock.listen(self._backlog)
        except OSError:
            sock.close()
            return False
        self._sock = sock
        return True

    def poll(self) -> bool:
        if self._sock is None:
            return False
        return _readable_now(self._sock)

    def accept(self) -> SocketTcpClient:
        if self._sock is None:
            return SocketTcpClient()
        try:
            conn, _ = self._sock.accept()
        except OSError:
            return SocketTcpClient()
        return SocketTcpClient(conn)

    def available(self) -> bool:
        return self._sock is not None

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is not None:
            try:
                sock.close()
            except OSError:
                pass