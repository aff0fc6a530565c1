"""WebSocket client: opening handshake, message dispatch and sending."""

from __future__ import annotations

from enum import Enum, auto
from typing import Callable, Iterable, NamedTuple

from tinyws.crypto import base64_encode, random_bytes, websockets_handshake_encode_key
from tinyws.endpoint import CloseReason, FragmentsPolicy, WebsocketsEndpoint
from tinyws.frames import ContentType
from tinyws.message import WebsocketsMessage
from tinyws.network import SecureTcpClient, SocketTcpClient, TcpClient

__all__ = [
    "WebsocketsEvent",
    "HandshakeRequest",
    "HandshakeResponse",
    "ParsedUrl",
    "generate_handshake",
    "parse_handshake_response",
    "parse_url",
    "WebsocketsClient",
]

USER_AGENT = "TinyWebsockets Client"
_DIGITS = "0123456789"
_CO_VARARGS = 0x04


class WebsocketsEvent(Enum):
    """Connection events reported to the event callback."""

    CONNECTION_OPENED = auto()
    CONNECTION_CLOSED = auto()
    GOT_PING = auto()
    GOT_PONG = auto()


class HandshakeRequest(NamedTuple):
    request: str
    expected_accept_key: str


class HandshakeResponse(NamedTuple):
    is_success: bool
    server_accept: str


class ParsedUrl(NamedTuple):
    scheme: str
    host: str
    port: int
    path: str
    secure: bool


_SCHEMES = {
    "http://": ("http", 80, False),
    "ws://": ("ws", 80, False),
    "wss://": ("wss", 443, True),
    "https://": ("https", 443, True),
}


def generate_handshake(
    host: str, uri: str, custom_headers: Iterable[tuple[str, str]] = ()
) -> HandshakeRequest:
    """Build the HTTP upgrade request and the accept key the server must answer with."""
    key = base64_encode(random_bytes(16))
    lines = [
        f"GET {uri} HTTP/1.1",
        f"Host: {host}",
        "Upgrade: websocket",
        "Connection: Upgrade",
        f"Sec-WebSocket-Key: {key}",
        "Sec-WebSocket-Version: 13",
        f"User-Agent: {USER_AGENT}",
    ]
    lines.extend(f"{name}: {value}" for name, value in custom_headers)
    request = "".join(line + "\r\n" for line in lines) + "\r\n"
    return HandshakeRequest(request, websockets_handshake_encode_key(key))


def parse_handshake_response(headers: Iterable[str]) -> HandshakeResponse:
    """Check the server's response headers (lines without their line ending)."""
    upgraded = False
    connection_upgraded = False
    server_accept = ""
    for header in headers:
        name, colon, _ = header.partition(":")
        value = header[len(name) + 2:] if colon else ""
        name = name.lower()
        if name == "upgrade":
            upgraded = value.lower() == "websocket"
        elif name == "connection":
            connection_upgraded = value.lower() == "upgrade"
        elif name == "sec-websocket-accept":
            server_accept = value
    success = bool(server_accept) and upgraded and connection_upgraded
    return HandshakeResponse(success, server_accept)


def parse_url(url: str) -> ParsedUrl:
    """Split a ws/wss/http/https URL into its parts.

    A port that is given but has no digits becomes 0.
    """
    for prefix, (scheme, default_port, secure) in _SCHEMES.items():
        if url.startswith(prefix):
            rest = url[len(prefix):]
            break
    else:
        raise ValueError(f"unsupported URL scheme: {url!r}")

    host, slash, tail = rest.partition("/")
    path = slash + tail if slash else "/"

    port = default_port
    only_host, colon, port_text = host.partition(":")
    if colon:
        digits = []
        for char in port_text:
            if char not in _DIGITS:
                break
            digits.append(char)
        port = int("".join(digits)) if digits else 0
        host = only_host
    return ParsedUrl(scheme, host, port, path, secure)


def _takes_client(callback: Callable[..., object], full_arity: int) -> bool:
    """Tell whether ``callback`` expects the client as its first argument."""
    bound_to = getattr(callback, "__self__", None)
    function = getattr(callback, "__func__", callback)
    code = getattr(function, "__code__", None)
    if code is None:
        call = getattr(type(callback), "__call__", None)
        code = getattr(call, "__code__", None)
        if code is None:
            return True
        bound_to = callback
    if code.co_flags & _CO_VARARGS:
        return True
    positional = code.co_argcount
    if bound_to is not None:
        positional -= 1
    return positional >= full_arity


def _ignore_message(client: "WebsocketsClient", message: WebsocketsMessage) -> None:
    return None


def _ignore_event(client: "WebsocketsClient", event: WebsocketsEvent, data: bytes) -> None:
    return None


class WebsocketsClient:
    """One side of a WebSocket connection.

    Callbacks may take the client as their first argument or leave it out:
    ``on_message(fn(client, message))`` or ``on_message(fn(message))``, and
    ``on_event(fn(client, event, data))`` or ``on_event(fn(event, data))``.
    """

    def __init__(self, client: TcpClient | None = None) -> None:
        self._client: TcpClient = client if client is not None else SocketTcpClient()
        self._custom_headers: list[tuple[str, str]] = []
        self._endpoint = WebsocketsEndpoint(self._client)
        self._connection_open = self._client.available()
        self._message_callback: Callable[..., object] = _ignore_message
        self._event_callback: Callable[..., object] = _ignore_event
        self._streaming = False

    def __enter__(self) -> "WebsocketsClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self.available():
            self.close(CloseReason.GOING_AWAY)

    # -- configuration -------------------------------------------------

    @property
    def close_reason(self) -> CloseReason:
        return self._endpoint.close_reason

    @property
    def fragments_policy(self) -> FragmentsPolicy:
        return self._endpoint.fragments_policy

    @fragments_policy.setter
    def fragments_policy(self, policy: FragmentsPolicy) -> None:
        self._endpoint.fragments_policy = policy

    @property
    def use_masking(self) -> bool:
        return self._endpoint.use_masking

    @use_masking.setter
    def use_masking(self, value: bool) -> None:
        self._endpoint.use_masking = value

    def add_header(self, key: str, value: str) -> None:
        """Add a header to send with the opening handshake."""
        self._custom_headers.append((key, value))

    def on_message(self, callback: Callable[..., object]) -> None:
        if _takes_client(callback, 2):
            self._message_callback = callback
        else:
            self._message_callback = lambda _client, message: callback(message)

    def on_event(self, callback: Callable[..., object]) -> None:
        if _takes_client(callback, 3):
            self._event_callback = callback
        else:
            self._event_callback = lambda _client, event, data: callback(event, data)

    # -- connecting ----------------------------------------------------

    def _upgrade_to_secured_connection(self) -> None:
        self._client = SecureTcpClient()
        self._endpoint.set_internal_socket(self._client)

    def connect(self, target: str, port: int | None = None, path: str = "/") -> bool:
        """Connect to a URL, or to ``target`` as a host when ``port`` is given."""
        if port is None:
            try:
                parsed = parse_url(target)
            except ValueError:
                return False
            if parsed.secure:
                self._upgrade_to_secured_connection()
            return self._connect(parsed.host, parsed.port, parsed.path)
        return self._connect(target, port, path)

    def _connect(self, host: str, port: int, path: str) -> bool:
        self._connection_open = self._client.connect(host, port)
        if not self._connection_open:
            return False

        handshake = generate_handshake(host, path, self._custom_headers)
        self._client.send(handshake.request)

        head = self._client.read_line()
        if not head.startswith("HTTP/1.1 101"):
            self.close(CloseReason.PROTOCOL_ERROR)
            return False

        headers = []
        while True:
            line = self._client.read_line()
            if line == "\r\n":
                break
            if not line.endswith("\n"):
                self.close(CloseReason.PROTOCOL_ERROR)
                return False
            headers.append(line[:-2] if line.endswith("\r\n") else line[:-1])

        response = parse_handshake_response(headers)
        if not response.is_success or response.server_accept != handshake.expected_accept_key:
            self.close(CloseReason.PROTOCOL_ERROR)
            return False

        self._event_callback(self, WebsocketsEvent.CONNECTION_OPENED, b"")
        return True

    # -- receiving -----------------------------------------------------

    def poll(self) -> bool:
        """Handle everything waiting on the connection; return whether anything arrived."""
        received = False
        while self.available() and self._endpoint.poll():
            message = self._endpoint.recv()
            if message.is_empty():
                continue
            received = True

            if message.is_binary() or message.is_text() or message.is_continuation():
                self._message_callback(self, message)
            elif message.is_ping():
                self._event_callback(self, WebsocketsEvent.GOT_PING, message.data)
            elif message.is_pong():
                self._event_callback(self, WebsocketsEvent.GOT_PONG, message.data)
            elif message.is_close():
                self._connection_open = False
                self._handle_close(message)
        return received

    def read_blocking(self) -> WebsocketsMessage:
        """Wait for the next message; an empty message means the connection ended."""
        while self.available():
            message = self._endpoint.recv()
            if not message.is_empty():
                return message
        return WebsocketsMessage()

    def available(self, active_test: bool = False) -> bool:
        """Return whether the connection is open, reporting a lost connection once."""
        if active_test:
            self._endpoint.ping(b"")

        still_open = self._connection_open and self._client is not None and self._client.available()
        if still_open != self._connection_open:
            self._endpoint.close(CloseReason.ABNORMAL_CLOSURE)
            self._event_callback(self, WebsocketsEvent.CONNECTION_CLOSED, b"")
        self._connection_open = still_open
        return self._connection_open

    # -- sending -------------------------------------------------------

    def _send_data(self, data: str | bytes | bytearray, opcode: ContentType) -> bool:
        if not self.available():
            return False
        if self._streaming:
            return self._endpoint.send(data, ContentType.CONTINUATION, False)
        return self._endpoint.send(data, opcode, True)

    def send(self, data: str | bytes | bytearray) -> bool:
        """Send a text message, or a continuation fragment while streaming."""
        return self._send_data(data, ContentType.TEXT)

    def send_binary(self, data: str | bytes | bytearray) -> bool:
        """Send a binary message, or a continuation fragment while streaming."""
        return self._send_data(data, ContentType.BINARY)

    def _begin_stream(self, data: str | bytes | bytearray, opcode: ContentType) -> bool:
        if self.available() and not self._streaming:
            self._streaming = True
            return self._endpoint.send(data, opcode, False)
        return False

    def stream(self, data: str | bytes | bytearray = b"") -> bool:
        """Start a fragmented text message."""
        return self._begin_stream(data, ContentType.TEXT)

    def stream_binary(self, data: str | bytes | bytearray = b"") -> bool:
        """Start a fragmented binary message."""
        return self._begin_stream(data, ContentType.BINARY)

    def end(self, data: str | bytes | bytearray = b"") -> bool:
        """Send the last fragment of a streamed message."""
        if self.available() and self._streaming:
            self._streaming = False
            return self._endpoint.send(data, ContentType.CONTINUATION, True)
        return False

    def ping(self, data: str | bytes | bytearray = b"") -> bool:
        if self.available():
            return self._endpoint.ping(data)
        return False

    def pong(self, data: str | bytes | bytearray = b"") -> bool:
        if self.available():
            return self._endpoint.pong(data)
        return False

    def close(self, reason: CloseReason = CloseReason.NORMAL_CLOSURE) -> None:
        """Close the connection with ``reason``, if it is open."""
        if self.available():
            self._connection_open = False
            self._endpoint.close(reason)
            self._handle_close(WebsocketsMessage())

    def _handle_close(self, message: WebsocketsMessage) -> None:
        self._event_callback(self, WebsocketsEvent.CONNECTION_CLOSED, message.data)