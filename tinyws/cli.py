"""Command-line demos: echo servers and interactive echo clients."""

from __future__ import annotations

import argparse
import sys
import time
from typing import Iterable, TextIO

from tinyws.client import WebsocketsClient, WebsocketsEvent
from tinyws.message import WebsocketsMessage
from tinyws.server import WebsocketsServer

__all__ = [
    "DEFAULT_PORT",
    "basic_echo_server",
    "advanced_echo_server",
    "echo_client",
    "reconnect_client",
    "main",
]

DEFAULT_PORT = 8080

_EVENT_NAMES = {
    WebsocketsEvent.CONNECTION_OPENED: "ConnectionOpened",
    WebsocketsEvent.CONNECTION_CLOSED: "ConnectionClosed",
    WebsocketsEvent.GOT_PING: "GotPing",
    WebsocketsEvent.GOT_PONG: "GotPong",
}


def _serve_basic(
    server: WebsocketsServer, output: TextIO, max_clients: int | None = None
) -> None:
    """Serve clients one at a time, echoing text messages."""
    served = 0
    while server.available() and (max_clients is None or served < max_clients):
        client = server.accept()
        served += 1
        print("Client connected", file=output)

        while client.available():
            message = client.read_blocking()
            if message.is_text():
                client.send(b"Echo: " + message.data)
                print(f"Sending echo: {message.text}", file=output)

        if not client.available():
            print(int(client.close_reason), file=output)
        client.close()


def _serve_advanced(
    server: WebsocketsServer, output: TextIO, max_clients: int | None = None
) -> None:
    """Serve many clients from one thread, echoing every message."""

    def echo(client: WebsocketsClient, message: WebsocketsMessage) -> None:
        print(f"Got Message: `{message.text}`, Sending Echo.", file=output)
        client.send(b"Echo: " + message.data)

    clients: list[WebsocketsClient] = []
    accepted = 0
    while server.available():
        busy = False
        if (max_clients is None or accepted < max_clients) and server.poll():
            print("Accepting a new client!", file=output)
            client = server.accept()
            accepted += 1
            client.on_message(echo)
            clients.append(client)
            busy = True

        for client in clients:
            if client.poll():
                busy = True
        clients = [client for client in clients if client.available()]

        if max_clients is not None and accepted >= max_clients and not clients:
            break
        if not busy:
            time.sleep(0.001)


def _listening_server(port: int) -> WebsocketsServer:
    server = WebsocketsServer()
    if not server.listen(port):
        server.close()
        raise OSError(f"cannot listen on port {port}")
    return server


def basic_echo_server(port: int = DEFAULT_PORT) -> int:
    """Echo text messages back to one client at a time, forever."""
    with _listening_server(port) as server:
        _serve_basic(server, sys.stdout)
    return 0


def advanced_echo_server(port: int = DEFAULT_PORT) -> int:
    """Echo messages back to any number of clients from a single thread, forever."""
    with _listening_server(port) as server:
        _serve_advanced(server, sys.stdout)
    return 0


def echo_client(url: str, lines: Iterable[str], output: TextIO) -> int:
    """Send each non-empty line to ``url`` and print what comes back.

    The line ``exit``, or running out of lines, closes the connection.
    """
    client = WebsocketsClient()
    client.connect(url)
    client.on_message(lambda message: print(f"Got Data: {message.text}", file=output))

    remaining = iter(lines)
    while client.available():
        output.write("Enter input: ")
        output.flush()
        line = next(remaining, None)
        if line is None:
            client.close()
            break
        line = line.rstrip("\r\n")
        if line:
            if line == "exit":
                client.close()
            else:
                client.poll()
                client.send(line)
        client.poll()

    print("Exited Gracefully", file=output)
    return 0


def reconnect_client(url: str, output: TextIO) -> int:
    """Connect to ``url``, close, then connect and close again with the same client."""
    client = WebsocketsClient()
    client.on_message(lambda message: print(f"Got Data: {message.text}", file=output))

    def report(event: WebsocketsEvent, data: bytes) -> None:
        name = _EVENT_NAMES.get(event, "Unknown event")
        print(f"WebsocketsEvent {name}", file=output)

    client.on_event(report)

    client.connect(url)
    if not client.available():
        return 1
    print("Client is connected. Closing and retrying.", file=output)
    client.close()

    client.connect(url)
    if not client.available():
        return 1
    print("Client is connected. Closing and exiting.", file=output)
    client.close()

    print("Exited Gracefully", file=output)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tinyws", description="WebSocket demo programs.")
    commands = parser.add_subparsers(dest="command", required=True)

    for name, text in (
        ("basic-server", "echo server for one client at a time"),
        ("advanced-server", "single-threaded echo server for many clients"),
    ):
        sub = commands.add_parser(name, help=text)
        sub.add_argument("--port", type=int, default=DEFAULT_PORT)

    for name, default, text in (
        ("echo-client", "ws://localhost:8080/", "interactive echo client"),
        ("secure-echo-client", "wss://localhost:8443/", "interactive TLS echo client"),
        ("reconnect", "ws://localhost:9000/primus", "connect, close and reconnect"),
    ):
        sub = commands.add_parser(name, help=text)
        sub.add_argument("url", nargs="?", default=default)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        if args.command == "basic-server":
            return basic_echo_server(args.port)
        if args.command == "advanced-server":
            return advanced_echo_server(args.port)
        if args.command in ("echo-client", "secure-echo-client"):
            return echo_client(args.url, sys.stdin, sys.stdout)
        return reconnect_client(args.url, sys.stdout)
    except KeyboardInterrupt:
        return 0
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())