import io
import socket
import threading
import time

import pytest

from tinyws import cli
from tinyws.client import WebsocketsClient
from tinyws.endpoint import CloseReason
from tinyws.server import WebsocketsServer


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _start(target, *args):
    errors = []

    def runner():
        try:
            target(*args)
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    thread = threading.Thread(target=runner, daemon=True)
    thread.start()
    return thread, errors


def _listening_server():
    server = WebsocketsServer()
    assert server.listen(0) is True
    return server, server.port


def _lines_until_reply(output):
    yield "hello\n"
    deadline = time.monotonic() + 10
    while "Got Data" not in output.getvalue() and time.monotonic() < deadline:
        time.sleep(0.01)
        yield ""
    yield "exit\n"


def test_basic_server_echoes_text():
    server, port = _listening_server()
    output = io.StringIO()
    thread, errors = _start(cli._serve_basic, server, output, 1)
    try:
        client = WebsocketsClient()
        assert client.connect("127.0.0.1", port, "/") is True
        assert client.send("hello") is True
        message = client.read_blocking()
        client.close()
        thread.join(10)
    finally:
        server.close()

    assert errors == []
    assert not thread.is_alive()
    assert message.is_text()
    assert message.data == b"Echo: hello"
    lines = output.getvalue().splitlines()
    assert lines[0] == "Client connected"
    assert "Sending echo: hello" in lines
    assert int(lines[-1]) in {int(reason) for reason in CloseReason}


def test_advanced_server_handles_two_clients():
    server, port = _listening_server()
    output = io.StringIO()
    thread, errors = _start(cli._serve_advanced, server, output, 2)
    try:
        first = WebsocketsClient()
        second = WebsocketsClient()
        assert first.connect("127.0.0.1", port, "/") is True
        assert second.connect("127.0.0.1", port, "/") is True
        assert first.send("one") is True
        assert second.send("two") is True
        reply_one = first.read_blocking()
        reply_two = second.read_blocking()
        first.close()
        second.close()
        thread.join(10)
    finally:
        server.close()

    assert errors == []
    assert not thread.is_alive()
    assert reply_one.data == b"Echo: one"
    assert reply_two.data == b"Echo: two"
    text = output.getvalue()
    assert text.count("Accepting a new client!") == 2
    assert "Got Message: `one`, Sending Echo." in text
    assert "Got Message: `two`, Sending Echo." in text


def test_echo_client_round_trip():
    server, port = _listening_server()
    server_output = io.StringIO()
    thread, errors = _start(cli._serve_basic, server, server_output, 1)
    output = io.StringIO()

    try:
        result = cli.echo_client(
            f"ws://127.0.0.1:{port}/", _lines_until_reply(output), output
        )
        thread.join(10)
    finally:
        server.close()

    assert errors == []
    assert result == 0
    text = output.getvalue()
    assert "Got Data: Echo: hello" in text
    assert text.rstrip().endswith("Exited Gracefully")
    assert "Sending echo: hello" in server_output.getvalue()


def test_echo_client_without_server_exits_gracefully():
    output = io.StringIO()
    result = cli.echo_client(f"ws://127.0.0.1:{_unused_port()}/", ["hello"], output)
    assert result == 0
    assert output.getvalue() == "Exited Gracefully\n"


def test_reconnect_client_connects_twice():
    server, port = _listening_server()
    thread, errors = _start(cli._serve_basic, server, io.StringIO(), 2)
    output = io.StringIO()
    try:
        result = cli.reconnect_client(f"ws://127.0.0.1:{port}/primus", output)
        thread.join(10)
    finally:
        server.close()

    assert errors == []
    assert result == 0
    text = output.getvalue()
    assert text.count("WebsocketsEvent ConnectionOpened") == 2
    assert text.count("WebsocketsEvent ConnectionClosed") >= 2
    assert text.index("Closing and retrying") < text.index("Closing and exiting")
    assert text.rstrip().endswith("Exited Gracefully")


def test_reconnect_client_fails_without_server():
    output = io.StringIO()
    assert cli.reconnect_client(f"ws://127.0.0.1:{_unused_port()}/", output) == 1
    assert "Exited Gracefully" not in output.getvalue()


def test_basic_echo_server_raises_when_port_is_taken():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as holder:
        holder.bind(("", 0))
        holder.listen(1)
        port = holder.getsockname()[1]
        with pytest.raises(OSError):
            cli.basic_echo_server(port)
        assert cli.main(["advanced-server", "--port", str(port)]) == 1


def test_main_reconnect_reports_failure():
    assert cli.main(["reconnect", f"ws://127.0.0.1:{_unused_port()}/"]) == 1


def test_main_echo_client_reads_stdin(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("exit\n"))
    assert cli.main(["echo-client", f"ws://127.0.0.1:{_unused_port()}/"]) == 0
    assert "Exited Gracefully" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [[], ["nonsense"], ["basic-server", "--port", "x"]])
def test_main_rejects_bad_arguments(argv):
    with pytest.raises(SystemExit) as info:
        cli.main(argv)
    assert info.value.code == 2