# tinyws

`tinyws` is a small WebSockets library with no third-party dependencies. It
has a client and a server that you drive yourself: either poll the
connection and let callbacks handle what arrives, or read messages one at a
time with a blocking call. Clients can connect over plain TCP (`ws://`,
`http://`) or over TLS (`wss://`, `https://`).

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## A client

```python
from tinyws.client import WebsocketsClient, WebsocketsEvent

client = WebsocketsClient()

def handle_message(client, message):
    if message.is_text():
        print("text:", message.text)

def handle_event(client, event, data):
    if event is WebsocketsEvent.CONNECTION_CLOSED:
        print("closed:", client.close_reason)

client.on_message(handle_message)
client.on_event(handle_event)

if client.connect("ws://localhost:8080/"):
    client.send("Hello Server")
    while client.available():
        client.poll()
```

Callbacks may leave out the client argument: `on_message` accepts
`fn(message)` as well as `fn(client, message)`, and `on_event` accepts
`fn(event, data)` as well as `fn(client, event, data)`.

`connect` takes either a URL or a host, a port and a path, as in
`client.connect("localhost", 8080, "/")`. It returns `False` for an
unsupported scheme, a failed connection or a rejected handshake. Extra
handshake headers can be added beforehand with `add_header(key, value)`.

Sending:

- `send(data)` sends a text message and `send_binary(data)` a binary one.
- `stream(data)` or `stream_binary(data)` starts a fragmented message; while
  it is open, `send` and `send_binary` send continuation fragments, and
  `end(data)` sends the last one.
- `ping(data)` and `pong(data)` send control frames of at most 125 bytes.
- `close(reason)` sends a close frame with a `CloseReason`
  (`NORMAL_CLOSURE` by default) and closes the connection. Using the client
  as a context manager closes it with `GOING_AWAY` on exit.

Receiving:

- `poll()` handles every frame waiting on the connection and returns whether
  anything arrived. Text and binary messages go to the message callback;
  pings, pongs and closes are reported as `WebsocketsEvent` values. Pings
  are answered with a pong automatically.
- `read_blocking()` waits for the next non-empty message and returns it; an
  empty message means the connection ended.
- `available()` tells whether the connection is still open, and reports a
  lost connection once, as `CONNECTION_CLOSED` with reason
  `ABNORMAL_CLOSURE`.

Messages (`tinyws.message.WebsocketsMessage`) carry their payload as bytes
in `data`, a UTF-8 decoding in `text`, and their `type` and `role`, with
helpers such as `is_text()`, `is_binary()` and `is_partial()`.

Fragmented incoming messages are joined into one message by default. Set
`client.fragments_policy = FragmentsPolicy.NOTIFY` (from `tinyws.endpoint`)
to receive each fragment as it arrives, marked by `is_first()`,
`is_continuation()` or `is_last()`.

## A server

```python
from tinyws.server import WebsocketsServer

with WebsocketsServer() as server:
    server.listen(8080)
    while server.available():
        client = server.accept()
        while client.available():
            message = client.read_blocking()
            if message.is_text():
                client.send(b"Echo: " + message.data)
        client.close()
```

`accept()` returns a `WebsocketsClient`; it is unavailable when accepting
failed or the request was not a valid WebSocket upgrade. `poll()` reports
whether a connection is waiting, so one thread can accept new clients and
poll existing ones in the same loop. `port` gives the port being listened
on, which is useful after `listen(0)`.

## Lower layers

- `tinyws.crypto`: base64 helpers, random handshake keys and
  `websockets_handshake_encode_key`:

  ```python
  from tinyws.crypto import websockets_handshake_encode_key

  assert websockets_handshake_encode_key("dGhlIHNhbXBsZSBub25jZQ==") == "s3pPLMBiTxaQ9kYGzzhZRbK+xOo="
  ```

- `tinyws.frames`: frame opcodes (`ContentType`), the `WebsocketsFrame`
  model and `encode_header`.
- `tinyws.endpoint`: `WebsocketsEndpoint`, which reads and writes frames,
  plus `CloseReason`, `FragmentsPolicy` and `get_close_reason`.
- `tinyws.network`: the TCP transports `SocketTcpClient`, `SecureTcpClient`
  and `SocketTcpServer`, behind the abstract `TcpClient` and `TcpServer`.
- `tinyws.client` also exposes `parse_url`, `generate_handshake` and
  `parse_handshake_response`; `tinyws.server` exposes
  `recv_handshake_request`.

## Command line

Installing the package adds a `tinyws` command with these subcommands:

```
tinyws basic-server [--port PORT]       # echo server, one client at a time
tinyws advanced-server [--port PORT]    # single-threaded echo server, many clients
tinyws echo-client [URL]                # send lines from stdin, print replies
tinyws secure-echo-client [URL]         # the same, defaulting to a wss:// URL
tinyws reconnect [URL]                  # connect, close, connect again, close
```

The servers listen on port 8080 by default and reply `Echo: ` followed by
the received message. The echo clients send each non-empty input line and
stop at `exit` or at the end of input. Run `tinyws --help` for details.

From Python, the same programs are `basic_echo_server`,
`advanced_echo_server`, `echo_client` and `reconnect_client` in
`tinyws.cli`.

## What it does not do

- The server listens on plain TCP only; it cannot accept TLS connections.
- There is no support for WebSocket extensions such as compression, nor for
  subprotocol negotiation.
- There is no asyncio interface; everything is driven by explicit polling
  or blocking reads on the calling thread.