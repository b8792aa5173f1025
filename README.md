# quadnet

Small network abstractions for programs with a frame loop. You poll them once per frame and they never block.

- `quadnet.client.QuadSocket` is a client socket. Its messages go over TCP, each framed with a one-byte length prefix.
- `quadnet.server.Server` and `quadnet.server.listen` run a server. It accepts the same framed TCP connections and, optionally, WebSocket connections. Your `on_message`, `on_timer` and `on_disconnect` callbacks drive it.
- `quadnet.web_socket.WebSocket` is a WebSocket client that you poll in the same way.
- `quadnet.http_request.RequestBuilder` sends an HTTP request on a background thread.

## Installation

```
pip install quadnet
```

## Framing

The TCP transport sends one length byte and then the payload, so a message holds at most 255 bytes. `quadnet.protocol.encode_message(data)` builds such a frame and raises `ValueError` for longer payloads. `quadnet.protocol.MessageReader` decodes frames step by step from a socket or a binary stream. Each call to `next(stream)` returns a finished message or `None`. It raises `ProtocolError` when the stream fails or is closed.

## Client

```python
from quadnet.client import QuadSocket

with QuadSocket.connect("localhost:8090") as sock:
    sock.send_bin((10.0, 20.0), "ff")

    # in your frame loop
    while (msg := sock.try_recv_bin("ffQ")) is not None:
        x, y, last_edit_id = msg
```

- `connect` accepts `"host:port"` or `(host, port)`. If the connection fails it raises `NetError`.
- `send` and `try_recv` work on raw `bytes`. `try_recv` returns `None` when no message is waiting.
- `send_bin(data, fmt)` and `try_recv_bin(fmt)` pack and unpack values with a `struct` format. If the format does not give a byte order, the layout is little-endian and unpadded.
- `try_recv_bin` raises `ProtocolError` when a message does not match the format.
- `TcpSocket` is the transport underneath, with the same `connect`, `send`, `try_recv` and `close`.

## WebSocket client

```python
from quadnet.web_socket import WebSocket

with WebSocket.connect("localhost:8091") as ws:   # "ws://" is added when no scheme is given
    ws.send_bytes(b"\x01\x02")
    ws.send_text("hello")
    data = ws.try_recv()     # bytes or None; text messages arrive as UTF-8 bytes
    ws.connected()           # False once the connection has ended
```

## Server

```python
from dataclasses import dataclass
from quadnet.server import Server, Settings

@dataclass
class ClientState:
    count: int = 0

def on_message(handle, state, message):
    state.count += 1
    handle.send(message)                 # echo back
    if message == b"bye":
        handle.disconnect()

def on_timer(handle, state):
    handle.send_bin((state.count,), "I")

settings = Settings(
    on_message=on_message,
    on_timer=on_timer,
    on_disconnect=lambda state: None,
    timer=0.1,                           # seconds, or None for no timer
    state_factory=ClientState,           # defaults to dict
)

with Server("127.0.0.1:0", "127.0.0.1:0", settings) as server:
    print(server.tcp_address, server.ws_address)
    ...
```

- Each connection gets its own state from `state_factory`.
- `on_timer` runs every `timer` seconds for each connection. `on_disconnect` runs once when a connection ends.
- The callbacks never run at the same time.
- `handle.disconnect()` closes the connection once the callback returns.
- Pass `None` as the WebSocket address to serve TCP only.
- `Server.start()` binds the listeners and returns the server. `Server.shutdown()` stops it.
- `listen(tcp_addr, ws_addr, settings)` serves until interrupted.

## HTTP requests

```python
from quadnet.http_request import HttpError, Method, RequestBuilder

request = (
    RequestBuilder("http://127.0.0.1:4000/")
    .method(Method.POST)
    .header("Content-Type", "text/plain")
    .body("hello")
    .send()
)

# in your frame loop
try:
    text = request.try_recv()   # None while the request is still running
except HttpError as exc:
    ...
```

- Every builder method returns a new builder. The default method is `GET`.
- A body is sent as UTF-8. If no `Content-Type` header is given, it defaults to `text/plain; charset=utf-8`.
- `try_recv` returns the response body once, then `None`. If the request failed, it raises `HttpError`.

## Errors

`quadnet.errors.NetError` is the base of every error the package raises. `ProtocolError` and `HttpError` derive from it.

## Shared-world demo server

In this demo server, clients send a position as two little-endian `f32` values. On every timer tick, each client gets back the position and the `u64` id of the client that moved it last:

```
quadnet-shared-world --tcp 0.0.0.0:8090 --ws 0.0.0.0:8091 --timer-ms 100
```

The values shown are the defaults.

## What it does not do

`QuadSocket` only talks framed TCP. It has no WebSocket transport, so to reach the server's WebSocket side use `WebSocket` directly. The package has no in-browser variant, and it has no graphical client for the demo server.