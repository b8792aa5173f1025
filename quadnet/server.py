"""Server that accepts framed TCP clients and WebSocket clients alike.

Every connection gets its own state object, created by the settings'
``state_factory``. Incoming messages go to ``on_message``. When a timer is
set, ``on_timer`` runs every ``timer`` seconds for each connection.
``on_disconnect`` runs once when a connection ends. The callbacks never run
at the same time.
"""

from __future__ import annotations

import logging
import socket
import struct
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

from websockets.exceptions import ConnectionClosed
from websockets.sync.server import serve as _ws_serve

from .errors import NetError, ProtocolError
from .protocol import MessageReader, encode_message

_log = logging.getLogger(__name__)

_POLL_INTERVAL = 0.01
_STOP_CHECK_INTERVAL = 0.1
_JOIN_TIMEOUT = 2.0


def _noop(*_args) -> None:
    return None


def _parse_addr(addr) -> tuple[str, int]:
    """Accept ``(host, port)`` or ``"host:port"``."""
    if isinstance(addr, tuple):
        host, port = addr
        return str(host), int(port)
    text = str(addr)
    host, sep, port = text.rpartition(":")
    if not sep or not port.isdigit():
        raise NetError(f"invalid socket address: {text!r}")
    return host.strip("[]"), int(port)


def _layout(fmt: str) -> str:
    if fmt and fmt[0] in "@=<>!":
        return fmt
    return f"<{fmt}"


@dataclass
class Settings:
    """Callbacks and timing for a :class:`Server`.

    ``timer`` is the period of ``on_timer`` in seconds, or ``None`` for no
    timer.
    """

    on_message: Callable[["SocketHandle", Any, bytes], None]
    on_timer: Callable[["SocketHandle", Any], None] = _noop
    on_disconnect: Callable[[Any], None] = _noop
    timer: float | None = None
    state_factory: Callable[[], Any] = dict

    def __post_init__(self) -> None:
        if self.timer is not None and self.timer <= 0:
            raise ValueError(f"timer must be positive, got {self.timer!r}")


class SocketHandle:
    """Handed to callbacks to answer the peer or to end the connection."""

    def __init__(self, send: Callable[[bytes], None]) -> None:
        self._send = send
        self._disconnect = False

    @property
    def disconnect_requested(self) -> bool:
        """Whether :meth:`disconnect` has been called."""
        return self._disconnect

    def send(self, data: bytes) -> None:
        """Send one raw message to the peer; raises :class:`NetError` on failure."""
        self._send(bytes(data))

    def send_bin(self, data, fmt: str) -> None:
        """Pack ``data`` with the :mod:`struct` format ``fmt`` and send it."""
        values = tuple(data) if isinstance(data, (tuple, list)) else (data,)
        try:
            payload = struct.pack(_layout(fmt), *values)
        except struct.error as exc:
            raise ValueError(f"cannot pack {values!r} as {fmt!r}: {exc}") from exc
        self.send(payload)

    def disconnect(self) -> None:
        """Close the connection once the running callback returns."""
        self._disconnect = True


def _tcp_sender(conn: socket.socket) -> Callable[[bytes], None]:
    def send(data: bytes) -> None:
        frame = encode_message(data)
        try:
            conn.sendall(frame)
        except OSError as exc:
            raise NetError(f"failed to send: {exc}") from exc

    return send


def _ws_sender(connection) -> Callable[[bytes], None]:
    def send(data: bytes) -> None:
        try:
            connection.send(data)
        except (ConnectionClosed, OSError) as exc:
            raise NetError(f"failed to send on websocket: {exc}") from exc

    return send


class Server:
    """Listens for TCP clients and, if ``ws_addr`` is given, WebSocket clients."""

    def __init__(self, tcp_addr, ws_addr, settings: Settings) -> None:
        self._tcp_addr = _parse_addr(tcp_addr)
        self._ws_addr = None if ws_addr is None else _parse_addr(ws_addr)
        self._settings = settings
        self._callback_lock = threading.Lock()
        self._stop = threading.Event()
        self._listener: socket.socket | None = None
        self._ws_server = None
        self._threads: list[threading.Thread] = []
        self._threads_lock = threading.Lock()
        self._started = False

    @property
    def tcp_address(self) -> tuple[str, int]:
        """The bound TCP ``(host, port)``."""
        if self._listener is None:
            raise NetError("server is not started")
        return self._listener.getsockname()[:2]

    @property
    def ws_address(self) -> tuple[str, int] | None:
        """The bound WebSocket ``(host, port)``, or ``None`` without one."""
        if self._ws_server is None:
            return None
        return self._ws_server.socket.getsockname()[:2]

    def start(self) -> Server:
        """Bind the listeners and start serving in background threads."""
        if self._started:
            raise NetError("server already started")
        try:
            listener = socket.create_server(self._tcp_addr)
        except OSError as exc:
            raise NetError(f"failed to bind {self._tcp_addr}: {exc}") from exc
        listener.settimeout(_STOP_CHECK_INTERVAL)

        if self._ws_addr is not None:
            host, port = self._ws_addr
            try:
                self._ws_server = _ws_serve(self._serve_websocket, host, port)
            except OSError as exc:
                listener.close()
                raise NetError(f"failed to bind {self._ws_addr}: {exc}") from exc
            self._spawn(self._ws_server.serve_forever)

        self._listener = listener
        self._started = True
        self._spawn(self._accept_loop, listener)
        return self

    def shutdown(self) -> None:
        """Stop accepting clients, end every connection and wait for the threads."""
        self._stop.set()
        if self._ws_server is not None:
            self._ws_server.shutdown()
        if self._listener is not None:
            self._listener.close()
        with self._threads_lock:
            threads = list(self._threads)
        current = threading.current_thread()
        for thread in threads:
            if thread is not current:
                thread.join(_JOIN_TIMEOUT)

    def __enter__(self) -> Server:
        if not self._started:
            self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def _wait(self) -> None:
        while not self._stop.wait(0.5):
            pass

    def _spawn(self, target, *args) -> None:
        thread = threading.Thread(target=target, args=args, daemon=True)
        with self._threads_lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()

    def _accept_loop(self, listener: socket.socket) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = listener.accept()
            except TimeoutError:
                continue
            except OSError:
                break
            self._spawn(self._serve_tcp, conn)

    def _call(self, callback, *args) -> None:
        with self._callback_lock:
            callback(*args)

    def _serve_tcp(self, conn: socket.socket) -> None:
        settings = self._settings
        timer = settings.timer
        state = settings.state_factory()
        reader = MessageReader()
        send = _tcp_sender(conn)
        deadline = time.monotonic() + timer if timer is not None else None

        with conn:
            try:
                conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
                conn.settimeout(_POLL_INTERVAL)
                while not self._stop.is_set():
                    message = reader.next(conn)
                    if message is not None:
                        handle = SocketHandle(send)
                        self._call(settings.on_message, handle, state, message)
                        if handle.disconnect_requested:
                            break
                    if deadline is not None and time.monotonic() >= deadline:
                        deadline = time.monotonic() + timer
                        handle = SocketHandle(send)
                        self._call(settings.on_timer, handle, state)
                        if handle.disconnect_requested:
                            break
            except ProtocolError:
                pass
            except Exception:
                _log.exception("TCP connection handler failed")
            finally:
                self._call(settings.on_disconnect, state)

    def _serve_websocket(self, connection) -> None:
        settings = self._settings
        timer = settings.timer
        state = settings.state_factory()
        send = _ws_sender(connection)
        deadline = time.monotonic() + timer if timer is not None else None

        try:
            while not self._stop.is_set():
                wait = _STOP_CHECK_INTERVAL
                if deadline is not None:
                    wait = max(min(wait, deadline - time.monotonic()), 0.001)
                try:
                    message = connection.recv(timeout=wait)
                except TimeoutError:
                    message = None
                if message is not None:
                    if isinstance(message, str):
                        message = message.encode("utf-8")
                    handle = SocketHandle(send)
                    self._call(settings.on_message, handle, state, bytes(message))
                    if handle.disconnect_requested:
                        break
                if deadline is not None and time.monotonic() >= deadline:
                    deadline = time.monotonic() + timer
                    handle = SocketHandle(send)
                    self._call(settings.on_timer, handle, state)
                    if handle.disconnect_requested:
                        break
        except ConnectionClosed:
            pass
        except Exception:
            _log.exception("WebSocket connection handler failed")
        finally:
            try:
                connection.close()
            except Exception:
                pass
            self._call(settings.on_disconnect, state)


def listen(tcp_addr, ws_addr, settings: Settings) -> None:
    """Serve on ``tcp_addr`` and ``ws_addr`` until interrupted."""
    server = Server(tcp_addr, ws_addr, settings).start()
    try:
        server._wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()