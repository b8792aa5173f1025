"""Socket-like client that exchanges small framed messages over TCP."""

from __future__ import annotations

import queue
import socket
import struct
import threading

from .errors import NetError, ProtocolError
from .protocol import MessageReader, encode_message


def _split_address(addr) -> tuple[str, int]:
    """Accept ``(host, port)`` or ``"host:port"`` and return ``(host, port)``."""
    if isinstance(addr, tuple):
        host, port = addr
        return str(host), int(port)
    text = str(addr)
    host, sep, port = text.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise NetError(f"invalid socket address: {text!r}")
    return host.strip("[]"), int(port)


class TcpSocket:
    """A TCP connection whose incoming framed messages are queued for polling."""

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._incoming: queue.Queue[bytes] = queue.Queue()
        self._send_lock = threading.Lock()
        self._closed = False
        self._reader = threading.Thread(target=self._receive_loop, daemon=True)
        self._reader.start()

    @classmethod
    def connect(cls, addr) -> TcpSocket:
        """Open a connection to ``addr``."""
        host, port = _split_address(addr)
        try:
            sock = socket.create_connection((host, port))
        except OSError as exc:
            raise NetError(f"failed to connect to {host}:{port}: {exc}") from exc
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return cls(sock)

    def _receive_loop(self) -> None:
        reader = MessageReader()
        while True:
            try:
                message = reader.next(self._sock)
            except ProtocolError:
                return
            if message is not None:
                self._incoming.put(message)

    def send(self, data: bytes) -> None:
        """Send one message of at most 255 bytes."""
        frame = encode_message(data)
        if self._closed:
            raise NetError("socket is closed")
        try:
            with self._send_lock:
                self._sock.sendall(frame)
        except OSError as exc:
            raise NetError(f"failed to send: {exc}") from exc

    def try_recv(self) -> bytes | None:
        """Return the next received message, or ``None`` if none is waiting."""
        try:
            return self._incoming.get_nowait()
        except queue.Empty:
            return None

    def close(self) -> None:
        """Close the connection."""
        if self._closed:
            return
        self._closed = True
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()

    def __enter__(self) -> TcpSocket:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _layout(fmt: str) -> str:
    """Use little-endian, unpadded layout unless ``fmt`` picks its own."""
    if fmt and fmt[0] in "@=<>!":
        return fmt
    return f"<{fmt}"


class QuadSocket:
    """Message-oriented client socket.

    ``send_bin`` and ``try_recv_bin`` pack and unpack values with a
    :mod:`struct` format; without an explicit byte order the layout is
    little-endian and unpadded.
    """

    def __init__(self, transport: TcpSocket) -> None:
        self._transport = transport

    @classmethod
    def connect(cls, addr) -> QuadSocket:
        """Connect to a server at ``addr``."""
        return cls(TcpSocket.connect(addr))

    def send(self, data: bytes) -> None:
        """Send one raw message."""
        self._transport.send(data)

    def try_recv(self) -> bytes | None:
        """Return the next raw message, or ``None`` if none is waiting."""
        return self._transport.try_recv()

    def send_bin(self, data, fmt: str) -> None:
        """Pack ``data`` (a value or a sequence of values) with ``fmt`` and send it."""
        values = tuple(data) if isinstance(data, (tuple, list)) else (data,)
        try:
            payload = struct.pack(_layout(fmt), *values)
        except struct.error as exc:
            raise ValueError(f"cannot pack {values!r} as {fmt!r}: {exc}") from exc
        self.send(payload)

    def try_recv_bin(self, fmt: str) -> tuple | None:
        """Unpack the next message with ``fmt``; ``None`` if none is waiting."""
        message = self.try_recv()
        if message is None:
            return None
        try:
            return struct.unpack(_layout(fmt), message)
        except struct.error as exc:
            raise ProtocolError(f"Cant parse message: {exc}") from exc

    def close(self) -> None:
        """Close the connection."""
        self._transport.close()

    def __enter__(self) -> QuadSocket:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()