"""WebSocket client whose incoming messages are queued for polling."""

from __future__ import annotations

import queue
import threading

import websocket

from .errors import NetError

_CONNECT_TIMEOUT = 30.0
_RECEIVE_ERRORS = (OSError, ValueError, websocket.WebSocketException)


def _ws_url(addr) -> str:
    """Turn ``addr`` into a WebSocket URL, defaulting to the ``ws`` scheme."""
    text = str(addr)
    if "://" not in text:
        text = f"ws://{text}"
    return text


class WebSocket:
    """A connected WebSocket client.

    A background thread receives messages; :meth:`try_recv` hands them out
    in arrival order without blocking. Text messages are delivered as their
    UTF-8 bytes.
    """

    def __init__(self, connection: websocket.WebSocket) -> None:
        self._conn = connection
        self._incoming: queue.Queue[bytes] = queue.Queue()
        self._open = threading.Event()
        self._open.set()
        self._reader = threading.Thread(target=self._receive_loop, daemon=True)
        self._reader.start()

    @classmethod
    def connect(cls, addr) -> WebSocket:
        """Connect to ``addr`` and wait for the handshake to finish."""
        url = _ws_url(addr)
        try:
            connection = websocket.create_connection(url, timeout=_CONNECT_TIMEOUT)
        except _RECEIVE_ERRORS as exc:
            raise NetError(f"failed to connect websocket to {url}: {exc}") from exc
        connection.settimeout(None)
        return cls(connection)

    def _receive_loop(self) -> None:
        data_opcodes = (websocket.ABNF.OPCODE_TEXT, websocket.ABNF.OPCODE_BINARY)
        try:
            while self._open.is_set():
                opcode, data = self._conn.recv_data()
                if opcode == websocket.ABNF.OPCODE_CLOSE:
                    break
                if opcode in data_opcodes:
                    if isinstance(data, str):
                        data = data.encode("utf-8")
                    self._incoming.put(bytes(data))
        except _RECEIVE_ERRORS:
            pass
        finally:
            self._open.clear()

    def connected(self) -> bool:
        """Whether the connection is still open."""
        return self._open.is_set()

    def try_recv(self) -> bytes | None:
        """Return the next received message, or ``None`` if none is waiting."""
        try:
            return self._incoming.get_nowait()
        except queue.Empty:
            return None

    def _send(self, send, payload) -> None:
        if not self._open.is_set():
            raise NetError("websocket is closed")
        try:
            send(payload)
        except _RECEIVE_ERRORS as exc:
            raise NetError(f"failed to send on websocket: {exc}") from exc

    def send_text(self, text: str) -> None:
        """Send ``text`` as a text message."""
        self._send(self._conn.send, text)

    def send_bytes(self, data: bytes) -> None:
        """Send ``data`` as a binary message."""
        self._send(self._conn.send_binary, bytes(data))

    def close(self) -> None:
        """Close the connection; further sends raise :class:`NetError`."""
        was_open = self._open.is_set()
        self._open.clear()
        if was_open:
            try:
                self._conn.send_close()
            except _RECEIVE_ERRORS:
                pass
        try:
            self._conn.shutdown()
        except _RECEIVE_ERRORS:
            pass

    def __enter__(self) -> WebSocket:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()