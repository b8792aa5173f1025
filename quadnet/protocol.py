"""Length-prefixed message framing used by the TCP transport.

Every message on the wire is a single length byte followed by that many
bytes of payload, so a message carries at most 255 bytes.
"""

from __future__ import annotations

from .errors import ProtocolError

MAX_MESSAGE_LEN = 255


def encode_message(data: bytes) -> bytes:
    """Frame ``data`` for the wire: one length byte, then the payload."""
    payload = bytes(data)
    if len(payload) > MAX_MESSAGE_LEN:
        raise ValueError(
            f"message of {len(payload)} bytes exceeds the {MAX_MESSAGE_LEN} byte limit"
        )
    return bytes((len(payload),)) + payload


def _read_some(stream, size: int) -> bytes | None:
    """Read up to ``size`` bytes; ``None`` when the stream would block."""
    try:
        if hasattr(stream, "recv"):
            chunk = stream.recv(size)
        else:
            chunk = stream.read(size)
    except (BlockingIOError, InterruptedError, TimeoutError):
        return None
    except OSError as exc:
        raise ProtocolError(f"failed to read from stream: {exc}") from exc
    if chunk is None:
        return None
    if not chunk:
        raise ProtocolError("stream closed by peer")
    return bytes(chunk)


class MessageReader:
    """Incremental decoder for framed messages on a possibly non-blocking stream.

    Each call to :meth:`next` advances the decoder by one step: it either
    reads the length byte or (part of) the payload. A complete message is
    returned once all of its bytes have arrived; otherwise ``None``.
    """

    def __init__(self) -> None:
        self._expected: int | None = None
        self._buffer = bytearray()

    def next(self, stream) -> bytes | None:
        """Advance the decoder using ``stream`` (a socket or binary file).

        Returns a finished message, or ``None`` when no message is complete
        yet. Raises :class:`ProtocolError` if the stream fails or is closed.
        """
        if self._expected is None:
            chunk = _read_some(stream, 1)
            if chunk is not None:
                self._expected = chunk[0]
            return None

        missing = self._expected - len(self._buffer)
        if missing:
            chunk = _read_some(stream, missing)
            if chunk is None:
                return None
            self._buffer += chunk
            if len(self._buffer) < self._expected:
                return None

        message = bytes(self._buffer)
        self._expected = None
        self._buffer.clear()
        return message