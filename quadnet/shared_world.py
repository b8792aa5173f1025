"""Demo server: clients move a shared point and see who moved it last.

Clients send their position as two little-endian ``f32`` values. Every
timer tick each client receives the point as two ``f32`` values followed
by the ``u64`` id of the client that moved it last.
"""

from __future__ import annotations

import argparse
import struct
import threading
from dataclasses import dataclass, field

from .server import Settings, SocketHandle, listen

POSITION_FORMAT = "<ff"
UPDATE_FORMAT = "<ffQ"


@dataclass
class ClientState:
    """Per-connection state: the id given on the client's first message."""

    id: int | None = None


@dataclass
class World:
    """The shared point and the bookkeeping of client ids."""

    pos: tuple[float, float] = (100.0, 100.0)
    last_edit_id: int = 0
    unique_id: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def on_message(self, handle: SocketHandle, state: ClientState, message: bytes) -> None:
        """Move the point to the position in ``message``."""
        try:
            x, y = struct.unpack(POSITION_FORMAT, message)
        except struct.error as exc:
            raise ValueError(f"malformed position message: {exc}") from exc
        with self._lock:
            if state.id is None:
                state.id = self.unique_id
                self.unique_id += 1
            self.last_edit_id = state.id
            self.pos = (x, y)

    def on_timer(self, handle: SocketHandle, state: ClientState) -> None:
        """Send the point and the last editor's id to the client."""
        with self._lock:
            x, y = self.pos
            editor = self.last_edit_id
        handle.send_bin((x, y, editor), UPDATE_FORMAT)


def make_settings(world: World, timer: float = 0.1) -> Settings:
    """Server settings that serve ``world``."""
    return Settings(
        on_message=world.on_message,
        on_timer=world.on_timer,
        on_disconnect=lambda state: None,
        timer=timer,
        state_factory=ClientState,
    )


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value}")
    return value


def main(argv=None) -> int:
    """Run the shared-world server."""
    parser = argparse.ArgumentParser(description="Shared point server.")
    parser.add_argument("--tcp", default="0.0.0.0:8090", help="TCP listen address")
    parser.add_argument("--ws", default="0.0.0.0:8091", help="WebSocket listen address")
    parser.add_argument(
        "--timer-ms", type=_positive_int, default=100, help="update period in milliseconds"
    )
    args = parser.parse_args(argv)
    listen(args.tcp, args.ws, make_settings(World(), args.timer_ms / 1000))
    return 0