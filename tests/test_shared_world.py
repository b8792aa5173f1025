import struct
import time

import pytest

from quadnet.client import QuadSocket
from quadnet.server import Server, SocketHandle
from quadnet.shared_world import ClientState, World, main, make_settings


def collecting_handle():
    sent = []
    return SocketHandle(sent.append), sent


def test_world_starts_at_default_position():
    world = World()
    assert world.pos == (100.0, 100.0)
    assert world.last_edit_id == 0
    assert world.unique_id == 0


def test_on_message_moves_point_and_assigns_id():
    world = World()
    handle, _ = collecting_handle()
    state = ClientState()
    world.on_message(handle, state, struct.pack("<ff", 3.5, -2.0))
    assert world.pos == (3.5, -2.0)
    assert state.id == 0
    assert world.last_edit_id == 0
    assert world.unique_id == 1


def test_ids_are_unique_and_stable():
    world = World()
    handle, _ = collecting_handle()
    first, second = ClientState(), ClientState()
    world.on_message(handle, first, struct.pack("<ff", 1.0, 1.0))
    world.on_message(handle, second, struct.pack("<ff", 2.0, 2.0))
    assert world.last_edit_id == second.id
    world.on_message(handle, first, struct.pack("<ff", 4.0, 4.0))
    assert first.id != second.id
    assert world.last_edit_id == first.id
    assert world.unique_id == 2
    assert world.pos == (4.0, 4.0)


def test_on_timer_sends_position_and_editor():
    world = World()
    handle, sent = collecting_handle()
    state = ClientState()
    world.on_message(handle, ClientState(), struct.pack("<ff", 1.0, 1.0))
    world.on_message(handle, state, struct.pack("<ff", 8.0, 9.0))
    world.on_timer(handle, state)
    assert struct.unpack("<ffQ", sent[0]) == (8.0, 9.0, state.id)


def test_on_timer_default_world():
    world = World()
    handle, sent = collecting_handle()
    world.on_timer(handle, ClientState())
    assert struct.unpack("<ffQ", sent[0]) == (100.0, 100.0, 0)


def test_malformed_message_raises():
    world = World()
    handle, _ = collecting_handle()
    with pytest.raises(ValueError):
        world.on_message(handle, ClientState(), b"\x01\x02")
    assert world.pos == (100.0, 100.0)


def test_make_settings_uses_world_callbacks():
    world = World()
    settings = make_settings(world, timer=0.5)
    assert settings.timer == 0.5
    state = settings.state_factory()
    assert state.id is None
    handle, _ = collecting_handle()
    settings.on_message(handle, state, struct.pack("<ff", 6.0, 7.0))
    assert world.pos == (6.0, 7.0)


def test_main_rejects_non_positive_timer():
    with pytest.raises(SystemExit):
        main(["--timer-ms", "0"])


def test_clients_share_the_point_over_tcp():
    world = World()
    with Server("127.0.0.1:0", None, make_settings(world, timer=0.02)) as server:
        with QuadSocket.connect(server.tcp_address) as client:
            client.send_bin((5.0, 6.0), "ff")
            end = time.monotonic() + 5.0
            update = None
            while time.monotonic() < end:
                update = client.try_recv_bin("ffQ")
                if update == (5.0, 6.0, 0):
                    break
                time.sleep(0.005)
            assert update == (5.0, 6.0, 0)
    assert world.pos == (5.0, 6.0)