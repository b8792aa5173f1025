import io

import pytest

from quadnet.errors import NetError, ProtocolError
from quadnet.protocol import MessageReader


def test_protocol_error_is_caught_as_net_error():
    error = ProtocolError("peer vanished")
    assert issubclass(ProtocolError, NetError)
    assert str(error) == "peer vanished"


def test_protocol_error_keeps_its_cause():
    cause = ConnectionResetError("reset by peer")

    class Resetting:
        def read(self, size):
            raise cause

    reader = MessageReader()
    with pytest.raises(NetError) as info:
        reader.next(Resetting())
    assert isinstance(info.value, ProtocolError)
    assert info.value.__cause__ is cause


def test_reader_failure_surfaces_as_net_error():
    reader = MessageReader()
    with pytest.raises(NetError):
        reader.next(io.BytesIO(b""))


def test_reader_wraps_os_error_as_cause():
    class Broken:
        def read(self, size):
            raise ConnectionAbortedError("aborted")

    reader = MessageReader()
    with pytest.raises(ProtocolError) as info:
        reader.next(Broken())
    assert isinstance(info.value.__cause__, ConnectionAbortedError)