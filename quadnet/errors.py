"""Exception types shared by the networking layers."""

from __future__ import annotations


class NetError(Exception):
    """Base class for every error raised by this package.

    Errors that originate from the operating system (``OSError``) are wrapped
    in a ``NetError`` and chained as its ``__cause__``.
    """


class ProtocolError(NetError):
    """The framed byte stream is broken or the peer went away."""