"""Framed TCP sockets, a WebSocket client, a callback server and background HTTP requests."""

__version__ = "0.1.2"