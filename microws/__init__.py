"""WebSocket framing, handshake, compression settings and HTTP response building blocks."""

__version__ = "0.1.0"