"""WebSocket opening handshake helpers."""

from __future__ import annotations

import base64
import hashlib

_GUID = b"258EAFA5-E914-47DA-95CA-C5AB0DC85B11"
_KEY_LENGTH = 24


def generate_accept(key: str | bytes) -> str:
    """Compute the Sec-WebSocket-Accept value for a 24-byte Sec-WebSocket-Key."""
    raw = key.encode("latin-1") if isinstance(key, str) else bytes(key)
    if len(raw) != _KEY_LENGTH:
        raise ValueError(f"Sec-WebSocket-Key must be {_KEY_LENGTH} bytes, got {len(raw)}")
    digest = hashlib.sha1(raw + _GUID).digest()
    return base64.b64encode(digest).decode("ascii")