"""Per-route WebSocket settings, TLS context options and pub/sub message types."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Callable, Optional

from microws.compression import CompressOptions
from microws.protocol import OpCode

_UINT16_MAX = 0xFFFF
_UINT32_MAX = 0xFFFFFFFF


@dataclass
class SocketContextOptions:
    """File names and flags used to build a TLS socket context."""

    key_file_name: Optional[str] = None
    cert_file_name: Optional[str] = None
    passphrase: Optional[str] = None
    dh_params_file_name: Optional[str] = None
    ca_file_name: Optional[str] = None
    ssl_ciphers: Optional[str] = None
    ssl_prefer_low_memory_usage: int = 0


@dataclass(frozen=True)
class TopicTreeMessage:
    """A message queued for batched delivery to a topic's subscribers."""

    message: bytes
    opcode: OpCode
    compress: bool = False


@dataclass(frozen=True)
class TopicTreeBigMessage:
    """A large message delivered immediately, bypassing the batch queue."""

    message: memoryview | bytes
    opcode: OpCode
    compress: bool = False


def idle_timeout_components(idle_timeout: int, send_pings_automatically: bool = True) -> tuple[int, int]:
    """Split an idle timeout into (socket timeout, ping margin).

    The margin is 4, 8 or 16 seconds depending on the timeout. When pings are
    sent automatically the socket timeout is reduced by the margin, so that the
    ping round trip fits inside the configured idle timeout.
    """
    margin = 4
    while idle_timeout - margin * 2 >= margin * 2 and margin < 16:
        margin <<= 1
    reduced = idle_timeout - (margin if send_pings_automatically else 0)
    return reduced & _UINT16_MAX, margin


Handler = Optional[Callable[..., Any]]


@dataclass
class WebSocketBehavior:
    """Settings and event handlers for one WebSocket route."""

    compression: int = CompressOptions.DISABLED
    max_payload_length: int = 16 * 1024
    idle_timeout: int = 120
    max_backpressure: int = 64 * 1024
    close_on_backpressure_limit: bool = False
    reset_idle_timeout_on_send: bool = False
    send_pings_automatically: bool = True
    max_lifetime: int = 0
    upgrade: Handler = None
    open: Handler = None
    message: Handler = None
    drain: Handler = None
    ping: Handler = None
    pong: Handler = None
    subscription: Handler = None
    close: Handler = None

    def __post_init__(self) -> None:
        """Validate the limits; warn when the idle timeout is not a multiple of 4."""
        if not 0 <= self.idle_timeout <= _UINT16_MAX:
            raise ValueError(f"idleTimeout out of range: {self.idle_timeout}")
        if not 0 <= self.max_lifetime <= _UINT16_MAX:
            raise ValueError(f"maxLifetime out of range: {self.max_lifetime}")
        if not 0 <= self.max_payload_length <= _UINT32_MAX:
            raise ValueError(f"maxPayloadLength out of range: {self.max_payload_length}")
        if not 0 <= self.max_backpressure <= _UINT32_MAX:
            raise ValueError(f"maxBackpressure out of range: {self.max_backpressure}")
        if self.idle_timeout and self.idle_timeout < 8:
            raise ValueError("idleTimeout must be either 0 or greater than 8!")
        if self.idle_timeout % 4:
            warnings.warn("idleTimeout should be a multiple of 4!", stacklevel=3)

    def idle_timeout_components(self) -> tuple[int, int]:
        """(socket timeout, ping margin) for this behaviour's idle timeout."""
        return idle_timeout_components(self.idle_timeout, self.send_pings_automatically)