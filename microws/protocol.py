"""WebSocket frame parsing and formatting (RFC 6455)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import IntEnum

ERR_TOO_BIG_MESSAGE = "Received too big message"
ERR_WEBSOCKET_TIMEOUT = "WebSocket timed out from inactivity"
ERR_INVALID_TEXT = "Received invalid UTF-8"
ERR_TOO_BIG_MESSAGE_INFLATION = "Received too big message, or other inflation error"
ERR_INVALID_CLOSE_PAYLOAD = "Received invalid close payload"

_UINT16_MAX = 0xFFFF


class OpCode(IntEnum):
    """WebSocket frame opcodes."""

    CONTINUATION = 0
    TEXT = 1
    BINARY = 2
    CLOSE = 8
    PING = 9
    PONG = 10


@dataclass(frozen=True)
class CloseFrame:
    """A decoded close frame payload."""

    code: int
    message: bytes = b""


def is_valid_utf8(data: bytes) -> bool:
    """Return True if data is well-formed UTF-8 (no overlongs, surrogates or values past U+10FFFF)."""
    try:
        bytes(data).decode("utf-8", errors="strict")
    except UnicodeDecodeError:
        return False
    return True


def parse_close_payload(payload: bytes) -> CloseFrame:
    """Decode a close payload; 1005 when empty, 1006 when malformed."""
    payload = bytes(payload)
    if len(payload) < 2:
        return CloseFrame(1005, b"")
    code = int.from_bytes(payload[:2], "big")
    message = payload[2:]
    if (
        code < 1000
        or code > 4999
        or 1011 < code < 4000
        or 1004 <= code <= 1006
        or not is_valid_utf8(message)
    ):
        return CloseFrame(1006, b"")
    return CloseFrame(code, message)


def format_close_payload(code: int, message: bytes = b"") -> bytes:
    """Encode a close payload; codes 0, 1005 and 1006 are never sent."""
    if code and code not in (1005, 1006):
        return code.to_bytes(2, "big") + bytes(message)
    return b""


def message_frame_size(message_size: int) -> int:
    """Size of an unmasked frame carrying message_size bytes of payload."""
    if message_size < 126:
        return 2 + message_size
    if message_size <= _UINT16_MAX:
        return 4 + message_size
    return 10 + message_size


def _apply_mask(data: bytes, mask: bytes) -> bytes:
    n = len(data)
    if not n:
        return b""
    key = (bytes(mask) * (n // 4 + 1))[:n]
    return (int.from_bytes(data, "big") ^ int.from_bytes(key, "big")).to_bytes(n, "big")


def format_message(
    data: bytes,
    opcode: OpCode,
    reported_length: int | None = None,
    compressed: bool = False,
    fin: bool = True,
    is_server: bool = True,
    mask: bytes | None = None,
) -> bytes:
    """Build one frame. Client frames are masked, with a random mask unless one is given."""
    data = bytes(data)
    if reported_length is None:
        reported_length = len(data)
    if reported_length < 126:
        length_bytes = bytes([reported_length])
    elif reported_length <= _UINT16_MAX:
        length_bytes = bytes([126]) + reported_length.to_bytes(2, "big")
    else:
        length_bytes = bytes([127]) + reported_length.to_bytes(8, "big")

    first = (128 if fin else 0) | (64 if compressed and opcode else 0) | int(opcode)
    if is_server:
        return bytes([first]) + length_bytes + data

    if mask is None:
        mask = os.urandom(4)
    mask = bytes(mask)
    if len(mask) != 4:
        raise ValueError("mask must be exactly 4 bytes")
    header = bytes([first, length_bytes[0] | 0x80]) + length_bytes[1:]
    return header + mask + _apply_mask(data, mask)


@dataclass
class FrameHandler:
    """Receives parser events. Records them by default; override to react."""

    fragments: list = field(default_factory=list)
    close_reason: str | None = None

    def set_compressed(self) -> bool:
        """Accept (True) or refuse (False) a frame with the RSV1 bit set."""
        return False

    def refuse_payload_length(self, length: int) -> bool:
        """Return True to refuse a frame of this payload length."""
        return False

    def force_close(self, reason: str = "") -> None:
        """Called on a protocol violation."""
        self.close_reason = reason

    def handle_fragment(self, data: bytes, remaining_bytes: int, opcode: OpCode, fin: bool) -> bool:
        """Called with each piece of payload; return True to stop parsing."""
        self.fragments.append((data, remaining_bytes, opcode, fin))
        return False


class WebSocketParser:
    """Incremental frame parser that feeds a FrameHandler."""

    def __init__(self, handler: FrameHandler, is_server: bool = True) -> None:
        self.handler = handler
        self.is_server = is_server
        self.short_header = 6 if is_server else 2
        self.medium_header = 8 if is_server else 4
        self.long_header = 14 if is_server else 10
        self._wants_head = True
        self._spill = b""
        self._op_stack = -1
        self._op_codes: list[OpCode] = [OpCode.CONTINUATION, OpCode.CONTINUATION]
        self._last_fin = True
        self._remaining = 0
        self._mask = b"\x00\x00\x00\x00"

    def consume(self, data: bytes) -> None:
        """Feed received bytes to the parser."""
        buf = self._spill + bytes(data)
        self._spill = b""
        pos = 0
        if not self._wants_head:
            proceed, pos = self._consume_continuation(buf, pos)
            if not proceed:
                return

        while len(buf) - pos >= self.short_header:
            first, second = buf[pos], buf[pos + 1]
            opcode = first & 15
            fin = bool(first & 128)
            length_field = second & 127
            if (
                (first & 64 and not self.handler.set_compressed())
                or first & 48
                or 2 < opcode < 8
                or opcode > 10
                or (opcode > 2 and (not fin or length_field > 125))
            ):
                self.handler.force_close()
                return

            if length_field < 126:
                header, payload_length = self.short_header, length_field
            elif length_field == 126:
                header = self.medium_header
                if len(buf) - pos < header:
                    break
                payload_length = int.from_bytes(buf[pos + 2:pos + 4], "big")
            else:
                header = self.long_header
                if len(buf) - pos < header:
                    break
                payload_length = int.from_bytes(buf[pos + 2:pos + 10], "big")

            stop, pos = self._consume_message(buf, pos, header, payload_length)
            if stop:
                return

        if pos < len(buf):
            self._spill = buf[pos:]

    def _consume_message(self, buf: bytes, pos: int, header: int, payload_length: int) -> tuple[bool, int]:
        first = buf[pos]
        opcode = first & 15
        fin = bool(first & 128)
        if opcode:
            if self._op_stack == 1 or (not self._last_fin and opcode < 2):
                self.handler.force_close()
                return True, pos
            self._op_stack += 1
            self._op_codes[self._op_stack] = OpCode(opcode)
        elif self._op_stack == -1:
            self.handler.force_close()
            return True, pos
        self._last_fin = fin

        if self.handler.refuse_payload_length(payload_length):
            self.handler.force_close(ERR_TOO_BIG_MESSAGE)
            return True, pos

        current = self._op_codes[self._op_stack]
        available = len(buf) - pos
        start = pos + header
        if payload_length + header <= available:
            payload = buf[start:start + payload_length]
            if self.is_server:
                payload = _apply_mask(payload, buf[start - 4:start])
            if self.handler.handle_fragment(payload, 0, current, fin):
                return True, pos
            if fin:
                self._op_stack -= 1
            return False, start + payload_length

        self._wants_head = False
        received = available - header
        self._remaining = payload_length - received
        payload = buf[start:]
        if self.is_server:
            mask = buf[start - 4:start]
            payload = _apply_mask(payload, mask)
            shift = received % 4
            self._mask = mask[shift:] + mask[:shift]
        self.handler.handle_fragment(payload, self._remaining, current, fin)
        return True, pos

    def _consume_continuation(self, buf: bytes, pos: int) -> tuple[bool, int]:
        available = len(buf) - pos
        current = self._op_codes[self._op_stack]
        if self._remaining <= available:
            chunk = buf[pos:pos + self._remaining]
            if self.is_server:
                chunk = _apply_mask(chunk, self._mask)
            if self.handler.handle_fragment(chunk, 0, current, self._last_fin):
                return False, pos
            if self._last_fin:
                self._op_stack -= 1
            pos += self._remaining
            self._wants_head = True
            return True, pos

        chunk = buf[pos:]
        if self.is_server:
            chunk = _apply_mask(chunk, self._mask)
        self._remaining -= available
        if self.handler.handle_fragment(chunk, self._remaining, current, self._last_fin):
            return False, pos
        if self.is_server:
            shift = available % 4
            self._mask = self._mask[shift:] + self._mask[:shift]
        return False, pos