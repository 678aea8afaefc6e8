"""Per-message-deflate options and compression state for WebSocket connections."""

from __future__ import annotations

from enum import Enum, IntEnum


class CompressOptions(IntEnum):
    """Compressor and decompressor choices.

    The compressor's window bits sit in bits 4-7 and the decompressor's in
    bits 8-11. The shared variants map to window bits 0.
    """

    _COMPRESSOR_MASK = 0x00FF
    _DECOMPRESSOR_MASK = 0x0F00

    DISABLED = 0
    SHARED_COMPRESSOR = 1
    SHARED_DECOMPRESSOR = 1 << 8

    DEDICATED_DECOMPRESSOR_512B = 9 << 8
    DEDICATED_DECOMPRESSOR_1KB = 10 << 8
    DEDICATED_DECOMPRESSOR_2KB = 11 << 8
    DEDICATED_DECOMPRESSOR_4KB = 12 << 8
    DEDICATED_DECOMPRESSOR_8KB = 13 << 8
    DEDICATED_DECOMPRESSOR_16KB = 14 << 8
    DEDICATED_DECOMPRESSOR_32KB = 15 << 8
    DEDICATED_DECOMPRESSOR = 15 << 8

    DEDICATED_COMPRESSOR_3KB = 9 << 4 | 1
    DEDICATED_COMPRESSOR_4KB = 9 << 4 | 2
    DEDICATED_COMPRESSOR_8KB = 10 << 4 | 3
    DEDICATED_COMPRESSOR_16KB = 11 << 4 | 4
    DEDICATED_COMPRESSOR_32KB = 12 << 4 | 5
    DEDICATED_COMPRESSOR_64KB = 13 << 4 | 6
    DEDICATED_COMPRESSOR_128KB = 14 << 4 | 7
    DEDICATED_COMPRESSOR_256KB = 15 << 4 | 8
    DEDICATED_COMPRESSOR = 15 << 4 | 8


class CompressionStatus(Enum):
    """Per-connection compression state."""

    DISABLED = 0
    ENABLED = 1
    COMPRESSED_FRAME = 2


_UINT32_MAX = 0xFFFFFFFF


def has_broken_compression(user_agent: str) -> bool:
    """Return True for Safari 15.0 - 15.3, whose per-message-deflate is broken."""
    marker = " Version/15."
    start = user_agent.find(marker)
    if start == -1:
        return False
    start += len(marker)

    end = user_agent.find(" ", start)
    if end == -1:
        return False

    minor = user_agent[start:end]
    if not minor or not all("0" <= ch <= "9" for ch in minor):
        return False
    value = int(minor)
    if value > _UINT32_MAX or value > 3:
        return False

    return user_agent.find(" Safari/", end) != -1


def dedicated_streams(per_message_deflate: bool, compress_options: int) -> tuple[bool, bool]:
    """Return (dedicated deflater, dedicated inflater) needed for a connection."""
    if not per_message_deflate:
        return False, False
    options = int(compress_options)
    deflate = (options & CompressOptions._COMPRESSOR_MASK) != CompressOptions.SHARED_COMPRESSOR
    inflate = (options & CompressOptions._DECOMPRESSOR_MASK) != CompressOptions.SHARED_DECOMPRESSOR
    return deflate, inflate


def initial_compression_status(per_message_deflate: bool) -> CompressionStatus:
    """Compression status a new connection starts in."""
    return CompressionStatus.ENABLED if per_message_deflate else CompressionStatus.DISABLED