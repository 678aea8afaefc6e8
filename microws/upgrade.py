"""Upgrading an HTTP response to a WebSocket connection."""

from __future__ import annotations

from typing import Optional

from microws.compression import CompressOptions
from microws.handshake import generate_accept
from microws.response import HttpResponse


def wanted_windows(compression: int) -> tuple[int, int]:
    """Return (compression window bits, inflation window bits) wanted by the options.

    Shared compressors and decompressors map to window bits 0.
    """
    options = int(compression)
    decompressor = options & CompressOptions._DECOMPRESSOR_MASK
    wanted_inflation = 0
    if decompressor != CompressOptions.SHARED_DECOMPRESSOR:
        wanted_inflation = decompressor >> 8
    wanted_compression = (options & CompressOptions._COMPRESSOR_MASK) >> 4
    return wanted_compression, wanted_inflation


def negotiated_options(
    compression: int,
    negotiated_compression_window: int,
    negotiated_inflation_window: int,
) -> int:
    """Map negotiated window bits back to the options a connection will use."""
    options = int(compression)
    if negotiated_compression_window == 0:
        result = int(CompressOptions.SHARED_COMPRESSOR)
    else:
        result = (negotiated_compression_window << 4) | (negotiated_compression_window - 7)
        # Dedicated 3kb and 4kb compressors share window bits 9; keep the 3kb one.
        if options & CompressOptions.DEDICATED_COMPRESSOR_3KB:
            result = int(CompressOptions.DEDICATED_COMPRESSOR_3KB)

    if negotiated_inflation_window == 0:
        result |= CompressOptions.SHARED_DECOMPRESSOR
    else:
        result |= negotiated_inflation_window << 8
    return int(result)


def upgrade(
    response: HttpResponse,
    sec_websocket_key: str | bytes,
    sec_websocket_protocol: str = "",
    extensions_response: Optional[str] = None,
) -> str:
    """Write the 101 Switching Protocols response and finish the HTTP exchange.

    The first offered subprotocol is selected. A negotiated extensions
    response, if any, is sent as Sec-WebSocket-Extensions. Returns the
    Sec-WebSocket-Accept value that was sent.
    """
    accept = generate_accept(sec_websocket_key)

    (
        response.write_status("101 Switching Protocols")
        .write_header("Upgrade", "websocket")
        .write_header("Connection", "Upgrade")
        .write_header("Sec-WebSocket-Accept", accept)
    )

    if sec_websocket_protocol:
        response.write_header("Sec-WebSocket-Protocol", sec_websocket_protocol.split(",", 1)[0])

    if extensions_response:
        response.write_header("Sec-WebSocket-Extensions", extensions_response)

    response.end_without_body()
    return accept