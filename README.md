# microws

`microws` holds the protocol-level pieces of a WebSocket and HTTP/1.1 server,
written in plain Python with no dependencies outside the standard library. It
does not open sockets itself: you feed it bytes and it tells you what they
mean, or you call it and it produces the bytes to send.

## What is inside

- `microws.protocol`: the WebSocket frame layer. `WebSocketParser` consumes
  raw bytes in arbitrary chunks and reports complete or partial frames to a
  `FrameHandler`. The default handler records fragments in `fragments` and
  the reason of a forced close in `close_reason`. Subclass it and override
  `handle_fragment`, `force_close`, `set_compressed` or
  `refuse_payload_length` to react. The helpers cover UTF-8 validation
  (`is_valid_utf8`), close payloads (`parse_close_payload`,
  `format_close_payload`, `CloseFrame`), frame sizing (`message_frame_size`)
  and frame encoding (`format_message`, which masks client frames). Opcodes
  live in `OpCode`.
- `microws.handshake`: `generate_accept` computes the `Sec-WebSocket-Accept`
  value for a 24-byte `Sec-WebSocket-Key`. Any other length raises
  `ValueError`.
- `microws.compression`: this module holds the permessage-deflate settings,
  not a compressor.
  - `CompressOptions` holds the flags.
  - `CompressionStatus` is the state of one connection.
  - `dedicated_streams` says which dedicated streams a connection would
    need, and `initial_compression_status` gives the state a connection
    starts in.
  - `has_broken_compression` spots the Safari 15.0–15.3 user agents whose
    compression must be turned off.
- `microws.behavior`:
  - `WebSocketBehavior` holds the settings and callbacks of a WebSocket route
    (payload limit, idle timeout, backpressure, pings) and checks its limits
    when it is created.
  - `idle_timeout_components` splits the idle timeout into a socket timeout
    and a ping margin.
  - `SocketContextOptions` holds the TLS file names.
  - `TopicTreeMessage` and `TopicTreeBigMessage` are the pub/sub message
    records.
- `microws.response`: `HttpResponse` writes the status line, headers and body
  onto a transport.
  - The body goes out with `Content-Length`, or in chunked encoding through
    `write`.
  - It adds `Date` and marker headers and handles `Connection: close`.
  - It supports `try_end`, `cork`, `pause` and `resume`.
  - It holds handlers for writability (`on_writable`), aborts (`on_aborted`)
    and request body data (`on_data`).

  `MemoryTransport` collects the output in memory and can simulate
  backpressure through its `capacity`.
- `microws.upgrade`:
  - `upgrade` writes the `101 Switching Protocols` answer on an
    `HttpResponse`. It selects the first offered subprotocol and sends an
    already negotiated extensions response if one is given.
  - `wanted_windows` and `negotiated_options` map between `CompressOptions`
    and window bits.

## A taste

```python
from microws.handshake import generate_accept
from microws.protocol import is_valid_utf8, message_frame_size

generate_accept("dGhlIHNhbXBsZSBub25jZQ==")  # 's3pPLMBiTxaQ9kYGzzhZRbK+xOo='
is_valid_utf8(b"\xc3\xa9")                   # True
message_frame_size(5)                        # 7: two header bytes plus payload
```

```python
from microws.response import HttpResponse, MemoryTransport

transport = MemoryTransport()
response = HttpResponse(transport, date="Thu, 01 Jan 1970 00:00:00 GMT")
response.write_header("Content-Type", "text/plain").end(b"hello")
bytes(transport.output)  # the full HTTP/1.1 200 OK response
```

Close codes follow RFC 6455. A payload with a reserved or out-of-range code,
or with a message that is not valid UTF-8, is reported as code 1006. An empty
payload is reported as 1005.

## Defaults worth knowing

A `WebSocketBehavior` starts with these settings:

- compression disabled
- a 16 KiB payload limit
- a 120 second idle timeout
- a 64 KiB backpressure limit
- automatic pings on

An idle timeout between 1 and 7 seconds raises `ValueError`, and one that is
not a multiple of 4 draws a warning. HTTP responses arm a 10 second timeout
when they finish or when a write backs up.

## What it does not do

`microws` is a set of building blocks, not a running server. It has no:

- listening sockets or event loop
- request parser or URL router
- topic tree delivering pub/sub messages
- deflate compression of frames

`upgrade` does not parse the client's `Sec-WebSocket-Extensions` offer. You
pass it the extensions response to send. Wiring these pieces to real network
I/O is up to the caller.