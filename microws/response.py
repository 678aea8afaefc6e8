"""The channel on which an HTTP response is written back to a client."""

from __future__ import annotations

from dataclasses import dataclass, field
from email.utils import formatdate
from enum import IntFlag
from typing import Callable, Optional, Union

HTTP_200_OK = "200 OK"
HTTP_TIMEOUT_S = 10
MARK_HEADER = ("microws", "1")

HeaderValue = Union[str, bytes, int]


class ResponseState(IntFlag):
    """Progress flags of one HTTP response."""

    NONE = 0
    HTTP_STATUS_CALLED = 1
    HTTP_WRITE_CALLED = 2
    HTTP_END_CALLED = 4
    HTTP_RESPONSE_PENDING = 8
    HTTP_CONNECTION_CLOSE = 16


def _to_bytes(value: HeaderValue) -> bytes:
    if isinstance(value, bool):
        raise TypeError("header value must be str, bytes or int")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("integer header values must be unsigned")
        return str(value).encode("ascii")
    if isinstance(value, str):
        return value.encode("latin-1")
    return bytes(value)


@dataclass
class MemoryTransport:
    """An in-memory socket that records what is written to it.

    ``capacity`` is how many bytes the peer takes without backpressure; None
    means unlimited. Bytes beyond it are buffered by ordinary writes and
    refused by optional writes.
    """

    capacity: Optional[int] = None
    can_cork: bool = True
    corked: bool = False
    paused: bool = False
    output: bytearray = field(default_factory=bytearray)
    timeouts: list = field(default_factory=list)
    is_shut_down: bool = False
    is_closed: bool = False

    @property
    def buffered_amount(self) -> int:
        """Bytes accepted but still waiting to be sent."""
        if self.capacity is None:
            return 0
        return max(0, len(self.output) - self.capacity)

    @property
    def timeout(self) -> Optional[int]:
        """The most recently armed timeout, in seconds."""
        return self.timeouts[-1] if self.timeouts else None

    def write(self, data: bytes, optional: bool = False) -> tuple[int, bool]:
        """Write data; return (bytes accepted, whether backpressure occurred)."""
        data = bytes(data)
        if optional and self.capacity is not None:
            room = max(0, self.capacity - len(self.output))
            accepted = data[:room]
        else:
            accepted = data
        self.output.extend(accepted)
        failed = len(accepted) < len(data) or self.buffered_amount > 0
        return len(accepted), failed

    def shutdown(self) -> None:
        """Send FIN."""
        self.is_shut_down = True

    def close(self) -> None:
        """Close the socket immediately."""
        self.is_closed = True

    def set_timeout(self, seconds: int) -> None:
        """Arm (or with 0, disarm) the socket timeout."""
        self.timeouts.append(seconds)


class HttpResponse:
    """Writes status, headers and body of one HTTP/1.1 response."""

    def __init__(self, transport: MemoryTransport, date: Optional[str] = None, mark: bool = True) -> None:
        self.transport = transport
        self.date = date if date is not None else formatdate(usegmt=True)
        self.mark = mark
        self.state = ResponseState.HTTP_RESPONSE_PENDING
        self.offset = 0
        self.writable_handler: Optional[Callable[[int], bool]] = None
        self.aborted_handler: Optional[Callable[[], None]] = None
        self.data_handler: Optional[Callable[[bytes, bool], None]] = None
        self.received_bytes_per_timeout = 0

    # -- internals -------------------------------------------------------

    def _raw(self, data: bytes, optional: bool = False) -> tuple[int, bool]:
        return self.transport.write(data, optional)

    def _write_mark(self) -> None:
        self.write_header("Date", self.date)
        if self.mark:
            self.write_header(*MARK_HEADER)

    def _mark_done(self) -> None:
        self.aborted_handler = None
        self.writable_handler = None
        self.state &= ~ResponseState.HTTP_RESPONSE_PENDING

    def _close_if_finished(self) -> bool:
        if (
            self.state & ResponseState.HTTP_CONNECTION_CLOSE
            and not self.state & ResponseState.HTTP_RESPONSE_PENDING
            and self.transport.buffered_amount == 0
        ):
            self.transport.shutdown()
            # Force close after FIN so clients stop sending large bodies.
            self.transport.close()
            return True
        return False

    def _internal_end(
        self,
        data: bytes,
        total_size: int,
        optional: bool,
        allow_content_length: bool = True,
        close_connection: bool = False,
    ) -> bool:
        data = bytes(data)
        self.write_status(HTTP_200_OK)

        if not total_size:
            total_size = len(data)

        if close_connection:
            if not self.state & ResponseState.HTTP_CONNECTION_CLOSE:
                self.write_header("Connection", "close")
            self.state |= ResponseState.HTTP_CONNECTION_CLOSE

        if self.state & ResponseState.HTTP_WRITE_CALLED:
            if data:
                self._raw(b"\r\n" + format(len(data), "x").encode("ascii") + b"\r\n")
                self._raw(data)
            self._raw(b"\r\n0\r\n\r\n")
            self._mark_done()
            if not self.transport.corked and self._close_if_finished():
                return True
            self.transport.set_timeout(HTTP_TIMEOUT_S)
            return True

        if not self.state & ResponseState.HTTP_END_CALLED:
            self._write_mark()
            if allow_content_length:
                self._raw(b"Content-Length: " + str(total_size).encode("ascii") + b"\r\n\r\n")
            else:
                self._raw(b"\r\n")
            self.state |= ResponseState.HTTP_END_CALLED

        written, failed = (0, False)
        if data:
            written, failed = self._raw(data, optional)
        self.offset += written
        success = written == len(data) and not failed

        if not success or self.offset == total_size:
            self.transport.set_timeout(HTTP_TIMEOUT_S)

        if self.offset == total_size:
            self._mark_done()
            if not self.transport.corked:
                self._close_if_finished()

        return success

    # -- public API ------------------------------------------------------

    @property
    def has_responded(self) -> bool:
        """True once the response is complete."""
        return not self.state & ResponseState.HTTP_RESPONSE_PENDING

    @property
    def write_offset(self) -> int:
        """Bytes of body written so far."""
        return self.offset

    def write_continue(self) -> HttpResponse:
        """Write an interim 100 Continue; may be done any number of times."""
        self._raw(b"HTTP/1.1 100 Continue\r\n\r\n")
        return self

    def write_status(self, status: str) -> HttpResponse:
        """Write the status line; later calls are ignored."""
        if self.state & ResponseState.HTTP_STATUS_CALLED:
            return self
        self.state |= ResponseState.HTTP_STATUS_CALLED
        self._raw(b"HTTP/1.1 " + _to_bytes(status) + b"\r\n")
        return self

    def write_header(self, key: str, value: HeaderValue) -> HttpResponse:
        """Write a header, writing a 200 OK status first if none was written."""
        self.write_status(HTTP_200_OK)
        self._raw(_to_bytes(key) + b": " + _to_bytes(value) + b"\r\n")
        return self

    def end(self, data: bytes = b"", close_connection: bool = False) -> None:
        """End the response with an optional body. Always starts a timeout."""
        data = bytes(data)
        self._internal_end(data, len(data), False, True, close_connection)

    def end_without_body(self, reported_content_length: Optional[int] = None, close_connection: bool = False) -> None:
        """End without a body and without Content-Length.

        A reported content length is accepted but currently writes nothing.
        """
        if reported_content_length is not None:
            return
        self._internal_end(b"", 0, False, False, close_connection)

    def try_end(self, data: bytes, total_size: int = 0, close_connection: bool = False) -> tuple[bool, bool]:
        """Write what fits without backpressure; return (ok, has_responded)."""
        ok = self._internal_end(data, total_size, True, True, close_connection)
        return ok, self.has_responded

    def write(self, data: bytes) -> bool:
        """Write a chunk in chunked transfer encoding; False on backpressure."""
        data = bytes(data)
        self.write_status(HTTP_200_OK)
        if not data:
            return True

        if not self.state & ResponseState.HTTP_WRITE_CALLED:
            self._write_mark()
            self.write_header("Transfer-Encoding", "chunked")
            self.state |= ResponseState.HTTP_WRITE_CALLED

        self._raw(b"\r\n" + format(len(data), "x").encode("ascii") + b"\r\n")
        _, failed = self._raw(data)
        if failed:
            self.transport.set_timeout(HTTP_TIMEOUT_S)
        return not failed

    def override_write_offset(self, offset: int) -> None:
        """Replace the body write offset, e.g. after sending a file directly."""
        if offset < 0:
            raise ValueError("offset must be non-negative")
        self.offset = offset

    def on_writable(self, handler: Callable[[int], bool]) -> HttpResponse:
        """Set the handler called with the write offset when writable again."""
        self.writable_handler = handler
        return self

    def on_aborted(self, handler: Callable[[], None]) -> HttpResponse:
        """Set the handler called if the request is aborted."""
        self.aborted_handler = handler
        return self

    def on_data(self, handler: Callable[[bytes, bool], None]) -> None:
        """Set the handler receiving body chunks and a last-chunk flag."""
        self.data_handler = handler
        self.received_bytes_per_timeout = 0

    def cork(self, handler: Callable[[], None]) -> HttpResponse:
        """Run handler with writes corked; leaves an already corked socket be."""
        transport = self.transport
        if transport.corked or not transport.can_cork:
            handler()
            return self

        transport.corked = True
        try:
            handler()
        finally:
            transport.corked = False
        if transport.buffered_amount > 0:
            transport.set_timeout(HTTP_TIMEOUT_S)
        self._close_if_finished()
        return self

    def pause(self) -> HttpResponse:
        """Stop reading and writing, disarming the timeout."""
        self.transport.paused = True
        self.transport.set_timeout(0)
        return self

    def resume(self) -> HttpResponse:
        """Resume reading and writing, re-arming the timeout."""
        self.transport.paused = False
        self.transport.set_timeout(HTTP_TIMEOUT_S)
        return self