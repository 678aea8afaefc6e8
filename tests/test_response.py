import pytest

from microws.response import (
    HTTP_TIMEOUT_S,
    HttpResponse,
    MemoryTransport,
    ResponseState,
)

DATE = "Thu, 01 Jan 1970 00:00:00 GMT"


def make(capacity=None, mark=False):
    transport = MemoryTransport(capacity=capacity)
    return transport, HttpResponse(transport, date=DATE, mark=mark)


def test_end_writes_content_length_response():
    transport, res = make()
    res.end(b"hello")
    assert bytes(transport.output) == (
        b"HTTP/1.1 200 OK\r\nDate: " + DATE.encode() + b"\r\nContent-Length: 5\r\n\r\nhello"
    )
    assert res.has_responded
    assert res.write_offset == 5
    assert transport.timeout == HTTP_TIMEOUT_S


def test_pending_until_end():
    _, res = make()
    assert not res.has_responded
    assert res.state & ResponseState.HTTP_RESPONSE_PENDING


def test_mark_header_written_when_enabled():
    transport, res = make(mark=True)
    res.end(b"")
    text = bytes(transport.output)
    assert b"\r\nmicrows: 1\r\n" in text
    assert text.endswith(b"Content-Length: 0\r\n\r\n")


def test_status_written_only_once():
    transport, res = make()
    res.write_status("404 Not Found").write_status("500 Internal Server Error")
    assert bytes(transport.output) == b"HTTP/1.1 404 Not Found\r\n"


def test_write_header_string_and_int():
    transport, res = make()
    res.write_header("X-A", "b").write_header("X-N", 42)
    assert bytes(transport.output) == b"HTTP/1.1 200 OK\r\nX-A: b\r\nX-N: 42\r\n"


def test_write_continue():
    transport, res = make()
    res.write_continue()
    assert bytes(transport.output) == b"HTTP/1.1 100 Continue\r\n\r\n"


def test_chunked_write_then_end():
    transport, res = make()
    assert res.write(b"abc") is True
    assert res.write(b"") is True
    res.end()
    assert bytes(transport.output) == (
        b"HTTP/1.1 200 OK\r\nDate: " + DATE.encode()
        + b"\r\nTransfer-Encoding: chunked\r\n"
        + b"\r\n3\r\nabc"
        + b"\r\n0\r\n\r\n"
    )
    assert res.has_responded


def test_chunked_end_with_data_appends_last_chunk():
    transport, res = make()
    res.write(b"ab")
    res.end(b"cd")
    assert bytes(transport.output).endswith(b"\r\n2\r\ncd\r\n0\r\n\r\n")


def test_close_connection_writes_header_once_and_closes():
    transport, res = make()
    res.end(b"x", close_connection=True)
    assert bytes(transport.output).count(b"Connection: close\r\n") == 1
    assert transport.is_shut_down and transport.is_closed


def test_end_without_body_has_no_content_length():
    transport, res = make()
    res.end_without_body()
    data = bytes(transport.output)
    assert b"Content-Length" not in data
    assert data.endswith(b"\r\n\r\n")
    assert res.has_responded


def test_end_without_body_with_reported_length_writes_nothing():
    transport, res = make()
    res.end_without_body(5)
    assert bytes(transport.output) == b""
    assert not res.has_responded


def test_try_end_partial_then_complete():
    transport, res = make()
    headers_len = len(bytes(transport.output))
    # Capacity admits the headers and half of the body.
    probe_transport, probe = make()
    probe.try_end(b"", 8)
    header_bytes = len(probe_transport.output)
    assert headers_len == 0

    transport.capacity = header_bytes + 4
    ok, responded = res.try_end(b"12345678", 8)
    assert (ok, responded) == (False, False)
    assert res.write_offset == 4

    transport.capacity = None
    ok, responded = res.try_end(b"5678", 8)
    assert (ok, responded) == (True, True)
    assert res.write_offset == 8
    assert bytes(transport.output).endswith(b"12345678")


def test_override_write_offset():
    _, res = make()
    res.override_write_offset(7)
    assert res.write_offset == 7
    with pytest.raises(ValueError):
        res.override_write_offset(-1)


def test_done_clears_handlers():
    _, res = make()
    res.on_aborted(lambda: None).on_writable(lambda offset: True)
    res.end(b"ok")
    assert res.aborted_handler is None
    assert res.writable_handler is None


def test_on_data_resets_counter():
    _, res = make()
    res.received_bytes_per_timeout = 99
    chunks = []
    res.on_data(lambda chunk, last: chunks.append((chunk, last)))
    assert res.received_bytes_per_timeout == 0
    res.data_handler(b"x", True)
    assert chunks == [(b"x", True)]


def test_cork_runs_handler_corked():
    transport, res = make()
    seen = []
    res.cork(lambda: seen.append(transport.corked))
    assert seen == [True]
    assert transport.corked is False


def test_cork_when_already_corked_leaves_it():
    transport, res = make()
    transport.corked = True
    seen = []
    res.cork(lambda: seen.append(transport.corked))
    assert seen == [True]
    assert transport.corked is True


def test_cork_closes_after_corked_close_response():
    transport, res = make()
    res.cork(lambda: res.end(b"bye", close_connection=True))
    assert transport.is_closed


def test_pause_and_resume_timeouts():
    transport, res = make()
    res.pause()
    assert transport.paused and transport.timeout == 0
    res.resume()
    assert not transport.paused and transport.timeout == HTTP_TIMEOUT_S


def test_write_backpressure_returns_false():
    transport, res = make(capacity=0)
    assert res.write(b"data") is False
    assert transport.timeout == HTTP_TIMEOUT_S