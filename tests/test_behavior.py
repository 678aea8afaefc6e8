import pytest

from microws.behavior import (
    SocketContextOptions,
    TopicTreeBigMessage,
    TopicTreeMessage,
    WebSocketBehavior,
    idle_timeout_components,
)
from microws.compression import CompressOptions
from microws.protocol import OpCode


def test_defaults_match_source():
    behavior = WebSocketBehavior()
    assert behavior.compression == CompressOptions.DISABLED
    assert behavior.max_payload_length == 16 * 1024
    assert behavior.idle_timeout == 120
    assert behavior.max_backpressure == 64 * 1024
    assert behavior.send_pings_automatically is True
    assert behavior.close_on_backpressure_limit is False
    assert behavior.max_lifetime == 0
    assert behavior.open is None


def test_default_idle_components():
    assert WebSocketBehavior().idle_timeout_components() == (104, 16)


def test_smallest_timeout_has_smallest_margin():
    assert idle_timeout_components(8, True) == (4, 4)


@pytest.mark.parametrize("idle", [8, 12, 16, 20, 32, 64, 120, 240, 960])
def test_margin_is_subtracted_with_pings(idle):
    reduced, margin = idle_timeout_components(idle, True)
    assert margin in (4, 8, 16)
    assert reduced + margin == idle


@pytest.mark.parametrize("idle", [8, 16, 120, 960])
def test_no_reduction_without_pings(idle):
    reduced, margin = idle_timeout_components(idle, False)
    assert reduced == idle
    assert margin == idle_timeout_components(idle, True)[1]


def test_margin_grows_with_timeout():
    margins = [idle_timeout_components(t)[1] for t in (8, 16, 32, 64, 1000)]
    assert margins == sorted(margins)
    assert margins[-1] == 16


def test_method_matches_function():
    behavior = WebSocketBehavior(idle_timeout=32, send_pings_automatically=False)
    assert behavior.idle_timeout_components() == idle_timeout_components(32, False)


@pytest.mark.parametrize("idle", [1, 4, 7])
def test_too_small_idle_timeout_rejected(idle):
    with pytest.raises(ValueError):
        WebSocketBehavior(idle_timeout=idle)


def test_zero_idle_timeout_allowed():
    behavior = WebSocketBehavior(idle_timeout=0, send_pings_automatically=False)
    assert behavior.idle_timeout_components()[0] == 0


def test_non_multiple_of_four_warns():
    with pytest.warns(UserWarning, match="multiple of 4"):
        behavior = WebSocketBehavior(idle_timeout=10)
    assert behavior.idle_timeout == 10


@pytest.mark.parametrize(
    "kwargs",
    [{"idle_timeout": -4}, {"idle_timeout": 70000}, {"max_lifetime": -1}, {"max_payload_length": -1}],
)
def test_out_of_range_rejected(kwargs):
    with pytest.raises(ValueError):
        WebSocketBehavior(**kwargs)


def test_socket_context_options_defaults():
    options = SocketContextOptions(cert_file_name="cert.pem")
    assert options.cert_file_name == "cert.pem"
    assert options.key_file_name is None
    assert options.ssl_prefer_low_memory_usage == 0


def test_topic_messages_hold_fields():
    small = TopicTreeMessage(b"hello", OpCode.TEXT, True)
    big = TopicTreeBigMessage(b"payload", OpCode.BINARY)
    assert (small.message, small.opcode, small.compress) == (b"hello", OpCode.TEXT, True)
    assert big.compress is False
    assert big.opcode == OpCode.BINARY
    with pytest.raises(AttributeError):
        small.message = b"other"