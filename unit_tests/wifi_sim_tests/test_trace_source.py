import pytest

from wifi_simulation.trace import TraceSource


def test_sinks_run_in_connection_order():
    trace = TraceSource("Test")
    calls = []
    trace.connect(lambda x: calls.append(("a", x)))
    trace.connect(lambda x: calls.append(("b", x)))
    trace(1)
    assert calls == [("a", 1), ("b", 1)]
    assert len(trace) == 2


def test_disconnected_sink_gets_nothing_even_mid_dispatch():
    trace = TraceSource("Test")
    calls = []

    def second(x):
        calls.append(("second", x))

    def first(x):
        calls.append(("first", x))
        trace.disconnect(second)

    trace.connect(first)
    trace.connect(second)
    trace(1)
    trace(2)
    assert calls == [("first", 1), ("first", 2)]
    assert not trace.is_connected(second)


def test_double_connect_is_rejected():
    trace = TraceSource("Test")
    sink = print
    trace.connect(sink)
    with pytest.raises(AssertionError):
        trace.connect(sink)
