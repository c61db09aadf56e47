import pytest

from des.des import DiscreteEventSimulator
from des.min_value_priority_queue import MinValuePriorityQueue


def test_run_without_stop_executes_all_events_and_advances_time():
    sim = DiscreteEventSimulator()
    calls = []

    def make_action(name):
        return lambda: calls.append((name, sim.current_time))

    sim.schedule_event(1.0, make_action("a"))
    sim.schedule_event(2.5, make_action("b"))

    sim.run()

    assert calls == [("a", 1.0), ("b", 2.5)]
    assert sim.current_time == 2.5
    assert sim.end_time == 2.5


def test_same_time_events_run_in_scheduling_order():
    sim = DiscreteEventSimulator()
    calls = []
    for name in "abcde":
        sim.schedule_at(1.0, lambda n=name: calls.append(n))
    sim.run()
    assert calls == list("abcde")


def test_events_scheduled_from_actions_run_at_their_time():
    sim = DiscreteEventSimulator()
    calls = []

    def first():
        calls.append(("first", sim.get_current_time()))
        sim.schedule_event(0.5, lambda: calls.append(("second", sim.get_current_time())))
        sim.schedule_event(0.0, lambda: calls.append(("now", sim.get_current_time())))

    sim.schedule_event(1.0, first)
    sim.run()
    assert calls == [("first", 1.0), ("now", 1.0), ("second", 1.5)]


def test_stop_time_bounds_the_run_inclusively():
    sim = DiscreteEventSimulator()
    calls = []
    sim.schedule_at(1.0, lambda: calls.append(1.0))
    sim.schedule_at(2.0, lambda: calls.append(2.0))
    sim.schedule_at(2.0 + 1e-9, lambda: calls.append("late"))
    sim.stop(2.0)
    sim.run()
    assert calls == [1.0, 2.0]
    assert sim.current_time == 2.0
    assert len(sim.event_queue) == 1


def test_scheduling_in_the_past_is_rejected():
    sim = DiscreteEventSimulator()
    sim.schedule_at(1.0, lambda: None)
    sim.run()
    with pytest.raises(AssertionError):
        sim.schedule_at(0.5, lambda: None)
    with pytest.raises(AssertionError):
        sim.schedule_event(-0.1, lambda: None)


def test_min_value_priority_queue_orders_values():
    q = MinValuePriorityQueue()
    for v in (5, 1, 4, 2, 3):
        q.enqueue(v)
    assert len(q) == 5
    assert q.peek() == 1
    assert [q.dequeue() for _ in range(5)] == [1, 2, 3, 4, 5]
    assert not q
