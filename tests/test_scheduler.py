import logging

import pytest

from rewatchkit.scheduler import ManualScheduler, Scheduler


def test_timers_fire_in_due_order():
    scheduler = ManualScheduler()
    fired = []
    scheduler.call_later(2.0, lambda: fired.append(("b", scheduler.now())))
    scheduler.call_later(1.0, lambda: fired.append(("a", scheduler.now())))
    scheduler.call_later(1.0, lambda: fired.append(("a2", scheduler.now())))

    scheduler.advance(5.0)
    assert fired == [("a", 1.0), ("a2", 1.0), ("b", 2.0)]
    assert scheduler.now() == 5.0
    assert scheduler.pending == 0


def test_repeating_timer():
    scheduler = ManualScheduler()
    ticks = []
    timer = scheduler.call_every(5.0, lambda: ticks.append(scheduler.now()))

    scheduler.advance(16.0)
    assert ticks == [5.0, 10.0, 15.0]
    assert scheduler.pending == 1

    scheduler.cancel(timer)
    scheduler.advance(10.0)
    assert ticks == [5.0, 10.0, 15.0]
    assert scheduler.pending == 0


def test_callbacks_can_schedule_more_work():
    scheduler = ManualScheduler()
    fired = []

    def first():
        fired.append("first")
        scheduler.call_later(0, lambda: fired.append("immediate"))
        scheduler.call_later(0.5, lambda: fired.append("later"))

    scheduler.call_later(1.0, first)
    scheduler.advance(1.0)
    assert fired == ["first", "immediate"]

    scheduler.advance(0.5)
    assert fired == ["first", "immediate", "later"]


def test_one_shot_timer_is_cancelled_when_it_runs():
    scheduler = ManualScheduler()
    seen = []
    timer = scheduler.call_later(1.0, lambda: seen.append(timer.cancelled))
    scheduler.advance(1.0)
    assert seen == [True]


def test_failing_callback_is_logged(caplog):
    scheduler = ManualScheduler()
    fired = []

    def explode():
        raise RuntimeError("boom")

    scheduler.call_later(1.0, explode)
    scheduler.call_later(1.0, lambda: fired.append(True))
    with caplog.at_level(logging.ERROR, logger="rewatchkit.scheduler"):
        scheduler.advance(1.0)

    assert fired == [True]
    assert "boom" in caplog.text


def test_invalid_interval():
    with pytest.raises(ValueError):
        ManualScheduler().call_every(0, lambda: None)


def test_negative_delay_runs_immediately():
    scheduler = ManualScheduler(start=10.0)
    fired = []
    scheduler.call_later(-3, lambda: fired.append(scheduler.now()))
    scheduler.advance(0)
    assert fired == [10.0]


def test_run_due_with_external_clock():
    clock = [100.0]
    scheduler = Scheduler(clock=lambda: clock[0])
    fired = []
    scheduler.call_later(2.0, lambda: fired.append("done"))

    assert scheduler.run_due() == 0
    clock[0] = 102.5
    assert scheduler.run_due() == 1
    assert fired == ["done"]
    assert scheduler.next_due() is None


def test_clear_cancels_everything():
    scheduler = ManualScheduler()
    timers = [scheduler.call_later(1.0, lambda: None), scheduler.call_every(1.0, lambda: None)]
    scheduler.clear()
    assert all(timer.cancelled for timer in timers)
    assert scheduler.pending == 0
