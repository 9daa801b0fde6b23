from tests._user_config_tests import UserConfig as cfg_module, override
from tests._sim_params_tests import SimParams as sparams_module

from manetsim.components.scheduler import Scheduler
from manetsim.utils.event_logger import get_logger
from manetsim.utils.messages import STARTING_TEST_MSG, TEST_COMPLETED_MSG

import pytest

logger = get_logger("TEST", cfg_module, sparams_module)


def test_dispatch_order_and_ties():
    scheduler = Scheduler(cfg_module, sparams_module, stop_time_s=10)
    fired = []

    scheduler.schedule(fired.append, 3.0, "c")
    scheduler.schedule(fired.append, 1.0, "a")
    scheduler.schedule(fired.append, 2.0, "b1")
    scheduler.schedule(fired.append, 2.0, "b2")
    scheduler.schedule(fired.append, 2.0, "b3")

    scheduler.run()

    assert fired == ["a", "b1", "b2", "b3", "c"], logger.error(
        f"Unexpected dispatch order: {fired}"
    )
    assert scheduler.dispatch_times_s == sorted(scheduler.dispatch_times_s)


def test_events_scheduled_from_actions():
    scheduler = Scheduler(cfg_module, sparams_module, stop_time_s=5)
    times = []

    def tick():
        times.append(scheduler.now)
        scheduler.schedule_in(1.0, tick)

    scheduler.schedule(tick, 0.5)
    scheduler.run()

    assert times == [0.5, 1.5, 2.5, 3.5, 4.5], f"Unexpected tick times: {times}"


def test_zero_delay_runs_after_current_action():
    scheduler = Scheduler(cfg_module, sparams_module, stop_time_s=5)
    fired = []

    def first():
        scheduler.schedule_in(0, fired.append, "deferred")
        fired.append("first")

    scheduler.schedule(first, 1.0)
    scheduler.schedule(fired.append, 1.0, "second")
    scheduler.run()

    assert fired == ["first", "second", "deferred"], f"Unexpected order: {fired}"


def test_cancel():
    scheduler = Scheduler(cfg_module, sparams_module, stop_time_s=5)
    fired = []

    handle = scheduler.schedule(fired.append, 1.0, "cancelled")
    scheduler.schedule(fired.append, 2.0, "kept")
    scheduler.cancel(handle)
    scheduler.cancel(None)

    scheduler.run()

    assert fired == ["kept"]
    assert handle.cancelled and not handle.dispatched


def test_events_beyond_stop_time_are_dropped():
    scheduler = Scheduler(cfg_module, sparams_module, stop_time_s=5)
    fired = []

    at_stop = scheduler.schedule(fired.append, 5.0, "at stop")
    after_stop = scheduler.schedule(fired.append, 7.0, "after stop")
    scheduler.schedule(fired.append, 4.999, "inside")

    scheduler.run()

    assert fired == ["inside"], f"Only the event inside the window should fire, got {fired}"
    assert at_stop.dropped and after_stop.dropped
    assert scheduler.dropped_events == 2
    assert scheduler.now == 5


def test_past_events_are_rejected():
    scheduler = Scheduler(cfg_module, sparams_module, stop_time_s=5)
    errors = []

    def schedule_in_the_past():
        try:
            scheduler.schedule(lambda: None, scheduler.now - 1)
        except ValueError as e:
            errors.append(e)

    scheduler.schedule(schedule_in_the_past, 2.0)
    scheduler.run()

    assert len(errors) == 1


def test_runs_only_once():
    scheduler = Scheduler(cfg_module, sparams_module, stop_time_s=1)
    scheduler.run()

    with pytest.raises(RuntimeError):
        scheduler.run()

    with pytest.raises(RuntimeError):
        scheduler.schedule(lambda: None, 0.5)


def test_empty_queue_completes():
    cfg = override(cfg_module, SIMULATION_TIME_s=3)
    scheduler = Scheduler(cfg, sparams_module)

    scheduler.run()

    assert scheduler.stop_time_s == 3
    assert scheduler.dispatch_times_s == []


if __name__ == "__main__":
    print(STARTING_TEST_MSG)

    test_dispatch_order_and_ties()
    test_events_scheduled_from_actions()
    test_zero_delay_runs_after_current_action()
    test_cancel()
    test_events_beyond_stop_time_are_dropped()
    test_past_events_are_rejected()
    test_runs_only_once()
    test_empty_queue_completes()

    print(TEST_COMPLETED_MSG)
