from manetsim.user_config import UserConfig as cfg_module
from manetsim.sim_params import SimParams as sparams_module

from manetsim.utils.event_logger import get_logger, update_loggers_scheduler

from typing import Callable

import simpy


class SchedulerState:
    IDLE = 0
    RUNNING = 1
    STOPPED = 2


class EventHandle:
    """A scheduled action. Ordering key is (fire_time_s, seq)."""

    def __init__(self, fire_time_s: float, seq: int, action: Callable, args: tuple):
        self.fire_time_s = fire_time_s
        self.seq = seq
        self.action = action
        self.args = args

        self.cancelled = False
        self.dispatched = False
        self.dropped = False  # Fire time beyond the simulation window

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.dispatched or self.dropped)

    def __repr__(self):
        return f"EventHandle(t={self.fire_time_s}, seq={self.seq}, action={getattr(self.action, '__name__', self.action)})"


class Scheduler:
    """
    Time-ordered event queue driving the whole simulation.

    Built on a simpy.Environment: every scheduled action is a simpy Timeout whose
    callback dispatches the action. simpy orders its queue by (time, priority,
    insertion id), so actions with equal fire times are dispatched in insertion
    order.
    """

    def __init__(self, cfg: cfg_module, sparams: sparams_module, stop_time_s: float = None):
        self.cfg = cfg
        self.sparams = sparams

        self.env = simpy.Environment()

        self.stop_time_s = (
            stop_time_s if stop_time_s is not None else cfg.SIMULATION_TIME_s
        )

        self.state = SchedulerState.IDLE

        self.seq = 0
        self.dispatch_times_s = []  # Fire times of dispatched events, in dispatch order
        self.dropped_events = 0

        update_loggers_scheduler(self)

        self.name = "SCHED"
        self.logger = get_logger(self.name, cfg, sparams, self)

    @property
    def now(self) -> float:
        return self.env.now

    def schedule(self, action: Callable, fire_time_s: float, *args) -> EventHandle:
        """
        Schedules an action at an absolute fire time.

        Actions whose fire time is at or after the stop time are dropped and never
        dispatched; the returned handle is flagged as dropped.

        Raises:
            ValueError: If the fire time is earlier than the current time.
        """
        if self.state == SchedulerState.STOPPED:
            raise RuntimeError("Cannot schedule events on a stopped scheduler")

        if fire_time_s < self.env.now:
            raise ValueError(
                f"Cannot schedule an event in the past (fire time {fire_time_s}, now {self.env.now})"
            )

        self.seq += 1
        handle = EventHandle(fire_time_s, self.seq, action, args)

        if fire_time_s >= self.stop_time_s:
            handle.dropped = True
            self.dropped_events += 1
            self.logger.debug(f"Dropped {handle}: beyond stop time {self.stop_time_s}")
            return handle

        timeout = self.env.timeout(fire_time_s - self.env.now)
        timeout.callbacks.append(lambda _event: self._dispatch(handle))

        return handle

    def schedule_in(self, delay_s: float, action: Callable, *args) -> EventHandle:
        """Schedules an action after a delay relative to the current time."""
        return self.schedule(action, self.env.now + delay_s, *args)

    def cancel(self, handle: EventHandle):
        """Cancels a pending event. Cancelling a dispatched or dropped event does nothing."""
        if handle is None or not handle.pending:
            return
        handle.cancelled = True
        self.logger.debug(f"Cancelled {handle}")

    def _dispatch(self, handle: EventHandle):
        if handle.cancelled:
            return

        # simpy time, not handle.fire_time_s: both are equal up to float rounding
        now = self.env.now
        if self.dispatch_times_s and now < self.dispatch_times_s[-1]:
            raise RuntimeError(
                f"Event {handle} is older than the previously dispatched event ({self.dispatch_times_s[-1]})"
            )

        handle.dispatched = True
        self.dispatch_times_s.append(now)
        handle.action(*handle.args)

    def run(self, stop_time_s: float = None):
        """
        Runs the simulation until the queue is drained or the stop time is reached.

        The stop time can only shorten the configured window. The scheduler is
        stopped afterwards and cannot be run again.
        """
        if self.state != SchedulerState.IDLE:
            raise RuntimeError("The scheduler can only be run once")

        if stop_time_s is not None:
            self.stop_time_s = min(stop_time_s, self.stop_time_s)

        self.state = SchedulerState.RUNNING
        self.logger.header(f"Running until t = {self.stop_time_s} s...")

        try:
            self.env.run(until=self.stop_time_s)
        finally:
            self.state = SchedulerState.STOPPED

        self.logger.info(
            f"Stopped at t = {self.env.now} s. Dispatched events: {len(self.dispatch_times_s)}, dropped events: {self.dropped_events}"
        )
