"""Coalescing trigger for debounced recomputation"""

import threading
import time
from functools import partial
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

Scheduler = Callable[[float, Callable[[], None]], Any]


def timer_scheduler(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """Run callback once after delay seconds on a daemon timer thread"""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class CoalescingTrigger:
    """
    Collapse bursts of trigger events into one callback.

    Every ``trigger()`` stores the latest payload and the time it arrived. A
    scheduled check fires the callback only once ``window`` seconds have
    passed since the most recent trigger; a check that finds a newer trigger
    reschedules itself for the remaining time. Each fire sees the payload of
    the last trigger only.

    Clock and scheduler are injectable so callers (and tests) can drive time
    explicitly.
    """

    def __init__(
        self,
        callback: Callable[..., Any],
        window: float = 0.3,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Scheduler = timer_scheduler,
    ):
        self.callback = callback
        self.window = window
        self.clock = clock
        self.scheduler = scheduler

        self.pending = False
        self.last_trigger: Optional[float] = None
        self.fire_count = 0
        self._payload: tuple = ()
        self._check_scheduled = False
        # Bumped by cancel(); checks scheduled before that are stale
        self._generation = 0
        self._handle: Any = None
        self._lock = threading.Lock()

    def trigger(self, *payload: Any) -> None:
        """Register a trigger event; supersedes any pending one"""
        with self._lock:
            self.pending = True
            self.last_trigger = self.clock()
            self._payload = payload
            if self._check_scheduled:
                return
            self._check_scheduled = True
            generation = self._generation

        self._schedule(self.window, generation)

    def _schedule(self, delay: float, generation: int) -> None:
        handle = self.scheduler(delay, partial(self._check, generation))
        with self._lock:
            if generation == self._generation:
                self._handle = handle
                return
        # cancelled while scheduling
        _cancel_handle(handle)

    def _check(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._handle = None
            if not self.pending:
                self._check_scheduled = False
                return

            remaining = self.last_trigger + self.window - self.clock()
            if remaining > 0:
                reschedule = True
            else:
                reschedule = False
                self.pending = False
                self._check_scheduled = False
                payload = self._payload

        if reschedule:
            self._schedule(remaining, generation)
            return

        self._fire(payload)

    def flush(self) -> bool:
        """Fire a pending call immediately, returns whether anything fired"""
        with self._lock:
            if not self.pending:
                return False
            self.pending = False
            payload = self._payload
        self._fire(payload)
        return True

    def cancel(self) -> None:
        """Drop the pending call and stop its scheduled check"""
        with self._lock:
            self.pending = False
            self._check_scheduled = False
            self._generation += 1
            handle, self._handle = self._handle, None
        _cancel_handle(handle)

    def _fire(self, payload: tuple) -> None:
        self.fire_count += 1
        logger.debug("Debounced trigger fired", fire_count=self.fire_count)
        self.callback(*payload)


def _cancel_handle(handle: Any) -> None:
    """Stop a scheduler handle that supports it (threading.Timer does)"""
    cancel = getattr(handle, "cancel", None)
    if cancel is not None:
        cancel()
