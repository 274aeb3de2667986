"""
Debounced refresh trigger.

A `Debouncer` is a two-state machine:

    Idle                    -- nothing scheduled
    PendingRefresh(deadline) -- one APScheduler `date` job due at `deadline`

Every `trigger()` moves the deadline to now + quiet period (the job is
replaced, not added), so a burst of events collapses into a single call
once activity has settled.

A deadline that passes while the callback is still running does not call
it twice at once: the debouncer stays pending and runs the callback once
more as soon as the current call returns.
"""

import logging
import threading
import datetime as dt
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError

logger = logging.getLogger(__name__)

IDLE = "idle"
PENDING = "pending"


# Room for the running refresh plus short-lived instances that only mark
# the debouncer dirty.
MAX_INSTANCES = 3


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Debouncer:
    def __init__(
        self,
        scheduler,
        callback: Callable[[], None],
        quiet_period: float,
        *,
        job_id: str,
        clock: Callable[[], dt.datetime] = utcnow,
    ) -> None:
        self.scheduler = scheduler
        self.callback = callback
        self.quiet_period = dt.timedelta(seconds=quiet_period)
        self.job_id = job_id
        self.clock = clock
        self._lock = threading.Lock()
        self._deadline: Optional[dt.datetime] = None
        self._running = False
        self._dirty = False

    @property
    def state(self) -> str:
        if self._deadline is None and not self._dirty:
            return IDLE
        return PENDING

    @property
    def deadline(self) -> Optional[dt.datetime]:
        return self._deadline

    @property
    def running(self) -> bool:
        return self._running

    def trigger(self) -> None:
        with self._lock:
            self._schedule(self.clock() + self.quiet_period)

    def _schedule(self, deadline: dt.datetime) -> None:
        self._deadline = deadline
        self.scheduler.add_job(
            self._fire,
            trigger="date",
            run_date=deadline,
            id=self.job_id,
            replace_existing=True,
            misfire_grace_time=None,
            max_instances=MAX_INSTANCES,
        )

    def _fire(self) -> None:
        with self._lock:
            if self._deadline is None:
                return
            if self.clock() < self._deadline:
                # superseded by a later trigger; that job will fire instead
                return
            self._deadline = None
            if self._running:
                self._dirty = True
                return
            self._running = True

        try:
            self.callback()
        finally:
            with self._lock:
                self._running = False
                rerun = self._dirty
                self._dirty = False
                if rerun and self._deadline is None:
                    # events arrived mid-refresh and have already been quiet
                    self._schedule(self.clock())

    def cancel(self) -> None:
        with self._lock:
            self._dirty = False
            if self._deadline is None:
                return
            self._deadline = None
            try:
                self.scheduler.remove_job(self.job_id)
            except JobLookupError:
                pass
