"""The cooperative run-queue scheduler

A Scheduler owns a FIFO queue of work items. Any thread may post work, but
only one thread - the one that calls pump() - ever executes it. The pump
thread blocks in pump() until completion is signalled and the queue has been
drained.

This is what lets a blocking entry point await chains of asynchronous
operations: their continuations are posted here instead of running on
whatever thread resolved them, and the blocked thread is the one that runs
them. Nothing waits on the pump thread, so it can't deadlock on itself.

"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple

from ..exceptions import UnexpectedError

LOG = logging.getLogger(__name__)


class SchedulerError(UnexpectedError):
    """Scheduler misuse"""


@dataclass
class RunQueueItem:
    """One unit of deferred work and its state"""

    callback: Callable
    args: Tuple[Any, ...] = field(default_factory=tuple)

    def run(self):
        return self.callback(*self.args)


class Scheduler:
    """Single-consumer, multiple-producer run-queue"""

    def __init__(self):
        self._queue = deque()
        self._cond = threading.Condition(threading.Lock())
        self._completed = False
        self._drained = False
        self._pump_thread: Optional[threading.Thread] = None
        self._failures = []
        self.executed = 0

    @property
    def pump_thread(self) -> Optional[threading.Thread]:
        return self._pump_thread

    @property
    def completed(self) -> bool:
        return self._completed

    def on_pump_thread(self) -> bool:
        return threading.current_thread() is self._pump_thread

    def post(self, callback: Callable, *args):
        """Queue CALLBACK(*ARGS) to run on the pump thread"""
        with self._cond:
            if self._drained:
                # The pump has already returned: nothing will ever run this.
                LOG.warning("Work posted after drain was discarded: %s", callback)
                return
            self._queue.append(RunQueueItem(callback, args))
            self._cond.notify()

    def signal_completion(self):
        """Declare that no more work will be posted. Idempotent"""
        with self._cond:
            if self._completed:
                return
            self._completed = True
            LOG.debug("Completion signalled (%d queued)", len(self._queue))
            self._cond.notify_all()

    def _next_item(self) -> Optional[RunQueueItem]:
        """Block until there's work, or return None once drained"""
        with self._cond:
            while not self._queue and not self._completed:
                self._cond.wait()
            if self._queue:
                return self._queue.popleft()
            self._drained = True
            return None

    def pump(self):
        """Run posted work on the current thread until completion and drain

        An exception raised by a work item doesn't stop the pump. The first one
        is re-raised after the queue has been drained.

        """
        with self._cond:
            if self._pump_thread is not None:
                raise SchedulerError("pump() has already been called")
            self._pump_thread = threading.current_thread()

        LOG.debug("Pumping on %s", self._pump_thread.name)

        while True:
            item = self._next_item()
            if item is None:
                break
            try:
                item.run()
            except Exception as exc:
                LOG.exception("Uncaught error in scheduled work %s", item.callback)
                self._failures.append(exc)
            self.executed += 1

        LOG.debug("Drained after %d items", self.executed)

        if self._failures:
            raise self._failures[0]
