"""Coroutine tasks driven by the run-queue scheduler"""

import logging
import threading
from typing import Coroutine, Optional

from .future import Future
from .runqueue import Scheduler, SchedulerError

LOG = logging.getLogger(__name__)


class Task(Future):
    """Run a coroutine on a Scheduler

    Each step of the coroutine is posted to the scheduler, so the coroutine
    body only ever executes on the pump thread. When the coroutine awaits an
    unresolved Future, the task parks itself as a continuation of that future,
    and the continuation posts the next step back to the scheduler.

    """

    def __init__(self, coro: Coroutine, scheduler: Scheduler, name: str = None):
        super().__init__()
        self._coro = coro
        self._scheduler = scheduler
        self.name = name or getattr(coro, "__qualname__", repr(coro))
        scheduler.post(self._step)

    def _step(self):
        try:
            awaited = self._coro.send(None)
        except StopIteration as stop:
            LOG.debug("Task %s finished", self.name)
            self.set_result(stop.value)
        except Exception as exc:
            LOG.debug("Task %s failed: %r", self.name, exc)
            self.set_exception(exc)
        else:
            if not isinstance(awaited, Future):
                self._coro.close()
                self.set_exception(
                    SchedulerError(f"Task {self.name} awaited a non-Future: {awaited!r}")
                )
                return
            awaited.add_done_callback(self._wakeup)

    def _wakeup(self, _future: Future):
        # May be called on any thread.
        self._scheduler.post(self._step)

    def __repr__(self):
        return f"<Task {self.name} {self.resolved}>"


def spawn(coro: Coroutine, scheduler: Scheduler, name: str = None) -> Task:
    """Start a concurrent task on the scheduler"""
    return Task(coro, scheduler, name=name)


def sleep(seconds: float) -> Future:
    """A future that resolves after SECONDS, on a timer thread"""
    future = Future()
    timer = threading.Timer(max(seconds, 0), future.set_result, args=(None,))
    timer.daemon = True
    timer.start()
    return future


def run(coro: Coroutine, scheduler: Optional[Scheduler] = None):
    """Run a coroutine to completion on the current thread

    The current thread becomes the scheduler's pump thread. Completion is
    signalled as soon as the top-level task settles, whether it succeeded or
    not, and then whatever is still queued is drained.

    """
    scheduler = scheduler or Scheduler()
    task = Task(coro, scheduler, name="main")
    task.add_done_callback(lambda _: scheduler.signal_completion())
    scheduler.pump()
    return task.result()
