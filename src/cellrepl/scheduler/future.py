"""Scheduler futures"""

import logging
import threading

LOG = logging.getLogger(__name__)


class FutureNotResolved(Exception):
    """The future has no value yet"""


class Future:
    """A future - holds the result of an asynchronous operation

    May be resolved from any thread. Continuations (done callbacks) are called
    on the resolving thread, or immediately if the future has already
    resolved. To get back onto the pump thread, a continuation must post to
    the scheduler - Task does this for coroutines.

    """

    def __init__(self):
        self.continuations = []
        self.resolved = False
        self._value = None
        self._exception = None
        self._lock = threading.Lock()

    @classmethod
    def resolved_with(cls, value=None) -> "Future":
        future = cls()
        future.set_result(value)
        return future

    @classmethod
    def failed_with(cls, exc: BaseException) -> "Future":
        future = cls()
        future.set_exception(exc)
        return future

    def _resolve(self, value, exc):
        with self._lock:
            if self.resolved:
                raise RuntimeError(f"{self} has already resolved")
            self._value = value
            self._exception = exc
            self.resolved = True
            continuations, self.continuations = self.continuations, []

        LOG.debug("Resolved %s. Continuations: %d", self, len(continuations))
        for fn in continuations:
            fn(self)

    def set_result(self, value):
        self._resolve(value, None)

    def set_exception(self, exc: BaseException):
        self._resolve(None, exc)

    def add_done_callback(self, fn):
        """Call FN(future) once resolved"""
        with self._lock:
            if not self.resolved:
                self.continuations.append(fn)
                return
        fn(self)

    def then(self, fn) -> "Future":
        """Chain a future that resolves to FN(result) once this one resolves"""
        chained = Future()

        def _done(future):
            exc = future.exception()
            if exc is not None:
                chained.set_exception(exc)
                return
            try:
                value = fn(future.result())
            except Exception as fn_exc:
                chained.set_exception(fn_exc)
            else:
                chained.set_result(value)

        self.add_done_callback(_done)
        return chained

    def exception(self):
        if not self.resolved:
            raise FutureNotResolved(self)
        return self._exception

    def result(self):
        if not self.resolved:
            raise FutureNotResolved(self)
        if self._exception is not None:
            raise self._exception
        return self._value

    def __await__(self):
        # Always suspend, even when resolved, so the awaiting task resumes
        # behind work already queued on the scheduler
        yield self
        return self.result()

    def __repr__(self):
        return f"<{type(self).__name__} {id(self)} {self.resolved} ({self._value})>"
