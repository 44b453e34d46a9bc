"""Run blocking calls on worker threads"""
import logging
import threading

from ..scheduler.future import Future

LOG = logging.getLogger(__name__)


class Invoker:
    """Invoke blocking functions on daemon threads, resolving a Future

    Daemon threads, so a thread stuck in a blocking read (e.g. stdin) never
    keeps the process alive.

    """

    def __init__(self, name_prefix="cellrepl-worker"):
        self.name_prefix = name_prefix
        self._count = 0

    def invoke(self, fn, *args) -> Future:
        future = Future()

        def target():
            try:
                value = fn(*args)
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(value)

        self._count += 1
        thread = threading.Thread(
            target=target, name=f"{self.name_prefix}-{self._count}", daemon=True
        )
        LOG.debug(f"New thread: {thread} for {fn}")
        thread.start()
        return future


_DEFAULT_INVOKER = Invoker()


def run_in_thread(fn, *args) -> Future:
    """Run FN(*ARGS) on a worker thread"""
    return _DEFAULT_INVOKER.invoke(fn, *args)
