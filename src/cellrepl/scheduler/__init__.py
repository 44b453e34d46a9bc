from .future import Future, FutureNotResolved
from .runqueue import RunQueueItem, Scheduler, SchedulerError
from .task import Task, run, sleep, spawn
