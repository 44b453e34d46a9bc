"""Session service interfaces

These are the narrow surfaces the client consumes. LocalSession is the
in-tree implementation; tests use in-memory fakes.

"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..scheduler.future import Future
from .events import CellId, SessionEvent

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class LanguageDescription:
    name: str
    version: Optional[str] = None

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class EvaluationEnvironment:
    working_directory: Path


@dataclass(frozen=True)
class SessionDescription:
    """Just enough to bring a session up"""

    language: LanguageDescription
    target_platform_id: str
    environment: EvaluationEnvironment


@dataclass(frozen=True)
class PackageReference:
    id: str
    version: Optional[str] = None

    def requirement(self) -> str:
        return f"{self.id}=={self.version}" if self.version else self.id


@dataclass
class RestoreResult:
    restored: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


Observer = Callable[[SessionEvent], None]


class EventStream:
    """Push-style stream of session events

    Observers are called synchronously on the emitting thread, in
    subscription order.

    """

    def __init__(self):
        self._observers = []
        self._lock = threading.Lock()

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        with self._lock:
            self._observers.append(observer)

        def unsubscribe():
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def emit(self, event: SessionEvent):
        with self._lock:
            observers = list(self._observers)
        LOG.debug("Event %s -> %d observers", event, len(observers))
        for observer in observers:
            observer(event)


class EvaluationService:
    def insert_cell(self, initial_text: str = "", after: CellId = None) -> Future:
        """Insert a cell, resolving to its CellId. Appends when AFTER is None"""
        raise NotImplementedError("Must be subclassed")

    def get_buffer(self, cell_id: CellId) -> Future:
        raise NotImplementedError("Must be subclassed")

    def update_buffer(self, cell_id: CellId, text: str) -> Future:
        raise NotImplementedError("Must be subclassed")

    def evaluate(self, cell_id: CellId) -> Future:
        """Evaluate a cell. Resolves once its terminal event has been emitted"""
        raise NotImplementedError("Must be subclassed")


class WorkspaceService:
    def is_cell_complete(self, cell_id: CellId) -> bool:
        raise NotImplementedError("Must be subclassed")


class PackageManagerService:
    def restore(self, packages: Tuple[PackageReference, ...]) -> Future:
        raise NotImplementedError("Must be subclassed")


class Session:
    """One connection to an evaluation backend"""

    events: EventStream
    evaluation_service: EvaluationService
    workspace_service: WorkspaceService
    package_manager_service: PackageManagerService

    def initialize(self, description: SessionDescription) -> Future:
        raise NotImplementedError("Must be subclassed")

    def close(self):
        raise NotImplementedError("Must be subclassed")
