"""Shared test utilities"""

from pathlib import Path

from cellrepl.config import Config
from cellrepl.executors.thread import run_in_thread
from cellrepl.scheduler.future import Future
from cellrepl.session import interface
from cellrepl.session.events import (
    CapturedOutputSegment,
    EvaluationFinished,
    EvaluationStarted,
    EvaluationStatus,
    SessionEvent,
    SessionEventKind,
)
from cellrepl.session.workspace import CellBuffers


def default_outcome(cell_id, source):
    """Echo the source to stdout and succeed"""
    return [
        EvaluationStarted(cell_id),
        CapturedOutputSegment(cell_id, 1, source),
        EvaluationFinished(cell_id, EvaluationStatus.SUCCESS),
    ]


class FakeEvaluation(interface.EvaluationService):
    """In-memory evaluation. Events are emitted from a worker thread, before
    evaluate() resolves, like the local backend does. When SYNCHRONOUS, they
    are emitted on the calling thread and evaluate() returns resolved"""

    def __init__(self, session, synchronous=False):
        self.session = session
        self.synchronous = synchronous
        self.buffers = CellBuffers()
        self.inserted = []
        self.evaluated = []

    def insert_cell(self, initial_text="", after=None):
        cell_id = self.buffers.insert(initial_text, after)
        self.inserted.append(cell_id)
        return Future.resolved_with(cell_id)

    def get_buffer(self, cell_id):
        return Future.resolved_with(self.buffers.get(cell_id))

    def update_buffer(self, cell_id, text):
        self.buffers.set(cell_id, text)
        return Future.resolved_with(None)

    def evaluate(self, cell_id):
        source = self.buffers.get(cell_id)
        self.evaluated.append(source)

        def _emit_all():
            for event in self.session.outcome(cell_id, source):
                self.session.events.emit(SessionEvent.evaluation(event))

        if self.synchronous:
            _emit_all()
            return Future.resolved_with(None)
        return run_in_thread(_emit_all)


class BraceWorkspace(interface.WorkspaceService):
    """A cell is complete once its braces balance"""

    def __init__(self, buffers):
        self.buffers = buffers

    def is_cell_complete(self, cell_id):
        source = self.buffers.get(cell_id)
        return bool(source.strip()) and source.count("{") == source.count("}")


class FakePackages(interface.PackageManagerService):
    def __init__(self):
        self.restored = []

    def restore(self, packages):
        self.restored.extend(packages)
        return Future.resolved_with(
            interface.RestoreResult(restored=[p.requirement() for p in packages])
        )


class FakeSession(interface.Session):
    def __init__(self, outcome=default_outcome, synchronous=False):
        self.outcome = outcome
        self.events = interface.EventStream()
        self.evaluation_service = FakeEvaluation(self, synchronous)
        self.workspace_service = BraceWorkspace(self.evaluation_service.buffers)
        self.package_manager_service = FakePackages()
        self.description = None
        self.closed = False

    def initialize(self, description):
        self.description = description

        def _start():
            self.events.emit(SessionEvent(SessionEventKind.CONNECTING_TO_AGENT))
            self.events.emit(SessionEvent(SessionEventKind.READY))

        return run_in_thread(_start)

    def close(self):
        self.closed = True
        self.events.emit(SessionEvent(SessionEventKind.TERMINATED))


def lines(*items):
    """A read_line function returning ITEMS, then EOF"""
    remaining = list(items)

    def read_line():
        return remaining.pop(0) if remaining else ""

    return read_line


def default_config(**client) -> Config:
    cfg = Config(root=Path("."), config_file=None)
    cfg.client.settle_delay = 0
    for key, value in client.items():
        setattr(cfg.client, key, value)
    return cfg


def plain_ui():
    """Turn colours off so rendered text can be matched"""
    from cellrepl.cli import interface as ui

    ui.init({"--vverbose": False, "--verbose": False, "--quiet": False, "--no-colours": True})
