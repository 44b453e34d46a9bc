"""The REPL driver

Drives a session from the scheduler's pump thread: prompts, reads input,
evaluates cells and renders the events the session emits. Session events
arrive on arbitrary threads and are posted to the scheduler, so all the
driver's state is only touched on the pump thread.

"""

import logging
import sys
from functools import singledispatchmethod
from typing import Callable, Optional

from ..cli import interface as ui
from ..config_classes import DEFAULT_SETTLE_DELAY
from ..executors.thread import run_in_thread
from ..scheduler.runqueue import Scheduler
from ..scheduler.task import sleep
from ..session.events import (
    CapturedOutputSegment,
    CellId,
    CellResult,
    EvaluationFinished,
    EvaluationStarted,
    EvaluationStatus,
    SessionEvent,
    SessionEventKind,
)
from ..session.interface import Session, SessionDescription
from ..workbook import Workbook
from .filtering import CellEventFilter

LOG = logging.getLogger(__name__)

STATUS_ERRORS = {
    EvaluationStatus.DISCONNECTED: "Agent was disconnected while evaluating cell",
    EvaluationStatus.INTERRUPTED: "Evaluation was aborted",
    EvaluationStatus.EVALUATION_EXCEPTION: "An exception was thrown while evaluating cell",
}


class ReplDriver:
    def __init__(
        self,
        session: Session,
        scheduler: Scheduler,
        *,
        stream=sys.stdout,
        read_line: Callable[[], str] = None,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        show_session_events: bool = True,
    ):
        self.session = session
        self.scheduler = scheduler
        self.stream = stream
        self.read_line = read_line or sys.stdin.readline
        self.settle_delay = settle_delay
        self.show_session_events = show_session_events
        self.filter = CellEventFilter()
        self.last_status: Optional[EvaluationStatus] = None
        self.language = ""
        self._unsubscribe = session.events.subscribe(self._post_event)

    @property
    def current_cell(self) -> Optional[CellId]:
        return self.filter.current_cell

    @current_cell.setter
    def current_cell(self, cell_id: CellId):
        self.filter.current_cell = cell_id

    ## events

    def _post_event(self, event: SessionEvent):
        # Called on whichever thread the session emits from
        self.scheduler.post(self.on_session_event, event)

    def on_session_event(self, event: SessionEvent):
        if event.kind == SessionEventKind.EVALUATION:
            if self.filter.accepts(event.data):
                self.on_cell_event(event.data)
        elif self.show_session_events:
            ui.render_session_event(event, self.stream)

    @singledispatchmethod
    def on_cell_event(self, event):
        raise TypeError(f"Unhandled cell event: {event!r}")

    @on_cell_event.register
    def _(self, event: EvaluationStarted):
        LOG.info("Evaluating %s", event.cell_id)

    @on_cell_event.register
    def _(self, event: EvaluationFinished):
        LOG.info("Finished %s: %s", event.cell_id, event.status.value)
        self.last_status = event.status
        message = STATUS_ERRORS.get(event.status)
        if message:
            ui.render_error(message, self.stream)
        for diagnostic in event.diagnostics:
            ui.render_diagnostic(diagnostic, self.stream)

    @on_cell_event.register
    def _(self, event: CapturedOutputSegment):
        ui.render_output(event, self.stream)

    @on_cell_event.register
    def _(self, event: CellResult):
        ui.render_result(event, self.stream)

    ## cells

    async def initialize(self, description: SessionDescription):
        self.language = str(description.language)
        LOG.info("Initialising session for %s on %s", self.language, description.target_platform_id)
        await self.session.initialize(description)

    async def evaluate(self, cell_id: CellId):
        """Evaluate a cell, returning once its events should have been seen"""
        self.last_status = None
        await self.session.evaluation_service.evaluate(cell_id)
        # evaluate() may resolve before the cell's last events are delivered
        if self.settle_delay > 0:
            await sleep(self.settle_delay)

    async def restore(self, packages):
        if not packages:
            return
        with ui.spin(f"Restoring {len(packages)} packages...") as spinner:
            result = await self.session.package_manager_service.restore(packages)
            if result.missing:
                spinner.fail(ui.CROSS)
            else:
                spinner.ok(ui.TICK)
        for requirement in result.missing:
            ui.render_warning(f"Package {requirement} is not available", self.stream)

    def close(self):
        self.session.close()
        self._unsubscribe()

    ## modes

    async def _read_cell(self, evaluation, cell_id: CellId) -> bool:
        """Read lines into CELL_ID until it is complete. False at end of input"""
        ui.write_prompt(self.language, stream=self.stream)
        while True:
            line = await run_in_thread(self.read_line)
            if not line:
                return False
            if not line.endswith("\n"):
                line += "\n"
            text = await evaluation.get_buffer(cell_id)
            await evaluation.update_buffer(cell_id, text + line)
            if self.session.workspace_service.is_cell_complete(cell_id):
                return True
            ui.write_prompt(self.language, secondary_prompt=True, stream=self.stream)

    async def repl(self, description: SessionDescription) -> int:
        """Interactive mode: evaluate cells read from input until EOF"""
        await self.initialize(description)
        evaluation = self.session.evaluation_service
        while True:
            self.current_cell = await evaluation.insert_cell("", self.current_cell)
            if not await self._read_cell(evaluation, self.current_cell):
                self.stream.write("\n")
                return 0
            await self.evaluate(self.current_cell)

    async def play_workbook(self, workbook: Workbook, description: SessionDescription) -> int:
        """Replay the index page's code cells, stopping at the first failure"""
        await self.initialize(description)
        await self.restore(workbook.packages)
        evaluation = self.session.evaluation_service

        for cell in workbook.index_page.code_cells():
            self.current_cell = await evaluation.insert_cell(cell.source, self.current_cell)
            ui.write_prompt(self.language, stream=self.stream)
            self.stream.write(cell.source + "\n")
            await self.evaluate(self.current_cell)
            if self.last_status != EvaluationStatus.SUCCESS:
                LOG.info("Stopping replay: %s", self.last_status)
                break
        return 0
