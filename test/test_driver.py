"""Test the REPL driver against an in-memory session"""
import io
from pathlib import Path

import pytest
from cellrepl.client.driver import ReplDriver
from cellrepl.scheduler import Scheduler, run
from cellrepl.session.events import (
    CapturedOutputSegment,
    CellResult,
    Diagnostic,
    DiagnosticSeverity,
    EvaluationFinished,
    EvaluationStarted,
    EvaluationStatus,
    SessionEvent,
    SessionEventKind,
)
from cellrepl.session.interface import (
    EvaluationEnvironment,
    LanguageDescription,
    PackageReference,
    SessionDescription,
)
from cellrepl.workbook import Workbook, parse_page

from utils import FakeSession, default_outcome, lines, plain_ui

DESCRIPTION = SessionDescription(
    LanguageDescription("python"), "python", EvaluationEnvironment(Path("."))
)


def setup_module(module):
    plain_ui()


def make_driver(session, read_line=None, **kwargs):
    stream = io.StringIO()
    scheduler = Scheduler()
    driver = ReplDriver(
        session, scheduler, stream=stream, read_line=read_line, settle_delay=0, **kwargs
    )
    return driver, scheduler, stream


def workbook(*sources, packages=()):
    text = "---\ntitle: test\n---\n\n"
    text += "\n".join(f"```python\n{s}\n```\n" for s in sources)
    page = parse_page(text, Path("test.workbook"))
    page.packages = tuple(packages)
    return Workbook(path=page.path, index_page=page, pages=[page])


def test_events_for_other_cells_are_discarded():
    session = FakeSession()
    driver, scheduler, stream = make_driver(session)
    driver.current_cell = "A"

    for cell, text in [("A", "a1 "), ("A", "a2 "), ("B", "b "), ("A", "a3")]:
        session.events.emit(SessionEvent.evaluation(CapturedOutputSegment(cell, 1, text)))
    scheduler.signal_completion()
    scheduler.pump()

    assert stream.getvalue() == "a1 a2 a3"
    assert driver.filter.discarded == 1


def test_events_accepted_before_any_cell():
    session = FakeSession()
    driver, _, stream = make_driver(session)
    driver.on_session_event(SessionEvent.evaluation(CapturedOutputSegment("X", 1, "hi")))
    assert stream.getvalue() == "hi"


def test_replay_stops_at_first_failure():
    def outcome(cell_id, source):
        if source == "two":
            return [
                EvaluationStarted(cell_id),
                EvaluationFinished(cell_id, EvaluationStatus.EVALUATION_EXCEPTION),
            ]
        return default_outcome(cell_id, source)

    session = FakeSession(outcome)
    driver, scheduler, stream = make_driver(session)

    code = run(driver.play_workbook(workbook("one", "two", "three"), DESCRIPTION), scheduler)

    assert code == 0
    evaluation = session.evaluation_service
    assert evaluation.evaluated == ["one", "two"]
    assert len(evaluation.inserted) == 2
    assert driver.last_status == EvaluationStatus.EVALUATION_EXCEPTION
    out = stream.getvalue()
    assert "python> one\n" in out
    assert "Error: An exception was thrown while evaluating cell" in out
    assert "three" not in out


def test_replay_cells_in_document_order():
    session = FakeSession()
    driver, scheduler, _ = make_driver(session)
    run(driver.play_workbook(workbook("a = 1", "b = 2", "a + b"), DESCRIPTION), scheduler)

    evaluation = session.evaluation_service
    assert evaluation.evaluated == ["a = 1", "b = 2", "a + b"]
    assert evaluation.buffers.ids() == evaluation.inserted
    assert driver.last_status == EvaluationStatus.SUCCESS


def test_replay_restores_packages():
    session = FakeSession()
    driver, scheduler, _ = make_driver(session)
    packages = [PackageReference("toml", "0.10.2")]
    run(driver.play_workbook(workbook("x", packages=packages), DESCRIPTION), scheduler)
    assert session.package_manager_service.restored == packages


def test_interactive_reads_until_complete():
    session = FakeSession()
    driver, scheduler, stream = make_driver(session, lines("if (true) {\n", "}\n"))

    code = run(driver.repl(DESCRIPTION), scheduler)

    assert code == 0
    assert session.evaluation_service.evaluated == ["if (true) {\n}\n"]
    out = stream.getvalue()
    assert out.startswith("ConnectingToAgent\nReady\npython> ")
    # Secondary prompt is the width of the primary one
    assert "      > " in out
    assert session.closed


def test_interactive_cells_are_separate():
    session = FakeSession()
    driver, scheduler, _ = make_driver(session, lines("x = 1\n", "x"))
    run(driver.repl(DESCRIPTION), scheduler)

    evaluation = session.evaluation_service
    assert evaluation.evaluated == ["x = 1\n", "x\n"]
    assert len(evaluation.inserted) == 3


def test_interactive_continues_after_failure():
    def outcome(cell_id, source):
        return [EvaluationFinished(cell_id, EvaluationStatus.INTERRUPTED)]

    session = FakeSession(outcome)
    driver, scheduler, stream = make_driver(session, lines("a\n", "b\n"))
    run(driver.repl(DESCRIPTION), scheduler)

    assert session.evaluation_service.evaluated == ["a\n", "b\n"]
    assert stream.getvalue().count("Error: Evaluation was aborted") == 2


def test_lifecycle_events_rendered():
    session = FakeSession()
    driver, scheduler, stream = make_driver(session, lines())
    run(driver.repl(DESCRIPTION), scheduler)
    out = stream.getvalue()
    for kind in ["ConnectingToAgent", "Ready", "Terminated"]:
        assert kind in out


def test_lifecycle_events_can_be_hidden():
    session = FakeSession()
    driver, scheduler, stream = make_driver(session, lines(), show_session_events=False)
    run(driver.repl(DESCRIPTION), scheduler)
    assert "Ready" not in stream.getvalue()


def test_finished_renders_diagnostics():
    driver, _, stream = make_driver(FakeSession())
    diagnostics = (
        Diagnostic("SyntaxError", DiagnosticSeverity.ERROR, "invalid syntax", (1, 4)),
        Diagnostic("DeprecationWarning", DiagnosticSeverity.WARNING, "old", (2, 0)),
        Diagnostic("Note", DiagnosticSeverity.INFO, "not shown"),
    )
    driver.on_cell_event(
        EvaluationFinished("A", EvaluationStatus.ERROR_DIAGNOSTIC, diagnostics)
    )
    assert stream.getvalue() == (
        "error (SyntaxError): (1,4): invalid syntax\n"
        "warning (DeprecationWarning): (2,0): old\n"
    )
    assert driver.last_status == EvaluationStatus.ERROR_DIAGNOSTIC


def test_disconnect_rendered():
    driver, _, stream = make_driver(FakeSession())
    driver.on_cell_event(EvaluationFinished("A", EvaluationStatus.DISCONNECTED))
    assert stream.getvalue() == "Error: Agent was disconnected while evaluating cell\n"


def test_result_rendered():
    driver, _, stream = make_driver(FakeSession())
    driver.on_cell_event(CellResult("A", "int", ("2",)))
    assert stream.getvalue() == "int: 2\n"


def test_unknown_event_type():
    driver, _, _ = make_driver(FakeSession())
    with pytest.raises(TypeError):
        driver.on_cell_event(SessionEvent(SessionEventKind.READY))


def test_replay_with_backend_resolving_immediately():
    session = FakeSession(synchronous=True)
    driver, scheduler, stream = make_driver(session)

    run(driver.play_workbook(workbook("one", "two", "three"), DESCRIPTION), scheduler)

    assert session.evaluation_service.evaluated == ["one", "two", "three"]
    assert driver.last_status == EvaluationStatus.SUCCESS
    assert stream.getvalue().startswith("ConnectingToAgent\nReady\npython> one\none")


def test_failure_seen_with_backend_resolving_immediately():
    def outcome(cell_id, source):
        return [EvaluationFinished(cell_id, EvaluationStatus.DISCONNECTED)]

    session = FakeSession(outcome, synchronous=True)
    driver, scheduler, _ = make_driver(session)
    run(driver.play_workbook(workbook("one", "two"), DESCRIPTION), scheduler)

    assert session.evaluation_service.evaluated == ["one"]
    assert driver.last_status == EvaluationStatus.DISCONNECTED


def test_terminated_rendered_last():
    session = FakeSession()
    driver, scheduler, stream = make_driver(session, lines())
    run(driver.repl(DESCRIPTION), scheduler)
    assert stream.getvalue().endswith("Terminated\n")
