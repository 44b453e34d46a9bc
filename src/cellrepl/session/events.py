"""Session and evaluation events

Evaluation events form a closed set: EvaluationStarted, EvaluationFinished,
CapturedOutputSegment and CellResult. Consumers dispatch on the type and
must treat anything else as a bug.

"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Optional, Tuple, Union

CellId = str


class EvaluationStatus(Enum):
    SUCCESS = "Success"
    DISCONNECTED = "Disconnected"
    INTERRUPTED = "Interrupted"
    ERROR_DIAGNOSTIC = "ErrorDiagnostic"
    EVALUATION_EXCEPTION = "EvaluationException"


class DiagnosticSeverity(IntEnum):
    HIDDEN = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class Diagnostic:
    id: str
    severity: DiagnosticSeverity
    message: str
    span: Tuple[int, int] = (0, 0)

    @classmethod
    def deserialise(cls, item: dict) -> "Diagnostic":
        return cls(
            id=item["id"],
            severity=DiagnosticSeverity[item["severity"].upper()],
            message=item["message"],
            span=tuple(item.get("span", (0, 0))),
        )


@dataclass(frozen=True)
class CellEvent:
    """Base for events about one cell"""

    cell_id: CellId


@dataclass(frozen=True)
class EvaluationStarted(CellEvent):
    pass


@dataclass(frozen=True)
class EvaluationFinished(CellEvent):
    status: EvaluationStatus
    diagnostics: Tuple[Diagnostic, ...] = ()


@dataclass(frozen=True)
class CapturedOutputSegment(CellEvent):
    file_descriptor: int
    value: str


@dataclass(frozen=True)
class CellResult(CellEvent):
    type_name: str
    representations: Tuple[str, ...] = ()


EvaluationEvent = Union[
    EvaluationStarted, EvaluationFinished, CapturedOutputSegment, CellResult
]


class SessionEventKind(Enum):
    CONNECTING_TO_AGENT = "ConnectingToAgent"
    INITIALIZING_WORKSPACE = "InitializingWorkspace"
    READY = "Ready"
    EVALUATION = "Evaluation"
    AGENT_DISCONNECTED = "AgentDisconnected"
    TERMINATED = "Terminated"


@dataclass(frozen=True)
class SessionEvent:
    kind: SessionEventKind
    data: Optional[Any] = None

    @classmethod
    def evaluation(cls, event: CellEvent) -> "SessionEvent":
        return cls(SessionEventKind.EVALUATION, event)


def event_from_message(msg: dict) -> CellEvent:
    """Build an evaluation event from an agent protocol message"""
    kind = msg["event"]
    cell_id = msg["cell"]
    if kind == "started":
        return EvaluationStarted(cell_id)
    elif kind == "finished":
        return EvaluationFinished(
            cell_id,
            status=EvaluationStatus(msg["status"]),
            diagnostics=tuple(Diagnostic.deserialise(d) for d in msg.get("diagnostics", [])),
        )
    elif kind == "output":
        return CapturedOutputSegment(cell_id, file_descriptor=msg["fd"], value=msg["text"])
    elif kind == "result":
        return CellResult(
            cell_id,
            type_name=msg["type"],
            representations=tuple(msg.get("representations", [])),
        )
    else:
        raise ValueError(f"Unknown evaluation event: {kind}")
