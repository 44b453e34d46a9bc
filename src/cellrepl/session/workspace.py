"""Workspace: cell buffers and Python code analysis"""

import codeop
import logging
import threading
import uuid
import warnings
from typing import List

from ..exceptions import UnexpectedError
from . import interface
from .events import CellId

LOG = logging.getLogger(__name__)


class UnknownCell(UnexpectedError):
    """No such cell in this session"""


class CellBuffers:
    """Cell source buffers, kept in document order"""

    def __init__(self):
        self._order: List[CellId] = []
        self._text = {}
        self._lock = threading.Lock()

    def insert(self, text: str = "", after: CellId = None) -> CellId:
        cell_id = uuid.uuid4().hex
        with self._lock:
            if after is None:
                self._order.append(cell_id)
            else:
                if after not in self._text:
                    raise UnknownCell(after)
                self._order.insert(self._order.index(after) + 1, cell_id)
            self._text[cell_id] = text
        LOG.debug("Inserted cell %s after %s", cell_id, after)
        return cell_id

    def get(self, cell_id: CellId) -> str:
        with self._lock:
            try:
                return self._text[cell_id]
            except KeyError:
                raise UnknownCell(cell_id) from None

    def set(self, cell_id: CellId, text: str):
        with self._lock:
            if cell_id not in self._text:
                raise UnknownCell(cell_id)
            self._text[cell_id] = text

    def ids(self) -> List[CellId]:
        with self._lock:
            return list(self._order)


class WorkspaceService(interface.WorkspaceService):
    """Decide whether a cell buffer is ready to evaluate

    Uses the same rules as the interactive Python prompt: a buffer is complete
    when it compiles (or is definitely broken - evaluation will report the
    syntax error), and incomplete when more lines could still fix it.

    """

    def __init__(self, buffers: CellBuffers):
        self.buffers = buffers

    def is_cell_complete(self, cell_id: CellId) -> bool:
        source = self.buffers.get(cell_id)
        if not source.strip():
            return False

        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            # Lines are joined with "\n" as the interactive prompt does, so a
            # trailing newline must not close an open block
            if source.endswith("\n"):
                source = source[:-1]
            try:
                code = codeop.compile_command(source, "<cell>", "single")
            except (SyntaxError, ValueError, OverflowError):
                return True

        return code is not None
