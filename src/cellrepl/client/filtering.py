"""Decide which evaluation events reach the screen"""

import logging
from typing import Optional

from ..session.events import CellEvent, CellId

LOG = logging.getLogger(__name__)


class CellEventFilter:
    """Only the tracked cell's events are shown

    Evaluations can outlive the prompt that started them, so late output from
    an older cell is dropped instead of being mixed into the current one.
    Accepted events keep their delivery order.

    """

    def __init__(self):
        self.current_cell: Optional[CellId] = None
        self.discarded = 0

    def accepts(self, event: CellEvent) -> bool:
        if self.current_cell is not None and event.cell_id != self.current_cell:
            LOG.debug("Discarded %s (current cell %s)", event, self.current_cell)
            self.discarded += 1
            return False
        return True
