"""Undo/redo history for drawing edits.

History is a log of value snapshots. Undo applies the recorded "before"
state through the SVGManager and redo applies "after"; the placement model
itself knows nothing about history.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .drawing import Drawing, Placement
from .manager import SVGManager

# Set up logging
logger = logging.getLogger(__name__)

MAX_HISTORY_SIZE = 50

# Action kinds
TRANSFORM = "transform"
VISIBILITY = "visibility"
ADD = "add"
REMOVE = "remove"


@dataclass(frozen=True)
class HistoryEntry:
    """One recorded edit.

    Placement edits carry before/after placements. Add and remove carry the
    whole drawing so it can be re-inserted.
    """

    action: str
    drawing_id: str
    before: Optional[Placement] = None
    after: Optional[Placement] = None
    drawing: Optional[Drawing] = None
    timestamp: float = field(default_factory=time.time)


class HistoryManager:
    """Bounded undo and redo stacks."""

    def __init__(self, max_size: int = MAX_HISTORY_SIZE):
        self.max_size = max_size
        self._undo: List[HistoryEntry] = []
        self._redo: List[HistoryEntry] = []

    def record(self, entry: HistoryEntry) -> None:
        """Push an entry; clears the redo stack and drops the oldest entry when full."""
        self._undo.append(entry)
        self._redo = []
        if len(self._undo) > self.max_size:
            self._undo.pop(0)

    def record_placement(self, action: str, drawing_id: str, before: Placement, after: Placement) -> None:
        self.record(HistoryEntry(action, drawing_id, before=before, after=after))

    def record_add(self, drawing: Drawing) -> None:
        self.record(HistoryEntry(ADD, drawing.id, drawing=drawing))

    def record_remove(self, drawing: Drawing) -> None:
        self.record(HistoryEntry(REMOVE, drawing.id, drawing=drawing))

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo(self, manager: SVGManager) -> Optional[HistoryEntry]:
        """Revert the last entry on the manager.

        Returns:
            The reverted entry, or None when there is nothing to undo
        """
        if not self._undo:
            return None
        entry = self._undo.pop()
        self._redo.append(entry)
        _apply(manager, entry, forward=False)
        logger.debug(f"Undo {entry.action} on {entry.drawing_id}")
        return entry

    def redo(self, manager: SVGManager) -> Optional[HistoryEntry]:
        """Re-apply the last undone entry on the manager."""
        if not self._redo:
            return None
        entry = self._redo.pop()
        self._undo.append(entry)
        _apply(manager, entry, forward=True)
        logger.debug(f"Redo {entry.action} on {entry.drawing_id}")
        return entry

    def clear(self) -> None:
        self._undo = []
        self._redo = []

    def size(self) -> dict:
        return {"undo": len(self._undo), "redo": len(self._redo)}


def _apply(manager: SVGManager, entry: HistoryEntry, forward: bool) -> None:
    if entry.action in (ADD, REMOVE):
        # Undoing an add and redoing a remove both take the drawing out
        insert = (entry.action == ADD) == forward
        if insert:
            if entry.drawing_id not in manager:
                manager.restore(entry.drawing)
        else:
            manager.remove_svg(entry.drawing_id)
        return

    placement = entry.after if forward else entry.before
    if placement is not None:
        manager.set_placement(entry.drawing_id, placement)
