#!/usr/bin/env python3
"""Tests for undo/redo history."""

import logging
import sys

from plotlab.history import TRANSFORM, VISIBILITY, HistoryEntry, HistoryManager
from plotlab.manager import SVGManager

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("test_history")

SQUARE = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100">'
    '<rect x="0" y="0" width="100" height="100"/></svg>'
)


def _move(manager, history, drawing_id, translation):
    before = manager.get(drawing_id).placement
    manager.update_transformation(drawing_id, translation, before.scale, before.rotation)
    history.record_placement(TRANSFORM, drawing_id, before, manager.get(drawing_id).placement)


def test_undo_redo_placement():
    manager = SVGManager()
    history = HistoryManager()
    drawing_id = manager.import_svg(SQUARE, "square.svg")

    assert not history.can_undo()
    assert history.undo(manager) is None

    _move(manager, history, drawing_id, (10, 20))
    _move(manager, history, drawing_id, (30, 40))

    entry = history.undo(manager)
    assert entry.action == TRANSFORM
    assert manager.get(drawing_id).placement.translation == (10, 20)

    history.undo(manager)
    assert manager.get(drawing_id).placement.translation == (128, 128)
    assert history.size() == {"undo": 0, "redo": 2}

    history.redo(manager)
    history.redo(manager)
    assert manager.get(drawing_id).placement.translation == (30, 40)
    assert history.redo(manager) is None


def test_new_record_clears_redo():
    manager = SVGManager()
    history = HistoryManager()
    drawing_id = manager.import_svg(SQUARE, "square.svg")

    _move(manager, history, drawing_id, (10, 20))
    history.undo(manager)
    assert history.can_redo()

    _move(manager, history, drawing_id, (50, 50))
    assert not history.can_redo()


def test_visibility_undo():
    manager = SVGManager()
    history = HistoryManager()
    drawing_id = manager.import_svg(SQUARE, "square.svg")

    before = manager.get(drawing_id).placement
    manager.toggle_visibility(drawing_id)
    history.record_placement(VISIBILITY, drawing_id, before, manager.get(drawing_id).placement)

    history.undo(manager)
    assert manager.get(drawing_id).placement.visible


def test_history_is_bounded():
    history = HistoryManager(max_size=50)
    for i in range(60):
        history.record(HistoryEntry(TRANSFORM, f"svg_{i}"))

    assert history.size()["undo"] == 50
    # Oldest entries are dropped first
    assert history._undo[0].drawing_id == "svg_10"


def test_add_and_remove():
    manager = SVGManager()
    history = HistoryManager()
    drawing_id = manager.import_svg(SQUARE, "square.svg")
    history.record_add(manager.get(drawing_id))

    history.undo(manager)
    assert drawing_id not in manager
    history.redo(manager)
    assert drawing_id in manager

    drawing = manager.get(drawing_id)
    manager.remove_svg(drawing_id)
    history.record_remove(drawing)

    history.undo(manager)
    restored = manager.get(drawing_id)
    logger.info(f"Restored drawing: {restored.id} ({restored.filename})")
    assert restored.placement == drawing.placement
    history.redo(manager)
    assert len(manager) == 0


def test_clear():
    history = HistoryManager()
    history.record(HistoryEntry(TRANSFORM, "svg_1"))
    history.clear()
    assert history.size() == {"undo": 0, "redo": 0}


def main():
    """Run all tests in this module."""
    tests = [v for k, v in sorted(globals().items()) if k.startswith("test_") and callable(v)]
    failures = 0
    for test in tests:
        try:
            test()
        except AssertionError as e:
            logger.error(f"{test.__name__} failed: {e}")
            failures += 1
    logger.info(f"Test results: {len(tests) - failures} succeeded, {failures} failed")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
