#!/usr/bin/env python3
"""Tests for drawing placement and the drawing collection."""

import logging
import sys

import pytest

from plotlab.drawing import Drawing, Placement
from plotlab.exceptions import EmptyDocumentError, SVGParseError
from plotlab.manager import SVGManager
from plotlab.svg import process_svg

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("test_drawing")

SQUARE = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100">'
    '<rect x="0" y="0" width="100" height="100"/></svg>'
)
BAR = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 5">'
    '<rect x="0" y="0" width="10" height="5"/></svg>'
)
HALF_SCALE = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 100" width="50mm" height="50mm">'
    '<rect x="0" y="0" width="100" height="100"/></svg>'
)


def _extent(polylines):
    xs = [x for pl in polylines for x, _ in pl]
    ys = [y for pl in polylines for _, y in pl]
    return min(xs), min(ys), max(xs), max(ys)


def test_square_centered_on_bed():
    manager = SVGManager(256, 256)
    drawing_id = manager.import_svg(SQUARE, "square.svg")
    drawing = manager.get(drawing_id)
    logger.info(f"Placement: {drawing.placement}")

    assert drawing.placement.translation == (128, 128)
    assert _extent(manager.get_transformed_polylines(drawing_id)) == pytest.approx((78, 78, 178, 178))


def test_rotation_keeps_center():
    manager = SVGManager(200, 200)
    drawing_id = manager.import_svg(BAR, "bar.svg")
    manager.update_transformation(drawing_id, (50, 60), 1.0, 90)

    min_x, min_y, max_x, max_y = _extent(manager.get_transformed_polylines(drawing_id))
    logger.info(f"Rotated bar extent: {(min_x, min_y, max_x, max_y)}")
    assert max_x - min_x == pytest.approx(5)
    assert max_y - min_y == pytest.approx(10)
    assert ((min_x + max_x) / 2, (min_y + max_y) / 2) == pytest.approx((50, 60))


def test_scale_and_physical_units():
    manager = SVGManager()
    drawing_id = manager.import_svg(HALF_SCALE, "half.svg")
    drawing = manager.get(drawing_id)
    assert drawing.size_mm == pytest.approx((50, 50))

    manager.update_transformation(drawing_id, (100, 100), 2.0, 0)
    assert _extent(manager.get_transformed_polylines(drawing_id)) == pytest.approx((50, 50, 150, 150))


def test_fit_to_bed():
    manager = SVGManager(256, 256)
    result = process_svg(SQUARE)
    assert manager.fit_scale(result) == pytest.approx(256 * 0.9 / 100)

    drawing_id = manager.import_svg(SQUARE, "square.svg", fit_to_bed=True)
    assert manager.get(drawing_id).placement.scale == pytest.approx(2.304)


def test_collection_operations():
    manager = SVGManager()
    first = manager.import_svg(SQUARE, "a.svg")
    second = manager.import_svg(BAR, "b.svg")

    assert (first, second) == ("svg_1", "svg_2")
    assert len(manager) == 2
    assert manager.selected_id == second
    assert manager.get_selected_svg().filename == "b.svg"

    manager.toggle_visibility(first)
    assert not manager.get(first).placement.visible
    assert len(manager.get_all_polylines()) == len(manager.get_transformed_polylines(second))
    listed = manager.get_all_svgs_with_polylines()
    assert [item["id"] for item in listed] == [first, second]
    assert listed[0]["visible"] is False

    manager.remove_svg(second)
    assert second not in manager
    assert manager.selected_id is None
    assert manager.import_svg(BAR, "c.svg") == "svg_3"

    manager.select_svg("missing")
    assert manager.get_selected_svg() is None

    manager.clear()
    assert len(manager) == 0


def test_import_errors_are_distinct():
    manager = SVGManager()
    with pytest.raises(EmptyDocumentError):
        manager.import_svg('<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10"/>', "empty.svg")

    with pytest.raises(SVGParseError) as excinfo:
        manager.import_svg("<svg", "broken.svg")
    assert not isinstance(excinfo.value, EmptyDocumentError)
    assert len(manager) == 0


def test_restore_and_serialization():
    manager = SVGManager()
    drawing_id = manager.import_svg(SQUARE, "square.svg")
    manager.update_transformation(drawing_id, (40, 50), 0.5, 30)
    drawing = manager.get(drawing_id)

    copy = Drawing.from_dict(drawing.to_dict())
    assert copy.placement == drawing.placement
    assert copy.transformed_polylines() == drawing.transformed_polylines()

    other = SVGManager()
    assert other.restore(copy) == drawing_id
    # A clashing id gets a fresh one
    assert other.restore(copy) == "svg_2"
    assert other.import_svg(BAR, "bar.svg") == "svg_3"


def test_placement_round_trip():
    placement = Placement(translation=(1.5, 2.5), scale=2.0, rotation=45.0, visible=False)
    assert Placement.from_dict(placement.to_dict()) == placement


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
