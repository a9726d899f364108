#!/usr/bin/env python3
"""Tests for SVG document processing."""

import logging
import sys
import tempfile
from pathlib import Path

import pytest

from plotlab.exceptions import EmptyDocumentError, SVGParseError
from plotlab.svg import (
    calculate_bounds,
    convert_to_mm,
    load_svg,
    merge_continuous_strokes,
    parse_length,
    process_svg,
)

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("test_svg")

SVG_NS = 'xmlns="http://www.w3.org/2000/svg"'


def _svg(body: str, attrs: str = 'viewBox="0 0 100 100"') -> str:
    return f"<svg {SVG_NS} {attrs}>{body}</svg>"


def test_parse_length_and_units():
    assert parse_length("50mm") == (50.0, "mm")
    assert parse_length("2.5in") == (2.5, "in")
    assert parse_length("100") == (100.0, "px")
    assert parse_length("") == (0.0, "px")
    assert convert_to_mm(1, "in") == pytest.approx(25.4)
    assert convert_to_mm(1, "cm") == pytest.approx(10)
    assert convert_to_mm(96, "px") == pytest.approx(25.4, abs=1e-3)


def test_rect_is_closed_outline():
    result = process_svg(_svg('<rect x="0" y="0" width="10" height="5"/>'))
    assert len(result.polylines) == 1
    polyline = result.polylines[0]
    logger.info(f"Rect outline: {polyline}")

    assert polyline[0] == polyline[-1]
    assert len(polyline) == 5
    b = result.bounds
    assert (b.min_x, b.min_y, b.max_x, b.max_y) == (0, 0, 10, 5)


def test_scale_factor_from_physical_size():
    result = process_svg(_svg('<line x1="0" y1="0" x2="100" y2="100"/>',
                              'viewBox="0 0 100 100" width="50mm" height="50mm"'))
    assert result.scale_factor is not None
    assert result.scale_factor.avg_scale == pytest.approx(0.5)
    assert result.mm_scale == pytest.approx(0.5)
    assert result.physical.width_mm == pytest.approx(50)


def test_no_physical_size_means_no_scale_factor():
    result = process_svg(_svg('<line x1="0" y1="0" x2="10" y2="10"/>'))
    assert result.scale_factor is None
    assert result.mm_scale == 1.0

    # Relative sizes are not physical
    result = process_svg(_svg('<line x1="0" y1="0" x2="10" y2="10"/>',
                              'viewBox="0 0 100 100" width="100%" height="100%"'))
    assert result.scale_factor is None


def test_viewbox_origin_normalized_and_flip():
    body = '<line x1="10" y1="20" x2="30" y2="20"/>'
    result = process_svg(_svg(body, 'viewBox="10 10 100 50"'))
    assert result.polylines[0][0] == pytest.approx((0, 10))
    assert result.viewbox == (10, 10, 100, 50)

    flipped = process_svg(_svg(body, 'viewBox="10 10 100 50"'), flip_y=True)
    assert flipped.polylines[0][0] == pytest.approx((0, 40))


def test_extent_without_viewbox():
    # width/height are CSS pixels when there is no viewBox
    result = process_svg(_svg('<line x1="0" y1="0" x2="10" y2="0"/>', 'width="96px" height="96px"'))
    assert result.viewbox[2] == pytest.approx(96)
    assert result.scale_factor.avg_scale == pytest.approx(0.264583)

    # Falls back to the drawn geometry, then to the default extent
    result = process_svg(_svg('<line x1="5" y1="5" x2="25" y2="15"/>', ""))
    assert result.viewbox == pytest.approx((5, 5, 20, 10))


def test_element_transforms_applied():
    body = '<g transform="translate(10,0)"><line x1="0" y1="0" x2="0" y2="5" transform="scale(2)"/></g>'
    result = process_svg(_svg(body))
    first, last = result.polylines[0]
    assert first == pytest.approx((10, 0))
    assert last == pytest.approx((10, 10))


def test_shapes():
    body = (
        '<circle cx="50" cy="50" r="10"/>'
        '<ellipse cx="20" cy="20" rx="5" ry="3"/>'
        '<polyline points="0,0 10,0 10,10"/>'
        '<polygon points="60,60 70,60 70,70" fill="red"/>'
    )
    result = process_svg(_svg(body))
    logger.info(f"Shapes: {result.stroke_count} strokes, {result.polygon_count} filled")

    assert result.polygon_count == 1
    polygon = result.polylines[-1]
    assert polygon[0] == polygon[-1] == (60.0, 60.0)

    circle = [pl for pl in result.polylines if len(pl) == 33]
    assert circle
    assert circle[0][0] == pytest.approx(circle[0][-1])


def test_fill_style_overrides_attribute():
    body = '<rect x="0" y="0" width="10" height="10" fill="red" style="fill: none"/>'
    result = process_svg(_svg(body))
    assert result.stroke_count == 1
    assert result.polygon_count == 0


def test_bad_elements_skipped():
    body = (
        '<circle cx="5" cy="5" r="-1"/>'
        '<polyline points="a,b c,d"/>'
        '<rect x="0" y="0" width="0" height="10"/>'
        '<line x1="0" y1="0" x2="10" y2="0"/>'
    )
    result = process_svg(_svg(body))
    assert len(result.polylines) == 1


def test_non_rendered_containers_skipped():
    body = '<defs><rect x="0" y="0" width="10" height="10"/></defs><line x1="0" y1="0" x2="5" y2="0"/>'
    result = process_svg(_svg(body))
    assert len(result.polylines) == 1
    assert result.polylines[0][-1] == pytest.approx((5, 0))


def test_malformed_markup_raises():
    with pytest.raises(SVGParseError):
        process_svg("<svg><path d='M0 0'></svg")
    with pytest.raises(SVGParseError):
        process_svg(f"<html {SVG_NS}/>")


def test_empty_document_is_not_an_error():
    result = process_svg(_svg(""))
    assert result.polylines == []
    # Bounds fall back to the native extent
    assert (result.bounds.max_x, result.bounds.max_y) == (100, 100)

    assert issubclass(EmptyDocumentError, SVGParseError)


def test_merge_continuous_strokes():
    a = [(0.0, 0.0), (1.0, 0.0)]
    b = [(1.0, 0.0), (2.0, 0.0)]
    merged = merge_continuous_strokes([a, b])
    assert merged == [[(0.0, 0.0), (1.0, 0.0), (2.0, 0.0)]]

    # Small gap keeps the joint point
    c = [(1.05, 0.0), (2.0, 0.0)]
    assert merge_continuous_strokes([a, c]) == [[(0.0, 0.0), (1.0, 0.0), (1.05, 0.0), (2.0, 0.0)]]

    # Sharp turn or large gap stays separate
    turn = [(1.0, 0.0), (1.0, 1.0)]
    assert len(merge_continuous_strokes([a, turn])) == 2
    far = [(5.0, 0.0), (6.0, 0.0)]
    assert len(merge_continuous_strokes([a, far])) == 2


def test_calculate_bounds_default():
    bounds = calculate_bounds([[(float("nan"), 1.0)]], 40, 30)
    assert (bounds.min_x, bounds.min_y, bounds.max_x, bounds.max_y) == (0, 0, 40, 30)
    assert bounds.width == 40
    assert bounds.center == (20, 15)


def test_load_svg_file():
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "square.svg"
        path.write_text(_svg('<rect x="10" y="10" width="20" height="20"/>'))
        result = load_svg(path)
    assert len(result.polylines) == 1
    assert result.bounds.width == pytest.approx(20)


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
