#!/usr/bin/env python3
"""Tests for SVG transform parsing and composition."""

import logging
import sys

import numpy as np
import pytest
from lxml import etree

from plotlab.transforms import apply_transform, matrix_to_abcdef, parse_transform, resolve_transform

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("test_transforms")


def _map(transform: str, point):
    return apply_transform([point], parse_transform(transform))[0]


def test_identity():
    assert np.array_equal(parse_transform(None), np.identity(3))
    assert np.array_equal(parse_transform(""), np.identity(3))
    assert matrix_to_abcdef(parse_transform("")) == (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)


def test_order_within_attribute():
    """The right-most function applies first."""
    x, y = _map("translate(10,0) rotate(90)", (1, 0))
    logger.info(f"translate(10,0) rotate(90) maps (1,0) to ({x}, {y})")
    assert (x, y) == pytest.approx((10, 1))

    x, y = _map("rotate(90) translate(10,0)", (1, 0))
    assert (x, y) == pytest.approx((0, 11))


def test_single_argument_forms():
    assert _map("translate(5)", (1, 1)) == pytest.approx((6, 1))
    assert _map("scale(2)", (3, 4)) == pytest.approx((6, 8))
    assert _map("scale(2, 3)", (3, 4)) == pytest.approx((6, 12))


def test_rotate_about_pivot():
    # rotate(a, cx, cy) == translate(cx, cy) rotate(a) translate(-cx, -cy)
    about = _map("rotate(90, 5, 5)", (10, 5))
    composed = _map("translate(5,5) rotate(90) translate(-5,-5)", (10, 5))
    assert about == pytest.approx(composed)
    assert about == pytest.approx((5, 10))


def test_matrix_and_skew():
    assert _map("matrix(1 0 0 1 7 -3)", (1, 1)) == pytest.approx((8, -2))
    assert _map("skewX(45)", (0, 2)) == pytest.approx((2, 2))
    assert _map("skewY(45)", (2, 0)) == pytest.approx((2, 2))


def test_malformed_functions_ignored():
    assert _map("bogus(1,2) translate(3,4)", (0, 0)) == pytest.approx((3, 4))
    assert _map("matrix(1 2 3) translate(1)", (0, 0)) == pytest.approx((1, 0))
    assert _map("rotate()", (1, 0)) == pytest.approx((1, 0))


def test_ancestors_apply_last():
    root = etree.fromstring(
        '<svg xmlns="http://www.w3.org/2000/svg">'
        '<g transform="translate(100,0)"><g transform="scale(2)">'
        '<path id="p" transform="translate(1,1)" d="M0 0"/>'
        "</g></g></svg>"
    )
    element = root.find(".//{http://www.w3.org/2000/svg}path")
    x, y = apply_transform([(0, 0)], resolve_transform(element))[0]
    logger.info(f"Nested transforms map (0,0) to ({x}, {y})")
    assert (x, y) == pytest.approx((102, 2))


def test_apply_empty_polyline():
    assert apply_transform([], parse_transform("scale(2)")) == []


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
