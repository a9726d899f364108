#!/usr/bin/env python3
"""Tests for project files and settings presets."""

import json
import logging
import sys
import tempfile
from pathlib import Path

import pytest

from plotlab.config import Settings
from plotlab.exceptions import ProjectFormatError
from plotlab.manager import SVGManager
from plotlab.project import PROJECT_VERSION, PresetManager, ProjectManager
from plotlab.zones import ExclusionZonesManager

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("test_project")

CIRCLE = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 40 40" width="20mm" height="20mm">'
    '<circle cx="20" cy="20" r="15"/></svg>'
)


def _populated_project():
    manager = SVGManager(200, 180)
    drawing_id = manager.import_svg(CIRCLE, "circle.svg")
    manager.update_transformation(drawing_id, (60, 70), 1.5, 15)
    zones = ExclusionZonesManager()
    zones.add_zone(0, 0, 20, 20, name="Clip")
    settings = Settings(bed_width=200, bed_height=180, pen_offset=(3.0, 4.0, 0.2))
    return ProjectManager(manager, zones, settings)


def _flatten(polylines):
    return [len(pl) for pl in polylines], [v for pl in polylines for point in pl for v in point]


def test_save_and_restore_project():
    project = _populated_project()
    expected = project.svg_manager.get_all_polylines()

    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "desk.plotlab.json"
        saved = project.save_project(path)
        assert saved["name"] == "desk"
        assert saved["version"] == PROJECT_VERSION

        data = ProjectManager.load_project(path)

    restored = ProjectManager(SVGManager(), ExclusionZonesManager(), Settings())
    restored.svg_manager.import_svg(CIRCLE, "stale.svg")
    restored.apply_project(data)

    logger.info(f"Restored {len(restored.svg_manager)} drawings, {len(restored.zones)} zones")
    assert [d.filename for d in restored.svg_manager] == ["circle.svg"]
    assert restored.svg_manager.get("svg_1").placement.rotation == 15
    sizes, values = _flatten(restored.svg_manager.get_all_polylines())
    assert sizes == _flatten(expected)[0]
    assert values == pytest.approx(_flatten(expected)[1])
    assert restored.zones.get("zone_1").name == "Clip"
    assert restored.settings.pen_offset == (3.0, 4.0, 0.2)
    assert restored.svg_manager.bed_width == 200


def test_load_rejects_bad_files():
    with tempfile.TemporaryDirectory() as temp_dir:
        with pytest.raises(ProjectFormatError):
            ProjectManager.load_project(Path(temp_dir) / "missing.plotlab.json")

        not_json = Path(temp_dir) / "bad.plotlab.json"
        not_json.write_text("{not json")
        with pytest.raises(ProjectFormatError):
            ProjectManager.load_project(not_json)

        no_svgs = Path(temp_dir) / "empty.plotlab.json"
        no_svgs.write_text(json.dumps({"version": PROJECT_VERSION}))
        with pytest.raises(ProjectFormatError):
            ProjectManager.load_project(no_svgs)


def test_malformed_record_leaves_state_alone():
    project = _populated_project()
    with pytest.raises(ProjectFormatError):
        project.apply_project({"version": PROJECT_VERSION, "svgs": [{"filename": "no-id.svg"}]})
    assert len(project.svg_manager) == 1
    assert len(project.zones) == 1


def test_presets():
    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "presets.yaml"
        presets = PresetManager(path)
        assert presets.get_all_presets() == []
        assert presets.load_preset("fine") is None

        fine = Settings(feed_rate=1200, pen_offset=(0.0, 35.0, 1.5))
        presets.save_preset("fine", fine)
        presets.save_preset("fast", Settings(feed_rate=6000))

        reloaded = PresetManager(path)
        assert [p["name"] for p in reloaded.get_all_presets()] == ["fine", "fast"]
        assert reloaded.load_preset("fine") == fine

        reloaded.delete_preset("fast")
        assert [p["name"] for p in PresetManager(path).get_all_presets()] == ["fine"]


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
