"""Command-line interface for PlotLab."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from . import __version__
from .config import Config, Settings, load_config
from .exceptions import ConfigError, PlotLabError
from .gcode import generate_gcode
from .manager import SVGManager
from .optimizer import calculate_stats, compare_stats, optimize
from .validator import ValidationResult, validate_gcode
from .zones import ExclusionZonesManager, safety_warnings

# Set up logging
logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID = 2

PathLike = Union[str, Path]


def parse_args(args=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Convert SVG files to G-code for a pen plotter attachment."
    )
    parser.add_argument(
        "--input", "-i", required=True, type=Path, nargs="+", help="Input SVG file path(s)"
    )
    parser.add_argument(
        "--output", "-o", required=True, type=Path, help="Output G-code file path"
    )
    parser.add_argument(
        "--config", "-c", type=Path, help="Configuration YAML file path"
    )
    parser.add_argument(
        "--flip-y", action="store_true", default=None, help="Flip the SVG Y axis"
    )
    parser.add_argument(
        "--samples-per-unit", type=float, help="Sampling density (default from config: 2.0)"
    )
    scale_group = parser.add_mutually_exclusive_group()
    scale_group.add_argument("--scale", type=float, help="User scale for every drawing")
    scale_group.add_argument("--fit", action="store_true", default=None, help="Scale drawings to fit the bed")
    parser.add_argument("--rotation", type=float, help="Rotation in degrees")
    parser.add_argument(
        "--position", type=float, nargs=2, metavar=("X", "Y"),
        help="Bed position (mm) of the drawing center (default: bed center)",
    )
    parser.add_argument("--no-optimize", action="store_true", help="Keep the original path order")
    parser.add_argument("--no-two-opt", action="store_true", help="Skip 2-opt refinement")
    parser.add_argument(
        "--strict", action="store_true", help="Exit with code 2 when validation finds errors"
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only log warnings and errors")
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    return parser.parse_args(args)


def apply_overrides(config: Config, args) -> None:
    """Copy command-line options over the loaded configuration."""
    if args.flip_y is not None:
        config.set("svg.flip_y", True)
    if args.samples_per_unit is not None:
        config.set("svg.samples_per_unit", args.samples_per_unit)
    if args.scale is not None:
        config.set("placement.default_scale", args.scale)
        config.set("placement.fit_to_bed", False)
    if args.fit:
        config.set("placement.fit_to_bed", True)
    if args.rotation is not None:
        config.set("placement.default_rotation", args.rotation)
    if args.no_optimize:
        config.set("optimizer.enabled", False)
    if args.no_two_opt:
        config.set("optimizer.two_opt", False)


def build_gcode(input_files: Sequence[PathLike], config: Config,
                position: Optional[Tuple[float, float]] = None) -> Tuple[str, ValidationResult, List[str]]:
    """Import, place, order and generate G-code for SVG files.

    Args:
        input_files: SVG files to draw, in import order
        config: Configuration
        position: Bed position of each drawing's center, default bed center

    Returns:
        Tuple of (G-code text, validation result, bed safety warnings)

    Raises:
        SVGParseError: An input is not valid SVG or has nothing to draw
        OSError: An input could not be read
    """
    settings = Settings.from_config(config).sanitized()
    manager = SVGManager(settings.bed_width, settings.bed_height,
                         default_rotation=config.get("placement.default_rotation", 0.0))

    for input_file in input_files:
        drawing_id = manager.import_file(
            input_file,
            flip_y=bool(config.get("svg.flip_y", False)),
            samples_per_unit=float(config.get("svg.samples_per_unit", 2.0)),
            fit_to_bed=bool(config.get("placement.fit_to_bed", False)),
            initial_scale=float(config.get("placement.default_scale", 1.0)),
            margin=float(config.get("placement.bed_margin", 0.9)),
        )
        if position is not None:
            drawing = manager.get(drawing_id)
            manager.update_transformation(drawing_id, position,
                                          drawing.placement.scale, drawing.placement.rotation)

    polylines = manager.get_all_polylines()
    zones = ExclusionZonesManager.from_list(config.get("zones", []))
    # Advisory; logged by safety_warnings
    warnings = safety_warnings(polylines, settings.bed_width, settings.bed_height,
                               settings.pen_offset, zones)

    start_point = tuple(config.get("optimizer.start_point", [0.0, 0.0]))
    if config.get("optimizer.enabled", True):
        before = calculate_stats(polylines, start_point)
        polylines = optimize(polylines, start_point, bool(config.get("optimizer.two_opt", True)))
        after = calculate_stats(polylines, start_point)
        saved, percent = compare_stats(before, after)
        logger.info(f"Travel {before.total_travel:.1f}mm -> {after.total_travel:.1f}mm "
                    f"(saved {saved:.1f}mm, {percent:.1f}%), drawing {after.draw_distance:.1f}mm")

    gcode = generate_gcode(polylines, settings)
    result = validate_gcode(
        gcode,
        bed_width=settings.bed_width,
        bed_height=settings.bed_height,
        max_z=float(config.get("gcode.max_z", 300.0)),
        max_feed_rate=float(config.get("gcode.max_feed_rate", 15000.0)),
    )
    return gcode, result, warnings


def _log_validation(result: ValidationResult) -> None:
    for error in result.errors:
        logger.error(error)
    for warning in result.warnings:
        logger.warning(warning)
    logger.info(f"Validation: {result.summary}")


def write_gcode(gcode: str, output_file: PathLike) -> None:
    path = Path(output_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(gcode)
    logger.info(f"G-code saved to {path} ({len(gcode.splitlines())} lines)")


def convert_svg_to_gcode(input_file: Union[PathLike, Sequence[PathLike]], output_file: PathLike,
                         config: Optional[Config] = None,
                         position: Optional[Tuple[float, float]] = None) -> bool:
    """Convert SVG file(s) to a G-code file.

    Validation findings are logged but do not fail the conversion.

    Args:
        input_file: SVG file path, or a list of paths
        output_file: G-code file path
        config: Configuration (optional, defaults used otherwise)
        position: Bed position of each drawing's center (optional)

    Returns:
        True if the G-code file was written, False otherwise
    """
    config = config or load_config()
    inputs = [input_file] if isinstance(input_file, (str, Path)) else list(input_file)

    try:
        gcode, result, _ = build_gcode(inputs, config, position)
        write_gcode(gcode, output_file)
    except (PlotLabError, OSError) as e:
        logger.error(f"Conversion failed: {e}")
        return False

    _log_validation(result)
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)

    for input_file in args.input:
        if not input_file.exists():
            logger.error(f"Input file '{input_file}' does not exist.")
            return EXIT_FAILURE

    if args.config and not args.config.exists():
        logger.error(f"Config file '{args.config}' does not exist.")
        return EXIT_FAILURE

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(str(e))
        return EXIT_FAILURE
    apply_overrides(config, args)
    if not config.validate():
        return EXIT_FAILURE

    try:
        gcode, result, _ = build_gcode(args.input, config, tuple(args.position) if args.position else None)
        write_gcode(gcode, args.output)
    except (PlotLabError, OSError) as e:
        logger.error(f"Conversion failed: {e}")
        return EXIT_FAILURE

    _log_validation(result)
    if args.strict and not result.valid:
        return EXIT_INVALID
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
