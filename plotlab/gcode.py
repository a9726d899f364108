"""G-code generation module for PlotLab.

This module turns ordered bed-space polylines into G-code for a pen
mounted next to the nozzle of a 3D printer. Every emitted coordinate is in
nozzle space: the pen offset is subtracted from X/Y and from the Z heights.
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .config import Settings
from .path_processor import Polyline

# Set up logging
logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r"\{(\w+)\}")

DEFAULT_HEADER_TEMPLATE = "\n".join([
    "; ========== PlotLab - generated G-code  ==========",
    "",
    "; ========== machine: P1S ==========",
    "",
    "; ========== startup sequence ==========",
    "; heating: off",
    "M106 P1 S0 ; turn off part fan",
    "M106 P2 S0 ; turn off AUX fan",
    "M106 P3 S0 ; turn off Chamber fan",
    "",
    "G28 ; home all axes",
    "",
    "; ========== MANUAL STEP NEEDED NOW ==========",
    "",
    "M106 P1 S255 ; turn on part fan",
    "M400 U1 ; wait for user interaction",
    "M106 P1 S0 ; turn off part fan",
    "",
    "; ATTACH THE PEN ADAPTER NOW AND PRESS CONTINUE",
    "",
    "; ========== MANUAL STEP NEEDED NOW ==========",
    "; coordinates settings",
    "G90 ; absolute coords",
    "",
    "; progress bar",
    "M73 P0 R0 ; clear progress bar",
    "",
    "G0 Z{nozzleUpZ} F{travelFeedRate} ; pen up (safe height, nozzle adjusted for pen offset)",
])

DEFAULT_FOOTER_TEMPLATE = "\n".join([
    "; ========== end sequence ==========",
    "; progress complete",
    "M73 P100 R0 ; set progress bar to 100%",
    "",
    "; Go to up left corner and end",
    "G0 X0 Y{bedHeight} Z100",
    "; FINISHED",
])


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves upward."""
    return int(math.floor(value + 0.5))


def format_length(value: float) -> str:
    """Format a length with 3 decimals, never as negative zero."""
    text = f"{value:.3f}"
    return "0.000" if text == "-0.000" else text


def format_feed(value: float) -> str:
    return str(round_half_up(value))


def expand_template(template: str, context: Dict[str, str]) -> str:
    """Substitute {token} placeholders from a context mapping.

    Tokens missing from the context are left as literal text.

    Args:
        template: Template text
        context: Token name to pre-formatted value

    Returns:
        Expanded text
    """
    return TOKEN_RE.sub(lambda m: context.get(m.group(1), m.group(0)), template)


def build_context(settings: Settings, timestamp: Optional[datetime] = None) -> Dict[str, str]:
    """Build the template token context for already sanitized settings.

    Args:
        settings: Sanitized generator settings
        timestamp: Generation time, defaults to now (UTC)

    Returns:
        Token name to formatted value
    """
    offset_x, offset_y, offset_z = settings.pen_offset
    timestamp = timestamp or datetime.now(timezone.utc)
    return {
        "penUpZ": format_length(settings.pen_up_z),
        "nozzleUpZ": format_length(settings.pen_up_z - offset_z),
        "sheetHeight": format_length(settings.sheet_height),
        "feedRate": format_feed(settings.feed_rate),
        "travelFeedRate": format_feed(settings.travel_feed_rate),
        "offsetX": format_length(offset_x),
        "offsetY": format_length(offset_y),
        "offsetZ": format_length(offset_z),
        "bedWidth": format_length(settings.bed_width),
        "bedHeight": format_length(settings.bed_height),
        "timestamp": timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }


class GCodeGenerator:
    """G-code generator for the pen plotter attachment."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize G-code generator.

        Args:
            settings: Machine settings (optional); non-finite values fall back
                to the defaults
        """
        self.settings = (settings or Settings()).sanitized()
        self.offset_x, self.offset_y, self.offset_z = self.settings.pen_offset
        self.nozzle_up_z = self.settings.pen_up_z - self.offset_z
        self.nozzle_down_z = self.settings.sheet_height - self.offset_z
        self.output_lines: List[str] = []

    def comment(self, text: str) -> str:
        """Generate a comment.

        Args:
            text: Comment text

        Returns:
            G-code comment
        """
        return f"; {text}"

    def _coordinates(self, x: Optional[float], y: Optional[float], z: Optional[float]) -> str:
        words = ""
        if x is not None:
            words += f" X{format_length(x)}"
        if y is not None:
            words += f" Y{format_length(y)}"
        if z is not None:
            words += f" Z{format_length(z)}"
        return words

    def move_to(self, x: Optional[float] = None, y: Optional[float] = None,
                z: Optional[float] = None, feed_rate: Optional[float] = None) -> str:
        """Generate a linear (drawing) move command.

        Args:
            x: X coordinate (optional)
            y: Y coordinate (optional)
            z: Z coordinate (optional)
            feed_rate: Feed rate in mm/min (optional)

        Returns:
            G-code move command
        """
        command = "G1" + self._coordinates(x, y, z)
        if feed_rate is not None:
            command += f" F{format_feed(feed_rate)}"
        return command

    def rapid_move_to(self, x: Optional[float] = None, y: Optional[float] = None,
                      z: Optional[float] = None, feed_rate: Optional[float] = None) -> str:
        """Generate a rapid (travel) move command.

        Args:
            x: X coordinate (optional)
            y: Y coordinate (optional)
            z: Z coordinate (optional)
            feed_rate: Feed rate in mm/min (optional)

        Returns:
            G-code rapid move command
        """
        command = "G0" + self._coordinates(x, y, z)
        if feed_rate is not None:
            command += f" F{format_feed(feed_rate)}"
        return command

    def pen_down(self) -> str:
        return self.rapid_move_to(z=self.nozzle_down_z, feed_rate=self.settings.travel_feed_rate) \
            + " ; Pen down (offset adjusted)"

    def pen_up(self) -> str:
        return self.rapid_move_to(z=self.nozzle_up_z, feed_rate=self.settings.travel_feed_rate) \
            + " ; Pen up (offset adjusted)"

    def progress(self, percent: int) -> str:
        return f"M73 P{percent} R0 ; Progress: {percent}%"

    def polyline_commands(self, polyline: Polyline, number: int) -> List[str]:
        """Commands that draw one polyline, from travel to pen up.

        Args:
            polyline: Bed-space polyline with at least two points
            number: 1-based polyline number used in the comment

        Returns:
            List of G-code lines
        """
        start_x, start_y = polyline[0]
        commands = [
            self.comment(f"Polyline {number}"),
            self.rapid_move_to(start_x - self.offset_x, start_y - self.offset_y,
                               self.nozzle_up_z, self.settings.travel_feed_rate),
            self.pen_down(),
        ]
        for x, y in polyline[1:]:
            commands.append(self.move_to(x - self.offset_x, y - self.offset_y,
                                         feed_rate=self.settings.feed_rate))
        commands.append(self.pen_up())
        return commands

    def add_line(self, line: str) -> None:
        """Add a line to the output.

        Args:
            line: G-code line to add
        """
        self.output_lines.append(line)

    def add_lines(self, lines: Sequence[str]) -> None:
        """Add multiple lines to the output.

        Args:
            lines: G-code lines to add
        """
        self.output_lines.extend(lines)

    def get_output(self) -> str:
        """Get G-code output as a string.

        Returns:
            G-code output
        """
        return "\n".join(self.output_lines)


def generate_gcode(polylines: Sequence[Polyline], settings: Optional[Settings] = None,
                   timestamp: Optional[datetime] = None) -> str:
    """Generate G-code from ordered bed-space polylines.

    Polylines with fewer than two points are skipped and are not counted
    for progress, but keep their position in the "Polyline N" numbering.

    Args:
        polylines: Polylines in bed millimeters, in drawing order
        settings: Machine settings (optional)
        timestamp: Value for the {timestamp} token, defaults to now

    Returns:
        G-code output, ending with a newline
    """
    generator = GCodeGenerator(settings)
    context = build_context(generator.settings, timestamp)

    header = generator.settings.header_template
    if not header.strip():
        header = DEFAULT_HEADER_TEMPLATE
    footer = generator.settings.footer_template
    if not footer.strip():
        footer = DEFAULT_FOOTER_TEMPLATE

    generator.add_lines(expand_template(header, context).split("\n"))
    generator.add_line("")

    total = sum(1 for pl in polylines if pl and len(pl) >= 2)
    completed = 0

    for index, polyline in enumerate(polylines):
        if not polyline or len(polyline) < 2:
            continue
        generator.add_lines(generator.polyline_commands(polyline, index + 1))
        completed += 1
        generator.add_line(generator.progress(round_half_up(completed / total * 100)))
        generator.add_line("")

    generator.add_lines(expand_template(footer, context).split("\n"))
    generator.add_line("")

    logger.debug(f"Generated G-code for {completed} polylines")
    return generator.get_output()
