"""Static checks for generated G-code.

Findings are advisory: errors mark the program unsafe to run, warnings
flag unusual but runnable values. Nothing here raises for bad G-code.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List

# Set up logging
logger = logging.getLogger(__name__)

DEFAULT_MAX_Z = 300.0
DEFAULT_MAX_FEED_RATE = 15000.0
MIN_FEED_RATE = 100.0

KNOWN_COMMANDS = frozenset([
    "G0", "G1", "G2", "G3", "G4", "G28", "G90", "G91", "G92",
    "M0", "M1", "M73", "M82", "M83", "M84", "M104", "M106", "M107", "M109",
    "M140", "M190", "M400",
])

HOME_RE = re.compile(r"\bG28\b", re.IGNORECASE)
ABSOLUTE_RE = re.compile(r"\bG90\b", re.IGNORECASE)
MOVE_RE = re.compile(r"\b(G0|G1)\b", re.IGNORECASE)
COMMAND_RE = re.compile(r"^([GM]\d+)", re.IGNORECASE)
# Axis words are whitespace separated; the value must be a plain number
WORD_RE = re.compile(r"(?:^|\s)([XYZF])(\S*)", re.IGNORECASE)
NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)")

PASSED_SUMMARY = "G-code validation passed with no issues"


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    summary: str = ""


def _summary(errors: List[str], warnings: List[str]) -> str:
    if not errors and not warnings:
        return PASSED_SUMMARY
    parts = []
    if errors:
        parts.append(f"{len(errors)} error(s) found")
    if warnings:
        parts.append(f"{len(warnings)} warning(s)")
    return ", ".join(parts)


def _check_move(line_num: int, command: str, bed_width: float, bed_height: float,
                max_z: float, max_feed_rate: float,
                errors: List[str], warnings: List[str]) -> None:
    params = {}
    for match in WORD_RE.finditer(command):
        axis, text = match.group(1).upper(), match.group(2)
        if not NUMBER_RE.fullmatch(text):
            errors.append(f"Line {line_num}: {axis} value '{text}' is not a number")
        elif axis not in params:
            params[axis] = float(text)

    for axis, limit, name in (("X", bed_width, "width"), ("Y", bed_height, "height")):
        if axis not in params:
            continue
        value = params[axis]
        if value < 0:
            errors.append(f"Line {line_num}: {axis} coordinate {value:.2f} is negative")
        elif value > limit:
            errors.append(f"Line {line_num}: {axis} coordinate {value:.2f} exceeds bed {name} ({limit:g}mm)")

    if "Z" in params:
        z = params["Z"]
        if z < 0:
            errors.append(f"Line {line_num}: Z coordinate {z:.2f} is negative")
        elif z > max_z:
            warnings.append(f"Line {line_num}: Z coordinate {z:.2f} is very high (max suggested: {max_z:g}mm)")

    if "F" in params:
        f = params["F"]
        if f <= 0:
            errors.append(f"Line {line_num}: Feed rate F{f:g} must be positive")
        elif f > max_feed_rate:
            warnings.append(f"Line {line_num}: Feed rate F{f:g} is very high (max suggested: {max_feed_rate:g}mm/min)")
        elif f < MIN_FEED_RATE:
            warnings.append(f"Line {line_num}: Feed rate F{f:g} is very low (may cause slow operation)")


def validate_gcode(gcode: str, bed_width: float = 256.0, bed_height: float = 256.0,
                   max_z: float = DEFAULT_MAX_Z,
                   max_feed_rate: float = DEFAULT_MAX_FEED_RATE) -> ValidationResult:
    """Check G-code against the bed and machine limits.

    Args:
        gcode: G-code text
        bed_width: Bed width in mm
        bed_height: Bed height in mm
        max_z: Z above this is a warning
        max_feed_rate: Feed rates above this are a warning

    Returns:
        ValidationResult; valid is False when any error was found
    """
    errors: List[str] = []
    warnings: List[str] = []
    has_home = False
    has_absolute = False

    for line_num, raw in enumerate(gcode.split("\n"), start=1):
        line = raw.strip()
        if not line or line.startswith(";"):
            continue

        command = line.split(";", 1)[0].strip()

        if HOME_RE.search(command):
            has_home = True
        if ABSOLUTE_RE.search(command):
            has_absolute = True

        if MOVE_RE.search(command):
            _check_move(line_num, command, bed_width, bed_height, max_z, max_feed_rate, errors, warnings)

        match = COMMAND_RE.match(command)
        if match:
            code = match.group(1).upper()
            if code not in KNOWN_COMMANDS:
                warnings.append(f"Line {line_num}: Uncommon G-code command {code} (may not be supported)")

    if not has_home:
        warnings.append("Missing G28 home command (recommended at start)")
    if not has_absolute:
        warnings.append("Missing G90 absolute positioning command (recommended at start)")

    summary = _summary(errors, warnings)
    logger.debug(f"Validation: {summary}")
    return ValidationResult(valid=not errors, errors=errors, warnings=warnings, summary=summary)
