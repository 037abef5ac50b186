"""
Terrain checkpoint files.

A checkpoint is CSV text: one header line, then one particle per line with
its position in the first three comma-separated fields. Further fields (e.g.
velocities written by the terrain snapshot) are ignored.

Parsing is explicit per line: well-formed lines become points, malformed lines
are reported back as CheckpointLineError records instead of being guessed at.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import numpy as np

logger = logging.getLogger(__name__)


class CheckpointError(OSError):
    """Raised when a checkpoint cannot be read."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


@dataclass(frozen=True)
class CheckpointLineError:
    """A data line that could not be parsed into a point."""
    line_number: int
    text: str
    reason: str


@dataclass
class CheckpointParseResult:
    """Points parsed from a checkpoint plus the lines that were skipped."""
    points: np.ndarray
    errors: List[CheckpointLineError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _parse_line(line_number: int, line: str):
    tokens = line.split(",")
    if len(tokens) < 3:
        return None, CheckpointLineError(line_number, line, f"expected 3 fields, found {len(tokens)}")
    try:
        return (float(tokens[0]), float(tokens[1]), float(tokens[2])), None
    except ValueError as e:
        return None, CheckpointLineError(line_number, line, str(e))


def parse_checkpoint_lines(lines: Iterable[str]) -> CheckpointParseResult:
    """
    Parse checkpoint text, skipping the first line as the header.

    Blank lines are ignored. Line numbers in errors are 1-based and count the
    header.
    """
    points = []
    errors = []
    for line_number, raw in enumerate(lines, start=1):
        if line_number == 1:
            continue
        line = raw.strip()
        if not line:
            continue
        point, error = _parse_line(line_number, line)
        if error is not None:
            errors.append(error)
        else:
            points.append(point)
    return CheckpointParseResult(np.array(points, dtype=float).reshape(-1, 3), errors)


def load_checkpoint(path: str, strict: bool = False) -> np.ndarray:
    """
    Read particle positions from a checkpoint file.

    Args:
        path: Checkpoint file path
        strict: Raise on the first malformed line instead of skipping it

    Returns:
        Nx3 array of positions in file order

    Raises:
        CheckpointError: If the file cannot be opened, or in strict mode when a
            line is malformed
    """
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            result = parse_checkpoint_lines(f)
    except OSError as e:
        raise CheckpointError(f"Cannot open checkpoint file {path}: {e}", path) from e

    if result.errors:
        if strict:
            first = result.errors[0]
            raise CheckpointError(f"{path}:{first.line_number}: {first.reason}", path)
        logger.warning(f"Skipped {len(result.errors)} malformed lines in {path}")
        for error in result.errors:
            logger.debug(f"{path}:{error.line_number}: {error.reason}")

    logger.info(f"Loaded {len(result.points)} particles from {path}")
    return result.points
